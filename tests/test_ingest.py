"""Tests for the event ingestor and table mappings."""
import pytest
from datetime import datetime, timezone

from ingest import EventIngestor, IngestError, MissingField, UnrecognizedSource, ingest, ingest_batch
from ingest.mappings import TABLE_MAPPINGS
from models.enums import ControlDimension
from models.observations import DomainRecord
from factories import make_record, usage_record


def _by_metric(observations):
    return {o.metric_key: o for o in observations}


# ── Material usage ─────────────────────────────────────

def test_usage_variance():
    obs = ingest(usage_record(120))
    assert len(obs) == 1
    o = obs[0]
    assert o.dimension == ControlDimension.MATERIAL
    assert o.metric_key == "usage_variance_pct"
    assert o.value == 20.0
    assert o.unit == "pct"
    assert o.site_id == "S1"
    assert (o.source_table, o.source_id) == ("material_usage", "U1")
    assert o.observed_at == datetime(2024, 6, 1, 10, 0, tzinfo=timezone.utc)


def test_usage_variance_exact_values():
    assert ingest(usage_record(115))[0].value == 15.0
    assert ingest(usage_record(130))[0].value == 30.0
    assert ingest(usage_record(90))[0].value == -10.0


def test_usage_variance_not_clamped():
    assert ingest(usage_record(350))[0].value == 250.0


def test_zero_planned_quantity():
    with pytest.raises(MissingField) as exc:
        ingest(usage_record(10, planned=0))
    assert exc.value.field == "planned_quantity"


def test_missing_quantity():
    record = make_record("material_usage", planned_quantity=100)
    with pytest.raises(MissingField) as exc:
        ingest(record)
    assert exc.value.field == "quantity"


def test_non_numeric_quantity():
    with pytest.raises(MissingField):
        ingest(usage_record("lots"))


# ── Record resolution ──────────────────────────────────

def test_unrecognized_table():
    with pytest.raises(UnrecognizedSource):
        ingest(make_record("organizations", name="Acme"))


def test_errors_are_ingest_errors():
    assert issubclass(UnrecognizedSource, IngestError)
    assert issubclass(MissingField, IngestError)


def test_site_id_from_fields():
    record = make_record("material_usage", site_id=None, quantity=110, planned_quantity=100)
    record["fields"]["site_id"] = "S9"
    assert ingest(record)[0].site_id == "S9"


def test_missing_site_id():
    record = make_record("material_usage", site_id=None, quantity=110, planned_quantity=100)
    with pytest.raises(MissingField) as exc:
        ingest(record)
    assert exc.value.field == "site_id"


def test_observed_at_from_mapped_field():
    record = make_record("inventory_anomalies", observed_at=None,
                         expected_quantity=100, actual_quantity=80,
                         detected_at="2024-06-02T08:30:00+00:00")
    obs = ingest(record)
    assert obs[0].observed_at == datetime(2024, 6, 2, 8, 30, tzinfo=timezone.utc)


def test_missing_observed_at():
    record = make_record("near_misses", observed_at=None, description="slip")
    with pytest.raises(MissingField) as exc:
        ingest(record)
    assert exc.value.field == "observed_at"


def test_bad_observed_at():
    with pytest.raises(MissingField) as exc:
        ingest(usage_record(110, observed_at="yesterday"))
    assert exc.value.field == "observed_at"
    assert exc.value.record_id == "U1"


def test_bad_date_field():
    record = make_record("milestones", target_date="not-a-date", is_critical_path=False)
    with pytest.raises(MissingField) as exc:
        ingest(record)
    assert exc.value.field == "target_date"


def test_bad_expiry_date():
    with pytest.raises(MissingField) as exc:
        ingest(make_record("permits", status="approved", expiry_date="soon"))
    assert exc.value.field == "expiry_date"


def test_bad_expires_at():
    with pytest.raises(MissingField) as exc:
        ingest(make_record("documents", expires_at="next week"))
    assert exc.value.field == "expires_at"


def test_accepts_domain_record():
    record = DomainRecord.from_dict(usage_record(125))
    assert ingest(record)[0].value == 25.0


def test_flat_record_fields():
    """Unknown top-level keys are treated as fields."""
    record = {"table": "material_usage", "id": "U5", "site_id": "S1",
              "observed_at": "2024-06-01", "quantity": 105, "planned_quantity": 100}
    assert ingest(record)[0].value == 5.0


# ── Other tables ───────────────────────────────────────

def test_inventory_variance_computed_and_shortfall():
    obs = _by_metric(ingest(make_record("inventory_anomalies", expected_quantity=200, actual_quantity=150)))
    assert obs["inventory_variance_pct"].value == -25.0
    assert obs["inventory_shortfall"].value == 50.0
    assert obs["inventory_variance_pct"].dimension == ControlDimension.LOSS_PREVENTION


def test_inventory_variance_given():
    obs = _by_metric(ingest(make_record("inventory_anomalies", expected_quantity=200,
                                        actual_quantity=150, variance_percentage=-24.5)))
    assert obs["inventory_variance_pct"].value == -24.5


def test_milestone_delay_open():
    record = make_record("milestones", observed_at="2024-05-11T00:00:00Z",
                         target_date="2024-05-01", is_critical_path=True)
    obs = _by_metric(ingest(record))
    assert obs["milestone_delay_days"].value == 10.0
    assert obs["critical_path_delay_days"].value == 10.0


def test_milestone_completed_early():
    record = make_record("milestones", target_date="2024-05-10", actual_date="2024-05-08",
                         is_critical_path=False)
    obs = _by_metric(ingest(record))
    assert obs["milestone_delay_days"].value == 0.0
    assert "critical_path_delay_days" not in obs


def test_defect_weights():
    open_obs = ingest(make_record("defects", severity="critical", status="open"))
    closed_obs = ingest(make_record("defects", severity="critical", status="closed"))
    assert open_obs[0].value == 5.0
    assert closed_obs[0].value == 0.0


def test_pending_inspection_skips_failure_flag():
    obs = _by_metric(ingest(make_record("inspections", result="pending")))
    assert obs == {}
    obs = _by_metric(ingest(make_record("inspections", result="fail", score=40)))
    assert obs["inspection_failed"].value == 1.0
    assert obs["inspection_score"].value == 40.0


def test_safety_incident_counts():
    obs = _by_metric(ingest(make_record("safety_incidents", type="injury", injuries_count=2)))
    assert obs["incident_count"].value == 1.0
    assert obs["near_miss_count"].value == 0.0
    assert obs["injuries_count"].value == 2.0

    obs = _by_metric(ingest(make_record("safety_incidents", type="near_miss")))
    assert obs["incident_count"].value == 0.0
    assert obs["near_miss_count"].value == 1.0


def test_risk_score_from_matrix():
    obs = ingest(make_record("risk_assessments", likelihood=4, consequence=5))
    assert obs[0].value == 20.0
    assert ingest(make_record("risk_assessments", description="none")) == []


def test_permit_expiry():
    obs = _by_metric(ingest(make_record("permits", status="approved", expiry_date="2024-06-11")))
    assert obs["permit_expired"].value == 0.0
    assert obs["permit_days_to_expiry"].value == 10.0

    obs = _by_metric(ingest(make_record("permits", status="approved", expiry_date="2024-05-01")))
    assert obs["permit_expired"].value == 1.0


def test_daily_log_completeness():
    obs = ingest(make_record("daily_logs", summary="poured slab", weather="sunny", workforce_count=12))
    assert obs[0].value == 60.0
    assert obs[0].dimension == ControlDimension.DOCUMENTATION


def test_subcontractor_mean():
    obs = ingest(make_record("subcontractor_performance", quality_score=80, safety_score=90,
                             timeliness_score=70))
    assert obs[0].value == 80.0


def test_productivity_rating_scaled():
    obs = ingest(make_record("productivity_logs", quality_rating=4))
    assert obs[0].metric_key == "productivity_quality_rating"
    assert obs[0].value == 80.0


def test_hazardous_waste_only():
    assert ingest(make_record("waste_logs", waste_type="general", quantity=900)) == []
    assert ingest(make_record("waste_logs", waste_type="hazardous", quantity=900))[0].value == 900.0


def test_every_mapping_targets_a_scored_dimension():
    dims = {m.dimension for m in TABLE_MAPPINGS.values()}
    assert ControlDimension.OVERALL_MANAGEMENT not in dims
    assert dims == set(ControlDimension) - {ControlDimension.OVERALL_MANAGEMENT}


# ── Batch ──────────────────────────────────────────────

def test_ingest_batch_collects_errors():
    records = [
        usage_record(120, record_id="U1"),
        usage_record(10, planned=0, record_id="U2"),
        make_record("unknown_table", record_id="X1"),
        usage_record(90, record_id="U3"),
    ]
    observations, errors = ingest_batch(records)
    assert [o.source_id for o in observations] == ["U1", "U3"]
    assert len(errors) == 2
    assert isinstance(errors[0], MissingField)
    assert isinstance(errors[1], UnrecognizedSource)
    assert errors[1].to_dict()["error"] == "UnrecognizedSource"


def test_ingest_batch_survives_bad_dates():
    records = [
        make_record("milestones", record_id="M1", target_date="not-a-date"),
        usage_record(110, record_id="U1", observed_at="yesterday"),
        usage_record(120, record_id="U2"),
    ]
    observations, errors = ingest_batch(records)
    assert [o.source_id for o in observations] == ["U2"]
    assert [e.field for e in errors] == ["target_date", "observed_at"]


def test_custom_mappings():
    ingestor = EventIngestor(mappings={})
    with pytest.raises(UnrecognizedSource):
        ingestor.ingest(usage_record(120))
