"""Tests for the database module."""
import pytest
from datetime import date, datetime, timedelta, timezone

from alerts.lifecycle import acknowledge, resolve
from models.alerts import AlertInsert, AlertUpdate, AutoResolve, Create, UpdateExisting
from models.enums import AlertStatus, ControlDimension, Severity, Trend
from models.scores import ControlScoreInsert, ControlScoreUpdate
from factories import DAY, EVALUATED_AT, OBSERVED_AT, make_obs, make_score

MATERIAL = ControlDimension.MATERIAL


def _alert(source_id="U1", severity=Severity.MEDIUM, created_at=EVALUATED_AT):
    return AlertInsert(
        site_id="S1",
        severity=severity,
        title="Material usage over plan",
        message="Usage variance 30.0%",
        dimension=MATERIAL,
        source_table="material_usage",
        source_id=source_id,
        created_at=created_at,
    )


def test_table_creation(temp_db):
    """Verify all tables exist after init."""
    tables = temp_db.conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table'"
    ).fetchall()
    names = {t["name"] for t in tables}
    assert {"observations", "control_scores", "alerts"} <= names


def test_empty_db(temp_db):
    assert temp_db.get_latest_scores() == []
    assert temp_db.get_open_alerts() == []
    assert temp_db.get_alert_stats() == {}
    assert temp_db.get_site_ids() == []


# ── Observations ───────────────────────────────────────

def test_save_and_get_observations(temp_db):
    temp_db.save_observations([make_obs(30.0), make_obs(1, "incident_count", ControlDimension.SAFETY,
                                                        source_table="safety_incidents", source_id="I1")])
    all_obs = temp_db.get_observations("S1")
    assert len(all_obs) == 2
    material = temp_db.get_observations("S1", dimension=MATERIAL, day=DAY)
    assert material == [make_obs(30.0)]
    assert temp_db.get_observations("S1", day=DAY + timedelta(days=1)) == []


def test_reingested_record_replaces_observation(temp_db):
    temp_db.save_observations([make_obs(30.0)])
    temp_db.save_observations([make_obs(10.0)])
    observations = temp_db.get_observations("S1")
    assert len(observations) == 1
    assert observations[0].value == 10.0


def test_observation_days(temp_db):
    later = OBSERVED_AT + timedelta(days=2)
    temp_db.save_observations([make_obs(1.0), make_obs(2.0, source_id="U2", observed_at=later)])
    assert temp_db.get_observation_days("S1") == ["2024-06-01", "2024-06-03"]


# ── Scores ─────────────────────────────────────────────

def test_upsert_score_single_slot(temp_db):
    first = temp_db.upsert_score(make_score(70.0))
    second = temp_db.upsert_score(make_score(85.0))
    assert first == second
    stored = temp_db.get_score("S1", MATERIAL, DAY)
    assert stored.score == 85.0
    assert stored.id == first
    rows = temp_db.select("control_scores")
    assert len(rows) == 1


def test_score_round_trip_fields(temp_db):
    score = make_score(70.0)
    score.factors = {"usage_variance_pct": {"value": 30.0, "contribution": -30.0}}
    score.trend = Trend.DOWN
    score.recommendations = "Reconcile material usage against the plan."
    score.calculated_at = datetime(2024, 6, 1, tzinfo=timezone.utc)
    temp_db.upsert_score(score)
    stored = temp_db.get_score("S1", MATERIAL, DAY)
    assert stored.factors == score.factors
    assert stored.trend == Trend.DOWN
    assert stored.recommendations == score.recommendations
    assert stored.calculated_at == score.calculated_at
    assert stored.calculated_by == "system"


def test_calculated_at_assigned_by_store(temp_db):
    temp_db.upsert_score(ControlScoreInsert("S1", MATERIAL, DAY, 70.0))
    assert temp_db.get_score("S1", MATERIAL, DAY).calculated_at is not None


def test_score_out_of_range_rejected():
    with pytest.raises(ValueError):
        ControlScoreInsert("S1", MATERIAL, DAY, 101.0)


def test_previous_score_strictly_before(temp_db):
    temp_db.upsert_score(make_score(60.0, day=DAY - timedelta(days=2)))
    temp_db.upsert_score(make_score(70.0, day=DAY))
    prev = temp_db.get_previous_score("S1", MATERIAL, DAY)
    assert prev.score == 60.0
    assert temp_db.get_previous_score("S1", MATERIAL, DAY - timedelta(days=2)) is None


def test_latest_scores_and_history(temp_db):
    for offset, value in enumerate([50.0, 60.0, 70.0]):
        temp_db.upsert_score(make_score(value, day=DAY + timedelta(days=offset)))
    temp_db.upsert_score(make_score(90.0, ControlDimension.SAFETY, site_id="S2"))
    latest = temp_db.get_latest_scores()
    assert [(s.site_id, s.score) for s in latest] == [("S1", 70.0), ("S2", 90.0)]
    assert [s.score for s in temp_db.get_latest_scores("S1")] == [70.0]
    history = temp_db.get_score_history("S1", MATERIAL)
    assert [s.score for s in history] == [50.0, 60.0, 70.0]
    assert temp_db.get_site_ids() == ["S1", "S2"]


def test_update_score_keeps_natural_key(temp_db):
    score_id = temp_db.upsert_score(make_score(70.0))
    assert temp_db.update_score(score_id, ControlScoreUpdate(score=72.5))
    assert temp_db.get_score("S1", MATERIAL, DAY).score == 72.5
    with pytest.raises(ValueError, match="immutable"):
        temp_db.update("control_scores", score_id, {"date": "2024-06-02"})


# ── Generic access ─────────────────────────────────────

def test_insert_rejects_client_id(temp_db):
    with pytest.raises(ValueError, match="assigned by the store"):
        temp_db.insert("alerts", {"id": 5, "site_id": "S1"})


def test_insert_rejects_unknown_columns(temp_db):
    with pytest.raises(ValueError, match="unknown columns"):
        temp_db.insert("alerts", {"site_id": "S1", "colour": "red"})


def test_unknown_entity(temp_db):
    with pytest.raises(KeyError):
        temp_db.get("budgets", 1)


def test_select_filters(temp_db):
    temp_db.create_alert(_alert("U1"))
    temp_db.create_alert(_alert("U2", severity=Severity.HIGH))
    rows = temp_db.select("alerts", severity=Severity.HIGH)
    assert [r["source_id"] for r in rows] == ["U2"]
    with pytest.raises(ValueError):
        temp_db.select("alerts", colour="red")


# ── Alerts ─────────────────────────────────────────────

def test_create_alert_assigns_id_and_created_at(temp_db):
    alert_id = temp_db.create_alert(_alert(created_at=None))
    alert = temp_db.get_alert(alert_id)
    assert alert.id == alert_id
    assert alert.created_at is not None
    assert alert.status == AlertStatus.ACTIVE


def test_one_open_alert_per_key(temp_db):
    assert temp_db.create_alert(_alert()) is not None
    assert temp_db.create_alert(_alert()) is None
    assert len(temp_db.get_open_alerts()) == 1


def test_closed_alert_frees_key(temp_db):
    alert_id = temp_db.create_alert(_alert())
    temp_db.update("alerts", alert_id, AlertUpdate(status=AlertStatus.RESOLVED))
    assert temp_db.create_alert(_alert()) is not None


def test_alert_stats_and_listing(temp_db):
    temp_db.create_alert(_alert("U1"))
    temp_db.create_alert(_alert("U2", severity=Severity.HIGH))
    temp_db.create_alert(_alert("U3", severity=Severity.HIGH))
    assert temp_db.get_alert_stats() == {"medium": 1, "high": 2}
    assert len(temp_db.get_alerts(status="active")) == 3
    assert len(temp_db.get_alerts(limit=2)) == 2
    assert temp_db.get_alerts(site_id="S9") == []


def test_update_id_is_immutable(temp_db):
    alert_id = temp_db.create_alert(_alert())
    with pytest.raises(ValueError, match="immutable"):
        temp_db.update("alerts", alert_id, {"id": 99})


def test_compare_and_set(temp_db):
    alert_id = temp_db.create_alert(_alert())
    changes = AlertUpdate(severity=Severity.HIGH)
    assert not temp_db.update("alerts", alert_id, changes, expected={"status": "acknowledged"})
    assert temp_db.get_alert(alert_id).severity == Severity.MEDIUM
    assert temp_db.update("alerts", alert_id, changes, expected={"status": "active"})
    assert temp_db.get_alert(alert_id).severity == Severity.HIGH


def test_empty_update_respects_expected(temp_db):
    alert_id = temp_db.create_alert(_alert())
    assert temp_db.update("alerts", alert_id, AlertUpdate(), expected={"status": "active"})
    assert not temp_db.update("alerts", alert_id, AlertUpdate(), expected={"status": "resolved"})
    assert not temp_db.update("alerts", 999, AlertUpdate())


def test_apply_mutations(temp_db):
    alert_id = temp_db.apply_mutation(Create(_alert()))
    update = UpdateExisting(alert_id, AlertStatus.ACTIVE, AlertUpdate(message="Usage variance 40.0%"))
    assert temp_db.apply_mutation(update) == alert_id
    assert temp_db.get_alert(alert_id).message == "Usage variance 40.0%"

    resolve_at = EVALUATED_AT + timedelta(hours=1)
    assert temp_db.apply_mutation(AutoResolve(alert_id, AlertStatus.ACTIVE, resolve_at)) == alert_id
    alert = temp_db.get_alert(alert_id)
    assert alert.status == AlertStatus.RESOLVED
    assert alert.resolved_by == "system"
    assert alert.resolved_at == resolve_at


def test_stale_mutation_is_a_conflict(temp_db):
    alert_id = temp_db.create_alert(_alert())
    temp_db.save_alert_transition(temp_db.get_alert(alert_id),
                                  acknowledge(temp_db.get_alert(alert_id), "lee"))
    stale = AutoResolve(alert_id, AlertStatus.ACTIVE, EVALUATED_AT)
    assert temp_db.apply_mutation(stale) is None
    assert temp_db.get_alert(alert_id).status == AlertStatus.ACKNOWLEDGED


def test_apply_unknown_mutation(temp_db):
    with pytest.raises(TypeError):
        temp_db.apply_mutation("create")


def test_save_alert_transition(temp_db):
    alert_id = temp_db.create_alert(_alert())
    before = temp_db.get_alert(alert_id)
    after = resolve(before, "lee", at=EVALUATED_AT, action_taken="Recounted stock")
    assert temp_db.save_alert_transition(before, after)
    stored = temp_db.get_alert(alert_id)
    assert stored.status == AlertStatus.RESOLVED
    assert stored.resolved_by == "lee"
    assert stored.action_taken == "Recounted stock"
    # The same transition again no longer matches the stored status
    assert not temp_db.save_alert_transition(before, after)
