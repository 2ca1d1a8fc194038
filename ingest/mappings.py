"""
Declarative mapping from upstream control tables to observations.

Each table maps to one dimension, the fields that locate the record in
space and time, and one or more metric rules. An extractor returns the raw
metric value, or None when the metric does not apply to this record.
Values are not clamped here; raw variance may exceed 100%.
"""
from dataclasses import dataclass
from typing import Callable

from ingest.errors import MissingField
from models.enums import ControlDimension
from utils.timeutil import parse_date, parse_datetime

DEFECT_WEIGHTS = {"low": 1.0, "medium": 2.0, "high": 3.0, "critical": 5.0}
OPEN_DEFECT_STATUSES = {"open", "in_progress", "deferred"}
UNAPPROVED = {"pending", "requires_revision", "rejected"}
DAILY_LOG_FIELDS = ("summary", "weather", "work_performed", "workforce_count", "temperature_high")


@dataclass(frozen=True)
class MetricRule:
    metric_key: str
    unit: str
    extract: Callable
    requires: tuple = ()


@dataclass(frozen=True)
class TableMapping:
    table: str
    dimension: ControlDimension
    metrics: tuple
    observed_at_fields: tuple = ("date", "created_at")


# --- field helpers ---

def number(record, name):
    """Required numeric field."""
    value = record.fields.get(name)
    if value is None or value == "":
        raise MissingField(record.table, record.id, name)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MissingField(record.table, record.id, name, f"not numeric: {value!r}")


def optional_number(record, name):
    value = record.fields.get(name)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise MissingField(record.table, record.id, name, f"not numeric: {value!r}")


def date_field(record, name):
    """Optional ISO date field."""
    value = record.fields.get(name)
    try:
        return parse_date(value)
    except (TypeError, ValueError):
        raise MissingField(record.table, record.id, name, f"not a date: {value!r}")


def timestamp_field(record, name):
    value = record.fields.get(name)
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise MissingField(record.table, record.id, name, f"not a timestamp: {value!r}")


def flag(condition):
    return 1.0 if condition else 0.0


def variance_pct(record, actual_field, planned_field):
    actual = number(record, actual_field)
    planned = number(record, planned_field)
    if planned <= 0:
        raise MissingField(record.table, record.id, planned_field, "must be positive")
    return round((actual - planned) * 100.0 / planned, 4)


def mean_of(record, names):
    values = [v for v in (optional_number(record, n) for n in names) if v is not None]
    if not values:
        return None
    return round(sum(values) / len(values), 4)


# --- extractors ---

def _milestone_delay(record, observed_at):
    target = date_field(record, "target_date")
    finished = date_field(record, "actual_date") or observed_at.date()
    return float(max(0, (finished - target).days))


def _critical_path_delay(record, observed_at):
    if not record.fields.get("is_critical_path"):
        return None
    return _milestone_delay(record, observed_at)


def _inventory_variance(record, observed_at):
    given = optional_number(record, "variance_percentage")
    if given is not None:
        return given
    return variance_pct(record, "actual_quantity", "expected_quantity")


def _inspection_failed(record, observed_at):
    result = record.fields["result"]
    if result == "pending":
        return None
    return flag(result == "fail")


def _open_defect_weight(record, observed_at):
    if record.fields["status"] not in OPEN_DEFECT_STATUSES:
        return 0.0
    return DEFECT_WEIGHTS.get(record.fields["severity"], 1.0)


def _risk_score(record, observed_at):
    given = optional_number(record, "risk_score")
    if given is not None:
        return given
    likelihood = optional_number(record, "likelihood")
    consequence = optional_number(record, "consequence")
    if likelihood is None or consequence is None:
        return None
    return likelihood * consequence


def _permit_expired(record, observed_at):
    if record.fields["status"] in ("expired", "revoked"):
        return 1.0
    expiry = date_field(record, "expiry_date")
    return flag(expiry is not None and expiry < observed_at.date())


def _permit_days_to_expiry(record, observed_at):
    expiry = date_field(record, "expiry_date")
    if expiry is None:
        return None
    return float((expiry - observed_at.date()).days)


def _compliance_failure(record, observed_at):
    status = record.fields["status"]
    if status == "pending":
        return None
    return flag(status in ("rejected", "requires_revision"))


def _daily_log_completeness(record, observed_at):
    filled = sum(1 for name in DAILY_LOG_FIELDS if record.fields.get(name) not in (None, "", []))
    return round(filled * 100.0 / len(DAILY_LOG_FIELDS), 4)


def _document_expired(record, observed_at):
    expires = timestamp_field(record, "expires_at")
    return flag(expires is not None and expires < observed_at)


def _productivity_quality(record, observed_at):
    # quality_rating is recorded on a 1-5 scale; stored scaled to 0-100
    rating = optional_number(record, "quality_rating")
    return None if rating is None else rating * 20.0


def _site_condition(record, observed_at):
    overall = optional_number(record, "overall_score")
    if overall is not None:
        return overall
    return mean_of(record, ("cleanliness_score", "organization_score", "safety_score", "access_score"))


def _hazardous_waste(record, observed_at):
    if record.fields["waste_type"] != "hazardous":
        return None
    return number(record, "quantity")


TABLE_MAPPINGS = {m.table: m for m in (
    TableMapping("plans", ControlDimension.PLANNING, (
        MetricRule("plan_unapproved", "flag",
                   lambda r, t: flag(r.fields["status"] in UNAPPROVED), ("status",)),
    ), ("updated_at", "created_at")),
    TableMapping("change_requests", ControlDimension.DESIGN_CHANGE, (
        MetricRule("change_cost_impact", "currency", lambda r, t: optional_number(r, "cost_impact")),
        MetricRule("change_schedule_impact_days", "days",
                   lambda r, t: optional_number(r, "schedule_impact_days")),
        MetricRule("change_pending", "flag",
                   lambda r, t: flag(r.fields["status"] in ("pending", "requires_revision")), ("status",)),
    ), ("updated_at", "created_at")),
    TableMapping("milestones", ControlDimension.SCHEDULE, (
        MetricRule("milestone_delay_days", "days", _milestone_delay, ("target_date",)),
        MetricRule("critical_path_delay_days", "days", _critical_path_delay, ("target_date",)),
    ), ("updated_at", "created_at")),
    TableMapping("progress_logs", ControlDimension.SCHEDULE, (
        MetricRule("progress_pct", "pct", lambda r, t: optional_number(r, "progress_percentage")),
        MetricRule("blocker_reported", "flag", lambda r, t: flag(r.fields.get("blockers"))),
    )),
    TableMapping("material_usage", ControlDimension.MATERIAL, (
        MetricRule("usage_variance_pct", "pct",
                   lambda r, t: variance_pct(r, "quantity", "planned_quantity"),
                   ("quantity", "planned_quantity")),
    )),
    TableMapping("material_targets", ControlDimension.MATERIAL, (
        MetricRule("target_variance_pct", "pct",
                   lambda r, t: variance_pct(r, "actual_quantity", "planned_quantity"),
                   ("actual_quantity", "planned_quantity")),
    ), ("updated_at", "created_at")),
    TableMapping("inventory_anomalies", ControlDimension.LOSS_PREVENTION, (
        MetricRule("inventory_variance_pct", "pct", _inventory_variance,
                   ("expected_quantity", "actual_quantity")),
        MetricRule("inventory_shortfall", "quantity",
                   lambda r, t: max(0.0, number(r, "expected_quantity") - number(r, "actual_quantity")),
                   ("expected_quantity", "actual_quantity")),
    ), ("detected_at",)),
    TableMapping("inspections", ControlDimension.QUALITY, (
        MetricRule("inspection_score", "score", lambda r, t: optional_number(r, "score")),
        MetricRule("inspection_failed", "flag", _inspection_failed, ("result",)),
    ), ("completed_date", "scheduled_date", "created_at")),
    TableMapping("defects", ControlDimension.QUALITY, (
        MetricRule("open_defect_weight", "weight", _open_defect_weight, ("severity", "status")),
    ), ("updated_at", "created_at")),
    TableMapping("safety_incidents", ControlDimension.SAFETY, (
        MetricRule("incident_count", "count", lambda r, t: flag(r.fields["type"] != "near_miss"), ("type",)),
        MetricRule("near_miss_count", "count", lambda r, t: flag(r.fields["type"] == "near_miss"), ("type",)),
        MetricRule("injuries_count", "count", lambda r, t: optional_number(r, "injuries_count") or 0.0),
    ), ("incident_date", "reported_at")),
    TableMapping("near_misses", ControlDimension.SAFETY, (
        MetricRule("near_miss_count", "count", lambda r, t: 1.0),
    ), ("reported_at",)),
    TableMapping("risk_assessments", ControlDimension.SAFETY, (
        MetricRule("risk_score", "score", _risk_score),
    ), ("assessed_at",)),
    TableMapping("permits", ControlDimension.REGULATORY, (
        MetricRule("permit_expired", "flag", _permit_expired, ("status",)),
        MetricRule("permit_days_to_expiry", "days", _permit_days_to_expiry),
    ), ("updated_at", "created_at")),
    TableMapping("compliance_checks", ControlDimension.REGULATORY, (
        MetricRule("compliance_failure", "flag", _compliance_failure, ("status",)),
    ), ("checked_at",)),
    TableMapping("daily_logs", ControlDimension.DOCUMENTATION, (
        MetricRule("daily_log_completeness_pct", "pct", _daily_log_completeness),
    )),
    TableMapping("documents", ControlDimension.DOCUMENTATION, (
        MetricRule("document_expired", "flag", _document_expired),
    ), ("uploaded_at",)),
    TableMapping("subcontractor_performance", ControlDimension.SUBCONTRACTOR, (
        MetricRule("subcontractor_performance_score", "score",
                   lambda r, t: mean_of(r, ("quality_score", "safety_score", "timeliness_score"))),
    )),
    TableMapping("attendance", ControlDimension.WORKFORCE, (
        MetricRule("overtime_hours", "hours", lambda r, t: optional_number(r, "overtime_hours") or 0.0),
        MetricRule("absence", "flag", lambda r, t: flag(r.fields["status"] == "absent"), ("status",)),
    )),
    TableMapping("productivity_logs", ControlDimension.WORKFORCE, (
        MetricRule("productivity_quality_rating", "pct", _productivity_quality),
    )),
    TableMapping("equipment_usage", ControlDimension.EQUIPMENT, (
        MetricRule("equipment_hours_used", "hours", lambda r, t: number(r, "hours_used"), ("hours_used",)),
        MetricRule("equipment_issue_reported", "flag", lambda r, t: flag(r.fields.get("issues"))),
    )),
    TableMapping("maintenance_logs", ControlDimension.EQUIPMENT, (
        MetricRule("emergency_maintenance", "flag",
                   lambda r, t: flag(r.fields["type"] == "emergency"), ("type",)),
    ), ("completed_date", "scheduled_date", "created_at")),
    TableMapping("site_conditions", ControlDimension.SITE_ORGANIZATION, (
        MetricRule("site_condition_score", "score", _site_condition),
    )),
    TableMapping("waste_logs", ControlDimension.SITE_ORGANIZATION, (
        MetricRule("hazardous_waste_quantity", "quantity", _hazardous_waste, ("waste_type",)),
    )),
)}
