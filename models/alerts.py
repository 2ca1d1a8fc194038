"""Dataclasses for threshold rules, alerts, and the mutations the dispatcher emits."""
from dataclasses import dataclass, field, fields as dc_fields
from datetime import datetime
from typing import Optional

from models.enums import AlertStatus, ControlDimension, Severity, OPEN_STATUSES
from utils.timeutil import parse_datetime, isoformat_or_none

SYSTEM_ACTOR = "system"


@dataclass
class ThresholdRule:
    id: str = ""
    dimension: ControlDimension = ControlDimension.OVERALL_MANAGEMENT
    metric_key: str = "score"
    comparator: str = "<"
    bound: float = 0.0
    severity: Severity = Severity.LOW
    title: str = ""
    message: str = ""
    action_required: Optional[str] = None
    enabled: bool = True

    @property
    def targets_score(self):
        return self.metric_key == "score"


@dataclass
class Alert:
    id: Optional[int] = None
    site_id: str = ""
    dimension: Optional[ControlDimension] = None
    severity: Severity = Severity.LOW
    title: str = ""
    message: str = ""
    source_table: Optional[str] = None
    source_id: Optional[str] = None
    status: AlertStatus = AlertStatus.ACTIVE
    action_required: Optional[str] = None
    action_taken: Optional[str] = None
    created_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    @property
    def alert_key(self):
        return (self.site_id, self.dimension, self.source_table, self.source_id)

    @property
    def is_open(self):
        return self.status in OPEN_STATUSES

    def to_dict(self):
        return {
            "id": self.id,
            "site_id": self.site_id,
            "dimension": self.dimension.value if self.dimension else None,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "source_table": self.source_table,
            "source_id": self.source_id,
            "status": self.status.value,
            "action_required": self.action_required,
            "action_taken": self.action_taken,
            "created_at": isoformat_or_none(self.created_at),
            "acknowledged_at": isoformat_or_none(self.acknowledged_at),
            "acknowledged_by": self.acknowledged_by,
            "resolved_at": isoformat_or_none(self.resolved_at),
            "resolved_by": self.resolved_by,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            id=d.get("id"),
            site_id=d["site_id"],
            dimension=ControlDimension(d["dimension"]) if d.get("dimension") else None,
            severity=Severity(d["severity"]),
            title=d.get("title") or "",
            message=d.get("message") or "",
            source_table=d.get("source_table"),
            source_id=d.get("source_id"),
            status=AlertStatus(d.get("status") or "active"),
            action_required=d.get("action_required"),
            action_taken=d.get("action_taken"),
            created_at=parse_datetime(d.get("created_at")),
            acknowledged_at=parse_datetime(d.get("acknowledged_at")),
            acknowledged_by=d.get("acknowledged_by"),
            resolved_at=parse_datetime(d.get("resolved_at")),
            resolved_by=d.get("resolved_by"),
        )


@dataclass
class AlertInsert:
    """Creation shape: the store assigns ``id``; ``created_at`` is optional."""
    site_id: str
    severity: Severity
    title: str
    message: str
    dimension: Optional[ControlDimension] = None
    source_table: Optional[str] = None
    source_id: Optional[str] = None
    status: AlertStatus = AlertStatus.ACTIVE
    action_required: Optional[str] = None
    action_taken: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def alert_key(self):
        return (self.site_id, self.dimension, self.source_table, self.source_id)

    def to_row(self):
        return {
            "site_id": self.site_id,
            "dimension": ControlDimension(self.dimension).value if self.dimension else None,
            "severity": Severity(self.severity).value,
            "title": self.title,
            "message": self.message,
            "source_table": self.source_table,
            "source_id": self.source_id,
            "status": AlertStatus(self.status).value,
            "action_required": self.action_required,
            "action_taken": self.action_taken,
            "created_at": isoformat_or_none(self.created_at),
        }


@dataclass
class AlertUpdate:
    """Partial update. ``id`` is immutable and has no field here."""
    severity: Optional[Severity] = None
    title: Optional[str] = None
    message: Optional[str] = None
    status: Optional[AlertStatus] = None
    action_required: Optional[str] = None
    action_taken: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    def is_empty(self):
        return not self.to_row()

    def to_row(self):
        row = {}
        for f in dc_fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, datetime):
                value = value.isoformat()
            elif hasattr(value, "value"):
                value = value.value
            row[f.name] = value
        return row


# --- Mutations emitted by the dispatcher ---

@dataclass(frozen=True)
class Create:
    alert: AlertInsert
    kind: str = field(default="create", init=False)


@dataclass(frozen=True)
class UpdateExisting:
    alert_id: int
    expected_status: AlertStatus
    changes: AlertUpdate
    previous_severity: Optional[Severity] = None
    kind: str = field(default="update", init=False)

    @property
    def escalated(self):
        new = self.changes.severity
        return bool(new and self.previous_severity and new.rank > self.previous_severity.rank)


@dataclass(frozen=True)
class AutoResolve:
    alert_id: int
    expected_status: AlertStatus
    resolved_at: datetime
    resolved_by: str = SYSTEM_ACTOR
    kind: str = field(default="auto_resolve", init=False)
