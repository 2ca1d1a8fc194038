"""Dataclasses for tagged domain records and the observations derived from them."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.enums import ControlDimension
from utils.timeutil import parse_datetime


@dataclass
class DomainRecord:
    """One row from an upstream control table, tagged with its origin."""
    table: str = ""
    id: str = ""
    site_id: Optional[str] = None
    fields: dict = field(default_factory=dict)
    observed_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, d):
        """Build from a JSON line: known keys at top level, everything else is a field."""
        fields = dict(d.get("fields") or {})
        for key, val in d.items():
            if key not in ("table", "id", "site_id", "observed_at", "fields"):
                fields.setdefault(key, val)
        return cls(
            table=str(d.get("table", "")),
            id=str(d["id"]) if d.get("id") is not None else "",
            site_id=str(d["site_id"]) if d.get("site_id") is not None else None,
            fields=fields,
            observed_at=parse_datetime(d.get("observed_at")),
        )


@dataclass(frozen=True)
class Observation:
    site_id: str
    dimension: ControlDimension
    metric_key: str
    value: float
    unit: str
    observed_at: datetime
    source_table: str
    source_id: str

    @property
    def sort_key(self):
        """Canonical ordering so aggregation never depends on input order."""
        return (
            self.metric_key,
            self.observed_at.isoformat(),
            self.source_table,
            self.source_id,
            self.value,
        )

    @property
    def alert_key(self):
        return (self.site_id, self.dimension, self.source_table, self.source_id)

    def to_dict(self):
        return {
            "site_id": self.site_id,
            "dimension": self.dimension.value,
            "metric_key": self.metric_key,
            "value": self.value,
            "unit": self.unit,
            "observed_at": self.observed_at.isoformat(),
            "source_table": self.source_table,
            "source_id": self.source_id,
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            site_id=d["site_id"],
            dimension=ControlDimension(d["dimension"]),
            metric_key=d["metric_key"],
            value=float(d["value"]),
            unit=d.get("unit") or "",
            observed_at=parse_datetime(d["observed_at"]),
            source_table=d["source_table"],
            source_id=d["source_id"],
        )
