"""Dataclasses for control scores: stored row, insert shape, and partial update."""
import json
from dataclasses import dataclass, field, fields as dc_fields
from datetime import date, datetime
from typing import Optional

from models.enums import ControlDimension, Trend
from utils.timeutil import parse_date, parse_datetime, isoformat_or_none


@dataclass
class ControlScore:
    site_id: str = ""
    dimension: ControlDimension = ControlDimension.OVERALL_MANAGEMENT
    date: Optional[date] = None
    score: float = 0.0
    factors: dict = field(default_factory=dict)
    trend: Trend = Trend.FLAT
    recommendations: Optional[str] = None
    calculated_at: Optional[datetime] = None
    calculated_by: str = "system"
    id: Optional[int] = None

    @property
    def natural_key(self):
        return (self.site_id, self.dimension, self.date)

    def to_dict(self):
        return {
            "id": self.id,
            "site_id": self.site_id,
            "dimension": self.dimension.value,
            "date": isoformat_or_none(self.date),
            "score": self.score,
            "factors": self.factors,
            "trend": self.trend.value,
            "recommendations": self.recommendations,
            "calculated_at": isoformat_or_none(self.calculated_at),
            "calculated_by": self.calculated_by,
        }

    @classmethod
    def from_dict(cls, d):
        """Reconstruct from a flat dict (e.g., DB row with JSON factors)."""
        factors = d.get("factors") or {}
        if isinstance(factors, str):
            factors = json.loads(factors)
        return cls(
            id=d.get("id"),
            site_id=d["site_id"],
            dimension=ControlDimension(d["dimension"]),
            date=parse_date(d.get("date")),
            score=float(d.get("score", 0)),
            factors=factors,
            trend=Trend(d.get("trend") or "flat"),
            recommendations=d.get("recommendations"),
            calculated_at=parse_datetime(d.get("calculated_at")),
            calculated_by=d.get("calculated_by") or "system",
        )

    def to_insert(self):
        return ControlScoreInsert(
            site_id=self.site_id,
            dimension=self.dimension,
            date=self.date,
            score=self.score,
            factors=self.factors,
            trend=self.trend,
            recommendations=self.recommendations,
            calculated_at=self.calculated_at,
            calculated_by=self.calculated_by,
        )


@dataclass
class ControlScoreInsert:
    """Creation shape: the store assigns ``id`` and may default ``calculated_at``."""
    site_id: str
    dimension: ControlDimension
    date: date
    score: float
    factors: dict = field(default_factory=dict)
    trend: Trend = Trend.FLAT
    recommendations: Optional[str] = None
    calculated_at: Optional[datetime] = None
    calculated_by: str = "system"

    def __post_init__(self):
        if not 0 <= self.score <= 100:
            raise ValueError(f"score out of range: {self.score}")

    def to_row(self):
        return {
            "site_id": self.site_id,
            "dimension": ControlDimension(self.dimension).value,
            "date": self.date.isoformat(),
            "score": self.score,
            "factors": json.dumps(self.factors, sort_keys=True),
            "trend": Trend(self.trend).value,
            "recommendations": self.recommendations,
            "calculated_at": isoformat_or_none(self.calculated_at),
            "calculated_by": self.calculated_by,
        }


@dataclass
class ControlScoreUpdate:
    """Partial update. The id and the natural key are immutable."""
    score: Optional[float] = None
    factors: Optional[dict] = None
    trend: Optional[Trend] = None
    recommendations: Optional[str] = None
    calculated_at: Optional[datetime] = None
    calculated_by: Optional[str] = None

    def to_row(self):
        row = {}
        for f in dc_fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name == "factors":
                value = json.dumps(value, sort_keys=True)
            elif f.name == "trend":
                value = Trend(value).value
            elif f.name == "calculated_at":
                value = value.isoformat()
            row[f.name] = value
        return row
