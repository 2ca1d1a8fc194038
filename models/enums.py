"""Enums for control dimensions, severity, alert status, and trends."""
from enum import Enum


class ControlDimension(str, Enum):
    PLANNING = "planning"
    DESIGN_CHANGE = "design_change"
    SCHEDULE = "schedule"
    MATERIAL = "material"
    LOSS_PREVENTION = "loss_prevention"
    QUALITY = "quality"
    SAFETY = "safety"
    REGULATORY = "regulatory"
    DOCUMENTATION = "documentation"
    SUBCONTRACTOR = "subcontractor"
    WORKFORCE = "workforce"
    EQUIPMENT = "equipment"
    SITE_ORGANIZATION = "site_organization"
    # Aggregate of the thirteen above
    OVERALL_MANAGEMENT = "overall_management"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self):
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class AlertStatus(str, Enum):
    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


OPEN_STATUSES = (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)


class Trend(str, Enum):
    UP = "up"
    DOWN = "down"
    FLAT = "flat"


class ScoringMode(str, Enum):
    PENALTY = "penalty"
    WEIGHTED_MEAN = "weighted_mean"
