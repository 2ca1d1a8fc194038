"""Data models."""
from models.enums import ControlDimension, Severity, AlertStatus, Trend, ScoringMode, OPEN_STATUSES
from models.observations import DomainRecord, Observation
from models.scores import ControlScore, ControlScoreInsert, ControlScoreUpdate
from models.alerts import (
    ThresholdRule, Alert, AlertInsert, AlertUpdate, Create, UpdateExisting, AutoResolve,
    SYSTEM_ACTOR,
)
