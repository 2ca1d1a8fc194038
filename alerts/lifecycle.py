"""Human alert transitions. Each returns a new Alert; the input is never modified."""
import dataclasses
from datetime import datetime, timezone

from models.enums import AlertStatus

# status -> statuses it may move to by hand
ALLOWED_TRANSITIONS = {
    AlertStatus.ACTIVE: {AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED, AlertStatus.DISMISSED},
    AlertStatus.ACKNOWLEDGED: {AlertStatus.RESOLVED, AlertStatus.DISMISSED},
    AlertStatus.RESOLVED: set(),
    AlertStatus.DISMISSED: set(),
}


class AlertError(Exception):
    pass


class InvalidTransition(AlertError):
    def __init__(self, alert_id, current, target):
        self.alert_id = alert_id
        self.current = current
        self.target = target
        super().__init__(f"Alert {alert_id}: cannot move from {current.value} to {target.value}")


def _check(alert, target):
    if target not in ALLOWED_TRANSITIONS[alert.status]:
        raise InvalidTransition(alert.id, alert.status, target)


def acknowledge(alert, by, at=None):
    _check(alert, AlertStatus.ACKNOWLEDGED)
    return dataclasses.replace(
        alert,
        status=AlertStatus.ACKNOWLEDGED,
        acknowledged_at=at or datetime.now(timezone.utc),
        acknowledged_by=by,
    )


def resolve(alert, by, at=None, action_taken=None):
    _check(alert, AlertStatus.RESOLVED)
    return dataclasses.replace(
        alert,
        status=AlertStatus.RESOLVED,
        resolved_at=at or datetime.now(timezone.utc),
        resolved_by=by,
        action_taken=action_taken if action_taken is not None else alert.action_taken,
    )


def dismiss(alert, by, at=None, action_taken=None):
    """Close without resolution. The closing actor is kept in resolved_at/resolved_by."""
    _check(alert, AlertStatus.DISMISSED)
    return dataclasses.replace(
        alert,
        status=AlertStatus.DISMISSED,
        resolved_at=at or datetime.now(timezone.utc),
        resolved_by=by,
        action_taken=action_taken if action_taken is not None else alert.action_taken,
    )


TRANSITIONS = {
    "acknowledge": acknowledge,
    "resolve": resolve,
    "dismiss": dismiss,
}
