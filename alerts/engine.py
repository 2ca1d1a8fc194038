"""Alert dispatcher: scores and anomaly observations against threshold rules."""
import logging
from datetime import datetime, timezone

from models.alerts import AlertInsert, AlertUpdate, AutoResolve, Create, UpdateExisting
from models.enums import ControlDimension, Severity
from utils.constants import SCORE_SOURCE_TABLE, dimension_label

logger = logging.getLogger("site360.alerts.engine")

OPERATOR_MAP = {
    "<": lambda v, t: v < t,
    ">": lambda v, t: v > t,
    "<=": lambda v, t: v <= t,
    ">=": lambda v, t: v >= t,
    "==": lambda v, t: v == t,
}

DEFAULT_MESSAGE = "{label} {metric_key} = {value:.2f} ({comparator} {bound:g})"


def score_alert_key(score):
    dimension = ControlDimension(score.dimension)
    return (score.site_id, dimension, SCORE_SOURCE_TABLE, f"{score.site_id}:{dimension.value}")


def _sortable(key):
    return tuple("" if part is None else str(getattr(part, "value", part)) for part in key)


def render_message(rule, site_id, dimension, value):
    template = rule.message or DEFAULT_MESSAGE
    return template.format(
        label=dimension_label(dimension),
        site_id=site_id,
        dimension=ControlDimension(dimension).value,
        metric_key=rule.metric_key,
        value=value,
        comparator=rule.comparator,
        bound=rule.bound,
    )


def render_title(rule, dimension):
    if rule.title:
        return rule.title
    return f"{dimension_label(dimension)}: {rule.metric_key} threshold breached"


class AlertDispatcher:
    def __init__(self, channels=None):
        self.channels = channels or []

    def _evaluate_condition(self, value, comparator, bound):
        if value is None:
            return False
        func = OPERATOR_MAP.get(comparator)
        if func is None:
            return False
        return func(value, bound)

    def _collect(self, scores, anomalies, rules):
        """Return (evaluated keys, key -> (rule, value, site_id, dimension)) for the worst breach per key."""
        enabled = [r for r in rules if r.enabled]
        evaluated = set()
        breaches = {}

        def consider(key, site_id, dimension, value, applicable):
            if not applicable:
                return
            evaluated.add(key)
            for rule in applicable:
                if not self._evaluate_condition(value, rule.comparator, rule.bound):
                    continue
                current = breaches.get(key)
                if current is None or rule.severity.rank > current[0].severity.rank:
                    breaches[key] = (rule, value, site_id, dimension)

        for score in scores:
            applicable = [r for r in enabled if r.targets_score and r.dimension == score.dimension]
            consider(score_alert_key(score), score.site_id, score.dimension, score.score, applicable)

        for obs in anomalies:
            applicable = [
                r for r in enabled
                if not r.targets_score and r.metric_key == obs.metric_key and r.dimension == obs.dimension
            ]
            consider(obs.alert_key, obs.site_id, obs.dimension, obs.value, applicable)

        return evaluated, breaches

    def evaluate(self, scores, anomalies, rules, open_alerts=(), evaluated_at=None):
        """Produce Create / UpdateExisting / AutoResolve mutations. Never touches storage."""
        evaluated_at = evaluated_at or datetime.now(timezone.utc)
        evaluated, breaches = self._collect(scores, anomalies, rules)

        open_by_key = {}
        for alert in sorted(open_alerts, key=lambda a: a.id or 0):
            if not alert.is_open:
                continue
            if alert.alert_key in open_by_key:
                logger.warning(f"Duplicate open alert {alert.id} for {alert.alert_key}; using {open_by_key[alert.alert_key].id}")
                continue
            open_by_key[alert.alert_key] = alert

        mutations = []
        for key in sorted(breaches, key=_sortable):
            rule, value, site_id, dimension = breaches[key]
            title = render_title(rule, dimension)
            message = render_message(rule, site_id, dimension, value)
            existing = open_by_key.get(key)

            if existing is None:
                mutations.append(Create(AlertInsert(
                    site_id=site_id,
                    severity=rule.severity,
                    title=title,
                    message=message,
                    dimension=dimension,
                    source_table=key[2],
                    source_id=key[3],
                    action_required=rule.action_required,
                    created_at=evaluated_at,
                )))
                continue

            changes = AlertUpdate(
                severity=rule.severity if rule.severity != existing.severity else None,
                title=title if title != existing.title else None,
                message=message if message != existing.message else None,
                action_required=(rule.action_required
                                 if rule.action_required != existing.action_required else None),
            )
            mutations.append(UpdateExisting(
                alert_id=existing.id,
                expected_status=existing.status,
                changes=changes,
                previous_severity=existing.severity,
            ))

        for key in sorted(open_by_key, key=_sortable):
            if key in evaluated and key not in breaches:
                existing = open_by_key[key]
                mutations.append(AutoResolve(
                    alert_id=existing.id,
                    expected_status=existing.status,
                    resolved_at=evaluated_at,
                ))

        logger.debug(
            f"Evaluated {len(evaluated)} keys: {len(breaches)} breaching, {len(mutations)} mutations"
        )
        return mutations

    def notify(self, alert):
        """Send an alert to every channel; a failing channel never stops the others."""
        for channel in self.channels:
            try:
                channel.send(alert)
            except Exception as e:
                logger.warning(f"Channel dispatch error: {e}")

    def format_alert_summary(self, alerts):
        """Format alerts for display."""
        if not alerts:
            return "All clear - no open alerts."
        icons = {Severity.CRITICAL: "!!!", Severity.HIGH: "!!", Severity.MEDIUM: "!", Severity.LOW: "i"}
        lines = []
        for a in alerts:
            lines.append(f"[{icons.get(a.severity, '?')}] [{a.severity.value.upper()}] {a.site_id} {a.title}")
        return "\n".join(lines)


_default = AlertDispatcher()


def evaluate(scores, anomalies, rules, open_alerts=(), evaluated_at=None):
    return _default.evaluate(scores, anomalies, rules, open_alerts=open_alerts, evaluated_at=evaluated_at)
