"""Threshold rule loading and management."""
import logging
import yaml
from pathlib import Path

from alerts.engine import OPERATOR_MAP, render_message
from models.alerts import ThresholdRule
from models.enums import ControlDimension, Severity

logger = logging.getLogger("site360.alerts.rules")


class RulesManager:
    def __init__(self, rules_path="config/alert_rules.yaml"):
        self.rules_path = Path(rules_path)
        self.rules = []
        self.load()

    def load(self):
        if not self.rules_path.exists():
            logger.warning(f"Alert rules file not found: {self.rules_path}")
            return
        with open(self.rules_path) as f:
            data = yaml.safe_load(f) or {}
        self.rules = self._parse_rules(data.get("rules", []))
        logger.info(f"Loaded {len(self.rules)} threshold rules")

    def _parse_rules(self, raw_rules):
        rules = []
        seen = set()
        for r in raw_rules:
            rule_id = r.get("id")
            if not rule_id or rule_id in seen:
                logger.warning(f"Rule without a unique id skipped: {rule_id!r}")
                continue
            if r.get("comparator") not in OPERATOR_MAP:
                logger.warning(f"Invalid comparator in rule {rule_id}: {r.get('comparator')}")
                continue
            try:
                dimension = ControlDimension(r.get("dimension"))
            except ValueError:
                logger.warning(f"Invalid dimension in rule {rule_id}: {r.get('dimension')}")
                continue
            try:
                severity = Severity(str(r.get("severity", "low")).lower())
            except ValueError:
                logger.warning(f"Invalid severity in rule {rule_id}: {r.get('severity')}")
                continue
            try:
                bound = float(r["bound"])
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Invalid bound in rule {rule_id}: {r.get('bound')}")
                continue

            rule = ThresholdRule(
                id=rule_id,
                dimension=dimension,
                metric_key=r.get("metric_key", "score"),
                comparator=r["comparator"],
                bound=bound,
                severity=severity,
                title=r.get("title", ""),
                message=r.get("message", ""),
                action_required=r.get("action_required"),
                enabled=r.get("enabled", True),
            )
            try:
                render_message(rule, "site", dimension, bound)
            except (KeyError, IndexError, ValueError) as e:
                logger.warning(f"Invalid message template in rule {rule_id}: {e}")
                continue
            seen.add(rule_id)
            rules.append(rule)
        return rules

    def get_enabled_rules(self):
        return [r for r in self.rules if r.enabled]

    def get_rule(self, rule_id):
        for r in self.rules:
            if r.id == rule_id:
                return r
        return None

    def get_all_rules(self):
        return self.rules

    def get_rules_for(self, dimension):
        dimension = ControlDimension(dimension)
        return [r for r in self.rules if r.dimension == dimension]
