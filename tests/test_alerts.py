"""Tests for threshold rule loading and alert channels."""
import json
import pytest
from io import StringIO

from rich.console import Console

from alerts.channels import CHANNEL_TYPES, ConsoleChannel, FileChannel, build_channels
from alerts.engine import OPERATOR_MAP
from alerts.rules_manager import RulesManager
from config import DEFAULT_RULES_PATH
from models.alerts import Alert
from models.enums import AlertStatus, ControlDimension, Severity
from factories import EVALUATED_AT


def _alert():
    return Alert(id=3, site_id="S1", dimension=ControlDimension.MATERIAL, severity=Severity.HIGH,
                 title="Material usage far over plan", message="Usage variance 60.0% exceeds 50%",
                 source_table="material_usage", source_id="U1", status=AlertStatus.ACTIVE,
                 created_at=EVALUATED_AT)


def _rules_file(tmp_path, body):
    path = tmp_path / "rules.yaml"
    path.write_text(body)
    return path


# ── Rules ──────────────────────────────────────────────

def test_rules_yaml_loading():
    """Packaged alert_rules.yaml should load without dropping any rule."""
    rm = RulesManager(DEFAULT_RULES_PATH)
    rules = rm.get_all_rules()
    assert len(rules) == 23
    for rule in rules:
        assert rule.id
        assert rule.comparator in OPERATOR_MAP
        assert isinstance(rule.bound, float)
        assert isinstance(rule.severity, Severity)


def test_every_dimension_has_a_score_rule():
    rm = RulesManager(DEFAULT_RULES_PATH)
    covered = {r.dimension for r in rm.get_all_rules() if r.targets_score}
    assert covered == set(ControlDimension)


def test_rules_enabled_filter(tmp_path):
    path = _rules_file(tmp_path, """
rules:
  - {id: a, dimension: material, comparator: "<", bound: 60, severity: medium}
  - {id: b, dimension: material, comparator: "<", bound: 40, severity: high, enabled: false}
""")
    rm = RulesManager(path)
    assert [r.id for r in rm.get_enabled_rules()] == ["a"]
    assert len(rm.get_all_rules()) == 2
    assert rm.get_rule("b").enabled is False
    assert rm.get_rule("zzz") is None
    assert len(rm.get_rules_for("material")) == 2
    assert rm.get_rules_for(ControlDimension.SAFETY) == []


def test_rule_defaults(tmp_path):
    path = _rules_file(tmp_path, """
rules:
  - {id: a, dimension: safety, comparator: "<", bound: 70, severity: HIGH}
""")
    rule = RulesManager(path).get_rule("a")
    assert rule.metric_key == "score"
    assert rule.targets_score
    assert rule.severity == Severity.HIGH
    assert rule.bound == 70.0


@pytest.mark.parametrize("line", [
    '{id: bad, dimension: material, comparator: "!=", bound: 1, severity: low}',
    '{id: bad, dimension: catering, comparator: "<", bound: 1, severity: low}',
    '{id: bad, dimension: material, comparator: "<", bound: 1, severity: urgent}',
    '{id: bad, dimension: material, comparator: "<", bound: lots, severity: low}',
    '{id: bad, dimension: material, comparator: "<", severity: low}',
    '{id: bad, dimension: material, comparator: "<", bound: 1, severity: low, message: "{nope}"}',
    '{dimension: material, comparator: "<", bound: 1, severity: low}',
])
def test_invalid_rules_skipped(tmp_path, line):
    path = _rules_file(tmp_path, f"""
rules:
  - {{id: good, dimension: material, comparator: "<", bound: 60, severity: low}}
  - {line}
""")
    assert [r.id for r in RulesManager(path).get_all_rules()] == ["good"]


def test_duplicate_rule_id_skipped(tmp_path):
    path = _rules_file(tmp_path, """
rules:
  - {id: a, dimension: material, comparator: "<", bound: 60, severity: low}
  - {id: a, dimension: material, comparator: "<", bound: 40, severity: high}
""")
    rules = RulesManager(path).get_all_rules()
    assert len(rules) == 1
    assert rules[0].bound == 60.0


def test_missing_rules_file(tmp_path):
    assert RulesManager(tmp_path / "missing.yaml").get_all_rules() == []


# ── Channels ───────────────────────────────────────────

def test_file_channel(tmp_path):
    """FileChannel should write JSONL."""
    path = tmp_path / "logs" / "alerts.jsonl"
    channel = FileChannel(log_path=path)
    channel.send(_alert())
    channel.send(_alert())

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    entry = json.loads(lines[0])
    assert entry["id"] == 3
    assert entry["severity"] == "high"
    assert entry["dimension"] == "material"
    assert entry["created_at"] == EVALUATED_AT.isoformat()


def test_file_channel_write_failure_is_logged(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    FileChannel(log_path=blocker / "alerts.jsonl").send(_alert())


def test_console_channel():
    buf = StringIO()
    ConsoleChannel(console=Console(file=buf, width=200)).send(_alert())
    text = buf.getvalue()
    assert "[HIGH]" in text
    assert "S1 / Material" in text
    assert "Usage variance 60.0%" in text


def test_build_channels():
    config = {"alerts": {"channels": [
        {"type": "file", "path": "x.jsonl"},
        {"type": "console"},
        {"type": "pager"},
    ]}}
    channels = build_channels(config)
    assert [type(c) for c in channels] == [FileChannel, ConsoleChannel]
    assert str(channels[0].log_path) == "x.jsonl"
    quiet = build_channels(config, interactive=False)
    assert [type(c) for c in quiet] == [FileChannel]
    assert set(CHANNEL_TYPES) == {"console", "file"}


def test_build_channels_empty():
    assert build_channels({}) == []
