"""Tests for formatters, labels and time helpers."""
import pytest
from datetime import date, datetime, timedelta, timezone

from models.enums import ControlDimension, Severity, Trend
from utils.constants import dimension_label, score_status
from utils.formatters import format_pct, format_score, format_severity, format_timestamp, format_trend, time_ago
from utils.timeutil import parse_date, parse_datetime, start_of_day


def test_format_score():
    assert format_score(85) == "85.0"
    assert format_score(93.333) == "93.3"
    assert format_score(None) == "N/A"


def test_format_score_colored():
    assert "green" in format_score(85, with_color=True)
    assert "yellow" in format_score(65, with_color=True)
    assert "red" in format_score(30, with_color=True)


def test_format_pct():
    assert format_pct(5.4) == "+5.40%"
    assert format_pct(-12.5) == "-12.50%"
    assert format_pct(0) == "+0.00%"
    assert format_pct(None) == "N/A"


def test_format_trend():
    assert format_trend(Trend.UP) == "▲"
    assert format_trend("down") == "▼"
    assert "dim" in format_trend(Trend.FLAT, with_color=True)
    assert format_trend(None) == ""


def test_format_severity():
    assert format_severity(Severity.HIGH) == "HIGH"
    assert format_severity("critical", with_color=True) == "[bold red]CRITICAL[/bold red]"


def test_format_timestamp():
    assert format_timestamp(datetime(2024, 6, 1, 18, 0)) == "2024-06-01 18:00 UTC"
    assert format_timestamp(None) == "N/A"


def test_time_ago():
    now = datetime(2024, 6, 10, tzinfo=timezone.utc)
    assert time_ago(now - timedelta(seconds=30), now=now) == "30s ago"
    assert time_ago(now - timedelta(minutes=5), now=now) == "5m ago"
    assert time_ago(now - timedelta(hours=3), now=now) == "3h ago"
    assert time_ago(now - timedelta(days=2), now=now) == "2d ago"
    assert time_ago(None) == "N/A"


def test_score_status_bands():
    assert score_status(80) == "good"
    assert score_status(79.99) == "warning"
    assert score_status(60) == "warning"
    assert score_status(59.9) == "alert"
    assert score_status(None) == "unknown"


def test_dimension_label():
    assert dimension_label(ControlDimension.LOSS_PREVENTION) == "Loss Prevention"
    assert dimension_label("overall_management") == "Overall Management"
    assert dimension_label(None) == "Site"


def test_parse_datetime():
    assert parse_datetime("2024-06-01T10:00:00Z") == datetime(2024, 6, 1, 10, tzinfo=timezone.utc)
    assert parse_datetime("2024-06-01T12:00:00+02:00") == datetime(2024, 6, 1, 10, tzinfo=timezone.utc)
    assert parse_datetime("2024-06-01") == datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert parse_datetime(date(2024, 6, 1)) == datetime(2024, 6, 1, tzinfo=timezone.utc)
    assert parse_datetime("") is None
    with pytest.raises(ValueError):
        parse_datetime("yesterday")


def test_parse_date_and_start_of_day():
    assert parse_date("2024-06-01T23:30:00Z") == date(2024, 6, 1)
    assert parse_date(datetime(2024, 6, 1, 5)) == date(2024, 6, 1)
    assert parse_date(None) is None
    assert start_of_day(date(2024, 6, 1)) == datetime(2024, 6, 1, tzinfo=timezone.utc)
