"""
Scoring profiles: per-dimension formulas loaded from configuration.

A profile is a mode plus a list of terms. Each term names a metric, how its
observations are aggregated, and how the aggregate moves the score.
"""
import math
from dataclasses import dataclass
from typing import Optional

from models.enums import ControlDimension, ScoringMode


class ScoringConfigError(Exception):
    """Scoring configuration is incomplete or malformed."""


AGGREGATES = {
    "sum": lambda values: math.fsum(values),
    "mean": lambda values: math.fsum(values) / len(values),
    "mean_abs": lambda values: math.fsum(abs(v) for v in values) / len(values),
    "max": max,
    "max_abs": lambda values: max(abs(v) for v in values),
    "min": min,
    "count": lambda values: float(len(values)),
    "last": lambda values: values[-1],
}


@dataclass(frozen=True)
class Term:
    metric_key: str
    aggregate: str = "mean"
    weight: float = 1.0
    absolute: bool = False
    cap: Optional[float] = None
    scale: float = 1.0
    invert: bool = False
    advice: Optional[str] = None

    def aggregate_values(self, values):
        return AGGREGATES[self.aggregate](values)

    def measure(self, values):
        """Aggregate, scale, and optionally fold the sign or invert against 100."""
        value = self.aggregate_values(values) * self.scale
        if self.absolute:
            value = abs(value)
        if self.invert:
            value = 100.0 - value
        return value

    @classmethod
    def from_dict(cls, d):
        cap = d.get("cap")
        return cls(
            metric_key=str(d["metric_key"]),
            aggregate=str(d.get("aggregate", "mean")),
            weight=float(d.get("weight", 1.0)),
            absolute=bool(d.get("absolute", False)),
            cap=float(cap) if cap is not None else None,
            scale=float(d.get("scale", 1.0)),
            invert=bool(d.get("invert", False)),
            advice=d.get("advice"),
        )


@dataclass(frozen=True)
class ScoringProfile:
    dimension: ControlDimension
    mode: ScoringMode
    terms: tuple
    base: float = 100.0

    @property
    def metric_keys(self):
        return {t.metric_key for t in self.terms}


def _parse_profile(name, settings):
    try:
        dimension = ControlDimension(name)
    except ValueError:
        raise ScoringConfigError(f"Unknown dimension in scoring profiles: {name}")
    if not isinstance(settings, dict):
        raise ScoringConfigError(f"{name}: profile must be a mapping")
    try:
        mode = ScoringMode(settings.get("mode", "penalty"))
    except ValueError:
        raise ScoringConfigError(f"{name}: unknown mode {settings.get('mode')!r}")

    raw_terms = settings.get("terms") or []
    if not raw_terms:
        raise ScoringConfigError(f"{name}: profile has no terms")

    terms = []
    seen = set()
    for raw in raw_terms:
        try:
            term = Term.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            raise ScoringConfigError(f"{name}: bad term {raw!r}: {e}")
        if term.aggregate not in AGGREGATES:
            raise ScoringConfigError(f"{name}/{term.metric_key}: unknown aggregate {term.aggregate!r}")
        if term.weight <= 0:
            raise ScoringConfigError(f"{name}/{term.metric_key}: weight must be positive")
        if term.cap is not None and term.cap < 0:
            raise ScoringConfigError(f"{name}/{term.metric_key}: cap must not be negative")
        if term.metric_key in seen:
            raise ScoringConfigError(f"{name}: duplicate term {term.metric_key}")
        seen.add(term.metric_key)
        terms.append(term)

    return ScoringProfile(
        dimension=dimension,
        mode=mode,
        terms=tuple(terms),
        base=float(settings.get("base", 100.0)),
    )


def load_profiles(config):
    """Build profiles from ``config["scoring"]["profiles"]`` (or the profiles mapping itself)."""
    if "scoring" in config:
        raw = config["scoring"].get("profiles") or {}
    else:
        raw = config.get("profiles", config)
    return {p.dimension: p for p in (_parse_profile(name, settings) for name, settings in raw.items())}


def validate_profiles(profiles):
    """Every dimension needs a profile; a gap is a startup fault."""
    missing = [d.value for d in ControlDimension if d not in profiles]
    if missing:
        raise ScoringConfigError(f"No scoring profile for: {', '.join(missing)}")
    return profiles
