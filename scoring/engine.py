"""Scoring engine: observations for one (site, dimension, date) to a bounded ControlScore."""
import logging

from models.enums import ControlDimension, ScoringMode, Trend
from models.observations import Observation
from models.scores import ControlScore
from scoring.profiles import load_profiles, validate_profiles
from utils.constants import SCORE_SOURCE_TABLE
from utils.timeutil import start_of_day

logger = logging.getLogger("site360.scoring")

MAX_RECOMMENDATIONS = 3


def clamp(value, low=0.0, high=100.0):
    return max(low, min(high, value))


def score_observation_id(site_id, dimension):
    return f"{site_id}:{ControlDimension(dimension).value}"


class ScoringEngine:
    """Computes one score per (site, dimension, date) from a generic, profile-driven pipeline."""

    def __init__(self, profiles):
        self.profiles = validate_profiles(profiles)

    @classmethod
    def from_config(cls, config):
        return cls(load_profiles(config))

    def compute_score(self, site_id, dimension, day, observations, previous_score=None,
                      calculated_at=None, calculated_by="system"):
        """Score one slot. Returns None when no observation feeds any profile term."""
        dimension = ControlDimension(dimension)
        profile = self.profiles[dimension]

        grouped = {}
        relevant = (o for o in observations if o.site_id == site_id and o.dimension == dimension)
        for obs in sorted(relevant, key=lambda o: o.sort_key):
            grouped.setdefault(obs.metric_key, []).append(obs.value)

        present = [(t, grouped[t.metric_key]) for t in profile.terms if grouped.get(t.metric_key)]
        if not present:
            return None

        if profile.mode == ScoringMode.PENALTY:
            total, factors, drags = self._penalty(profile, present)
        else:
            total, factors, drags = self._weighted_mean(present)

        score = round(clamp(total), 2)
        return ControlScore(
            site_id=site_id,
            dimension=dimension,
            date=day,
            score=score,
            factors=factors,
            trend=self._trend(score, day, previous_score),
            recommendations=self._recommendations(present, drags),
            calculated_at=calculated_at or start_of_day(day),
            calculated_by=calculated_by,
        )

    def compute_overall(self, site_id, day, dimension_scores, previous_score=None,
                        calculated_at=None, calculated_by="system"):
        """Score overall_management from the other dimensions' scores for the same day."""
        observations = self.score_observations(site_id, day, dimension_scores)
        return self.compute_score(
            site_id, ControlDimension.OVERALL_MANAGEMENT, day, observations,
            previous_score=previous_score, calculated_at=calculated_at, calculated_by=calculated_by,
        )

    def score_site(self, site_id, day, observations, previous_scores=None, calculated_by="system"):
        """Score every dimension with data, then the overall aggregate.

        Args:
            previous_scores: dimension -> most recent prior ControlScore.
        """
        previous_scores = previous_scores or {}
        scores = []
        for dimension in ControlDimension:
            if dimension == ControlDimension.OVERALL_MANAGEMENT:
                continue
            score = self.compute_score(
                site_id, dimension, day, observations,
                previous_score=previous_scores.get(dimension), calculated_by=calculated_by,
            )
            if score is not None:
                scores.append(score)

        overall = self.compute_overall(
            site_id, day, scores,
            previous_score=previous_scores.get(ControlDimension.OVERALL_MANAGEMENT),
            calculated_by=calculated_by,
        )
        if overall is not None:
            scores.append(overall)
        logger.debug(f"{site_id} {day}: {len(scores)} scores")
        return scores

    @staticmethod
    def score_observations(site_id, day, dimension_scores):
        observed_at = start_of_day(day)
        return [
            Observation(
                site_id=site_id,
                dimension=ControlDimension.OVERALL_MANAGEMENT,
                metric_key=f"{s.dimension.value}_score",
                value=s.score,
                unit="score",
                observed_at=observed_at,
                source_table=SCORE_SOURCE_TABLE,
                source_id=score_observation_id(site_id, s.dimension),
            )
            for s in dimension_scores
            if s.site_id == site_id and s.dimension != ControlDimension.OVERALL_MANAGEMENT
        ]

    # --- Modes ---

    @staticmethod
    def _penalty(profile, present):
        total = profile.base
        factors, drags = {}, {}
        for term, values in present:
            penalty = max(0.0, term.weight * term.measure(values))
            if term.cap is not None:
                penalty = min(term.cap, penalty)
            total -= penalty
            drags[term.metric_key] = penalty
            factors[term.metric_key] = {
                "value": round(term.aggregate_values(values), 4),
                "contribution": round(-penalty, 4),
            }
        return total, factors, drags

    @staticmethod
    def _weighted_mean(present):
        weight_total = sum(term.weight for term, _ in present)
        total = 0.0
        factors, drags = {}, {}
        for term, values in present:
            value = clamp(term.measure(values))
            contribution = term.weight * value / weight_total
            total += contribution
            drags[term.metric_key] = term.weight * (100.0 - value) / weight_total
            factors[term.metric_key] = {
                "value": round(term.aggregate_values(values), 4),
                "contribution": round(contribution, 4),
            }
        return total, factors, drags

    # --- Derived fields ---

    @staticmethod
    def _trend(score, day, previous_score):
        if previous_score is None:
            return Trend.FLAT
        if isinstance(previous_score, ControlScore):
            if previous_score.date is not None and previous_score.date >= day:
                return Trend.FLAT
            previous_score = previous_score.score
        previous = round(float(previous_score), 2)
        if score > previous:
            return Trend.UP
        if score < previous:
            return Trend.DOWN
        return Trend.FLAT

    @staticmethod
    def _recommendations(present, drags):
        advised = [
            (drags[t.metric_key], t.metric_key, t.advice)
            for t, _ in present
            if t.advice and drags[t.metric_key] > 0
        ]
        advised.sort(key=lambda item: (-item[0], item[1]))
        lines = [advice for _, _, advice in advised[:MAX_RECOMMENDATIONS]]
        return "\n".join(lines) if lines else None
