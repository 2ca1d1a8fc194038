"""Control scoring: profiles and the scoring engine."""
from scoring.profiles import ScoringConfigError, ScoringProfile, Term, load_profiles, validate_profiles
from scoring.engine import ScoringEngine, clamp, score_observation_id
