"""Matching engine: candidate scoring and greedy one-to-one assignment."""

from src.matching.assignment import (
    AutoMatcher,
    AutoMatchResult,
    AutoMatchStats,
    FuzzyNameStrategy,
    MatchStrategy,
    RuleBasedStrategy,
    build_strategy,
)
from src.matching.contracts import MatchCandidate, Record, SuggestedMatch
from src.matching.scorer import ApproximateNameSearch, CandidateScorer
from src.matching.text import extract_keywords, normalize

__all__ = [
    "ApproximateNameSearch",
    "AutoMatchResult",
    "AutoMatchStats",
    "AutoMatcher",
    "CandidateScorer",
    "FuzzyNameStrategy",
    "MatchCandidate",
    "MatchStrategy",
    "Record",
    "RuleBasedStrategy",
    "SuggestedMatch",
    "build_strategy",
    "extract_keywords",
    "normalize",
]
