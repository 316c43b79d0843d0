"""Tests for AutoMatcher: greedy one-to-one assignment across strategies."""

from __future__ import annotations

import pytest

from src.config.settings import MatchingSettings
from src.matching.assignment import (
    AutoMatcher,
    FuzzyNameStrategy,
    RuleBasedStrategy,
    build_strategy,
)
from src.matching.contracts import Record
from src.matching.scorer import ApproximateNameSearch, CandidateScorer


def _rec(record_id: str, name: str, description: str = "") -> Record:
    return Record(record_id=record_id, name=name, description=description)


def _rules_matcher() -> AutoMatcher:
    return AutoMatcher(RuleBasedStrategy(CandidateScorer()))


class TestOneToOne:
    def test_target_never_reused(self) -> None:
        sources = [_rec("s1", "Fix login bug"), _rec("s2", "Fix login bug")]
        targets = [_rec("t1", "Fix login bug")]

        result = _rules_matcher().auto_match_all(sources, targets)

        assert len(result.suggestions) == 1
        assert result.suggestions[0].source_id == "s1"
        assert result.suggestions[0].target_id == "t1"

    def test_more_sources_than_targets(self) -> None:
        sources = [_rec(f"s{i}", f"Deploy service {name}") for i, name in enumerate("abc")]
        targets = [_rec("t1", "Deploy service a"), _rec("t2", "Deploy service b")]

        result = _rules_matcher().auto_match_all(sources, targets)

        target_ids = [s.target_id for s in result.suggestions]
        assert len(target_ids) <= len(targets)
        assert len(set(target_ids)) == len(target_ids)

    def test_greedy_first_claim_wins(self) -> None:
        # The earlier source claims the target even though the later one is exact.
        sources = [_rec("s1", "Login page"), _rec("s2", "Login page redesign")]
        targets = [_rec("t1", "Login page redesign")]

        result = _rules_matcher().auto_match_all(sources, targets)

        assert [(s.source_id, s.target_id) for s in result.suggestions] == [("s1", "t1")]
        assert result.suggestions[0].method == "fuzzy"


class TestLinkedExclusion:
    def test_linked_target_excluded(self) -> None:
        sources = [_rec("s1", "Fix login bug")]
        targets = [_rec("t1", "Fix login bug")]

        result = _rules_matcher().auto_match_all(sources, targets, set(), {"t1"})

        assert result.suggestions == []

    def test_linked_source_skipped(self) -> None:
        sources = [_rec("s1", "Fix login bug")]
        targets = [_rec("t1", "Fix login bug")]

        result = _rules_matcher().auto_match_all(sources, targets, {"s1"}, set())

        assert result.suggestions == []
        assert result.stats.already_linked == 1

    def test_already_linked_override(self) -> None:
        result = _rules_matcher().auto_match_all([], [], already_linked=4)
        assert result.stats.already_linked == 4


class TestOrderingAndThreshold:
    def test_suggestions_sorted_by_confidence(self) -> None:
        sources = [_rec("s1", "Login page"), _rec("s2", "Export report")]
        targets = [_rec("t1", "Export report"), _rec("t2", "Login page redesign")]

        result = _rules_matcher().auto_match_all(sources, targets)

        assert [s.source_id for s in result.suggestions] == ["s2", "s1"]
        assert result.suggestions[0].confidence == 1.0
        assert result.stats.suggestions_found == 2

    def test_below_threshold_omitted(self) -> None:
        sources = [_rec("s1", "Login page")]
        targets = [_rec("t1", "Login page redesign")]

        result = _rules_matcher().auto_match_all(sources, targets, min_confidence=0.7)

        assert result.suggestions == []

    @pytest.mark.parametrize(
        ("sources", "targets"),
        [
            ([], [_rec("t1", "Fix login bug")]),
            ([_rec("s1", "Fix login bug")], []),
            ([], []),
        ],
    )
    def test_empty_sides(self, sources, targets) -> None:
        result = _rules_matcher().auto_match_all(sources, targets)
        assert result.suggestions == []
        assert result.stats.total_sources == len(sources)
        assert result.stats.total_targets == len(targets)


class TestFuzzyStrategy:
    def test_longest_name_claims_first(self) -> None:
        matcher = AutoMatcher(FuzzyNameStrategy(ApproximateNameSearch()))
        sources = [_rec("s1", "Login page"), _rec("s2", "Login page redesign")]
        targets = [_rec("t1", "Login page redesign")]

        result = matcher.auto_match_all(sources, targets)

        assert len(result.suggestions) == 1
        assert result.suggestions[0].source_id == "s2"
        assert result.suggestions[0].method == "exact"

    def test_approximate_match(self) -> None:
        matcher = AutoMatcher(FuzzyNameStrategy(ApproximateNameSearch()))
        sources = [_rec("s1", "Refactor authentification")]
        targets = [_rec("t1", "Refactor authentication module"), _rec("t2", "Office move")]

        result = matcher.auto_match_all(sources, targets)

        assert [s.target_id for s in result.suggestions] == ["t1"]
        assert result.suggestions[0].confidence >= 0.8


class TestBuildStrategy:
    def test_default_is_rules(self) -> None:
        strategy = build_strategy(MatchingSettings())
        assert isinstance(strategy, RuleBasedStrategy)
        assert strategy.default_min_confidence == 0.5

    def test_fuzzy_from_settings(self) -> None:
        strategy = build_strategy(MatchingSettings(strategy="fuzzy"))
        assert isinstance(strategy, FuzzyNameStrategy)
        assert strategy.default_min_confidence == 0.8

    def test_override_by_name(self) -> None:
        strategy = build_strategy(MatchingSettings(), name="fuzzy")
        assert strategy.name == "fuzzy"

    def test_unknown_name(self) -> None:
        with pytest.raises(ValueError, match="Unknown match strategy"):
            build_strategy(MatchingSettings(), name="magic")

    def test_subset_name_not_auto_matched(self) -> None:
        matcher = AutoMatcher(build_strategy(MatchingSettings()))
        sources = [_rec("s1", "Login")]
        targets = [_rec("t1", "Login page redesign flow")]

        result = matcher.auto_match_all(sources, targets)

        assert result.suggestions == []


class TestExactAcrossStrategies:
    @pytest.mark.parametrize("strategy", ["rules", "fuzzy"])
    def test_punctuation_and_case_ignored(self, strategy: str) -> None:
        matcher = AutoMatcher(build_strategy(MatchingSettings(), name=strategy))
        sources = [_rec("s1", "Fix login bug!")]
        targets = [_rec("t1", "fix  LOGIN bug")]

        result = matcher.auto_match_all(sources, targets)

        assert len(result.suggestions) == 1
        assert result.suggestions[0].method == "exact"
        assert result.suggestions[0].confidence == 1.0

    def test_blank_name_never_exact(self) -> None:
        matcher = AutoMatcher(FuzzyNameStrategy(ApproximateNameSearch()))
        result = matcher.auto_match_all([_rec("s1", "!!")], [_rec("t1", "??")])
        assert result.suggestions == []
