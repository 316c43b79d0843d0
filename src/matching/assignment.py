"""Greedy one-to-one assignment of source records to target records.

Each source record is scored against the targets not yet claimed in this pass;
its best candidate is kept when it clears the pass threshold and the target is
then claimed. Earlier assignments are never revisited, so a later source that
would fit a claimed target better does not get it. This is a known limitation
of the greedy pass, not a bug.

Two strategies share the AutoMatcher driver:
- rules: input order, rule-based CandidateScorer (with approximate fallback)
- fuzzy: longest source name first, approximate name search only
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import structlog

from src.matching.contracts import MatchCandidate, Record, SuggestedMatch
from src.matching.scorer import ApproximateNameSearch, CandidateScorer
from src.matching.text import normalize

if TYPE_CHECKING:
    from src.config.settings import MatchingSettings

logger = structlog.get_logger()


class MatchStrategy(Protocol):
    """Ordering + scoring policy used by one auto-match pass."""

    name: str
    default_min_confidence: float

    def order(self, sources: Sequence[Record]) -> list[Record]:
        ...

    def best_candidate(
        self, source: Record, targets: Sequence[Record], *, min_confidence: float
    ) -> MatchCandidate | None:
        ...


class RuleBasedStrategy:
    """Jaccard/rule-based multi-stage scoring, sources in input order."""

    name = "rules"

    def __init__(self, scorer: CandidateScorer, *, default_min_confidence: float = 0.5) -> None:
        self._scorer = scorer
        self.default_min_confidence = default_min_confidence

    def order(self, sources: Sequence[Record]) -> list[Record]:
        return list(sources)

    def best_candidate(
        self, source: Record, targets: Sequence[Record], *, min_confidence: float
    ) -> MatchCandidate | None:
        candidates = self._scorer.score(
            source.name, source.description, targets, min_confidence=min_confidence
        )
        return candidates[0] if candidates else None


class FuzzyNameStrategy:
    """Size-biased single pass: longest (most specific) names claim targets first."""

    name = "fuzzy"

    def __init__(
        self, search: ApproximateNameSearch, *, default_min_confidence: float = 0.8
    ) -> None:
        self._search = search
        self.default_min_confidence = default_min_confidence

    def order(self, sources: Sequence[Record]) -> list[Record]:
        return sorted(sources, key=lambda record: -len(record.name))

    def best_candidate(
        self, source: Record, targets: Sequence[Record], *, min_confidence: float
    ) -> MatchCandidate | None:
        exact = _exact_match(source, targets)
        if exact is not None:
            return exact
        candidates = self._search.search(source.name, targets, min_confidence=min_confidence)
        return candidates[0] if candidates else None


def _exact_match(source: Record, targets: Sequence[Record]) -> MatchCandidate | None:
    wanted = normalize(source.name)
    if not wanted:
        return None
    for target in targets:
        if normalize(target.name) == wanted:
            return MatchCandidate(
                target_id=target.record_id,
                target_name=target.name,
                confidence=1.0,
                method="exact",
                reason="Exact name match",
            )
    return None


def build_strategy(settings: MatchingSettings, *, name: str | None = None) -> MatchStrategy:
    """Build the configured strategy (or an explicit override by name)."""
    selected = name or settings.strategy
    if selected == "rules":
        return RuleBasedStrategy(
            CandidateScorer.from_settings(settings),
            default_min_confidence=settings.auto_match_min_confidence,
        )
    if selected == "fuzzy":
        return FuzzyNameStrategy(
            ApproximateNameSearch(max_results=settings.max_candidates),
            default_min_confidence=settings.fuzzy_min_confidence,
        )
    raise ValueError(f"Unknown match strategy: {selected!r}")


@dataclass
class AutoMatchStats:
    """Counters reported alongside auto-match suggestions."""

    total_sources: int = 0
    total_targets: int = 0
    already_linked: int = 0
    suggestions_found: int = 0


@dataclass
class AutoMatchResult:
    """Suggestions of one auto-match pass, highest confidence first."""

    suggestions: list[SuggestedMatch] = field(default_factory=list)
    stats: AutoMatchStats = field(default_factory=AutoMatchStats)


class AutoMatcher:
    """Run a strategy across all unlinked records with a one-to-one constraint."""

    def __init__(self, strategy: MatchStrategy) -> None:
        self._strategy = strategy

    @property
    def strategy(self) -> MatchStrategy:
        return self._strategy

    def auto_match_all(
        self,
        sources: Sequence[Record],
        targets: Sequence[Record],
        linked_source_ids: Collection[str] = frozenset(),
        linked_target_ids: Collection[str] = frozenset(),
        *,
        min_confidence: float | None = None,
        already_linked: int | None = None,
    ) -> AutoMatchResult:
        """Suggest one distinct target per unlinked source record.

        Args:
            sources: all source records of the container.
            targets: all target records of the container.
            linked_source_ids / linked_target_ids: ids already held by a link.
            min_confidence: pass threshold; strategy default when omitted.
            already_linked: fully linked pair count for the stats, when known.
        """
        threshold = (
            self._strategy.default_min_confidence if min_confidence is None else min_confidence
        )
        linked_sources = set(linked_source_ids)
        linked_targets = set(linked_target_ids)

        available = [t for t in targets if t.record_id not in linked_targets]
        claimed: set[str] = set()
        suggestions: list[SuggestedMatch] = []

        for source in self._strategy.order(
            [s for s in sources if s.record_id not in linked_sources]
        ):
            open_targets = [t for t in available if t.record_id not in claimed]
            if not open_targets:
                break
            best = self._strategy.best_candidate(source, open_targets, min_confidence=threshold)
            if best is None or best.confidence < threshold:
                continue
            suggestions.append(SuggestedMatch.from_candidate(source, best))
            claimed.add(best.target_id)

        suggestions.sort(key=lambda s: -s.confidence)

        stats = AutoMatchStats(
            total_sources=len(sources),
            total_targets=len(targets),
            already_linked=(
                already_linked if already_linked is not None else len(linked_sources)
            ),
            suggestions_found=len(suggestions),
        )
        logger.info(
            "auto_match_complete",
            strategy=self._strategy.name,
            min_confidence=threshold,
            sources=stats.total_sources,
            targets=stats.total_targets,
            suggestions=stats.suggestions_found,
        )
        return AutoMatchResult(suggestions=suggestions, stats=stats)
