"""Candidate scorer: rank target records against one source record.

Rule-based multi-stage scoring (first rule that fires wins, no fallthrough):
1. exact        normalized names equal                     -> 1.0
2. containment  one normalized name contains the other     -> 0.85 * ratio + 0.15
3. keywords     Jaccard of name keywords >= 0.4            -> min(0.9, sim + 0.3)
4. description  Jaccard of description keywords >= 0.3     -> min(0.8, sim + 0.2)
                else name-vs-description cross-check >= 0.3 -> min(0.75, sim + 0.15)

When no rule produces a candidate at or above the caller's threshold, an
approximate string search over target names (rapidfuzz) is used instead.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from rapidfuzz import fuzz, process

from src.matching.contracts import MatchCandidate, Record
from src.matching.text import extract_keywords, jaccard, normalize

if TYPE_CHECKING:
    from src.config.settings import MatchingSettings

logger = structlog.get_logger()

CONTAINMENT_MIN_RATIO = 0.5
NAME_KEYWORD_MIN_SIMILARITY = 0.4
DESCRIPTION_MIN_SIMILARITY = 0.3


@dataclass(frozen=True)
class _SourceTerms:
    name: str
    name_keywords: set[str]
    description: str
    description_keywords: set[str]


class ApproximateNameSearch:
    """Deterministic fuzzy search over target names backed by rapidfuzz.

    Uses token_sort_ratio on normalized names, so a name that is only a
    subset of a longer one scores low. Ties keep target input order.
    """

    def __init__(self, *, max_results: int = 5) -> None:
        self._max_results = max_results

    def search(
        self, source_name: str, targets: Sequence[Record], *, min_confidence: float
    ) -> list[MatchCandidate]:
        query = normalize(source_name)
        if not query or not targets:
            return []

        choices = [normalize(t.name) for t in targets]
        hits = process.extract(
            query,
            choices,
            scorer=fuzz.token_sort_ratio,
            processor=None,
            limit=None,
            score_cutoff=min_confidence * 100,
        )
        hits = sorted(hits, key=lambda hit: (-hit[1], hit[2]))

        candidates: list[MatchCandidate] = []
        for _choice, score, index in hits:
            if not choices[index]:
                continue
            target = targets[index]
            candidates.append(
                MatchCandidate(
                    target_id=target.record_id,
                    target_name=target.name,
                    confidence=score / 100,
                    method="fuzzy",
                    reason=f"Approximate name match ({score:.0f}%)",
                )
            )
            if len(candidates) >= self._max_results:
                break
        return candidates


class CandidateScorer:
    """Produce ranked MatchCandidates for one source record.

    Results never exceed max_candidates and never fall below min_confidence.
    """

    def __init__(
        self,
        *,
        max_candidates: int = 5,
        fallback: ApproximateNameSearch | None = None,
        fallback_min_confidence: float = 0.7,
    ) -> None:
        self._max_candidates = max_candidates
        self._fallback = fallback
        self._fallback_min_confidence = fallback_min_confidence

    @classmethod
    def from_settings(cls, settings: MatchingSettings) -> CandidateScorer:
        fallback = (
            ApproximateNameSearch(max_results=settings.max_candidates)
            if settings.fallback_enabled
            else None
        )
        return cls(
            max_candidates=settings.max_candidates,
            fallback=fallback,
            fallback_min_confidence=settings.fallback_min_confidence,
        )

    def score(
        self,
        source_name: str,
        source_description: str | None,
        targets: Sequence[Record],
        *,
        min_confidence: float = 0.0,
    ) -> list[MatchCandidate]:
        """Rank targets for a source record, best first."""
        terms = _SourceTerms(
            name=normalize(source_name),
            name_keywords=extract_keywords(source_name),
            description=source_description or "",
            description_keywords=extract_keywords(source_description),
        )
        if not terms.name:
            return []

        candidates = self._score_rules(terms, targets)
        ranked = [c for c in candidates if c.confidence >= min_confidence]
        if ranked or self._fallback is None:
            return ranked[: self._max_candidates]

        floor = max(min_confidence, self._fallback_min_confidence)
        fallback = self._fallback.search(source_name, targets, min_confidence=floor)
        if fallback:
            logger.debug(
                "scorer_fallback_used",
                source=source_name[:50],
                candidates=len(fallback),
            )
        return fallback[: self._max_candidates]

    def _score_rules(
        self, terms: _SourceTerms, targets: Sequence[Record]
    ) -> list[MatchCandidate]:
        scored: list[MatchCandidate] = []
        for target in targets:
            target_name = normalize(target.name)
            if not target_name:
                continue
            if target_name == terms.name:
                # An exact hit ends the search: only that target is returned.
                return [
                    MatchCandidate(
                        target_id=target.record_id,
                        target_name=target.name,
                        confidence=1.0,
                        method="exact",
                        reason="Exact name match",
                    )
                ]
            candidate = _score_target(terms, target, target_name)
            if candidate is not None:
                scored.append(candidate)

        # sorted() is stable: equal confidences keep target input order
        return sorted(scored, key=lambda c: -c.confidence)


def _score_target(
    terms: _SourceTerms, target: Record, target_name: str
) -> MatchCandidate | None:
    # Rule 2: containment
    if terms.name in target_name or target_name in terms.name:
        shorter, longer = sorted((len(terms.name), len(target_name)))
        ratio = shorter / longer
        if ratio > CONTAINMENT_MIN_RATIO:
            return _candidate(
                target,
                0.85 * ratio + 0.15,
                "fuzzy",
                f"One name contains the other ({ratio:.0%} length overlap)",
            )

    # Rule 3: name keyword overlap
    target_keywords = extract_keywords(target.name)
    similarity = jaccard(terms.name_keywords, target_keywords)
    if similarity >= NAME_KEYWORD_MIN_SIMILARITY:
        shared = ", ".join(sorted(terms.name_keywords & target_keywords))
        return _candidate(
            target,
            min(0.9, similarity + 0.3),
            "fuzzy",
            f"Shared name keywords: {shared} ({similarity:.0%} overlap)",
        )

    # Rule 4: descriptions, only when both sides have one
    if not terms.description.strip() or not (target.description or "").strip():
        return None

    target_desc_keywords = extract_keywords(target.description)
    similarity = jaccard(terms.description_keywords, target_desc_keywords)
    if similarity >= DESCRIPTION_MIN_SIMILARITY:
        return _candidate(
            target,
            min(0.8, similarity + 0.2),
            "description",
            f"Similar descriptions ({similarity:.0%} keyword overlap)",
        )

    cross = max(
        jaccard(terms.name_keywords, target_desc_keywords),
        jaccard(target_keywords, terms.description_keywords),
    )
    if cross >= DESCRIPTION_MIN_SIMILARITY:
        return _candidate(
            target,
            min(0.75, cross + 0.15),
            "description",
            f"Name matches the other description ({cross:.0%} keyword overlap)",
        )
    return None


def _candidate(
    target: Record, confidence: float, method: str, reason: str
) -> MatchCandidate:
    return MatchCandidate(
        target_id=target.record_id,
        target_name=target.name,
        confidence=min(1.0, confidence),
        method=method,  # type: ignore[arg-type]
        reason=reason,
    )
