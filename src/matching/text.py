"""Text normalization and keyword extraction for name/description comparison."""

from __future__ import annotations

import html
import re
from collections.abc import Set

_NON_WORD = re.compile(r"[\W_]+")
_HTML_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")

MIN_KEYWORD_LENGTH = 3

STOP_WORDS: frozenset[str] = frozenset({
    # English function words
    "the", "and", "for", "with", "from", "into", "onto", "that", "this", "these",
    "those", "then", "than", "when", "where", "what", "which", "while", "will",
    "would", "should", "could", "shall", "must", "have", "has", "had", "been",
    "being", "are", "was", "were", "not", "but", "all", "any", "can", "our",
    "your", "their", "there", "here", "about", "after", "before", "over",
    "under", "also", "just", "some", "more", "most", "very", "its", "you",
    "via", "per", "out",
    # Domain-generic nouns
    "task", "tasks", "issue", "issues", "item", "items", "update", "updates",
    "ticket", "todo", "work", "new",
})


def normalize(text: str | None) -> str:
    """Lowercase, collapse punctuation runs to single spaces, trim."""
    if not text:
        return ""
    return _NON_WORD.sub(" ", text.lower()).strip()


def extract_keywords(text: str | None) -> set[str]:
    """Normalized tokens of at least MIN_KEYWORD_LENGTH chars, minus stop words."""
    return {
        word
        for word in normalize(text).split()
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS
    }


def jaccard(left: Set[str], right: Set[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def strip_html(markup: str | None) -> str:
    """Reduce rich-text markup to whitespace-collapsed plain text."""
    if not markup:
        return ""
    text = html.unescape(_HTML_TAG.sub(" ", markup))
    return _WHITESPACE.sub(" ", text).strip()
