"""Tests for name normalization and keyword extraction."""

from __future__ import annotations

import pytest

from src.matching.text import extract_keywords, jaccard, normalize, strip_html


class TestNormalize:
    def test_lowercases_and_collapses_punctuation(self) -> None:
        assert normalize("  Bug: Login -- crash!! ") == "bug login crash"

    def test_underscores_are_separators(self) -> None:
        assert normalize("login_page_v2") == "login page v2"

    def test_case_and_punctuation_insensitive_equality(self) -> None:
        assert normalize("fix LOGIN bug!") == normalize("Fix login bug")

    @pytest.mark.parametrize("value", ["", None, "  ", "--!!"])
    def test_empty_inputs(self, value) -> None:
        assert normalize(value) == ""


class TestExtractKeywords:
    def test_drops_stop_words(self) -> None:
        assert extract_keywords("Fix the login bug") == {"fix", "login", "bug"}

    def test_drops_domain_generic_words(self) -> None:
        assert extract_keywords("Update task item") == set()

    def test_drops_short_words(self) -> None:
        assert extract_keywords("a to UI db") == set()

    def test_three_letter_words_kept(self) -> None:
        assert extract_keywords("api key") == {"api", "key"}

    def test_empty(self) -> None:
        assert extract_keywords("") == set()
        assert extract_keywords(None) == set()


class TestJaccard:
    def test_partial_overlap(self) -> None:
        assert jaccard({"login", "bug"}, {"login", "bug", "crash", "fix"}) == 0.5

    def test_both_empty_is_zero(self) -> None:
        assert jaccard(set(), set()) == 0.0

    def test_disjoint(self) -> None:
        assert jaccard({"a"}, {"b"}) == 0.0


class TestStripHtml:
    def test_removes_tags_and_unescapes(self) -> None:
        assert strip_html("<p>Hello&nbsp;<b>world</b> &amp; more</p>") == "Hello world & more"

    def test_none(self) -> None:
        assert strip_html(None) == ""
