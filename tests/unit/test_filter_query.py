"""
Tests for the filter query lexer and parser.

Tests cover tokenization of selectors, numbers, quoted strings and bare
words, assembly into predicates, and syntax errors.
"""

from __future__ import annotations

from typing import List, Tuple

import pytest

from ponwatch.core.errors import FilterSyntaxError
from ponwatch.filter.grammar import FilterParser, parse_filter
from ponwatch.filter.lexer import FilterLexer
from ponwatch.filter.predicate import FilterPredicate, StructuralFilter, TextFilter


def _tokens(text: str) -> List[Tuple[str, object]]:
    return [(t.type, t.value) for t in FilterLexer().tokenize(text)]


# ---------------------------------------------------------------------------
# Tests: Lexer
# ---------------------------------------------------------------------------


class TestFilterLexer:
    """Test tokenization of filter queries."""

    def test_selectors(self) -> None:
        assert _tokens("link:1 endpoint:2") == [
            ("LINK", "link:"),
            ("NUMBER", 1),
            ("ENDPOINT", "endpoint:"),
            ("NUMBER", 2),
        ]

    def test_selector_aliases(self) -> None:
        """port: and onu: are accepted, in any case."""
        assert [t for t, _ in _tokens("PORT:1 Onu:2")] == [
            "LINK", "NUMBER", "ENDPOINT", "NUMBER",
        ]

    def test_hex_number(self) -> None:
        assert _tokens("0x1F") == [("NUMBER", 31)]

    def test_quoted_string(self) -> None:
        assert _tokens('"get response" \'alarm\'') == [
            ("STRING", "get response"),
            ("STRING", "alarm"),
        ]

    def test_words(self) -> None:
        """Runs that only start with digits are words."""
        assert _tokens("mib 12ab") == [("WORD", "mib"), ("WORD", "12ab")]

    def test_unterminated_quote(self) -> None:
        with pytest.raises(FilterSyntaxError):
            _tokens('"open')


# ---------------------------------------------------------------------------
# Tests: Parser
# ---------------------------------------------------------------------------


class TestFilterParser:
    """Test assembly of parsed terms into predicates."""

    def test_empty_query(self) -> None:
        assert parse_filter("   ") == FilterPredicate()

    def test_structural_only(self) -> None:
        predicate = parse_filter("link:1 endpoint:0x2")
        assert predicate.structural == StructuralFilter(1, 2)
        assert predicate.text == TextFilter("")

    def test_text_terms_joined(self) -> None:
        predicate = parse_filter('link:3 "get response" 42 done')
        assert predicate.structural == StructuralFilter(3)
        assert predicate.text == TextFilter("get response 42 done")

    def test_selector_order_free(self) -> None:
        assert parse_filter("endpoint:2 link:1").structural == StructuralFilter(1, 2)

    def test_endpoint_without_link(self) -> None:
        with pytest.raises(FilterSyntaxError):
            parse_filter("endpoint:2")

    def test_duplicate_link(self) -> None:
        with pytest.raises(FilterSyntaxError):
            parse_filter("link:1 link:2")

    def test_selector_without_number(self) -> None:
        with pytest.raises(FilterSyntaxError):
            parse_filter("link:abc")

    def test_dangling_selector(self) -> None:
        with pytest.raises(FilterSyntaxError):
            parse_filter("alarm link:")

    def test_parser_reusable(self) -> None:
        """One parser instance handles several queries."""
        parser = FilterParser()
        assert parser.parse("link:1").structural == StructuralFilter(1)
        assert parser.parse("link:2").structural == StructuralFilter(2)
