"""
Parser for filter queries.

A query is a whitespace-separated sequence of terms::

    link:<n>        structural selector on the link
    endpoint:<n>    structural selector on the endpoint (requires link)
    "some text"     free text (quoted)
    word            free text (bare)

All free-text terms are joined with single spaces into one needle.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

import sly

from ponwatch.core.errors import FilterSyntaxError
from ponwatch.filter.lexer import FilterLexer
from ponwatch.filter.predicate import FilterPredicate, StructuralFilter, TextFilter


class _SLYParser(sly.Parser):
    """SLY-based parser producing a list of ``(kind, value)`` terms."""

    tokens = FilterLexer.tokens

    @_("term")
    def query(self, p):
        return [p.term]

    @_("query term")
    def query(self, p):
        return p.query + [p.term]

    @_("LINK NUMBER")
    def term(self, p):
        return ("link", p.NUMBER)

    @_("ENDPOINT NUMBER")
    def term(self, p):
        return ("endpoint", p.NUMBER)

    @_("STRING")
    def term(self, p):
        return ("text", p.STRING)

    @_("WORD")
    def term(self, p):
        return ("text", p.WORD)

    @_("NUMBER")
    def term(self, p):
        return ("text", str(p.NUMBER))

    def error(self, token):
        if token:
            raise FilterSyntaxError(
                f"Syntax error at '{token.value}' "
                f"(type: {token.type}, index: {token.index})"
            )
        raise FilterSyntaxError("Syntax error: unexpected end of filter")


class FilterParser:
    """
    Parser for filter queries.

    Wraps the SLY-based parser and assembles the parsed terms into a
    FilterPredicate.
    """

    def __init__(self) -> None:
        self._lexer = FilterLexer()
        self._parser = _SLYParser()

    def parse(self, text: str) -> FilterPredicate:
        """
        Parse a filter query.

        An empty query yields a predicate that passes every event.

        Raises:
            FilterSyntaxError: If the query is invalid or selects an
                endpoint without a link.
        """
        text = text.strip()
        if not text:
            return FilterPredicate()

        terms = self._parser.parse(self._lexer.tokenize(text))
        if terms is None:
            raise FilterSyntaxError("Syntax error: could not parse filter")
        return _assemble(terms)


def _assemble(terms: List[Tuple[str, object]]) -> FilterPredicate:
    link: Optional[int] = None
    endpoint: Optional[int] = None
    words: List[str] = []

    for kind, value in terms:
        if kind == "link":
            if link is not None:
                raise FilterSyntaxError("link selected more than once")
            link = value
        elif kind == "endpoint":
            if endpoint is not None:
                raise FilterSyntaxError("endpoint selected more than once")
            endpoint = value
        else:
            words.append(value)

    if endpoint is not None and link is None:
        raise FilterSyntaxError("endpoint selector requires a link selector")

    return FilterPredicate(
        structural=StructuralFilter(link_id=link, endpoint_id=endpoint),
        text=TextFilter(" ".join(words)),
    )


_parser = FilterParser()


def parse_filter(text: str) -> FilterPredicate:
    """
    Parse a filter query into a FilterPredicate.

    Raises:
        FilterSyntaxError: If the query is invalid.
    """
    return _parser.parse(text)
