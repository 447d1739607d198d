"""
Lexical analyzer for filter queries.

Tokenizes queries such as ``link:1 endpoint:0x2 "get response" alarm``
into structural selectors, numbers, quoted strings and bare words.
"""

from __future__ import annotations

import re

import sly

from ponwatch.core.errors import FilterSyntaxError


class FilterLexer(sly.Lexer):
    """
    Lexical analyzer for filter queries.

    Token Types:
        LINK, ENDPOINT  - Structural selectors (``link:``/``port:``,
                          ``endpoint:``/``onu:``), case-insensitive
        NUMBER          - Decimal or ``0x`` hexadecimal integer
        STRING          - Single- or double-quoted text
        WORD            - Any other run of non-blank characters
    """

    tokens = {LINK, ENDPOINT, NUMBER, STRING, WORD}

    reflags = re.IGNORECASE

    ignore = " \t\r\n"

    # Selectors must come before WORD, which would swallow them
    LINK = r"(link|port):"
    ENDPOINT = r"(endpoint|onu):"

    # A number only when it is the whole run of non-blank characters
    @_(r"0x[0-9a-f]+(?![^\s\"'])", r"\d+(?![^\s\"'])")
    def NUMBER(self, t):
        t.value = int(t.value, 0) if t.value[:2].lower() == "0x" else int(t.value)
        return t

    @_(r"\"[^\"]*\"", r"'[^']*'")
    def STRING(self, t):
        t.value = t.value[1:-1]
        return t

    WORD = r"[^\s\"']+"

    def error(self, t):
        """Handle unterminated quotes."""
        raise FilterSyntaxError(
            f"Invalid character '{t.value[0]}' at index {self.index}"
        )
