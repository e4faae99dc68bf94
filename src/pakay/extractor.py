"""Turns handler declarations into RouteMetadata.

Docstrings can come from third-party or generated code, so the legacy
``@Hash(...)`` syntax is read by a single-pass scanner with explicit length
and nesting limits instead of a backtracking regular expression. Anything
that does not fit the grammar is rejected: the handler is treated as having
no declaration and a warning is logged.

Legacy grammar, whitespace allowed between any two tokens::

    @Hash( NAMES [ , hasher = STRING ] )
    NAMES  := STRING | { STRING ( , STRING )* }
    STRING := "..." | '...'
"""

from __future__ import annotations

import logging

from pakay.codec import is_valid_hasher_name
from pakay.declarations import (
    MAX_PARAMETER_NAME_LENGTH,
    MAX_PARAMETERS,
    Declaration,
    FreeTextDeclaration,
    RouteMetadata,
    StructuredDeclaration,
    is_valid_parameter_name,
    normalize_hasher_name,
    unique_names,
)

logger = logging.getLogger("pakay.extractor")

MAX_DECLARATION_LENGTH = 10_000
MAX_TOKEN_LENGTH = MAX_PARAMETER_NAME_LENGTH
MAX_NESTING = 2  # the call's parentheses plus one { } list
MARKER = "@Hash"

_QUOTES = ("'", '"')
_IDENTIFIER_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_")


class _Rejected(Exception):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class _Scanner:
    """Cursor over normalized declaration text. Every method consumes or fails."""

    def __init__(self, text: str, pos: int):
        self.text = text
        self.pos = pos
        self.depth = 0

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_space(self) -> None:
        if self.peek() == " ":
            self.pos += 1

    def expect(self, char: str) -> None:
        found = self.peek()
        if found != char:
            raise _Rejected(f"expected {char!r} at offset {self.pos}, found {found or 'end of text'!r}")
        self.pos += 1

    def open_group(self, char: str) -> None:
        self.expect(char)
        self.depth += 1
        if self.depth > MAX_NESTING:
            raise _Rejected(f"grouping nested deeper than {MAX_NESTING}")

    def close_group(self, char: str) -> None:
        self.expect(char)
        self.depth -= 1

    def read_string(self) -> str:
        quote = self.peek()
        if quote not in _QUOTES:
            raise _Rejected(f"expected a quoted name at offset {self.pos}")
        start = self.pos + 1
        end = self.text.find(quote, start, start + MAX_TOKEN_LENGTH + 1)
        if end == -1:
            if self.text.find(quote, start) == -1:
                raise _Rejected("unterminated string")
            raise _Rejected(f"quoted value longer than {MAX_TOKEN_LENGTH} characters")
        self.pos = end + 1
        return self.text[start:end]

    def read_identifier(self) -> str:
        start = self.pos
        while self.peek() in _IDENTIFIER_CHARS:
            self.pos += 1
            if self.pos - start > MAX_TOKEN_LENGTH:
                raise _Rejected("argument name too long")
        if self.pos == start:
            raise _Rejected(f"expected an argument name at offset {start}")
        return self.text[start : self.pos]


def _normalize_whitespace(text: str) -> str:
    return " ".join(text.split())


def _find_call(text: str) -> int:
    """Offset of the '(' opening the first @Hash call, or -1."""
    pos = text.find(MARKER)
    while pos != -1:
        after = pos + len(MARKER)
        if after < len(text) and text[after] == " ":
            after += 1
        if after < len(text) and text[after] == "(":
            return after
        pos = text.find(MARKER, after)
    return -1


def _parse_call(text: str, open_paren: int) -> tuple[list[str], str]:
    scanner = _Scanner(text, open_paren)
    scanner.open_group("(")
    scanner.skip_space()

    names: list[str] = []
    if scanner.peek() == "{":
        scanner.open_group("{")
        scanner.skip_space()
        while True:
            names.append(scanner.read_string())
            if len(names) > MAX_PARAMETERS:
                raise _Rejected(f"too many parameters (max {MAX_PARAMETERS})")
            scanner.skip_space()
            if scanner.peek() == ",":
                scanner.pos += 1
                scanner.skip_space()
                continue
            scanner.close_group("}")
            break
    else:
        names.append(scanner.read_string())
    scanner.skip_space()

    hasher = ""
    if scanner.peek() == ",":
        scanner.pos += 1
        scanner.skip_space()
        argument = scanner.read_identifier()
        if argument != "hasher":
            raise _Rejected(f"unknown argument {argument!r}")
        scanner.skip_space()
        scanner.expect("=")
        scanner.skip_space()
        hasher = scanner.read_string()
        scanner.skip_space()

    scanner.close_group(")")
    return names, hasher


class MetadataExtractor:
    """Pure function from a declaration to RouteMetadata (or None)."""

    def extract(self, declaration: Declaration | None, source: str = "") -> RouteMetadata | None:
        if isinstance(declaration, StructuredDeclaration):
            return self.extract_structured(declaration, source=source)
        if isinstance(declaration, FreeTextDeclaration):
            return self.extract_text(declaration.text, source=source or declaration.source)
        return None

    def extract_structured(
        self, declaration: StructuredDeclaration, source: str = ""
    ) -> RouteMetadata | None:
        return self._build(list(declaration.parameter_names), declaration.hasher, source)

    def extract_text(self, text: str | None, source: str = "") -> RouteMetadata | None:
        if not text:
            return None
        if len(text) > MAX_DECLARATION_LENGTH:
            self._reject(source, f"declaration text exceeds {MAX_DECLARATION_LENGTH} characters")
            return None
        if MARKER not in text:
            return None

        normalized = _normalize_whitespace(text)
        open_paren = _find_call(normalized)
        if open_paren == -1:
            return None
        try:
            names, hasher = _parse_call(normalized, open_paren)
        except _Rejected as exc:
            self._reject(source, exc.reason)
            return None

        metadata = self._build(names, hasher, source)
        if metadata is not None:
            logger.debug(
                "Legacy @Hash declaration on %s; prefer the hash_ids decorator",
                source or "<unknown handler>",
            )
        return metadata

    def _build(self, names: list, hasher: object, source: str) -> RouteMetadata | None:
        names = [n.strip() if isinstance(n, str) else n for n in names]
        if len(names) > MAX_PARAMETERS:
            self._reject(source, f"too many parameters (max {MAX_PARAMETERS}, got {len(names)})")
            return None

        valid = []
        for name in names:
            if is_valid_parameter_name(name):
                valid.append(name)
            else:
                logger.warning(
                    "Dropping invalid parameter name %r in declaration on %s",
                    name,
                    source or "<unknown handler>",
                )
        if not valid:
            self._reject(source, "no valid parameter names")
            return None

        hasher_name = normalize_hasher_name(hasher)
        if hasher_name is None or not is_valid_hasher_name(hasher_name):
            self._reject(source, f"invalid hasher name {hasher!r}")
            return None

        return RouteMetadata(unique_names(valid), hasher_name)

    @staticmethod
    def _reject(source: str, reason: str) -> None:
        logger.warning(
            "Ignoring hash declaration on %s: %s",
            source or "<unknown handler>",
            reason,
        )
