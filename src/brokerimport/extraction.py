"""Anchor-plus-offset field extraction over token lines.

A broker document is a flat list of text lines. Fields are found by
locating an *anchor* line through a label substring and then reading a
token a fixed number of lines away from it. Layout revisions of the same
broker only differ in those offsets, so handlers describe them as
``Anchor`` tables instead of index arithmetic.

Absence of an anchor is a normal data condition and yields ``None``. An
anchor that is present but whose neighbourhood does not have the expected
shape is a structural fault and raises ``ExtractionError``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

_WHITESPACE_RE = re.compile(r"\s+")


class ExtractionError(ValueError):
    """Raised when a document does not have the token layout a handler expects."""


# ---------------------------------------------------------------------------
# Line search
# ---------------------------------------------------------------------------


def find_index(
    lines: Sequence[str],
    predicate: Callable[[str], bool],
    start: int = 0,
) -> int | None:
    """Return the index of the first line matching ``predicate``, or ``None``."""
    for idx in range(start, len(lines)):
        if predicate(lines[idx]):
            return idx
    return None


def find_all(lines: Sequence[str], label: str, exact: bool = True) -> list[int]:
    """Return every index whose line equals (or contains) ``label``."""
    if exact:
        return [i for i, line in enumerate(lines) if line == label]
    return [i for i, line in enumerate(lines) if label in line]


def split_tokens(line: str) -> list[str]:
    """Split a line on runs of whitespace."""
    stripped = line.strip()
    return _WHITESPACE_RE.split(stripped) if stripped else []


def line_at(lines: Sequence[str], idx: int) -> str:
    if idx < 0 or idx >= len(lines):
        raise ExtractionError(f"Line {idx} is outside the document ({len(lines)} lines)")
    return lines[idx]


def token_at(line: str, idx: int) -> str:
    """Return token ``idx`` of a whitespace-split line (negative counts from the end)."""
    tokens = split_tokens(line)
    try:
        return tokens[idx]
    except IndexError:
        raise ExtractionError(f"Token {idx} missing in line {line!r}") from None


# ---------------------------------------------------------------------------
# Anchor descriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Anchor:
    """Where to find one field relative to a labelled line.

    Attributes:
        label: Substring (or, with ``exact``, full line) identifying the
            anchor. A tuple lists alternative spellings.
        line_offset: Lines between the anchor and the value line.
        token: Whitespace token index on the value line; ``None`` reads
            the whole stripped line.
        exact: Match the full line instead of a substring.
        exclude: Lines containing this substring never count as anchors.
    """

    label: str | tuple[str, ...]
    line_offset: int = 0
    token: int | None = None
    exact: bool = False
    exclude: str | None = None

    def matches(self, line: str) -> bool:
        if self.exclude is not None and self.exclude in line:
            return False
        labels = (self.label,) if isinstance(self.label, str) else self.label
        if self.exact:
            return line in labels
        return any(label in line for label in labels)

    def locate(self, lines: Sequence[str]) -> int | None:
        """Index of the anchor line, or ``None`` when the label is absent."""
        return find_index(lines, self.matches)

    def read(self, lines: Sequence[str]) -> str | None:
        """Value relative to the anchor, or ``None`` when the label is absent."""
        idx = self.locate(lines)
        if idx is None:
            return None
        line = line_at(lines, idx + self.line_offset)
        if self.token is None:
            return line.strip()
        return token_at(line, self.token)

    def shifted(self, line_offset: int | None = None, token: int | None = None) -> Anchor:
        """Copy of this anchor with a different offset and/or token."""
        return Anchor(
            label=self.label,
            line_offset=self.line_offset if line_offset is None else line_offset,
            token=self.token if token is None else token,
            exact=self.exact,
            exclude=self.exclude,
        )
