"""Marker detection and statement span utilities."""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from .config import BuildConfig
from .constants import (
    ANCHORED_TOKENS,
    INLINE_CLOSE_TOKENS,
    INLINE_OPEN_TOKEN,
    SECTION_BREAK_MIN_RUN,
    TAB_WIDTH,
)
from .models import MarkerKind, MarkerOccurrence, MarkerTable, SourceLine

logger = logging.getLogger(__name__)


def leading_whitespace_width(line: str) -> int:
    """Compute the width of leading whitespace.

    Each tab counts as four spaces.

    Args:
        line: Line whose leading whitespace should be measured.

    Returns:
        int: Indentation width.

    Examples:
        leading_whitespace_width("    x = 1;")  # 4
        leading_whitespace_width("\\t\\tx = 1;")  # 8
    """
    prefix = line[: len(line) - len(line.lstrip())]
    return len(prefix.replace("\t", " " * TAB_WIDTH))


def to_source_lines(lines: Sequence[str]) -> list[SourceLine]:
    return [
        SourceLine(index=index, text=text, leading_whitespace=leading_whitespace_width(text))
        for index, text in enumerate(lines, start=1)
    ]


def detect(
    lines: Sequence[str],
    token: str,
    anchored_at_line_start: bool = True,
    comment_char: str = "%",
) -> list[MarkerOccurrence]:
    """Find the genuine occurrences of a marker token.

    Anchored tokens match only when the line, stripped of leading whitespace,
    starts with the token. Unanchored tokens match anywhere, except on lines
    that are already comments: a token mentioned in prose is inert.

    Args:
        lines: Source lines without line endings.
        token: Marker token to look for.
        anchored_at_line_start: Whether the token must start its line.
        comment_char: Line comment character of the source language.

    Returns:
        list[MarkerOccurrence]: Occurrences in ascending line order. Indents
            are only reported for anchored tokens.

    Examples:
        detect(["x = 1;", "  @ hint"], "@")  # [MarkerOccurrence(line=2, indent=2)]
        detect(["% use <@ here", "y(<@x>@)"], "<@", False)  # [MarkerOccurrence(line=2)]
    """
    occurrences: list[MarkerOccurrence] = []

    for index, line in enumerate(lines, start=1):
        stripped = line.lstrip()
        if anchored_at_line_start:
            if stripped.startswith(token):
                occurrences.append(MarkerOccurrence(index, leading_whitespace_width(line)))
            continue

        if token not in line:
            continue
        if stripped.startswith(comment_char) and not stripped.startswith(token):
            continue
        occurrences.append(MarkerOccurrence(index))

    return occurrences


def detect_section_breaks(lines: Sequence[str], comment_char: str = "%") -> list[MarkerOccurrence]:
    """Find lines starting with two or more comment characters."""
    pattern = re.compile(rf"^\s*{re.escape(comment_char)}{{{SECTION_BREAK_MIN_RUN},}}")
    return [
        MarkerOccurrence(index, leading_whitespace_width(line))
        for index, line in enumerate(lines, start=1)
        if pattern.match(line)
    ]


def marker_tokens(config: BuildConfig) -> dict[MarkerKind, tuple[str, ...]]:
    """Return the configured token spellings for every token-based marker."""
    prefix = config.marker_prefix
    tokens = {kind: (prefix + token,) for kind, token in ANCHORED_TOKENS.items()}
    tokens[MarkerKind.INLINE_OPEN] = (prefix + INLINE_OPEN_TOKEN,)
    tokens[MarkerKind.INLINE_CLOSE] = tuple(prefix + token for token in INLINE_CLOSE_TOKENS)
    return tokens


def scan_markers(lines: Sequence[str], config: BuildConfig | None = None) -> MarkerTable:
    """Scan a document once and build its marker event table.

    When several anchored tokens match the same line, the longest one wins
    (``||@`` over ``|@``). Lines claimed by an anchored marker are rewritten
    into comments later on, so they are never section breaks and never carry
    inline events.

    Args:
        lines: Source lines without line endings.
        config: Configuration providing the vocabulary; defaults to a new
            `BuildConfig`.

    Returns:
        MarkerTable: Occurrences of every marker kind in ascending line order.

    Examples:
        table = scan_markers(["|@", "x = 1;", "||@"])
        table[MarkerKind.MULTILINE_CLOSE]  # (MarkerOccurrence(line=3, indent=0),)
    """
    config = config or BuildConfig()
    comment_char = config.comment_char
    tokens = marker_tokens(config)

    claimed: dict[int, tuple[MarkerKind, str, MarkerOccurrence]] = {}
    for kind in ANCHORED_TOKENS:
        (token,) = tokens[kind]
        for occurrence in detect(lines, token, True, comment_char):
            current = claimed.get(occurrence.line)
            if current is None or len(token) > len(current[1]):
                claimed[occurrence.line] = (kind, token, occurrence)

    events: dict[MarkerKind, list[MarkerOccurrence]] = {kind: [] for kind in MarkerKind}
    for line_number in sorted(claimed):
        kind, _, occurrence = claimed[line_number]
        events[kind].append(occurrence)

    events[MarkerKind.SECTION_BREAK] = [
        occurrence
        for occurrence in detect_section_breaks(lines, comment_char)
        if occurrence.line not in claimed
    ]

    (open_token,) = tokens[MarkerKind.INLINE_OPEN]
    events[MarkerKind.INLINE_OPEN] = [
        occurrence
        for occurrence in detect(lines, open_token, False, comment_char)
        if occurrence.line not in claimed
    ]

    close_lines = {
        occurrence.line
        for token in tokens[MarkerKind.INLINE_CLOSE]
        for occurrence in detect(lines, token, False, comment_char)
    }
    events[MarkerKind.INLINE_CLOSE] = [
        MarkerOccurrence(line_number)
        for line_number in sorted(close_lines)
        if line_number not in claimed
    ]

    for kind, occurrences in events.items():
        if occurrences:
            logger.debug("Detected %d markers of type %s", len(occurrences), kind.name)

    return MarkerTable({kind: tuple(occurrences) for kind, occurrences in events.items()})


def statement_span(
    lines: Sequence[str], first: int, continuation_token: str = "..."
) -> tuple[int, int] | None:
    """Find the lines forming one logical statement.

    The check is purely lexical: a line whose right-stripped text ends with
    `continuation_token` continues onto the next line.

    Args:
        lines: Source lines without line endings.
        first: One-based line where the statement starts.
        continuation_token: Trailing token that continues a statement.

    Returns:
        tuple[int, int] | None: Inclusive one-based span, or None when the
            statement starts past the end of the document or is still
            continued on the last line.

    Examples:
        statement_span(["f(x, ...", "  y);", "z = 1;"], 1)  # (1, 2)
        statement_span(["z = 1;"], 1)  # (1, 1)
    """
    if first < 1 or first > len(lines):
        return None

    last = first
    while lines[last - 1].rstrip().endswith(continuation_token):
        if last == len(lines):
            return None
        last += 1

    return first, last
