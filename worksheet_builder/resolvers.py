"""Directive resolvers.

Each resolver takes the current `ParseState`, the marker table built by a
single scan of the source and the configuration, and returns a new state.
They must run in the order of `RESOLVERS`: sticky markers double as fallback
terminators for the block directives resolved after them.
"""

from __future__ import annotations

import logging
import re

from .config import BuildConfig
from .constants import (
    ANCHORED_TOKENS,
    ANSWER_CLOSE_TEXT,
    ANSWER_PLACEHOLDER_TEXT,
    MULTILINE_END_TEXT,
    MULTILINE_START_TEXT,
    STICKY_DEFAULT_TEXT,
)
from .display import (
    comment_line,
    echo_markers,
    has_trailing_text,
    inline_key_line,
    inline_markup_line,
    inline_placeholder,
    mark_body_line,
    placeholder_line,
)
from .exceptions import MalformedMarkerError, MissingTerminatorError, UnsupportedConstructError
from .models import (
    KEY_ONLY,
    Directive,
    DirectiveKind,
    InsertedLine,
    MarkerKind,
    MarkerOccurrence,
    MarkerTable,
    ParseState,
)
from .scanner import marker_tokens, statement_span

logger = logging.getLogger(__name__)


def _token(config: BuildConfig, kind: MarkerKind) -> str:
    return marker_tokens(config)[kind][0]


def _neutralize_closers(
    state: ParseState,
    occurrences: list[MarkerOccurrence],
    token: str,
    config: BuildConfig,
) -> tuple[dict[int, str], set[int]]:
    """Rewrite closers that no directive consumed into plain comments.

    Bare closers are dropped from the worksheet; closers carrying text keep it
    as a comment in both views.

    Returns:
        tuple[dict[int, str], set[int]]: Rewrites for both views and the
            slots to exclude from the worksheet.
    """
    rewrites: dict[int, str] = {}
    excluded: set[int] = set()
    for occurrence in occurrences:
        line = state.key[occurrence.line - 1]
        rewrites[occurrence.line] = comment_line(line, token, occurrence.indent, config)
        if not has_trailing_text(line, token):
            excluded.add(occurrence.line)

    if rewrites:
        logger.warning("Ignoring unpaired '%s' at lines %s", token, sorted(rewrites))
    return rewrites, excluded


def resolve_sticky(state: ParseState, table: MarkerTable, config: BuildConfig) -> ParseState:
    """Rewrite sticky markers into protected-section comments.

    Line count is preserved and nothing is excluded from either view.
    """
    token = _token(config, MarkerKind.STICKY)
    rewrites: dict[int, str] = {}
    directives: list[Directive] = []

    for occurrence in table[MarkerKind.STICKY]:
        line = state.key[occurrence.line - 1]
        rewrites[occurrence.line] = comment_line(
            line, token, occurrence.indent, config, STICKY_DEFAULT_TEXT
        )
        directives.append(
            Directive(DirectiveKind.STICKY, occurrence.line, occurrence.line, occurrence.indent)
        )

    logger.debug("Parsed %d sticky blocks", len(directives))
    return state.evolve(key_rewrites=rewrites, work_rewrites=rewrites, directives=directives)


def resolve_answers(state: ParseState, table: MarkerTable, config: BuildConfig) -> ParseState:
    """Resolve answer directives.

    The key keeps the marker's text as a comment, the worksheet shows the
    ``ANSWER HERE`` placeholder. In ``default`` mode the statement following
    the marker is removed from the worksheet; in ``expand`` mode everything up
    to the nearest answer close, sticky marker or section break is removed.

    Answer closes that end no answer become plain comments.

    Raises:
        MissingTerminatorError: If no statement follows the marker, or (in
            ``expand`` mode) no terminator follows it.
    """
    token = _token(config, MarkerKind.ANSWER_OPEN)
    close_token = _token(config, MarkerKind.ANSWER_CLOSE)
    key_rewrites: dict[int, str] = {}
    work_rewrites: dict[int, str] = {}
    excluded: set[int] = set()
    directives: list[Directive] = []
    consumed: set[int] = set()

    close_indents = {
        occurrence.line: occurrence.indent for occurrence in table[MarkerKind.ANSWER_CLOSE]
    }
    sticky_lines = table.lines(MarkerKind.STICKY)
    section_lines = table.lines(MarkerKind.SECTION_BREAK)

    for occurrence in table[MarkerKind.ANSWER_OPEN]:
        start = occurrence.line
        key_rewrites[start] = comment_line(
            state.key[start - 1], token, occurrence.indent, config, ANSWER_PLACEHOLDER_TEXT
        )
        work_rewrites[start] = placeholder_line(
            occurrence.indent, config, ANSWER_PLACEHOLDER_TEXT
        )

        if config.answer_block_mode == "expand":
            last = None
            for candidate in range(start + 1, state.line_count + 1):
                if candidate in close_indents:
                    last = candidate
                    consumed.add(candidate)
                    key_rewrites[candidate] = comment_line(
                        state.key[candidate - 1],
                        close_token,
                        close_indents[candidate],
                        config,
                        ANSWER_CLOSE_TEXT,
                    )
                    break
                if candidate in sticky_lines or candidate in section_lines:
                    last = candidate - 1
                    break
            if last is None:
                raise MissingTerminatorError(DirectiveKind.ANSWER, start)
        else:
            span = statement_span(state.key, start + 1, config.continuation_token)
            if span is None:
                raise MissingTerminatorError(
                    DirectiveKind.ANSWER, start, "No complete statement follows the marker"
                )
            _, last = span

        excluded.update(range(start + 1, last + 1))
        directives.append(Directive(DirectiveKind.ANSWER, start, last, occurrence.indent))

    stray = [close for close in table[MarkerKind.ANSWER_CLOSE] if close.line not in consumed]
    stray_rewrites, stray_excluded = _neutralize_closers(state, stray, close_token, config)
    key_rewrites.update(stray_rewrites)
    work_rewrites.update(stray_rewrites)
    excluded.update(stray_excluded)

    logger.debug("Parsed %d answer blocks (%s mode)", len(directives), config.answer_block_mode)
    return state.evolve(
        key_rewrites=key_rewrites,
        work_rewrites=work_rewrites,
        work_excluded=excluded,
        directives=directives,
    )


def resolve_multiline_answers(
    state: ParseState, table: MarkerTable, config: BuildConfig
) -> ParseState:
    """Resolve multiline answer blocks.

    The terminator is searched by priority: an explicit close anywhere after
    the opener, then a sticky marker, then a section break. A later opener
    before the terminator truncates the block just before it. Without an
    explicit close an ``Answer End`` comment is inserted before the fallback
    terminator. Body lines between the two annotations are removed from the
    worksheet. Closes that end no block become plain comments.

    Raises:
        MissingTerminatorError: If none of the three terminators follows an
            opener.
    """
    token = _token(config, MarkerKind.MULTILINE_OPEN)
    close_token = _token(config, MarkerKind.MULTILINE_CLOSE)
    openers = table[MarkerKind.MULTILINE_OPEN]
    key_rewrites: dict[int, str] = {}
    work_rewrites: dict[int, str] = {}
    excluded: set[int] = set()
    inserted: list[InsertedLine] = []
    directives: list[Directive] = []
    consumed: set[int] = set()
    # Marker lines are annotated by their own resolvers.
    unmarked = frozenset().union(
        *(table.lines(kind) for kind in ANCHORED_TOKENS), table.lines(MarkerKind.INLINE_OPEN)
    )

    for position, occurrence in enumerate(openers):
        start = occurrence.line
        close = table.first_after(MarkerKind.MULTILINE_CLOSE, start)
        if close is not None:
            end, explicit = close.line, True
        else:
            fallback = table.first_after(MarkerKind.STICKY, start) or table.first_after(
                MarkerKind.SECTION_BREAK, start
            )
            if fallback is None:
                raise MissingTerminatorError(DirectiveKind.MULTILINE_ANSWER, start)
            end, explicit = fallback.line, False

        if position + 1 < len(openers) and end >= openers[position + 1].line:
            end, explicit = openers[position + 1].line, False

        open_text = state.key[start - 1]
        start_line = comment_line(open_text, token, occurrence.indent, config, MULTILINE_START_TEXT)
        key_rewrites[start] = work_rewrites[start] = start_line

        body = range(start + 1, end)
        excluded.update(body)

        if config.key_display_mode == "marked":
            for slot in body:
                if slot not in unmarked:
                    key_rewrites[slot] = mark_body_line(state.key[slot - 1], config)
        elif config.key_display_mode == "markup":
            echoed = [open_text, state.key[end - 1]] if explicit else [open_text]
            inserted.extend(
                InsertedLine(end, text, KEY_ONLY)
                for text in echo_markers(echoed, occurrence.indent, config)
            )

        if explicit:
            end_line = comment_line(
                state.key[end - 1], close_token, close.indent, config, MULTILINE_END_TEXT
            )
            key_rewrites[end] = work_rewrites[end] = end_line
            consumed.add(end)
        else:
            inserted.append(
                InsertedLine(end, placeholder_line(occurrence.indent, config, MULTILINE_END_TEXT))
            )
            logger.debug("Multiline answer at line %d closed before line %d", start, end)

        directives.append(
            Directive(
                DirectiveKind.MULTILINE_ANSWER,
                start,
                end if explicit else end - 1,
                occurrence.indent,
            )
        )

    stray = [close for close in table[MarkerKind.MULTILINE_CLOSE] if close.line not in consumed]
    stray_rewrites, stray_excluded = _neutralize_closers(state, stray, close_token, config)
    key_rewrites.update(stray_rewrites)
    work_rewrites.update(stray_rewrites)
    excluded.update(stray_excluded)

    logger.debug("Parsed %d multiline answer blocks", len(directives))
    return state.evolve(
        key_rewrites=key_rewrites,
        work_rewrites=work_rewrites,
        work_excluded=excluded,
        inserted=inserted,
        directives=directives,
    )


def resolve_comments(state: ParseState, table: MarkerTable, config: BuildConfig) -> ParseState:
    """Resolve instructor comment blocks.

    Marker lines become plain comments in both views and stay in the worksheet
    only when they carry text after the token. Body lines stay untouched in the
    key and are removed from the worksheet. Blocks never nest: openers inside
    an already processed block are treated as marker lines of that block.
    Closers left without an opener become plain comments.

    Raises:
        MissingTerminatorError: If an opener has no closer after it.
    """
    open_token = _token(config, MarkerKind.COMMENT_OPEN)
    close_token = _token(config, MarkerKind.COMMENT_CLOSE)
    openers = {occurrence.line: occurrence for occurrence in table[MarkerKind.COMMENT_OPEN]}
    rewrites: dict[int, str] = {}
    excluded: set[int] = set()
    processed: set[int] = set()
    directives: list[Directive] = []

    for occurrence in table[MarkerKind.COMMENT_OPEN]:
        start = occurrence.line
        if start in processed:
            continue

        close = table.first_after(MarkerKind.COMMENT_CLOSE, start)
        if close is None:
            raise MissingTerminatorError(DirectiveKind.COMMENT, start)

        for row in range(start, close.line):
            processed.add(row)
            marker = openers.get(row)
            if marker is not None:
                line = state.key[row - 1]
                rewrites[row] = comment_line(line, open_token, marker.indent, config)
                if has_trailing_text(line, open_token):
                    continue
            excluded.add(row)

        close_text = state.key[close.line - 1]
        rewrites[close.line] = comment_line(close_text, close_token, close.indent, config)
        if not has_trailing_text(close_text, close_token):
            excluded.add(close.line)
        processed.add(close.line)

        directives.append(Directive(DirectiveKind.COMMENT, start, close.line, occurrence.indent))

    unpaired = [close for close in table[MarkerKind.COMMENT_CLOSE] if close.line not in processed]
    unpaired_rewrites, unpaired_excluded = _neutralize_closers(
        state, unpaired, close_token, config
    )
    rewrites.update(unpaired_rewrites)
    excluded.update(unpaired_excluded)

    logger.debug("Parsed %d comment blocks", len(directives))
    return state.evolve(
        key_rewrites=rewrites,
        work_rewrites=rewrites,
        work_excluded=excluded,
        directives=directives,
    )


def _inline_pattern(config: BuildConfig) -> re.Pattern[str]:
    tokens = marker_tokens(config)
    (open_token,) = tokens[MarkerKind.INLINE_OPEN]
    closers = "|".join(re.escape(token) for token in tokens[MarkerKind.INLINE_CLOSE])
    return re.compile(rf"{re.escape(open_token)}(.*?)(?:{closers})")


def resolve_inline_answers(
    state: ParseState, table: MarkerTable, config: BuildConfig
) -> ParseState:
    """Resolve inline answers on code lines.

    The key receives the bare expression, the worksheet a quoted placeholder
    that keeps the line well-formed.

    Raises:
        MalformedMarkerError: If an opener has no closer anywhere after it.
        UnsupportedConstructError: If the closer is on a later line.
    """
    open_token = _token(config, MarkerKind.INLINE_OPEN)
    pattern = _inline_pattern(config)
    placeholder = inline_placeholder(config)
    close_lines = [occurrence.line for occurrence in table[MarkerKind.INLINE_CLOSE]]
    key_rewrites: dict[int, str] = {}
    work_rewrites: dict[int, str] = {}
    inserted: list[InsertedLine] = []
    directives: list[Directive] = []

    for occurrence in table[MarkerKind.INLINE_OPEN]:
        row = occurrence.line
        close_line = next((line for line in close_lines if line >= row), None)
        if close_line is None:
            raise MalformedMarkerError(DirectiveKind.INLINE_ANSWER, row)
        if close_line != row:
            raise UnsupportedConstructError(DirectiveKind.INLINE_ANSWER, row)

        line = state.key[row - 1]
        captured = [match.group(1).strip() for match in pattern.finditer(line)]
        key_text = pattern.sub(lambda match: match.group(1).strip(), line)
        if open_token in key_text:
            # An opener on this line is left without a closer.
            error = (
                UnsupportedConstructError
                if any(line_number > row for line_number in close_lines)
                else MalformedMarkerError
            )
            raise error(DirectiveKind.INLINE_ANSWER, row)

        logger.debug("Parsing inline block at line %d", row)
        key_rewrites[row] = inline_key_line(key_text, captured, config)
        work_rewrites[row] = pattern.sub(lambda match: placeholder, state.work[row - 1])
        if config.key_display_mode == "markup":
            inserted.append(InsertedLine(row, inline_markup_line(line, captured, config), KEY_ONLY))

        directives.extend(
            Directive(
                DirectiveKind.INLINE_ANSWER,
                row,
                row,
                occurrence.indent or 0,
                captured_text=text,
            )
            for text in captured
        )

    logger.debug("Parsed %d inline answers", len(directives))
    return state.evolve(
        key_rewrites=key_rewrites,
        work_rewrites=work_rewrites,
        inserted=inserted,
        directives=directives,
    )


RESOLVERS = (
    resolve_sticky,
    resolve_answers,
    resolve_multiline_answers,
    resolve_comments,
    resolve_inline_answers,
)
