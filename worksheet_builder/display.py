"""Key-view formatting of solved answers and shared line rewriting helpers."""

from __future__ import annotations

from collections.abc import Iterable

from .config import BuildConfig
from .constants import INLINE_MARKED_TEMPLATE, INLINE_MARKUP_TEMPLATE, INLINE_PLACEHOLDER_TEMPLATE


def trailing_text(line: str, token: str) -> str:
    """Return the text following an anchored token, without leading whitespace."""
    stripped = line.lstrip()
    if stripped.startswith(token):
        stripped = stripped[len(token) :]
    return stripped.lstrip()


def has_trailing_text(line: str, token: str) -> bool:
    return bool(trailing_text(line, token).strip())


def comment_line(
    line: str, token: str, indent: int, config: BuildConfig, default_text: str = ""
) -> str:
    """Rewrite an anchored marker line into a plain comment.

    The text following the token becomes the comment body; `default_text` is
    used when nothing follows it. Indentation is rebuilt from `indent`
    repetitions of the configured indent character.

    Args:
        line: Marker line to rewrite.
        token: Marker token that starts the line.
        indent: Indentation width of the marker.
        config: Configuration providing indent and comment characters.
        default_text: Comment body used when the marker carries no text.

    Returns:
        str: The rewritten line.

    Examples:
        comment_line("  ! keep", "!", 2, BuildConfig())  # "  % keep"
        comment_line("@", "@", 0, BuildConfig(), "ANSWER HERE")  # "% ANSWER HERE"
    """
    body = trailing_text(line, token)
    if body.strip():
        return placeholder_line(indent, config, body)
    return placeholder_line(indent, config, default_text)


def placeholder_line(indent: int, config: BuildConfig, text: str) -> str:
    """Build ``<indent><comment char> <text>`` without trailing blanks."""
    c = config.comment_char
    indent_str = config.indent_char * indent
    if text.startswith(c):
        return f"{indent_str}{c}{text}"
    return f"{indent_str}{c} {text}".rstrip()


def is_comment_or_blank(line: str, config: BuildConfig) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith(config.comment_char)


def mark_body_line(line: str, config: BuildConfig) -> str:
    """Append a trailing comment restating a solution line (``marked`` mode)."""
    if is_comment_or_blank(line, config):
        return line
    annotation = INLINE_MARKED_TEMPLATE.format(c=config.comment_char, text=line.strip())
    return f"{line.rstrip()} {annotation}"


def echo_markers(marker_lines: Iterable[str], indent: int, config: BuildConfig) -> list[str]:
    """Comment out the original marker lines (``markup`` mode)."""
    indent_str = config.indent_char * indent
    return [f"{indent_str}{config.comment_char} {line.strip()}" for line in marker_lines]


def inline_placeholder(config: BuildConfig) -> str:
    return INLINE_PLACEHOLDER_TEMPLATE.format(c=config.comment_char)


def inline_key_line(line: str, captured: list[str], config: BuildConfig) -> str:
    """Apply the key display mode to a line whose inline answers were filled in."""
    if config.key_display_mode != "marked" or not captured:
        return line
    annotations = " ".join(
        INLINE_MARKED_TEMPLATE.format(c=config.comment_char, text=text) for text in captured
    )
    return f"{line.rstrip()} {annotations}"


def inline_markup_line(line: str, captured: list[str], config: BuildConfig) -> str:
    """Annotation line inserted above an inline answer in ``markup`` mode."""
    indent_str = line[: len(line) - len(line.lstrip())]
    text = INLINE_MARKUP_TEMPLATE.format(c=config.comment_char, text=", ".join(captured))
    return f"{indent_str}{text}"
