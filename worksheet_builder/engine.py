"""Dual-view transformation engine."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from pathlib import Path

from .config import BuildConfig, ConfigError, normalize_config, validate_config
from .exceptions import DirectiveError
from .filesystem import safe_read
from .models import DualView, ParseFailure, ParseState, View
from .resolvers import RESOLVERS
from .scanner import scan_markers

logger = logging.getLogger(__name__)


def assemble(state: ParseState) -> DualView:
    """Build the key and worksheet line sequences from a resolved state.

    Inserted lines are emitted before the slot they are attached to (slot
    ``line_count + 1`` means end of document) in the order they were added;
    excluded slots are dropped from their view. No further interpretation
    takes place.

    Args:
        state: State produced by the resolvers.

    Returns:
        DualView: The key and worksheet lines.
    """
    inserts: dict[int, list] = defaultdict(list)
    for inserted_line in state.inserted:
        inserts[inserted_line.before].append(inserted_line)

    key_lines: list[str] = []
    work_lines: list[str] = []

    for slot in range(1, state.line_count + 2):
        for inserted_line in inserts.get(slot, ()):
            if View.KEY in inserted_line.views:
                key_lines.append(inserted_line.text)
            if View.WORK in inserted_line.views:
                work_lines.append(inserted_line.text)

        if slot > state.line_count:
            break
        if slot not in state.key_excluded:
            key_lines.append(state.key[slot - 1])
        if slot not in state.work_excluded:
            work_lines.append(state.work[slot - 1])

    return DualView(key_lines=key_lines, work_lines=work_lines)


def resolve(lines: Sequence[str], config: BuildConfig | None = None) -> ParseState:
    """Run every resolver over `lines` and return the final state.

    Raises:
        ConfigError: If the configuration fails validation.
        DirectiveError: If a directive cannot be resolved.
    """
    config = normalize_config(config or BuildConfig())
    validate_config(config)

    lines = [line.rstrip("\r\n") for line in lines]
    table = scan_markers(lines, config)
    state = ParseState.from_lines(lines)
    for resolver in RESOLVERS:
        state = resolver(state, table, config)
    return state


def transform(lines: Sequence[str], config: BuildConfig | None = None) -> DualView:
    """Transform an annotated document into its key and worksheet views.

    This is a pure function of its arguments: no state survives the call, so
    documents can be transformed in parallel.

    Args:
        lines: Source lines, with or without line endings.
        config: Configuration controlling directive handling. Defaults to a
            new `BuildConfig` when omitted.

    Returns:
        DualView: Key and worksheet lines, without line endings.

    Raises:
        ConfigError: If the configuration fails validation.
        MissingTerminatorError: If a block directive is never terminated.
        UnsupportedConstructError: If an inline answer spans several lines.
        MalformedMarkerError: If an inline answer is never closed.

    Examples:
        transform(["a=1;", "@ calc", "b = f(x);"]).work_lines
        # ["a=1;", "% ANSWER HERE"]
    """
    return assemble(resolve(lines, config))


def transform_text(content: str, config: BuildConfig | None = None) -> DualView:
    """Transform a whole document given as one string.

    Lines are split on ``\\n`` only; form feeds and other characters that
    `str.splitlines` treats as boundaries stay part of their line.
    """
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return transform(lines, config)


def try_transform(
    lines: Sequence[str], config: BuildConfig | None = None
) -> DualView | ParseFailure:
    """Like `transform`, but report directive failures as a `ParseFailure`."""
    try:
        return transform(lines, config)
    except DirectiveError as error:
        logger.debug("Transformation failed: %s", error)
        return error.to_failure()


class ParseFileError(Exception):
    """Raised when a source file cannot be read or transformed."""

    def __init__(self, message: str, failure: ParseFailure | None = None):
        super().__init__(message)
        self.failure = failure


def transform_file(filepath: Path, config: BuildConfig | None = None) -> DualView:
    """Read a source file and transform it.

    Args:
        filepath: Path to the annotated source.
        config: Configuration controlling directive handling.

    Returns:
        DualView: Key and worksheet lines.

    Raises:
        ParseFileError: If configuration is invalid, the file cannot be read
            or decoded, or a directive cannot be resolved. Directive failures
            carry their `ParseFailure` in the `failure` attribute.

    Examples:
        views = transform_file(Path("lesson.m"), BuildConfig(marker_prefix="%"))
    """
    config = normalize_config(config or BuildConfig())
    try:
        validate_config(config)
    except ConfigError as error:
        raise ParseFileError(str(error)) from error

    try:
        with safe_read(filepath) as file:
            content = file.read()
    except UnicodeDecodeError as error:
        error_message = f"Invalid UTF-8 sequence in {filepath}: {error}"
        raise ParseFileError(error_message) from error
    except IOError as error:
        raise ParseFileError(str(error)) from error

    try:
        return transform_text(content, config)
    except DirectiveError as error:
        raise ParseFileError(f"{filepath}: {error}", error.to_failure()) from error
