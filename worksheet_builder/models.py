"""Data models for worksheet-builder."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum, auto


class DirectiveKind(Enum):
    """Directive kinds, listed in the order their resolvers run."""

    STICKY = auto()
    ANSWER = auto()
    MULTILINE_ANSWER = auto()
    COMMENT = auto()
    INLINE_ANSWER = auto()

    @property
    def label(self) -> str:
        return self.name.lower().replace("_", "-")


class MarkerKind(Enum):
    """Every marker the scanner recognizes.

    Attributes:
        STICKY: Protected-section marker, also a fallback terminator.
        ANSWER_OPEN: Answer directive.
        ANSWER_CLOSE: Explicit answer close (expand mode).
        MULTILINE_OPEN: Multiline answer opener.
        MULTILINE_CLOSE: Multiline answer closer.
        INLINE_OPEN: Inline answer opener, valid anywhere on a code line.
        INLINE_CLOSE: Inline answer closer.
        COMMENT_OPEN: Instructor comment block opener.
        COMMENT_CLOSE: Instructor comment block closer.
        SECTION_BREAK: Two or more comment characters starting a line.
    """

    STICKY = auto()
    ANSWER_OPEN = auto()
    ANSWER_CLOSE = auto()
    MULTILINE_OPEN = auto()
    MULTILINE_CLOSE = auto()
    INLINE_OPEN = auto()
    INLINE_CLOSE = auto()
    COMMENT_OPEN = auto()
    COMMENT_CLOSE = auto()
    SECTION_BREAK = auto()


class FailureKind(Enum):
    MISSING_TERMINATOR = "MissingTerminator"
    UNSUPPORTED_CONSTRUCT = "UnsupportedConstruct"
    MALFORMED_MARKER = "MalformedMarker"


class View(Enum):
    KEY = auto()
    WORK = auto()


BOTH_VIEWS = frozenset({View.KEY, View.WORK})
KEY_ONLY = frozenset({View.KEY})


@dataclass(frozen=True)
class SourceLine:
    """A line of the source document.

    Attributes:
        index: One-based line number.
        text: Line content without its line ending.
        leading_whitespace: Indentation width, tabs counting as four spaces.
    """

    index: int
    text: str
    leading_whitespace: int


@dataclass(frozen=True)
class MarkerOccurrence:
    """A genuine occurrence of a marker token.

    Attributes:
        line: One-based line number of the marker.
        indent: Indentation width for anchored markers, None for inline ones.
    """

    line: int
    indent: int | None = None


@dataclass(frozen=True)
class MarkerTable:
    """Immutable event table produced by one scan of the source."""

    events: Mapping[MarkerKind, tuple[MarkerOccurrence, ...]]

    def __getitem__(self, kind: MarkerKind) -> tuple[MarkerOccurrence, ...]:
        return self.events.get(kind, ())

    def lines(self, kind: MarkerKind) -> frozenset[int]:
        return frozenset(occurrence.line for occurrence in self[kind])

    def first_after(self, kind: MarkerKind, line: int) -> MarkerOccurrence | None:
        """Return the first occurrence of `kind` strictly after `line`."""
        for occurrence in self[kind]:
            if occurrence.line > line:
                return occurrence
        return None


@dataclass(frozen=True)
class Directive:
    """A resolved directive.

    Attributes:
        kind: Directive kind.
        start: First line (inclusive, original numbering).
        end: Last line (inclusive, original numbering); may equal `start`.
        indent: Indentation width of the opening marker.
        captured_text: Captured expression for inline answers.
    """

    kind: DirectiveKind
    start: int
    end: int
    indent: int
    captured_text: str | None = None


@dataclass(frozen=True)
class InsertedLine:
    """A line that does not exist in the source, emitted before slot `before`."""

    before: int
    text: str
    views: frozenset[View] = BOTH_VIEWS


@dataclass(frozen=True)
class ParseState:
    """Per-document state threaded through the resolvers.

    The key and worksheet buffers start identical and only diverge where a
    resolver writes view-specific text. Slots are one-based.

    Attributes:
        key: Key view buffer, one entry per source line.
        work: Worksheet view buffer, one entry per source line.
        key_excluded: Slots hidden from the key view.
        work_excluded: Slots hidden from the worksheet view.
        inserted: Synthesized lines, in insertion order.
        directives: Directives resolved so far.
    """

    key: tuple[str, ...]
    work: tuple[str, ...]
    key_excluded: frozenset[int] = frozenset()
    work_excluded: frozenset[int] = frozenset()
    inserted: tuple[InsertedLine, ...] = ()
    directives: tuple[Directive, ...] = ()

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> ParseState:
        buffer = tuple(lines)
        return cls(key=buffer, work=buffer)

    @property
    def line_count(self) -> int:
        return len(self.key)

    def evolve(
        self,
        *,
        key_rewrites: Mapping[int, str] | None = None,
        work_rewrites: Mapping[int, str] | None = None,
        work_excluded: Iterable[int] = (),
        inserted: Iterable[InsertedLine] = (),
        directives: Iterable[Directive] = (),
    ) -> ParseState:
        """Return a new state with a resolver's changes applied."""
        return replace(
            self,
            key=_apply_rewrites(self.key, key_rewrites),
            work=_apply_rewrites(self.work, work_rewrites),
            work_excluded=self.work_excluded | frozenset(work_excluded),
            inserted=self.inserted + tuple(inserted),
            directives=self.directives + tuple(directives),
        )


def _apply_rewrites(buffer: tuple[str, ...], rewrites: Mapping[int, str] | None) -> tuple[str, ...]:
    if not rewrites:
        return buffer
    updated = list(buffer)
    for slot, text in rewrites.items():
        updated[slot - 1] = text
    return tuple(updated)


@dataclass(frozen=True)
class DualView:
    """The two renderings of one document."""

    key_lines: list[str] = field(default_factory=list)
    work_lines: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ParseFailure:
    """Structural failure of one document.

    Attributes:
        kind: Failure category.
        directive_kind: Kind of the directive that failed.
        line: One-based line of the offending marker.
        message: Human readable description.
    """

    kind: FailureKind
    directive_kind: DirectiveKind
    line: int
    message: str = ""
