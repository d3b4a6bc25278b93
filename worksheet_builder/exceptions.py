"""Package-specific exception types."""

from __future__ import annotations

from .models import DirectiveKind, FailureKind, ParseFailure


class DirectiveError(ValueError):
    """Base class for directive resolution errors.

    Any of these aborts the transformation of the whole document so that no
    inconsistent key/worksheet pair is produced.

    Args:
        directive_kind: Kind of directive that could not be resolved.
        line_number: One-based line of the offending marker.
        detail: Optional human readable description.
    """

    kind: FailureKind = FailureKind.MISSING_TERMINATOR

    def __init__(self, directive_kind: DirectiveKind, line_number: int, detail: str = ""):
        self.directive_kind = directive_kind
        self.line_number = line_number
        self.detail = detail or self._default_detail()
        super().__init__(self._build_message())

    def _default_detail(self) -> str:
        return "unresolvable directive"

    def _build_message(self) -> str:
        return f"{self.detail} for {self.directive_kind.label} directive at line {self.line_number}"

    def to_failure(self) -> ParseFailure:
        """Describe the error as a `ParseFailure` value."""
        return ParseFailure(
            kind=self.kind,
            directive_kind=self.directive_kind,
            line=self.line_number,
            message=str(self),
        )


class MissingTerminatorError(DirectiveError):
    """Raised when a block directive has no close or fallback terminator."""

    kind = FailureKind.MISSING_TERMINATOR

    def _default_detail(self) -> str:
        return "No terminator found before end of document"


class UnsupportedConstructError(DirectiveError):
    """Raised when an inline answer opens and closes on different lines."""

    kind = FailureKind.UNSUPPORTED_CONSTRUCT

    def _default_detail(self) -> str:
        return "Inline answers spanning multiple lines are not supported"


class MalformedMarkerError(DirectiveError):
    """Raised when an inline answer opener has no closer anywhere."""

    kind = FailureKind.MALFORMED_MARKER

    def _default_detail(self) -> str:
        return "No closing marker found"
