import dataclasses

import pytest

from worksheet_builder.exceptions import (
    DirectiveError,
    MalformedMarkerError,
    MissingTerminatorError,
    UnsupportedConstructError,
)
from worksheet_builder.models import (
    BOTH_VIEWS,
    KEY_ONLY,
    Directive,
    DirectiveKind,
    DualView,
    FailureKind,
    InsertedLine,
    MarkerKind,
    MarkerOccurrence,
    MarkerTable,
    ParseFailure,
    ParseState,
    View,
)


def test_directive_kind_members_follow_resolution_order():
    assert list(DirectiveKind) == [
        DirectiveKind.STICKY,
        DirectiveKind.ANSWER,
        DirectiveKind.MULTILINE_ANSWER,
        DirectiveKind.COMMENT,
        DirectiveKind.INLINE_ANSWER,
    ]


def test_directive_kind_label():
    assert DirectiveKind.MULTILINE_ANSWER.label == "multiline-answer"
    assert DirectiveKind.STICKY.label == "sticky"


def test_failure_kind_values():
    assert [kind.value for kind in FailureKind] == [
        "MissingTerminator",
        "UnsupportedConstruct",
        "MalformedMarker",
    ]


def test_marker_table_defaults_to_empty():
    table = MarkerTable({MarkerKind.STICKY: (MarkerOccurrence(2, 0),)})

    assert table[MarkerKind.ANSWER_OPEN] == ()
    assert table.lines(MarkerKind.STICKY) == frozenset({2})
    assert table.first_after(MarkerKind.STICKY, 1) == MarkerOccurrence(2, 0)
    assert table.first_after(MarkerKind.STICKY, 2) is None


def test_inserted_line_defaults_to_both_views():
    assert InsertedLine(3, "% x").views == BOTH_VIEWS
    assert InsertedLine(3, "% x", KEY_ONLY).views == frozenset({View.KEY})


def test_parse_state_from_lines():
    state = ParseState.from_lines(["a", "b"])

    assert state.key == ("a", "b")
    assert state.work == ("a", "b")
    assert state.line_count == 2
    assert state.key_excluded == frozenset()
    assert state.work_excluded == frozenset()
    assert state.inserted == ()
    assert state.directives == ()


def test_parse_state_evolve_returns_new_state():
    state = ParseState.from_lines(["a", "b", "c"])
    directive = Directive(DirectiveKind.STICKY, 1, 1, 0)

    evolved = state.evolve(
        key_rewrites={1: "% a"},
        work_rewrites={2: "% b"},
        work_excluded={3},
        inserted=[InsertedLine(2, "x")],
        directives=[directive],
    )

    assert evolved.key == ("% a", "b", "c")
    assert evolved.work == ("a", "% b", "c")
    assert evolved.work_excluded == frozenset({3})
    assert evolved.inserted == (InsertedLine(2, "x"),)
    assert evolved.directives == (directive,)
    assert state.key == ("a", "b", "c")
    assert state.work_excluded == frozenset()


def test_parse_state_evolve_accumulates():
    state = ParseState.from_lines(["a", "b", "c"])

    state = state.evolve(work_excluded={1})
    state = state.evolve(work_excluded={3})

    assert state.work_excluded == frozenset({1, 3})


def test_parse_state_is_frozen():
    state = ParseState.from_lines(["a"])

    with pytest.raises(dataclasses.FrozenInstanceError):
        state.key = ("b",)


def test_dual_view_defaults():
    views = DualView()

    assert views.key_lines == []
    assert views.work_lines == []
    assert DualView().key_lines is not views.key_lines


@pytest.mark.parametrize(
    ("error_type", "failure_kind", "detail"),
    [
        (MissingTerminatorError, FailureKind.MISSING_TERMINATOR, "No terminator found"),
        (UnsupportedConstructError, FailureKind.UNSUPPORTED_CONSTRUCT, "spanning multiple lines"),
        (MalformedMarkerError, FailureKind.MALFORMED_MARKER, "No closing marker"),
    ],
)
def test_directive_errors_convert_to_failures(error_type, failure_kind, detail):
    error = error_type(DirectiveKind.INLINE_ANSWER, 7)

    assert isinstance(error, DirectiveError)
    assert isinstance(error, ValueError)
    assert detail in str(error)
    assert str(error).endswith("for inline-answer directive at line 7")
    assert error.to_failure() == ParseFailure(
        kind=failure_kind,
        directive_kind=DirectiveKind.INLINE_ANSWER,
        line=7,
        message=str(error),
    )


def test_directive_error_custom_detail():
    error = MissingTerminatorError(DirectiveKind.ANSWER, 3, "No complete statement follows")

    assert str(error) == "No complete statement follows for answer directive at line 3"
