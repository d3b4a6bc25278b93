from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from worksheet_builder.batch import build_batch, build_document, output_paths
from worksheet_builder.config import BuildConfig
from worksheet_builder.models import FailureKind
from worksheet_builder.render import CommandVerifier, PlainTextRenderer


def _source(directory: Path, name: str, content: str) -> Path:
    path = directory / name
    path.write_text(content, encoding="utf-8")
    return path


class RecordingVerifier:
    def __init__(self, verdict: bool = True):
        self.verdict = verdict
        self.paths: list[Path] = []

    def verify(self, path: Path) -> bool:
        self.paths.append(path)
        return self.verdict


class FailingRenderer:
    def render(self, lines, destination):
        raise OSError("disk full")


class WorksheetFailingRenderer:
    """Renders the key, then fails on the worksheet."""

    def __init__(self):
        self.calls = 0

    def render(self, lines, destination):
        self.calls += 1
        if self.calls == 2:
            raise OSError("worksheet render failed")
        return PlainTextRenderer().render(lines, destination)


def test_output_paths():
    key_path, work_path = output_paths(Path("src/lesson.m"), Path("target"), BuildConfig())

    assert key_path == Path("target/lesson_key.m")
    assert work_path == Path("target/lesson.m")


def test_output_paths_custom_suffix():
    key_path, _ = output_paths(Path("lesson.m"), Path("out"), BuildConfig(key_suffix="_solution"))

    assert key_path == Path("out/lesson_solution.m")


def test_build_document_writes_both_views(tmp_path: Path):
    source = _source(tmp_path, "lesson.m", "x = 1;\n@ compute y\ny = x + 1;\n")
    output_dir = tmp_path / "target"

    outcome = build_document(source, output_dir, BuildConfig(), PlainTextRenderer())

    assert outcome.ok
    assert outcome.key_path == output_dir / "lesson_key.m"
    assert outcome.work_path == output_dir / "lesson.m"
    assert outcome.verified is None
    assert outcome.key_path.read_text(encoding="utf-8") == "x = 1;\n% compute y\ny = x + 1;\n"
    assert outcome.work_path.read_text(encoding="utf-8") == "x = 1;\n% ANSWER HERE\n"


def test_build_document_failure_writes_nothing(tmp_path: Path):
    source = _source(tmp_path, "broken.m", "|@\nx = 1;\n")
    output_dir = tmp_path / "target"

    outcome = build_document(source, output_dir, BuildConfig(), PlainTextRenderer())

    assert not outcome.ok
    assert outcome.failure.kind is FailureKind.MISSING_TERMINATOR
    assert outcome.failure.line == 1
    assert not output_dir.exists()


def test_build_document_enforces_size_limit(tmp_path: Path):
    source = _source(tmp_path, "big.m", "x = 1;\n" * 10)

    outcome = build_document(
        source, tmp_path / "target", BuildConfig(), PlainTextRenderer(), max_file_size=8
    )

    assert not outcome.ok
    assert outcome.failure is None
    assert "exceeds the maximum allowed size" in outcome.error


def test_build_document_refuses_to_overwrite_source(tmp_path: Path):
    source = _source(tmp_path, "lesson.m", "x = 1;\n")

    outcome = build_document(source, tmp_path, BuildConfig(), PlainTextRenderer())

    assert not outcome.ok
    assert "Refusing to overwrite" in outcome.error
    assert source.read_text(encoding="utf-8") == "x = 1;\n"
    assert not (tmp_path / "lesson_key.m").exists()


def test_build_document_reports_render_errors(tmp_path: Path):
    source = _source(tmp_path, "lesson.m", "x = 1;\n")

    outcome = build_document(source, tmp_path / "target", BuildConfig(), FailingRenderer())

    assert not outcome.ok
    assert outcome.error == "disk full"


def test_build_document_runs_verifier_on_key(tmp_path: Path):
    source = _source(tmp_path, "lesson.m", "x = 1;\n")
    verifier = RecordingVerifier(verdict=False)

    outcome = build_document(
        source, tmp_path / "target", BuildConfig(), PlainTextRenderer(), verifier=verifier
    )

    assert outcome.ok
    assert outcome.verified is False
    assert verifier.paths == [tmp_path / "target" / "lesson_key.m"]


def test_build_batch_isolates_failures(tmp_path: Path):
    good = _source(tmp_path, "a.m", "! setup\nx = 1;\n")
    bad = _source(tmp_path, "b.m", "y = <@x;\n")
    also_good = _source(tmp_path, "c.m", "z = <@3>@;\n")
    output_dir = tmp_path / "target"

    outcomes = build_batch([good, bad, also_good], output_dir)

    assert [outcome.source for outcome in outcomes] == [good, bad, also_good]
    assert [outcome.ok for outcome in outcomes] == [True, False, True]
    assert outcomes[1].failure.kind is FailureKind.MALFORMED_MARKER
    assert sorted(path.name for path in output_dir.iterdir()) == [
        "a.m",
        "a_key.m",
        "c.m",
        "c_key.m",
    ]
    assert (output_dir / "c_key.m").read_text(encoding="utf-8") == "z = 3;\n"


def test_build_batch_with_executor(tmp_path: Path):
    sources = [_source(tmp_path, f"lesson_{index}.m", f"x = {index};\n") for index in range(5)]

    with ThreadPoolExecutor(max_workers=3) as executor:
        outcomes = build_batch(sources, tmp_path / "target", executor=executor)

    assert [outcome.source for outcome in outcomes] == sources
    assert all(outcome.ok for outcome in outcomes)


def test_build_batch_empty(tmp_path: Path):
    assert build_batch([], tmp_path / "target") == []


def test_build_document_keeps_previous_pair_when_worksheet_render_fails(tmp_path: Path):
    source = _source(tmp_path, "a.m", "x = 1;\n")
    output_dir = tmp_path / "target"
    assert build_document(source, output_dir, BuildConfig(), PlainTextRenderer()).ok

    source.write_text("@\ny = 2;\n", encoding="utf-8")
    outcome = build_document(source, output_dir, BuildConfig(), WorksheetFailingRenderer())

    assert not outcome.ok
    assert outcome.error == "worksheet render failed"
    assert (output_dir / "a_key.m").read_text(encoding="utf-8") == "x = 1;\n"
    assert (output_dir / "a.m").read_text(encoding="utf-8") == "x = 1;\n"
    assert sorted(path.name for path in output_dir.iterdir()) == ["a.m", "a_key.m"]


def test_build_document_first_render_failure_writes_nothing(tmp_path: Path):
    source = _source(tmp_path, "a.m", "x = 1;\n")
    output_dir = tmp_path / "target"
    output_dir.mkdir()

    outcome = build_document(source, output_dir, BuildConfig(), WorksheetFailingRenderer())

    assert not outcome.ok
    assert list(output_dir.iterdir()) == []


def test_build_batch_survives_unparsable_verify_command(tmp_path: Path):
    first = _source(tmp_path, "a.m", "x = 1;\n")
    second = _source(tmp_path, "b.m", "y = 2;\n")

    outcomes = build_batch(
        [first, second], tmp_path / "target", verifier=CommandVerifier('octave "{path}')
    )

    assert [outcome.ok for outcome in outcomes] == [True, True]
    assert [outcome.verified for outcome in outcomes] == [False, False]
