"""Batch orchestration: transform, render, and verify many documents."""

from __future__ import annotations

import functools
import logging
import os
from collections.abc import Iterable, Sequence
from concurrent.futures import Executor
from dataclasses import dataclass
from pathlib import Path

from .config import BuildConfig
from .engine import ParseFileError, transform_file
from .filesystem import collect_file_stat, enforce_file_size
from .models import ParseFailure
from .render import PlainTextRenderer, Renderer, Verifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentOutcome:
    """Result of building one source document.

    Attributes:
        source: The annotated source file.
        key_path: Rendered key, when rendering succeeded.
        work_path: Rendered worksheet, when rendering succeeded.
        failure: Directive failure that aborted the transformation, if any.
        error: Human readable reason the document failed, if it did.
        verified: Verifier verdict for the key; None when not verified.
    """

    source: Path
    key_path: Path | None = None
    work_path: Path | None = None
    failure: ParseFailure | None = None
    error: str | None = None
    verified: bool | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def output_paths(source: Path, output_dir: Path, config: BuildConfig) -> tuple[Path, Path]:
    """Return the ``(key, worksheet)`` destinations for `source`.

    Examples:
        output_paths(Path("lesson.m"), Path("target"), BuildConfig())
        # (Path("target/lesson_key.m"), Path("target/lesson.m"))
    """
    key_path = output_dir / f"{source.stem}{config.key_suffix}{source.suffix}"
    work_path = output_dir / source.name
    return key_path, work_path


def _staging_path(destination: Path) -> Path:
    return destination.with_name(f".{destination.name}.partial")


def _render_pair(
    renderer: Renderer,
    key_lines: Sequence[str],
    key_path: Path,
    work_lines: Sequence[str],
    work_path: Path,
) -> None:
    """Render the key and worksheet, replacing the previous pair only if both succeed.

    Both views are rendered next to their destinations first. When either
    render fails the staged files are removed and the existing documents are
    left as they were.

    Raises:
        OSError: If a view cannot be rendered or moved into place.
    """
    staged: list[Path] = []
    try:
        staged.append(renderer.render(key_lines, _staging_path(key_path)))
        staged.append(renderer.render(work_lines, _staging_path(work_path)))
        os.replace(staged[0], key_path)
        os.replace(staged[1], work_path)
    finally:
        for path in staged:
            path.unlink(missing_ok=True)


def build_document(
    source: Path,
    output_dir: Path,
    config: BuildConfig,
    renderer: Renderer,
    verifier: Verifier | None = None,
    max_file_size: int | None = None,
) -> DocumentOutcome:
    """Transform one source and render both views.

    Any failure is confined to this document and reported in the returned
    outcome; nothing is written for a document whose transformation failed.

    Args:
        source: Annotated source file.
        output_dir: Directory receiving the rendered documents.
        config: Validated configuration.
        renderer: Renderer adapter used for both views.
        verifier: Optional verifier run against the rendered key.
        max_file_size: Size limit in bytes; defaults to `config.max_file_size`.

    Returns:
        DocumentOutcome: What happened to the document.
    """
    limit = config.max_file_size if max_file_size is None else max_file_size
    try:
        enforce_file_size(collect_file_stat(source), limit, source)
        views = transform_file(source, config)
    except ParseFileError as error:
        logger.warning("Skipping %s: %s", source, error)
        return DocumentOutcome(source, failure=error.failure, error=str(error))
    except IOError as error:
        logger.warning("Skipping %s: %s", source, error)
        return DocumentOutcome(source, error=str(error))

    key_path, work_path = output_paths(source, output_dir, config)
    if work_path.resolve() == source.resolve():
        error_message = f"Refusing to overwrite the source {source} with its worksheet."
        logger.warning(error_message)
        return DocumentOutcome(source, error=error_message)

    try:
        _render_pair(renderer, views.key_lines, key_path, views.work_lines, work_path)
    except OSError as error:
        logger.warning("Rendering %s failed: %s", source, error)
        return DocumentOutcome(source, error=str(error))

    verified = None
    if verifier is not None:
        verified = verifier.verify(key_path)

    logger.info("Built %s", source)
    return DocumentOutcome(source, key_path=key_path, work_path=work_path, verified=verified)


def build_batch(
    sources: Iterable[Path],
    output_dir: Path,
    config: BuildConfig | None = None,
    renderer: Renderer | None = None,
    verifier: Verifier | None = None,
    executor: Executor | None = None,
    max_file_size: int | None = None,
) -> list[DocumentOutcome]:
    """Build every source, isolating failures per document.

    Args:
        sources: Annotated source files.
        output_dir: Directory receiving the rendered documents.
        config: Configuration; defaults to a new `BuildConfig`.
        renderer: Renderer adapter; defaults to `PlainTextRenderer`.
        verifier: Optional verifier run against each rendered key.
        executor: Optional executor used to build documents in parallel.
        max_file_size: Size limit in bytes; defaults to `config.max_file_size`.

    Returns:
        list[DocumentOutcome]: One outcome per source, in input order.

    Examples:
        outcomes = build_batch([Path("a.m"), Path("b.m")], Path("target"))
        failed = [outcome for outcome in outcomes if not outcome.ok]
    """
    build = functools.partial(
        build_document,
        output_dir=output_dir,
        config=config or BuildConfig(),
        renderer=renderer or PlainTextRenderer(),
        verifier=verifier,
        max_file_size=max_file_size,
    )
    if executor is None:
        return [build(source) for source in sources]
    return list(executor.map(build, sources))
