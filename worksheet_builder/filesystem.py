"""Filesystem helpers for worksheet-builder."""

from __future__ import annotations

import os
import stat
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from .constants import DEFAULT_MAX_FILE_SIZE, SOURCE_EXTENSIONS

MAX_FILE_SIZE_ENV_VAR = "WORKSHEET_BUILDER_MAX_FILE_SIZE"


def get_max_file_size(default: int = DEFAULT_MAX_FILE_SIZE) -> int:
    """Resolve the maximum allowed source size.

    Args:
        default: Fallback value in bytes when the environment variable is unset.

    Returns:
        int: Maximum allowed file size in bytes.

    Raises:
        ValueError: If the environment value is not a positive integer.

    Examples:
        os.environ["WORKSHEET_BUILDER_MAX_FILE_SIZE"] = "204800"
        limit = get_max_file_size(default=102400)
    """
    env_value = os.environ.get(MAX_FILE_SIZE_ENV_VAR)
    if env_value is None:
        return default

    try:
        max_size = int(env_value)
    except ValueError as error:
        error_message = (
            f"Invalid value for {MAX_FILE_SIZE_ENV_VAR}: {env_value} (expected positive integer)"
        )
        raise ValueError(error_message) from error

    if max_size <= 0:
        error_message = f"{MAX_FILE_SIZE_ENV_VAR} must be a positive integer, got {max_size}."
        raise ValueError(error_message)

    return max_size


def contains_symlink(path: Path) -> bool:
    """Check whether a path or any parent directory is a symlink."""
    for candidate in (path, *path.parents):
        try:
            if candidate.is_symlink():
                return True
        except OSError:
            continue
    return False


def normalize_filepath(
    raw_path: str, base_dir: Path, extensions: Iterable[str] = SOURCE_EXTENSIONS
) -> Path:
    """Resolve and validate a source filepath.

    Relative paths are resolved against `base_dir`.

    Args:
        raw_path: User-supplied path to a source file (absolute or relative).
        base_dir: Directory relative paths are resolved against.
        extensions: Accepted source extensions.

    Returns:
        Path: Absolute path to the source file.

    Raises:
        ValueError: If the path does not exist, is not a regular file, uses an
            unsupported extension, or traverses a symlink.

    Examples:
        normalize_filepath("lesson_1_intro.m", Path("lessons"))
    """
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = base_dir / path

    if contains_symlink(path):
        error_message = f"Symlinks are not supported for security reasons: {path}"
        raise ValueError(error_message)

    try:
        resolved = path.resolve(strict=True)
    except FileNotFoundError as error:
        error_message = f"{path} does not exist."
        raise ValueError(error_message) from error
    except OSError as error:
        error_message = f"Error resolving {path}: {error}"
        raise ValueError(error_message) from error

    if not resolved.is_file():
        error_message = f"{resolved} is not a regular file."
        raise ValueError(error_message)

    extensions = tuple(extensions)
    if resolved.suffix.lower() not in extensions:
        error_message = f"{resolved} is not a source file.\n"
        error_message += f"Supported extensions are: {', '.join(extensions)}"
        raise ValueError(error_message)

    return resolved


def discover_sources(root: Path, extensions: Iterable[str] = SOURCE_EXTENSIONS) -> list[Path]:
    """List the source files directly inside `root`, sorted by name.

    Symlinks and non-regular files are skipped.
    """
    extensions = tuple(extensions)
    return sorted(
        candidate.resolve()
        for candidate in root.iterdir()
        if candidate.suffix.lower() in extensions
        and not candidate.is_symlink()
        and candidate.is_file()
    )


def collect_file_stat(filepath: Path) -> os.stat_result:
    """Return stat information for a file while disallowing symlinks.

    Raises:
        IOError: If the path is inaccessible, a symlink, or not a regular file.
    """
    try:
        stat_result = os.stat(filepath, follow_symlinks=False)
    except OSError as error:
        error_message = f"Error accessing {filepath}: {error}"
        raise IOError(error_message) from error

    if stat.S_ISLNK(stat_result.st_mode):
        error_message = f"Symlinks are not supported: {filepath}."
        raise IOError(error_message)

    if not stat.S_ISREG(stat_result.st_mode):
        error_message = f"{filepath} is not a regular file."
        raise IOError(error_message)

    return stat_result


def enforce_file_size(stat_result: os.stat_result, max_size: int, filepath: Path):
    """Guard against files that exceed the configured maximum size.

    Raises:
        IOError: If `stat_result.st_size` exceeds `max_size`.
    """
    if stat_result.st_size > max_size:
        error_message = f"{filepath} exceeds the maximum allowed size of {max_size} bytes."
        raise IOError(error_message)


def safe_read(filepath: Path) -> TextIO:
    """Open a file for reading with consistent error handling.

    Args:
        filepath: Path to the file.

    Returns:
        TextIO: File handle opened for reading in UTF-8.

    Raises:
        IOError: If the path is missing, inaccessible, or not a file.

    Examples:
        with safe_read(Path("lesson.m")) as handle:
            first_line = handle.readline()
    """
    try:
        return open(filepath, "r", encoding="UTF-8")
    except (
        FileNotFoundError,
        PermissionError,
        IsADirectoryError,
        NotADirectoryError,
    ) as error:
        error_message = f"Error accessing {filepath}: {error}"
        raise IOError(error_message) from error


def write_lines(lines: Iterable[str], destination: Path) -> None:
    """Write lines to `destination` atomically.

    The content goes to a temporary file in the destination directory, is
    flushed and synced, then replaces the destination in one step. A partially
    written document is never left behind.

    Args:
        lines: Lines without line endings.
        destination: File to create or replace.

    Raises:
        IOError: If the destination is a symlink or cannot be written.

    Examples:
        write_lines(["x = 1;"], Path("target/lesson_key.m"))
    """
    if destination.is_symlink():
        error_message = f"Symlinks are not supported: {destination}."
        raise IOError(error_message)

    temp_path: Path | None = None
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", encoding="UTF-8", delete=False, dir=destination.parent
        ) as tmp_file:
            temp_path = Path(tmp_file.name)
            for line in lines:
                tmp_file.write(f"{line}\n")
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
            os.chmod(tmp_file.name, 0o644)

        os.replace(temp_path, destination)
    except OSError as error:
        error_message = f"Error writing {destination}: {error}"
        raise IOError(error_message) from error
    finally:
        if temp_path is not None:
            try:
                temp_path.unlink(missing_ok=True)
            except OSError:
                pass
