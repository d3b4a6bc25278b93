"""Configuration loading and management."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, fields, replace
from pathlib import Path
import tomllib

ANSWER_BLOCK_MODES = ("default", "expand")
KEY_DISPLAY_MODES = ("default", "markup", "marked")


@dataclass(frozen=True)
class BuildConfig:
    """Configuration for building keys and worksheets.

    Attributes:
        answer_block_mode: How much an answer directive removes from the
            worksheet (``"default"`` for one statement, ``"expand"`` up to a
            terminator).
        key_display_mode: How solved answers are annotated in the key
            (``"default"``, ``"markup"`` or ``"marked"``).
        indent_char: Character repeated to rebuild the indentation of
            rewritten marker lines.
        comment_char: Line comment character of the source language.
        marker_prefix: Text prepended to every directive token. Use ``"%"``
            for the ``%!``, ``%@``, ``%|@`` vocabulary.
        continuation_token: Trailing token that continues a statement onto
            the next line.
        key_suffix: Suffix appended to the stem of key outputs.
        source_extensions: Extensions picked up when discovering sources.
        output_dir: Directory that receives rendered documents.
        verify_command: Optional command used to smoke-test rendered keys;
            ``{path}`` is replaced with the key path.
        max_file_size: Maximum source size in bytes that will be processed.

    Examples:
        BuildConfig(answer_block_mode="expand", marker_prefix="%")
    """

    # Directive handling
    answer_block_mode: str = "default"
    key_display_mode: str = "default"

    # Source language
    indent_char: str = " "
    comment_char: str = "%"
    marker_prefix: str = ""
    continuation_token: str = "..."

    # Outputs
    key_suffix: str = "_key"
    source_extensions: tuple[str, ...] = (".m",)
    output_dir: str = "target"
    verify_command: str | None = None

    # Limits
    max_file_size: int = 10 * 1024 * 1024


class ConfigError(ValueError):
    """Exception raised when configuration values are invalid.

    Examples:
        raise ConfigError("`answer_block_mode` must be one of: default, expand")
    """


def load_config(search_path: Path) -> BuildConfig:
    """Load configuration from the nearest config file.

    Walks parent directories from `search_path` to the filesystem root, reading
    the ``[tool.worksheet-builder]`` table from `pyproject.toml` and the
    ``[worksheet-builder]`` or ``[tool.worksheet-builder]`` table from
    `.worksheet-builder.toml` when present. Returns default values when no
    configuration is found. TOML files that cannot be read or decoded are
    skipped.

    Args:
        search_path: Directory used as the starting point for configuration lookup.

    Returns:
        BuildConfig: Loaded configuration with defaults applied when necessary.

    Raises:
        ConfigError: If the table is present but not a mapping or contains
            unsupported keys.

    Examples:
        load_config(Path("lessons"))
    """
    current = search_path.resolve()

    while True:
        pyproject_config = _load_from_file(
            current / "pyproject.toml", table_paths=[("tool", "worksheet-builder")]
        )
        if pyproject_config is not None:
            return normalize_config(pyproject_config)

        dotfile_config = _load_from_file(
            current / ".worksheet-builder.toml",
            table_paths=[("worksheet-builder",), ("tool", "worksheet-builder")],
        )
        if dotfile_config is not None:
            return normalize_config(dotfile_config)

        parent = current.parent
        if parent == current:
            break
        current = parent

    return BuildConfig()


_MISSING = object()


def _load_from_file(
    config_file: Path, table_paths: list[tuple[str, ...]]
) -> BuildConfig | None:
    if not config_file.exists():
        return None

    try:
        with open(config_file, "rb") as stream:
            data = tomllib.load(stream)
    except (OSError, tomllib.TOMLDecodeError):
        return None

    for table_path in table_paths:
        raw_config = _extract_table(data, table_path)
        if raw_config is _MISSING:
            continue
        return _build_config_from_raw(raw_config, config_file, table_path)

    return None


def _extract_table(data: object, table_path: tuple[str, ...]) -> object:
    current = data
    for key in table_path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _build_config_from_raw(
    raw_config: object, config_file: Path, table_path: tuple[str, ...]
) -> BuildConfig:
    table_display = ".".join(table_path)

    if not isinstance(raw_config, dict):
        raise ConfigError(f"Invalid `[{table_display}]` settings in {config_file}")

    if not raw_config:
        return BuildConfig()

    known = {field.name for field in fields(BuildConfig)}
    unknown = sorted(set(raw_config) - known)
    if unknown:
        raise ConfigError(
            f"Invalid `[{table_display}]` settings in {config_file}: "
            f"unsupported keys {', '.join(unknown)}"
        )

    # TOML has no tuples; arrays arrive as lists.
    if isinstance(raw_config.get("source_extensions"), list):
        raw_config = {**raw_config, "source_extensions": tuple(raw_config["source_extensions"])}

    return BuildConfig(**raw_config)


def normalize_config(config: BuildConfig) -> BuildConfig:
    """Normalize aliases and spelling variants in a `BuildConfig`."""
    extensions = config.source_extensions
    if isinstance(extensions, str):
        extensions = (extensions,)
    if isinstance(extensions, (list, tuple)):
        extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}"
            for ext in extensions
            if isinstance(ext, str)
        )

    answer_block_mode = config.answer_block_mode
    key_display_mode = config.key_display_mode
    if isinstance(answer_block_mode, str):
        answer_block_mode = answer_block_mode.lower()
    if isinstance(key_display_mode, str):
        key_display_mode = key_display_mode.lower()

    return replace(
        config,
        source_extensions=extensions,
        answer_block_mode=answer_block_mode,
        key_display_mode=key_display_mode,
    )


def validate_config(config: BuildConfig) -> None:
    """Validate a `BuildConfig` instance.

    Args:
        config: Configuration to validate.

    Raises:
        ConfigError: If a mode is unknown, a character field is not a single
            character, a token is empty, or the size limit is not positive.

    Examples:
        validate_config(BuildConfig(key_display_mode="marked"))
    """
    config = normalize_config(config)

    if config.answer_block_mode not in ANSWER_BLOCK_MODES:
        raise ConfigError(
            f"`answer_block_mode` must be one of: {', '.join(ANSWER_BLOCK_MODES)}"
        )
    if config.key_display_mode not in KEY_DISPLAY_MODES:
        raise ConfigError(f"`key_display_mode` must be one of: {', '.join(KEY_DISPLAY_MODES)}")

    _ensure_strings(
        {
            "indent_char": config.indent_char,
            "comment_char": config.comment_char,
            "marker_prefix": config.marker_prefix,
            "continuation_token": config.continuation_token,
            "key_suffix": config.key_suffix,
            "output_dir": config.output_dir,
        }
    )

    if len(config.indent_char) != 1:
        raise ConfigError("`indent_char` must be a single character")
    if len(config.comment_char) != 1 or config.comment_char.isspace():
        raise ConfigError("`comment_char` must be a single non-whitespace character")
    if not config.continuation_token.strip():
        raise ConfigError("`continuation_token` must not be empty")
    if not config.key_suffix:
        raise ConfigError("`key_suffix` must not be empty")
    if not config.output_dir:
        raise ConfigError("`output_dir` must not be empty")
    if not isinstance(config.source_extensions, tuple) or not config.source_extensions:
        raise ConfigError("`source_extensions` must list at least one extension")
    if config.verify_command is not None and (
        not isinstance(config.verify_command, str) or not config.verify_command.strip()
    ):
        raise ConfigError("`verify_command` must be a non-empty string")
    if config.verify_command is not None:
        try:
            shlex.split(config.verify_command)
        except ValueError as error:
            raise ConfigError(f"`verify_command` cannot be parsed: {error}") from error

    if isinstance(config.max_file_size, bool) or not isinstance(config.max_file_size, int):
        raise ConfigError("`max_file_size` must be an integer")
    if config.max_file_size <= 0:
        raise ConfigError("`max_file_size` must be a positive integer")


def apply_overrides(config: BuildConfig, **overrides: object) -> BuildConfig:
    """Apply override values to a `BuildConfig`.

    Args:
        config: Base configuration to update.
        overrides: Override values keyed by configuration field name; values set to
            None are ignored.

    Returns:
        BuildConfig: New configuration with the provided overrides applied. The
        original configuration is returned when no changes are supplied.

    Raises:
        TypeError: If an override name is not defined on `BuildConfig`.

    Examples:
        updated = apply_overrides(config, answer_block_mode="expand")
    """
    changes = {key: value for key, value in overrides.items() if value is not None}
    if not changes:
        return config
    return replace(config, **changes)


def build_config(search_path: Path, **overrides: object) -> BuildConfig:
    """Load, override, and validate configuration.

    Args:
        search_path: Directory where configuration files are resolved.
        overrides: Override values keyed by configuration attributes; None values
            are ignored.

    Returns:
        BuildConfig: Validated configuration ready for building.

    Raises:
        ConfigError: If configuration loading or validation fails.

    Examples:
        config = build_config(Path.cwd(), key_display_mode="marked")
    """
    config = load_config(search_path)
    config = apply_overrides(config, **overrides)
    config = normalize_config(config)
    validate_config(config)
    return config


def _ensure_strings(values: dict[str, object]) -> None:
    for key, value in values.items():
        if not isinstance(value, str):
            raise ConfigError(f"`{key}` must be a string")
