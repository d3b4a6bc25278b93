from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from worksheet_builder.config import (
    BuildConfig,
    ConfigError,
    apply_overrides,
    build_config,
    load_config,
    validate_config,
)


def _write_pyproject(base: Path, body: str) -> Path:
    path = base / "pyproject.toml"
    path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
    return path


def _write_dotfile(base: Path, body: str) -> Path:
    path = base / ".worksheet-builder.toml"
    path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
    return path


def test_loads_config_from_pyproject(tmp_path: Path):
    _write_pyproject(
        tmp_path,
        """
        [tool.worksheet-builder]
        answer_block_mode = "expand"
        key_display_mode = "marked"
        indent_char = "\\t"
        comment_char = "#"
        marker_prefix = "%"
        continuation_token = "\\\\"
        key_suffix = "_solution"
        source_extensions = [".py"]
        output_dir = "build"
        max_file_size = 1
        """,
    )

    config = load_config(tmp_path)

    assert config == BuildConfig(
        answer_block_mode="expand",
        key_display_mode="marked",
        indent_char="\t",
        comment_char="#",
        marker_prefix="%",
        continuation_token="\\",
        key_suffix="_solution",
        source_extensions=(".py",),
        output_dir="build",
        max_file_size=1,
    )


def test_loads_config_from_dotfile(tmp_path: Path):
    _write_dotfile(
        tmp_path,
        """
        [worksheet-builder]
        marker_prefix = "%"
        """,
    )
    nested = tmp_path / "child"
    nested.mkdir()

    config = load_config(nested)

    assert config.marker_prefix == "%"
    assert config.answer_block_mode == "default"


def test_load_config_walks_up_directories(tmp_path: Path):
    _write_pyproject(
        tmp_path,
        """
        [tool.worksheet-builder]
        key_display_mode = "markup"
        """,
    )
    nested = tmp_path / "a" / "b" / "c"
    nested.mkdir(parents=True)

    config = load_config(nested)

    assert config.key_display_mode == "markup"


def test_empty_config_table_stops_inheritance(tmp_path: Path):
    _write_pyproject(
        tmp_path,
        """
        [tool.worksheet-builder]
        marker_prefix = "%"
        """,
    )
    child = tmp_path / "child"
    child.mkdir()
    _write_pyproject(
        child,
        """
        [tool.worksheet-builder]
        """,
    )

    config = load_config(child)

    assert config.marker_prefix == BuildConfig().marker_prefix


def test_load_config_returns_defaults_when_missing(tmp_path: Path):
    assert load_config(tmp_path) == BuildConfig()


def test_load_config_skips_invalid_toml(tmp_path: Path):
    invalid_dir = tmp_path / "invalid"
    invalid_dir.mkdir()
    _write_pyproject(invalid_dir, "not = {valid")
    _write_pyproject(
        tmp_path,
        """
        [tool.worksheet-builder]
        answer_block_mode = "expand"
        """,
    )

    nested = invalid_dir / "child"
    nested.mkdir()
    config = load_config(nested)

    assert config.answer_block_mode == "expand"


def test_load_config_errors_on_unknown_keys(tmp_path: Path):
    _write_pyproject(
        tmp_path,
        """
        [tool.worksheet-builder]
        marker_prefix = "%"
        unexpected = true
        """,
    )

    with pytest.raises(ConfigError, match="unexpected"):
        load_config(tmp_path)


def test_load_config_errors_on_non_table(tmp_path: Path):
    _write_pyproject(
        tmp_path,
        """
        [tool]
        worksheet-builder = "expand"
        """,
    )

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_modes_are_case_insensitive(tmp_path: Path):
    _write_pyproject(
        tmp_path,
        """
        [tool.worksheet-builder]
        answer_block_mode = "Expand"
        key_display_mode = "MARKED"
        source_extensions = ["M", ".TXT"]
        """,
    )

    config = load_config(tmp_path)

    assert config.answer_block_mode == "expand"
    assert config.key_display_mode == "marked"
    assert config.source_extensions == (".m", ".txt")


def test_apply_overrides_ignores_none_values():
    config = BuildConfig()

    assert apply_overrides(config, marker_prefix=None) is config
    assert apply_overrides(config, marker_prefix="%").marker_prefix == "%"


def test_build_config_applies_overrides_over_file(tmp_path: Path):
    _write_pyproject(
        tmp_path,
        """
        [tool.worksheet-builder]
        answer_block_mode = "expand"
        key_display_mode = "marked"
        """,
    )

    config = build_config(tmp_path, key_display_mode="markup", answer_block_mode=None)

    assert config.answer_block_mode == "expand"
    assert config.key_display_mode == "markup"


def test_build_config_rejects_invalid_override(tmp_path: Path):
    with pytest.raises(ConfigError):
        build_config(tmp_path, answer_block_mode="everything")


@pytest.mark.parametrize(
    "config",
    [
        BuildConfig(answer_block_mode="all"),
        BuildConfig(key_display_mode="bold"),
        BuildConfig(indent_char=""),
        BuildConfig(indent_char="  "),
        BuildConfig(comment_char=""),
        BuildConfig(comment_char=" "),
        BuildConfig(comment_char="//"),
        BuildConfig(continuation_token="  "),
        BuildConfig(key_suffix=""),
        BuildConfig(output_dir=""),
        BuildConfig(source_extensions=()),
        BuildConfig(verify_command="   "),
        BuildConfig(verify_command='octave "{path}'),
        BuildConfig(max_file_size=0),
    ],
)
def test_validate_config_rejects_invalid_values(config: BuildConfig):
    with pytest.raises(ConfigError):
        validate_config(config)


@pytest.mark.parametrize(
    "config",
    [
        BuildConfig(max_file_size="big"),  # type: ignore[arg-type]
        BuildConfig(max_file_size=True),  # type: ignore[arg-type]
        BuildConfig(marker_prefix=1),  # type: ignore[arg-type]
        BuildConfig(indent_char=None),  # type: ignore[arg-type]
    ],
)
def test_validate_config_rejects_wrong_types(config: BuildConfig):
    with pytest.raises(ConfigError):
        validate_config(config)


def test_config_is_immutable():
    config = BuildConfig()

    with pytest.raises(AttributeError):
        config.marker_prefix = "%"  # type: ignore[misc]


def test_validate_config_reports_unbalanced_verify_command():
    with pytest.raises(ConfigError, match="`verify_command` cannot be parsed"):
        validate_config(BuildConfig(verify_command="octave \"{path}"))
