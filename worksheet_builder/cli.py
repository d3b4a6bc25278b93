"""
Builds instructor keys and student worksheets from annotated source files.
Each source produces `<name>_key.m` and `<name>.m` in the output directory.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import click

from . import __version__
from .batch import build_batch
from .config import ANSWER_BLOCK_MODES, KEY_DISPLAY_MODES, ConfigError, build_config
from .filesystem import discover_sources, get_max_file_size, normalize_filepath
from .render import CommandVerifier

__all__ = ["cli"]

# Legacy spelling for "every source in the root directory".
DISCOVER_ALL = "none"


@click.command()
@click.version_option(version=__version__, prog_name="worksheet-builder")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="Directory holding the sources",
)
@click.option("--output", "output_dir", help="Directory receiving keys and worksheets")
@click.option(
    "--answer-block-mode",
    type=click.Choice(ANSWER_BLOCK_MODES),
    help="How much an answer directive removes",
)
@click.option(
    "--key-display-mode",
    type=click.Choice(KEY_DISPLAY_MODES),
    help="How solutions are annotated in the key",
)
@click.option("--indent-char", help="Indentation character for rewritten markers")
@click.option("--comment-char", help="Line comment character of the source language")
@click.option("--marker-prefix", help='Prefix of every directive token (e.g. "%")')
@click.option("--verify-command", help="Command run against each key; {path} is the key")
@click.option("--execute-key", is_flag=True, help="Run the verify command on every key")
@click.option(
    "--jobs", type=click.IntRange(min=1), default=1, show_default=True, help="Parallel builds"
)
@click.option("--verbose", "-v", is_flag=True, help="Print detailed progress")
@click.argument("files", nargs=-1, type=click.Path(dir_okay=False))
def cli(
    files: tuple[str, ...],
    root: str = ".",
    output_dir: str | None = None,
    answer_block_mode: str | None = None,
    key_display_mode: str | None = None,
    indent_char: str | None = None,
    comment_char: str | None = None,
    marker_prefix: str | None = None,
    verify_command: str | None = None,
    execute_key: bool = False,
    jobs: int = 1,
    verbose: bool = False,
):
    """
    Entry point for building keys and worksheets.

    Args:
        files: Sources to build, relative to `root`. When omitted (or given as
            the single word ``none``), every source in `root` is built.
        root: Directory holding the sources; configuration is looked up from here.
        output_dir: Override for the output directory.
        answer_block_mode: Override for the answer block mode.
        key_display_mode: Override for the key display mode.
        indent_char: Override for the indentation character.
        comment_char: Override for the comment character.
        marker_prefix: Override for the directive token prefix.
        verify_command: Override for the key verification command.
        execute_key: Whether to run the verification command on every key.
        jobs: Number of documents built in parallel.
        verbose: Whether to log progress details to stderr.

    Raises:
        click.BadParameter: If sources or configuration values are invalid.
        click.ClickException: If no source is found, limits are invalid, or
            any document failed to build.

    Examples:
        worksheet-builder lesson_1_intro.m --marker-prefix "%" --key-display-mode marked
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    base_dir = Path(root).resolve()
    try:
        config = build_config(
            base_dir,
            output_dir=output_dir,
            answer_block_mode=answer_block_mode,
            key_display_mode=key_display_mode,
            indent_char=indent_char,
            comment_char=comment_char,
            marker_prefix=marker_prefix,
            verify_command=verify_command,
        )
    except ConfigError as error:
        raise click.BadParameter(str(error)) from error

    if execute_key and config.verify_command is None:
        raise click.BadParameter("--execute-key requires a verify command")

    try:
        max_file_size = get_max_file_size(default=config.max_file_size)
    except ValueError as error:
        raise click.ClickException(str(error)) from error

    if not files or files == (DISCOVER_ALL,):
        sources = discover_sources(base_dir, config.source_extensions)
    else:
        try:
            sources = [
                normalize_filepath(raw_path, base_dir, config.source_extensions)
                for raw_path in files
            ]
        except ValueError as error:
            raise click.BadParameter(str(error)) from error

    if not sources:
        raise click.ClickException("Could not locate input files.")

    target = Path(config.output_dir).expanduser()
    if not target.is_absolute():
        target = Path.cwd() / target

    verifier = CommandVerifier(config.verify_command) if execute_key else None

    executor = ThreadPoolExecutor(max_workers=jobs) if jobs > 1 else None
    try:
        outcomes = build_batch(
            sources,
            target,
            config,
            verifier=verifier,
            executor=executor,
            max_file_size=max_file_size,
        )
    finally:
        if executor is not None:
            executor.shutdown()

    failed = 0
    for outcome in outcomes:
        if outcome.ok:
            click.echo(f"Parsing file '{outcome.source.name}'... Success!")
            if outcome.verified is False:
                click.echo(f"Warning: key for '{outcome.source.name}' failed to execute", err=True)
        else:
            failed += 1
            click.echo(f"Parsing file '{outcome.source.name}'... Fail!", err=True)
            click.echo(f"  {outcome.error}", err=True)

    if failed:
        raise click.ClickException(f"{failed} of {len(outcomes)} documents failed to build.")

    click.echo("Build Complete!")


if __name__ == "__main__":
    cli()
