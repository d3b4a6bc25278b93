"""Renderer adapters and execution verifiers for finished documents."""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from .filesystem import write_lines

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    """Turns a finished line sequence into a distributable artifact."""

    def render(self, lines: Sequence[str], destination: Path) -> Path:
        """Render `lines` to `destination` and return the artifact path.

        Raises:
            OSError: If the artifact cannot be produced.
        """


class Verifier(Protocol):
    """Smoke-tests a rendered key."""

    def verify(self, path: Path) -> bool:
        """Return True when the artifact at `path` runs successfully."""


class PlainTextRenderer:
    """Write documents as plain source files, one line per entry."""

    def render(self, lines: Sequence[str], destination: Path) -> Path:
        write_lines(lines, destination)
        return destination


class CommandVerifier:
    """Run an external command against a rendered key.

    Every ``{path}`` in the command is replaced with the key's path after the
    command has been split into arguments, so paths containing spaces stay a
    single argument. Failures are logged and reported as False; they never
    raise.

    Args:
        command: Command line, for example ``"octave --no-gui {path}"``.
        timeout: Seconds before the command is abandoned; None waits forever.

    Examples:
        CommandVerifier("matlab -batch \\"run('{path}')\\"").verify(Path("target/lesson_key.m"))
    """

    def __init__(self, command: str, timeout: float | None = 300.0):
        self.command = command
        self.timeout = timeout

    def arguments(self, path: Path) -> list[str]:
        """Split the command and substitute `path`.

        Raises:
            ValueError: If the command has unbalanced quotes.
        """
        return [argument.replace("{path}", str(path)) for argument in shlex.split(self.command)]

    def verify(self, path: Path) -> bool:
        try:
            arguments = self.arguments(path)
        except ValueError as error:
            logger.warning("Invalid verify command '%s': %s", self.command, error)
            return False

        try:
            completed = subprocess.run(
                arguments,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as error:
            logger.warning("Could not execute key '%s': %s", path, error)
            return False

        if completed.returncode != 0:
            logger.warning(
                "Executing key '%s' failed with exit code %d: %s",
                path,
                completed.returncode,
                completed.stderr.strip() or completed.stdout.strip(),
            )
            return False

        logger.debug("Executed key '%s'", path)
        return True
