"""
worksheet-builder: instructor keys and student worksheets from one annotated source.

This package can be used both as a CLI tool and as a library.

CLI Usage:
    worksheet-builder lesson.m --marker-prefix "%"

Library Usage:
    from worksheet_builder import BuildConfig, transform

    views = transform(["a=1;", "@ calc", "b = a + 1;"], BuildConfig())
    views.key_lines   # ["a=1;", "% calc", "b = a + 1;"]
    views.work_lines  # ["a=1;", "% ANSWER HERE"]
"""

__version__ = "0.1.0"

from .batch import DocumentOutcome, build_batch
from .config import BuildConfig, ConfigError, build_config
from .engine import ParseFileError, transform, transform_file, transform_text, try_transform
from .exceptions import (
    DirectiveError,
    MalformedMarkerError,
    MissingTerminatorError,
    UnsupportedConstructError,
)
from .models import Directive, DirectiveKind, DualView, FailureKind, ParseFailure
from .scanner import detect, scan_markers, statement_span

__all__ = [
    # Core functionality
    "transform",
    "transform_text",
    "transform_file",
    "try_transform",
    "build_batch",
    "detect",
    "scan_markers",
    "statement_span",
    # Configuration
    "BuildConfig",
    "build_config",
    # Data models
    "Directive",
    "DirectiveKind",
    "DocumentOutcome",
    "DualView",
    "FailureKind",
    "ParseFailure",
    # Exceptions
    "ConfigError",
    "DirectiveError",
    "MalformedMarkerError",
    "MissingTerminatorError",
    "ParseFileError",
    "UnsupportedConstructError",
    # Version
    "__version__",
]
