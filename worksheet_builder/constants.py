"""Constants used across the worksheet-builder package."""

from __future__ import annotations

from .config import BuildConfig
from .models import MarkerKind

DEFAULT_CONFIG = BuildConfig()

# Directive vocabulary, before the configured marker prefix is applied.
# Inline tokens may appear anywhere on a code line; every other token must
# start its line.
ANCHORED_TOKENS: dict[MarkerKind, str] = {
    MarkerKind.STICKY: "!",
    MarkerKind.ANSWER_OPEN: "@",
    MarkerKind.ANSWER_CLOSE: "/@",
    MarkerKind.MULTILINE_OPEN: "|@",
    MarkerKind.MULTILINE_CLOSE: "||@",
    MarkerKind.COMMENT_OPEN: "#",
    MarkerKind.COMMENT_CLOSE: "/#",
}
INLINE_OPEN_TOKEN = "<@"
# ">@" is canonical; the mirrored "@>" spelling closes an inline answer too.
INLINE_CLOSE_TOKENS = (">@", "@>")

TAB_WIDTH = 4
SECTION_BREAK_MIN_RUN = 2

# Replacement text
STICKY_DEFAULT_TEXT = "DO NOT MODIFY THE FOLLOWING"
ANSWER_PLACEHOLDER_TEXT = "ANSWER HERE"
ANSWER_CLOSE_TEXT = "END ANSWER"
MULTILINE_START_TEXT = "--- Answer Start ---|"
MULTILINE_END_TEXT = "--- Answer End ---|"
INLINE_PLACEHOLDER_TEMPLATE = '"{c}--- ANSWER HERE ---{c}"'
INLINE_MARKED_TEMPLATE = "{c}<- {text} ->{c}"
INLINE_MARKUP_TEMPLATE = "{c} Answer: {text}"

# Limits
DEFAULT_MAX_FILE_SIZE = DEFAULT_CONFIG.max_file_size
SOURCE_EXTENSIONS = DEFAULT_CONFIG.source_extensions
