"""
COA text normalization.

Folds CR/CRLF into LF, collapses runs of spaces/tabs to one space and runs of
blank lines to a single blank line. Always succeeds.
"""
import re
from typing import Optional


_CARRIAGE_RETURN = re.compile(r"\r\n?")
_HORIZONTAL_SPACE = re.compile(r"[ \t\f\v\u00a0]+")
_TRAILING_SPACE = re.compile(r" +\n")
_BLANK_RUN = re.compile(r"\n{3,}")


def normalize_text(raw: Optional[str]) -> str:
    """
    Normalize raw COA text.

    Args:
        raw: Text as produced by page-text extraction (may be None)

    Returns:
        Normalized text ("" for empty input)
    """
    if not raw:
        return ""

    text = _CARRIAGE_RETURN.sub("\n", str(raw))
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = _TRAILING_SPACE.sub("\n", text)
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()
