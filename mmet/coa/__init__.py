"""
COA text parsing: normalization, label fields, terpene lines.
"""

from .fields import extract_fields
from .normalize import normalize_text
from .parse import parse_coa_batch, parse_coa_text
from .terpene_lines import extract_terpene_candidates

__all__ = [
    "normalize_text",
    "extract_fields",
    "extract_terpene_candidates",
    "parse_coa_text",
    "parse_coa_batch",
]
