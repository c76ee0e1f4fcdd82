"""
Terpene name canonicalization and merging.

Maps raw COA labels onto a fixed canonical vocabulary using a cascade:
1. Unicode normalization + diacritic stripping
2. Greek letters to words (β → beta, α → alpha)
3. Separators (-, _, /) to spaces
4. Leading stereochemical/positional prefix stripping (alpha, beta, d, a, b)
5. Synonym collapse (ocimenes → ocimene, terpineol → terpinolene)
6. Exact canonical match, then last-token match
7. Otherwise the normalized name is kept (novel terpenes are preserved)

Duplicates that normalize to the same canonical key are SUMMED when merged.
"""
import math
import re
import unicodedata
from typing import Dict, Iterable, List, Optional, Union

from mmet.config_loader import ModelConfig, get_default_config
from mmet.schemas import TerpeneCandidate, TerpeneEntry


_SEPARATORS = re.compile(r"[-_/]+")
_NON_LETTERS = re.compile(r"[^a-z\s]")
_WHITESPACE = re.compile(r"\s+")

TerpeneLike = Union[TerpeneEntry, TerpeneCandidate, Dict]


def _strip_diacritics(s: str) -> str:
    decomposed = unicodedata.normalize("NFKD", s)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def canonicalize_terpene(raw_name: Optional[str], cfg: Optional[ModelConfig] = None) -> str:
    """
    Normalize a raw terpene label into its canonical lowercase key.

    Args:
        raw_name: Label as printed on the COA (e.g. "β-Caryophyllene", "D-Limonene")
        cfg: Model config (default: packaged config)

    Returns:
        Canonical name (e.g. "caryophyllene"), the normalized label for
        terpenes outside the vocabulary, or "" for empty input
    """
    if raw_name is None:
        return ""

    vocab = (cfg or get_default_config()).terpene_vocab
    s = str(raw_name).strip().lower()
    if not s:
        return ""

    # Greek letters before NFKD so they are not decomposed away
    s = s.replace("β", "beta").replace("α", "alpha")
    s = _strip_diacritics(s)

    s = _SEPARATORS.sub(" ", s)
    s = _WHITESPACE.sub(" ", s).strip()

    for prefixes in vocab.prefix_passes:
        for prefix in prefixes:
            if s.startswith(prefix + " "):
                s = s[len(prefix) + 1:].lstrip()
                break

    s = _NON_LETTERS.sub(" ", s)
    s = _WHITESPACE.sub(" ", s).strip()

    s = vocab.synonyms.get(s, s)

    canonical = set(vocab.canonical)
    if s in canonical:
        return s

    tokens = s.split(" ")
    last = vocab.synonyms.get(tokens[-1], tokens[-1]) if tokens else ""
    if last in canonical:
        return last
    return s


def _name_and_pct(item: TerpeneLike):
    if isinstance(item, dict):
        return item.get("name"), item.get("pct")
    return item.name, item.pct


def merge_terpenes(
    entries: Iterable[TerpeneLike],
    cfg: Optional[ModelConfig] = None
) -> List[TerpeneEntry]:
    """
    Canonicalize names and sum duplicate percentages.

    Entries with empty names or non-positive / non-finite percentages are
    dropped. The merge is order independent.

    Args:
        entries: TerpeneEntry / TerpeneCandidate objects or {"name", "pct"} dicts
        cfg: Model config (default: packaged config)

    Returns:
        Merged entries sorted by percentage (descending), then name
    """
    cfg = cfg or get_default_config()
    digits = cfg.terpene_vocab.round_digits

    totals: Dict[str, float] = {}
    for item in entries or []:
        if item is None:
            continue
        raw_name, raw_pct = _name_and_pct(item)
        name = canonicalize_terpene(raw_name, cfg)
        if not name:
            continue
        try:
            pct = float(raw_pct)
        except (TypeError, ValueError):
            continue
        if not math.isfinite(pct) or pct <= 0:
            continue
        totals[name] = totals.get(name, 0.0) + pct

    merged = [TerpeneEntry(name=name, pct=round(pct, digits)) for name, pct in totals.items()]
    merged.sort(key=lambda t: (-t.pct, t.name))
    return merged


def terpene_map(entries: Iterable[TerpeneLike], cfg: Optional[ModelConfig] = None) -> Dict[str, float]:
    """Canonical name → summed percentage."""
    return {t.name: t.pct for t in merge_terpenes(entries, cfg)}


def top_terpenes(
    entries: Iterable[TerpeneLike],
    limit: Optional[int] = None,
    cfg: Optional[ModelConfig] = None
) -> List[TerpeneEntry]:
    """Merged terpenes, top `limit` by percentage (default: top_limit from config)."""
    cfg = cfg or get_default_config()
    if limit is None:
        limit = cfg.terpene_vocab.top_limit
    return merge_terpenes(entries, cfg)[:limit]


def terpene_band(pct: float, cfg: Optional[ModelConfig] = None) -> str:
    """
    Classify a terpene percentage.

    Returns:
        "primary", "dominant", "supporting" or "none"
    """
    thresholds = (cfg or get_default_config()).terpene_vocab.band_thresholds
    try:
        p = float(pct)
    except (TypeError, ValueError):
        return "none"
    if not math.isfinite(p) or p <= 0:
        return "none"
    if p >= thresholds.primary:
        return "primary"
    if p >= thresholds.dominant:
        return "dominant"
    if p >= thresholds.supporting:
        return "supporting"
    return "none"
