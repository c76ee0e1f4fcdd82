"""
Terpene (name, percent) candidates from COA text.

The scan uses the first terpene section (a "Terpenes" heading up to the next
section heading) that yields candidates, else the whole document. Each line
is tried against three shapes, first match wins:

    bulleted       "- beta-Caryophyllene 1.77%"
    parenthetical  "Primary: Myrcene (0.82%); Limonene (0.41%)"   (many per line)
    bare           "beta-Caryophyllene 1.77"                       (tabular exports)
"""
import re
from typing import List, Optional, Tuple

from mmet.config_loader import ModelConfig, get_default_config
from mmet.feature_flags import log_verbose
from mmet.schemas import TerpeneCandidate


_NAME = r"([A-Za-zαβ][A-Za-zαβ0-9'\-\s]*?)"

BULLETED_RE = re.compile(
    r"^(?:[-•*·]\s*)?" + _NAME + r"(?:\s*:\s*|\s+)([0-9]+(?:\.[0-9]+)?)\s*%"
)
PARENTHETICAL_RE = re.compile(_NAME + r"\s*\(\s*([0-9]+(?:\.[0-9]+)?)\s*%\s*\)")
BARE_RE = re.compile(r"^(?:[-•*·]\s*)?" + _NAME + r"\s+([0-9]+\.[0-9]+)(?:\s|$)")

HEADING_RE = re.compile(r"^(?:top\s+)?terpenes?\b", re.I)
PAGE_HEADING_RE = re.compile(r"^page\s+\d+", re.I)
_DIGIT = re.compile(r"\d")
_NON_LETTERS = re.compile(r"[^a-z]")
_GREEK = (("β", "beta"), ("α", "alpha"))
_TOKEN_SPLIT = re.compile(r"[^a-z]+")


def _stop_heading_re(cfg: ModelConfig) -> re.Pattern:
    headings = sorted(cfg.coa_patterns.terpene_lines.stop_headings, key=len, reverse=True)
    alternation = "|".join(re.escape(h).replace(r"\ ", r"\s+") for h in headings)
    return re.compile(r"^(?:" + alternation + r")\b", re.I)


def _is_heading(line: str) -> bool:
    return bool(HEADING_RE.match(line)) and not _DIGIT.search(line)


def terpene_sections(text: str, cfg: Optional[ModelConfig] = None) -> List[List[str]]:
    """
    Every terpene section in document order.

    A section runs from a terpene heading to the next section heading, page
    marker or terpene heading. Summary panels ("Terpenes Complete") produce
    empty sections.
    """
    cfg = cfg or get_default_config()
    lines = [line.strip() for line in (text or "").split("\n")]
    stop_re = _stop_heading_re(cfg)

    sections = []
    for i, line in enumerate(lines):
        if not _is_heading(line):
            continue
        end = len(lines)
        for j in range(i + 1, len(lines)):
            if stop_re.match(lines[j]) or PAGE_HEADING_RE.match(lines[j]) or _is_heading(lines[j]):
                end = j
                break
        sections.append(lines[i + 1:end])
    return sections


def _dedup_key(name: str) -> str:
    """Letters-only lowercase key with Greek letters spelled out."""
    key = name.lower()
    for letter, word in _GREEK:
        key = key.replace(letter, word)
    return _NON_LETTERS.sub("", key)


def _is_non_terpene(name: str, cfg: ModelConfig) -> bool:
    tokens = set(_TOKEN_SPLIT.split(name.lower()))
    return bool(tokens & set(cfg.coa_patterns.terpene_lines.non_terpene_tokens))


def _line_matches(line: str) -> List[Tuple[str, str, str]]:
    m = BULLETED_RE.match(line)
    if m:
        return [(m.group(1), m.group(2), "bulleted")]

    pairs = [(m.group(1), m.group(2), "parenthetical") for m in PARENTHETICAL_RE.finditer(line)]
    if pairs:
        return pairs

    m = BARE_RE.match(line)
    if m:
        return [(m.group(1), m.group(2), "bare")]
    return []


def _scan_lines(lines: List[str], cfg: ModelConfig) -> List[TerpeneCandidate]:
    rules = cfg.coa_patterns.terpene_lines
    candidates: List[TerpeneCandidate] = []
    seen = set()
    for line in lines:
        if not line:
            continue
        for raw_name, raw_pct, pattern in _line_matches(line):
            name = raw_name.strip()
            key = _dedup_key(name)
            if not key or key in seen:
                continue
            if _is_non_terpene(name, cfg):
                continue
            pct = float(raw_pct)
            if not (rules.min_pct < pct <= rules.max_pct):
                continue
            seen.add(key)
            candidates.append(TerpeneCandidate(name=name, pct=pct, pattern=pattern))
    return candidates


def extract_terpene_candidates(text: str, cfg: Optional[ModelConfig] = None) -> List[TerpeneCandidate]:
    """
    Extract raw terpene candidates, in document order.

    The first terpene section that yields candidates wins; when none does
    (or there is no heading) the whole document is scanned. Candidates
    outside (min_pct, max_pct], or whose name carries a non-terpene token
    (Total, Analyte, THCa, ...), are discarded. The first occurrence per raw
    name (letters-only, lowercase, α/β spelled out) is kept.

    Args:
        text: Normalized COA text
        cfg: Model config (default: packaged config)

    Returns:
        List of TerpeneCandidate (names not yet canonicalized)
    """
    cfg = cfg or get_default_config()
    sections = terpene_sections(text, cfg)

    for index, section in enumerate(sections):
        candidates = _scan_lines(section, cfg)
        if candidates:
            log_verbose("TERPS", f"{len(candidates)} candidate(s) from terpene section {index + 1}/{len(sections)}")
            return candidates

    candidates = _scan_lines([line.strip() for line in (text or "").split("\n")], cfg)
    log_verbose("TERPS", f"{len(candidates)} candidate(s) from whole document ({len(sections)} empty section(s))")
    return candidates
