"""
COA label field extraction.

Each field is recovered through an ordered fallback chain; the first pattern
that yields a plausible value wins. Lab layouts are heterogeneous, so no single
pattern covers them:

  name               Product Name: → Cultivar: (+ Sample Matrix) → first line → filename
  form               Sample Matrix:/Form: label → form keyword anywhere → None
  total THC %        same-line label → label + % within window → Δ9 + THCa × 0.877
                     → max plausible % in POTENCY SUMMARY
  total terpenes %   explicit % → mg/g ÷ 10 → bare number with magnitude rules

A field that cannot be recovered stays None; extraction never raises.
"""
import re
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from mmet.config_loader import ModelConfig, get_default_config
from mmet.feature_flags import FLAGS, log_verbose
from mmet.schemas import ExtractedFields


NUM = r"([0-9]+(?:\.[0-9]+)?)"

PRODUCT_NAME_RE = re.compile(r"Product\s*Name\s*:\s*([^\n]+)", re.I)
CULTIVAR_RE = re.compile(r"Cultivar\s*:\s*([^\n]+)", re.I)
SAMPLE_MATRIX_RE = re.compile(r"Sample\s*Matrix\s*:\s*([^\n]+)", re.I)
FORM_LABEL_RE = re.compile(r"(?:^|\n)[ \-•*]*Form\s*:\s*([^\n]+)", re.I)

TOTAL_THC_LABEL_RE = re.compile(r"Total\s+THC\b", re.I)
THCA_RE = re.compile(r"\bTHC[-\s]?A\b[^\n%]*?" + NUM + r"\s*%", re.I)
DELTA9_RE = re.compile(
    r"(?:Δ\s*-?\s*9|\bDelta[-\s]*9|\bD9)[-\s]*THC\b[^\n%]*?" + NUM + r"\s*%", re.I
)
POTENCY_SUMMARY_RE = re.compile(r"POTENCY\s+SUMMARY", re.I)
PERCENT_RE = re.compile(NUM + r"\s*%")

TOTAL_TERPENES_PCT_RE = re.compile(r"Total\s+Terpenes[^\n%]*?" + NUM + r"\s*%", re.I)
TOTAL_TERPENES_REVERSED_RE = re.compile(NUM + r"\s*%[ \t]*Total\s+Terpenes", re.I)
TOTAL_TERPENES_MG_RE = re.compile(r"Total\s+Terpenes[^\n]*?" + NUM + r"\s*mg\s*/\s*g", re.I)
TOTAL_TERPENES_BARE_RE = re.compile(r"Total\s+Terpenes[:\s]+" + NUM + r"(?=\s|$)", re.I)

TOTAL_CANNABINOIDS_RE = re.compile(r"Total\s+Cannabinoids[^\n%]*?" + NUM + r"\s*%", re.I)
THC_PER_UNIT_RE = re.compile(
    r"(?:Total\s*THC\s*/\s*Unit|THC\s+per\s+unit|Total\s+THC)\s*:?\s*" + NUM + r"\s*mg\b", re.I
)


def _to_float(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _labeled_value(text: str, pattern: re.Pattern) -> Optional[str]:
    m = pattern.search(text)
    if not m:
        return None
    value = m.group(1).strip()
    return value or None


def _in_bounds(v: Optional[float], lo_exclusive: float, hi_inclusive: float) -> bool:
    return v is not None and lo_exclusive < v <= hi_inclusive


def _first_success(steps: Iterable[Callable[[], Optional[object]]]) -> Optional[object]:
    for step in steps:
        value = step()
        if value is not None:
            return value
    return None


# ---------------------------------------------------------------------------
# Name / form
# ---------------------------------------------------------------------------

def first_nonempty_line(text: str) -> Optional[str]:
    for line in text.split("\n"):
        line = line.strip()
        if line:
            return line
    return None


def extract_name(text: str, filename: Optional[str] = None) -> Optional[str]:
    """Product name: explicit label, cultivar (+ matrix), first line, filename stem."""
    def from_cultivar():
        cultivar = _labeled_value(text, CULTIVAR_RE)
        if not cultivar:
            return None
        matrix = _labeled_value(text, SAMPLE_MATRIX_RE)
        return f"{cultivar} {matrix}" if matrix else cultivar

    def from_filename():
        if not filename:
            return None
        stem = Path(str(filename)).stem.strip()
        return stem or None

    return _first_success([
        lambda: _labeled_value(text, PRODUCT_NAME_RE),
        from_cultivar,
        lambda: first_nonempty_line(text),
        from_filename,
    ])


def extract_form(text: str, cfg: Optional[ModelConfig] = None) -> Optional[str]:
    """Raw form text: Sample Matrix / Form label, else first form keyword found."""
    cfg = cfg or get_default_config()

    def from_keywords():
        for keyword in cfg.coa_patterns.form_keywords:
            pattern = r"(?<![A-Za-z])" + re.escape(keyword).replace(r"\ ", r"\s+") + r"(?![A-Za-z])"
            if re.search(pattern, text, re.I):
                return keyword
        return None

    return _first_success([
        lambda: _labeled_value(text, SAMPLE_MATRIX_RE),
        lambda: _labeled_value(text, FORM_LABEL_RE),
        from_keywords,
    ])


# ---------------------------------------------------------------------------
# Total THC
# ---------------------------------------------------------------------------

def _thc_same_line(text: str, cfg: ModelConfig) -> Optional[float]:
    rules = cfg.coa_patterns.total_thc
    pattern = re.compile(
        r"Total\s+THC\b[^\n%]{0," + str(rules.same_line_gap_chars) + r"}?" + NUM + r"\s*%", re.I
    )
    for m in pattern.finditer(text):
        v = _to_float(m.group(1))
        if _in_bounds(v, rules.min_pct, rules.max_pct):
            return v
    return None


def _thc_label_window(text: str, cfg: ModelConfig) -> Optional[float]:
    rules = cfg.coa_patterns.total_thc
    for label in TOTAL_THC_LABEL_RE.finditer(text):
        window = text[label.end():label.start() + rules.label_window_chars]
        for m in PERCENT_RE.finditer(window):
            v = _to_float(m.group(1))
            if _in_bounds(v, rules.min_pct, rules.max_pct):
                return v
    return None


def thc_from_components(
    delta9_pct: Optional[float],
    thca_pct: Optional[float],
    decarb_factor: float = 0.877
) -> Optional[float]:
    """
    Total THC = Δ9-THC + THCa × decarb_factor.

    Returns:
        Total THC percent, or None when neither component is known
    """
    if delta9_pct is None and thca_pct is None:
        return None
    return (delta9_pct or 0.0) + (thca_pct or 0.0) * decarb_factor


def _thc_components(text: str, cfg: ModelConfig) -> Optional[float]:
    rules = cfg.coa_patterns.total_thc
    thca_m = THCA_RE.search(text)
    d9_m = DELTA9_RE.search(text)
    thca = _to_float(thca_m.group(1)) if thca_m else None
    d9 = _to_float(d9_m.group(1)) if d9_m else None

    total = thc_from_components(d9, thca, rules.decarb_factor)
    if total is None:
        return None
    total = round(total, rules.component_round_digits)
    if not _in_bounds(total, rules.min_pct, rules.max_pct):
        return None
    log_verbose("COA", f"Total THC derived from components: d9={d9} thca={thca} -> {total}")
    return total


def _thc_potency_summary(text: str, cfg: ModelConfig) -> Optional[float]:
    if not FLAGS.potency_summary_fallback:
        return None
    rules = cfg.coa_patterns.total_thc.potency_summary
    m = POTENCY_SUMMARY_RE.search(text)
    if not m:
        return None
    block = text[m.start():m.start() + rules.window_chars]
    values = [
        v for v in (_to_float(p.group(1)) for p in PERCENT_RE.finditer(block))
        if v is not None and rules.min_pct <= v <= rules.max_pct
    ]
    if not values:
        return None
    return round(max(values), 1)


def extract_total_thc(text: str, cfg: Optional[ModelConfig] = None) -> Optional[float]:
    """Total THC percent via the fallback chain, or None."""
    cfg = cfg or get_default_config()
    return _first_success([
        lambda: _thc_same_line(text, cfg),
        lambda: _thc_label_window(text, cfg),
        lambda: _thc_components(text, cfg),
        lambda: _thc_potency_summary(text, cfg),
    ])


# ---------------------------------------------------------------------------
# Total terpenes
# ---------------------------------------------------------------------------

def normalize_bare_terpene_total(value: float, cfg: Optional[ModelConfig] = None) -> Optional[float]:
    """
    Disambiguate a unitless Total Terpenes number by magnitude.

    809.00 → 8.09 (hundredths), 80.9 → 8.09 (mg/g), 3.5 → 3.5 (percent).
    """
    rules = (cfg or get_default_config()).coa_patterns.total_terpenes
    if value > rules.hundredths_above:
        value = value / rules.hundredths_divisor
    elif value > rules.tenths_above:
        value = value / rules.tenths_divisor
    if not _in_bounds(value, rules.min_pct, rules.max_pct):
        return None
    return round(value, rules.round_digits)


def extract_total_terpenes(text: str, cfg: Optional[ModelConfig] = None) -> Optional[float]:
    """Total terpenes percent via the fallback chain, or None."""
    cfg = cfg or get_default_config()
    rules = cfg.coa_patterns.total_terpenes

    def explicit_pct():
        for pattern in (TOTAL_TERPENES_PCT_RE, TOTAL_TERPENES_REVERSED_RE):
            for m in pattern.finditer(text):
                v = _to_float(m.group(1))
                if _in_bounds(v, rules.min_pct, rules.max_pct):
                    return round(v, rules.round_digits)
        return None

    def mg_per_g():
        m = TOTAL_TERPENES_MG_RE.search(text)
        if not m:
            return None
        v = _to_float(m.group(1))
        if v is None:
            return None
        v = v / rules.mg_per_g_divisor
        return round(v, rules.round_digits) if _in_bounds(v, rules.min_pct, rules.max_pct) else None

    def bare_number():
        if not FLAGS.bare_terpene_total_fallback:
            return None
        m = TOTAL_TERPENES_BARE_RE.search(text)
        if not m:
            return None
        v = _to_float(m.group(1))
        return normalize_bare_terpene_total(v, cfg) if v is not None else None

    return _first_success([explicit_pct, mg_per_g, bare_number])


# ---------------------------------------------------------------------------
# Supplementary metrics
# ---------------------------------------------------------------------------

def extract_total_cannabinoids(text: str) -> Optional[float]:
    m = TOTAL_CANNABINOIDS_RE.search(text)
    v = _to_float(m.group(1)) if m else None
    return v if _in_bounds(v, 0.0, 100.0) else None


def extract_thc_per_unit_mg(text: str) -> Optional[float]:
    m = THC_PER_UNIT_RE.search(text)
    v = _to_float(m.group(1)) if m else None
    return v if v is not None and v > 0 else None


def extract_fields(
    text: str,
    filename: Optional[str] = None,
    cfg: Optional[ModelConfig] = None
) -> ExtractedFields:
    """
    Recover all label fields from normalized COA text.

    Args:
        text: Normalized COA text (see mmet.coa.normalize.normalize_text)
        filename: Source filename, used as the last-resort product name
        cfg: Model config (default: packaged config)

    Returns:
        ExtractedFields with unrecoverable fields left as None
    """
    cfg = cfg or get_default_config()
    fields = ExtractedFields(
        name=extract_name(text, filename),
        form_raw=extract_form(text, cfg),
        total_thc_pct=extract_total_thc(text, cfg),
        total_terpenes_pct=extract_total_terpenes(text, cfg),
        total_cannabinoids_pct=extract_total_cannabinoids(text),
        thc_per_unit_mg=extract_thc_per_unit_mg(text),
    )
    log_verbose(
        "COA",
        f"Fields: name={fields.name!r} form={fields.form_raw!r} "
        f"thc={fields.total_thc_pct} terps={fields.total_terpenes_pct}"
    )
    return fields


def missing_fields(fields: ExtractedFields) -> List[str]:
    """Names of the core fields that could not be recovered."""
    core = ("name", "form_raw", "total_thc_pct", "total_terpenes_pct")
    return [name for name in core if getattr(fields, name) is None]
