"""
Configuration loader for the MMET effect model.

Loads every tunable (potency bands, form profiles, blend weights, terpene
modifiers, score curves, COA parsing bounds) from YAML files and computes a
deterministic fingerprint for drift detection.
"""
import hashlib
import json
import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from mmet.feature_flags import log_verbose
from mmet.schemas import EFFECT_DIMENSIONS, FormProfile, ThcBand


DEFAULT_CONFIG_DIR = Path(__file__).parent / "configs"

# Cache for the packaged configuration (loaded once)
_DEFAULT_CONFIG_CACHE: Optional["ModelConfig"] = None


def _check_dims(mapping: Dict[str, Any], what: str) -> None:
    unknown = set(mapping) - set(EFFECT_DIMENSIONS)
    if unknown:
        raise ValueError(f"{what}: unknown effect dimension(s) {sorted(unknown)}")


# ---------------------------------------------------------------------------
# Effect model
# ---------------------------------------------------------------------------

class BlendWeights(BaseModel):
    thc: float = Field(gt=0)
    terp: float = Field(ge=0)
    form: float = Field(ge=0, lt=1)


class LinearTerm(BaseModel):
    intercept: float
    slope: float


class ConcentrationTerm(BaseModel):
    """Soft, capped contribution from a terpene's own percentage."""
    dim: str
    weight: float
    cap_pct: float = Field(gt=0)

    @field_validator("dim")
    @classmethod
    def validate_dim(cls, v):
        if v not in EFFECT_DIMENSIONS:
            raise ValueError(f"Unknown effect dimension: {v!r}")
        return v


class TerpeneModifier(BaseModel):
    strength: Dict[str, float] = Field(default_factory=dict)
    concentration: List[ConcentrationTerm] = Field(default_factory=list)

    @field_validator("strength")
    @classmethod
    def validate_strength_dims(cls, v):
        _check_dims(v, "terpene strength")
        return v


class AnxietyDeltaRule(BaseModel):
    threshold_pct: float = Field(ge=0)
    delta: float


class RetentionRule(BaseModel):
    threshold: float = Field(ge=0, le=1)
    multiplier: float = Field(gt=0)


class AnxietyRules(BaseModel):
    limonene: AnxietyDeltaRule
    terpinolene: AnxietyDeltaRule
    low_retention: RetentionRule


class MyrceneCouchRule(BaseModel):
    threshold_pct: float = Field(ge=0)
    boost: float = Field(ge=0)


class EffectModelConfig(BaseModel):
    """Constants of the baseline effect engine (effect_model.yml)."""
    weights: BlendWeights
    thc_base_vector: Dict[str, LinearTerm]
    terp_strength_divisor: float = Field(gt=0)
    terpene_modifiers: Dict[str, TerpeneModifier] = Field(default_factory=dict)
    form_direct_vectors: Dict[str, Dict[str, float]]
    intensity_shaping: Dict[str, float]
    anxiety_rules: AnxietyRules
    myrcene_couch: MyrceneCouchRule

    @field_validator("thc_base_vector")
    @classmethod
    def validate_base_vector(cls, v):
        missing = set(EFFECT_DIMENSIONS) - set(v)
        if missing:
            raise ValueError(f"thc_base_vector missing dimension(s) {sorted(missing)}")
        _check_dims(v, "thc_base_vector")
        return v

    @field_validator("form_direct_vectors")
    @classmethod
    def validate_form_vectors(cls, v):
        for form_key, vec in v.items():
            _check_dims(vec, f"form_direct_vectors.{form_key}")
        return v

    @field_validator("intensity_shaping")
    @classmethod
    def validate_shaping(cls, v):
        _check_dims(v, "intensity_shaping")
        return v


# ---------------------------------------------------------------------------
# Forms
# ---------------------------------------------------------------------------

class KeywordFamily(BaseModel):
    """Free-text form keywords that resolve to one form key."""
    key: str
    any: List[str]
    requires: List[str] = Field(default_factory=list)


class FormsConfig(BaseModel):
    """Form profiles and free-text keyword families (form_profiles.yml)."""
    default_key: str
    profiles: Dict[str, FormProfile]
    keyword_families: List[KeywordFamily]

    @model_validator(mode="before")
    @classmethod
    def inject_profile_keys(cls, data):
        if isinstance(data, dict) and isinstance(data.get("profiles"), dict):
            data = dict(data)
            data["profiles"] = {
                key: {**values, "key": key} if isinstance(values, dict) else values
                for key, values in data["profiles"].items()
            }
        return data

    @model_validator(mode="after")
    def validate_keys(self):
        if self.default_key not in self.profiles:
            raise ValueError(f"default_key {self.default_key!r} has no form profile")
        for family in self.keyword_families:
            if family.key not in self.profiles:
                raise ValueError(f"keyword family {family.key!r} has no form profile")
        return self


# ---------------------------------------------------------------------------
# Scores, calibration, derived profile
# ---------------------------------------------------------------------------

class ScoreCurve(BaseModel):
    """Rescale window [lo, hi] plus gamma curve for one dimension."""
    lo: float = 0.0
    hi: float = 1.0
    gamma: float = Field(default=1.0, gt=0)

    @model_validator(mode="after")
    def validate_window(self):
        if self.hi <= self.lo:
            raise ValueError(f"Score curve needs hi > lo, got lo={self.lo} hi={self.hi}")
        return self


class DurationScale(BaseModel):
    max_hours: float = Field(gt=0)


class AnxietyScale(ScoreCurve):
    offset: float = 0.0
    scale: float = Field(default=1.0, gt=0)


class FunctionalityScale(ScoreCurve):
    """Clarity against the sedation/couch load, then curved."""
    clarity_weight: float = Field(default=0.60, ge=0, le=1)
    sedation_weight: float = Field(default=0.62, ge=0)
    couch_weight: float = Field(default=0.38, ge=0)
    lo: float = 0.12
    hi: float = 0.90
    gamma: float = Field(default=1.10, gt=0)


class ScoreMapperConfig(BaseModel):
    """Score mapper constants (score_mapper.yml)."""
    max_score: float = Field(default=5.0, gt=0)
    step: float = Field(default=0.5, gt=0)
    dimensions: Dict[str, ScoreCurve]
    duration: DurationScale
    anxiety: AnxietyScale
    functionality: FunctionalityScale = Field(default_factory=FunctionalityScale)

    @field_validator("dimensions")
    @classmethod
    def validate_dimensions(cls, v):
        missing = set(EFFECT_DIMENSIONS) - set(v)
        if missing:
            raise ValueError(f"score_mapper missing dimension(s) {sorted(missing)}")
        _check_dims(v, "score_mapper.dimensions")
        return v


class CalibrationConfig(BaseModel):
    """Personalization constants (calibration.yml)."""
    samples_for_full_weight: int = Field(gt=0)
    max_confidence: float = Field(ge=0, le=1)
    dimensions: List[str]


class EffectProfileConfig(BaseModel):
    """Linear combinations behind the derived effect profile."""
    outputs: Dict[str, Dict[str, float]]


# ---------------------------------------------------------------------------
# Terpene vocabulary and COA parsing
# ---------------------------------------------------------------------------

class BandThresholds(BaseModel):
    primary: float
    dominant: float
    supporting: float


class TerpeneVocabConfig(BaseModel):
    """Canonical terpene names and normalization rules (terpene_vocab.yml)."""
    canonical: List[str]
    prefix_passes: List[List[str]] = Field(default_factory=list)
    synonyms: Dict[str, str] = Field(default_factory=dict)
    round_digits: int = 3
    top_limit: int = 6
    band_thresholds: BandThresholds


class PotencySummaryRule(BaseModel):
    window_chars: int = Field(gt=0)
    min_pct: float
    max_pct: float


class TotalThcRules(BaseModel):
    decarb_factor: float = Field(gt=0)
    same_line_gap_chars: int = Field(gt=0)
    label_window_chars: int = Field(gt=0)
    min_pct: float
    max_pct: float
    component_round_digits: int = 1
    potency_summary: PotencySummaryRule


class TotalTerpeneRules(BaseModel):
    min_pct: float
    max_pct: float
    mg_per_g_divisor: float = Field(gt=0)
    hundredths_above: float
    hundredths_divisor: float = Field(gt=0)
    tenths_above: float
    tenths_divisor: float = Field(gt=0)
    round_digits: int = 2


class TerpeneLineRules(BaseModel):
    min_pct: float
    max_pct: float
    stop_headings: List[str]
    non_terpene_tokens: List[str]


class CoaPatternsConfig(BaseModel):
    """COA field extraction constants (coa_patterns.yml)."""
    form_keywords: List[str]
    total_thc: TotalThcRules
    total_terpenes: TotalTerpeneRules
    terpene_lines: TerpeneLineRules


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelConfig:
    """Unified configuration with version tracking."""
    thc_bands: List[ThcBand]
    forms: FormsConfig
    effect_model: EffectModelConfig
    score_mapper: ScoreMapperConfig
    calibration: CalibrationConfig
    effect_profile: EffectProfileConfig
    terpene_vocab: TerpeneVocabConfig
    coa_patterns: CoaPatternsConfig
    config_version: str
    config_fingerprint: str


CONFIG_FILES = {
    "thc_bands": "thc_bands.yml",
    "forms": "form_profiles.yml",
    "effect_model": "effect_model.yml",
    "score_mapper": "score_mapper.yml",
    "calibration": "calibration.yml",
    "effect_profile": "effect_profile.yml",
    "terpene_vocab": "terpene_vocab.yml",
    "coa_patterns": "coa_patterns.yml",
}


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file."""
    with open(path, 'r', encoding='utf-8') as f:
        return yaml.safe_load(f) or {}


def validate_band_partition(bands: List[ThcBand]) -> List[ThcBand]:
    """
    Check that bands cover [0, inf) without gaps or overlaps.

    Raises:
        ValueError: If the bands do not partition [0, inf)
    """
    if not bands:
        raise ValueError("thc_bands.yml defines no bands")

    ordered = sorted(bands, key=lambda b: b.min)
    if ordered[0].min != 0:
        raise ValueError(f"First THC band must start at 0, got {ordered[0].min}")

    for current, nxt in zip(ordered, ordered[1:]):
        if current.max is None:
            raise ValueError(f"Only the last THC band may be open-ended (band {current.key!r})")
        if not math.isclose(current.max, nxt.min):
            raise ValueError(
                f"THC bands {current.key!r} and {nxt.key!r} leave a gap or overlap "
                f"({current.max} vs {nxt.min})"
            )
        if current.max <= current.min:
            raise ValueError(f"THC band {current.key!r} is empty")

    if ordered[-1].max is not None:
        raise ValueError(f"Last THC band {ordered[-1].key!r} must be open-ended (max: null)")

    return ordered


def load_model_config(root: Optional[str] = None) -> ModelConfig:
    """
    Load all model configs from a directory and compute a version fingerprint.

    Args:
        root: Path to configs directory (default: $MMET_CONFIG_DIR, else the
            configs shipped inside the package)

    Returns:
        ModelConfig with validated sections and version tracking

    Raises:
        FileNotFoundError: If a config file is missing
        ValueError: If a config file fails validation
    """
    root_path = Path(root or os.getenv("MMET_CONFIG_DIR") or DEFAULT_CONFIG_DIR)

    data = {}
    for key, filename in CONFIG_FILES.items():
        path = root_path / filename
        if not path.exists():
            raise FileNotFoundError(f"Required config file not found: {path}")
        data[key] = _load_yaml(path)

    # Sort keys so reordered YAML keeps the same fingerprint
    blob = json.dumps(data, sort_keys=True).encode("utf-8")
    fingerprint = hashlib.sha256(blob).hexdigest()[:12]

    bands = validate_band_partition(
        [ThcBand.model_validate(b) for b in data["thc_bands"].get("bands", [])]
    )

    cfg = ModelConfig(
        thc_bands=bands,
        forms=FormsConfig.model_validate(data["forms"]),
        effect_model=EffectModelConfig.model_validate(data["effect_model"]),
        score_mapper=ScoreMapperConfig.model_validate(data["score_mapper"]),
        calibration=CalibrationConfig.model_validate(data["calibration"]),
        effect_profile=EffectProfileConfig.model_validate(data["effect_profile"]),
        terpene_vocab=TerpeneVocabConfig.model_validate(data["terpene_vocab"]),
        coa_patterns=CoaPatternsConfig.model_validate(data["coa_patterns"]),
        config_version=f"configs@{fingerprint}",
        config_fingerprint=fingerprint,
    )

    log_verbose("CONFIG", f"Loaded model config from {root_path} ({cfg.config_version})")
    return cfg


def get_default_config() -> ModelConfig:
    """
    Return the process-wide default config, loading it on first use.

    The cached object is never mutated; pass an explicit ModelConfig to the
    core functions to use different tunables.
    """
    global _DEFAULT_CONFIG_CACHE

    if _DEFAULT_CONFIG_CACHE is None:
        _DEFAULT_CONFIG_CACHE = load_model_config()
    return _DEFAULT_CONFIG_CACHE


def reset_default_config() -> None:
    """Drop the cached default config (next access reloads it)."""
    global _DEFAULT_CONFIG_CACHE
    _DEFAULT_CONFIG_CACHE = None
