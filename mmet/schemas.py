"""
Pydantic schemas for the MMET predictor.

Records are validated once at the parse / import boundary so the scoring code
can read them without defensive coercion. Field names are snake_case in Python
and serialize with camelCase aliases (totalThcPct, productId, ...) to keep the
exported profile document in its established wire shape.
"""
import math
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


EFFECT_DIMENSIONS = ("head", "clarity", "sedation", "couch", "pain")
SCORE_MIN = 0.0
SCORE_MAX = 5.0


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MmetModel(BaseModel):
    """Base model: camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TerpeneEntry(MmetModel):
    """One terpene of a product. `name` is canonical once stored on a Product."""
    name: str
    pct: float = Field(ge=0)


class ProductMetrics(MmetModel):
    """Label totals recovered from a COA. Any of them may be missing."""
    total_thc_pct: Optional[float] = None
    total_terpenes_pct: Optional[float] = None
    total_cannabinoids_pct: Optional[float] = None
    thc_per_unit_mg: Optional[float] = None


class Product(MmetModel):
    """
    Structured chemical profile parsed from one COA.

    Immutable; `with_terpenes()` returns a corrected copy.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    name: str
    form_raw: Optional[str] = None
    form_key: str = "flower"
    metrics: ProductMetrics = Field(default_factory=ProductMetrics)
    terpenes: List[TerpeneEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    source_file_name: Optional[str] = None

    @field_validator("terpenes")
    @classmethod
    def validate_unique_terpenes(cls, v):
        """At most one entry per canonical name."""
        seen = set()
        for entry in v:
            if entry.name in seen:
                raise ValueError(f"Duplicate terpene entry: {entry.name!r} (merge before storing)")
            seen.add(entry.name)
        return v

    def with_terpenes(self, terpenes: List[TerpeneEntry]) -> "Product":
        """Return a copy with a replaced (canonicalized, merged) terpene list."""
        from mmet.terpenes import merge_terpenes

        return self.model_copy(update={"terpenes": merge_terpenes(terpenes)})


class ThcBand(MmetModel):
    """Potency band over Total THC percent, covering [min, max)."""
    key: str
    label: str
    min: float = Field(ge=0)
    max: Optional[float] = None  # None = open-ended
    anxiety_risk: float = Field(ge=0, le=1)
    potency: float = Field(ge=0, le=1)

    def contains(self, thc_pct: float) -> bool:
        upper = math.inf if self.max is None else self.max
        return self.min <= thc_pct < upper


class FormProfile(MmetModel):
    """Per-form modifiers used by the baseline engine."""
    key: str
    intensity_mod: float = Field(ge=0)
    duration_mod: float = Field(ge=0)
    anxiety_risk_add: float = Field(ge=0, le=1)
    terpene_retention: float = Field(ge=0, le=1)
    onset_minutes: float = Field(ge=0)
    base_duration_hours: float = Field(ge=0)


class EffectVector(MmetModel):
    """Five independent 0..1 effect signals."""
    head: float = Field(default=0.0, ge=0, le=1)
    clarity: float = Field(default=0.0, ge=0, le=1)
    sedation: float = Field(default=0.0, ge=0, le=1)
    couch: float = Field(default=0.0, ge=0, le=1)
    pain: float = Field(default=0.0, ge=0, le=1)

    def as_dict(self) -> Dict[str, float]:
        return {dim: getattr(self, dim) for dim in EFFECT_DIMENSIONS}


class BaselineMeta(MmetModel):
    """Inputs and form metadata behind a baseline prediction."""
    thc_pct: float
    thc_band: str
    form_key: str
    intensity_mod: float
    duration_hours: float
    onset_minutes: float
    terpene_retention: float
    total_terpenes_pct: float


class BaselineResult(MmetModel):
    """Output of the baseline effect engine."""
    vector: EffectVector
    anxiety_risk: float = Field(ge=0, le=1)
    meta: BaselineMeta


class SessionLogEntry(MmetModel):
    """
    One logged session: what the user actually felt for a product.

    `actuals` maps a scoring dimension to a 0..5 value; unrated dimensions
    may be omitted or null.
    """
    id: str = Field(default_factory=_new_id)
    at: datetime = Field(default_factory=_utcnow)
    product_id: str
    actuals: Dict[str, Optional[float]] = Field(default_factory=dict)
    notes: str = ""

    @field_validator("actuals")
    @classmethod
    def validate_actuals_range(cls, v):
        """Ensure every rated value lies on the 0..5 scale."""
        for dim, value in v.items():
            if value is None:
                continue
            if not math.isfinite(value) or not (SCORE_MIN <= value <= SCORE_MAX):
                raise ValueError(f"Actual for {dim!r} must be in [0, 5], got {value}")
        return v


class DimensionCalibration(MmetModel):
    """Learned per-dimension offset between predicted and reported scores."""
    adjustment: float = 0.0
    confidence: float = Field(default=0.0, ge=0, le=1)
    sample_count: int = Field(default=0, ge=0)


class ProfileDocument(MmetModel):
    """Flat import/export record: profile name, products and session log."""
    app: str = "MMET Predictor"
    version: int = 2
    exported_at: Optional[datetime] = None
    profile_name: str = "Default"
    products: List[Product] = Field(default_factory=list)
    session_log: List[SessionLogEntry] = Field(default_factory=list)


class ParseFailure(MmetModel):
    """Named parse failure reported instead of a Product."""
    source: Optional[str] = None
    error: str
    message: str = ""


class ParseOutcome(MmetModel):
    """Result of parsing one COA: exactly one of product / failure is set."""
    product: Optional[Product] = None
    failure: Optional[ParseFailure] = None
    # core label fields that could not be recovered (partial field loss)
    missing_fields: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.product is not None


class BatchParseResult(MmetModel):
    """Partial successes plus a per-item error list."""
    products: List[Product] = Field(default_factory=list)
    errors: List[ParseFailure] = Field(default_factory=list)


class BlendResult(MmetModel):
    """Two products mixed at a fixed ratio."""
    name: str
    product_a_id: str
    product_b_id: str
    ratio_label: str
    metrics: ProductMetrics
    scores: Dict[str, float]


@dataclass
class TerpeneCandidate:
    """Raw (name, percent) pair found in COA text, before canonicalization."""
    name: str
    pct: float
    pattern: str  # "bulleted", "parenthetical" or "bare"


@dataclass
class ExtractedFields:
    """Label fields recovered from COA text. Unrecoverable fields stay None."""
    name: Optional[str] = None
    form_raw: Optional[str] = None
    total_thc_pct: Optional[float] = None
    total_terpenes_pct: Optional[float] = None
    total_cannabinoids_pct: Optional[float] = None
    thc_per_unit_mg: Optional[float] = None


class ProductReport(MmetModel):
    """Everything the scorer knows about one product."""
    product: Product
    baseline: BaselineResult
    scores: Dict[str, float]
    personalized_scores: Optional[Dict[str, float]] = None
    calibration: Dict[str, DimensionCalibration] = Field(default_factory=dict)
    effect_profile: Dict[str, float] = Field(default_factory=dict)
    config_version: str = ""


class RunResult(MmetModel):
    """Outcome of run_once: a report, or the parse failure that prevented one."""
    report: Optional[ProductReport] = None
    failure: Optional[ParseFailure] = None

    @property
    def ok(self) -> bool:
        return self.report is not None
