"""
COA text → Product.

The only entry point of the core that can fail, and it fails by returning a
ParseOutcome carrying a named ParseFailure, never by raising.
"""
from pathlib import Path
from typing import Iterable, Optional, Tuple, Union

from mmet.coa.fields import extract_fields, missing_fields
from mmet.coa.normalize import normalize_text
from mmet.coa.terpene_lines import extract_terpene_candidates
from mmet.config_loader import ModelConfig, get_default_config
from mmet.feature_flags import log_verbose
from mmet.forms import normalize_form_key
from mmet.schemas import (
    BatchParseResult,
    ParseFailure,
    ParseOutcome,
    Product,
    ProductMetrics,
)
from mmet.terpenes import merge_terpenes


EMPTY_INPUT = "empty_input"
UNRECOVERABLE_INPUT = "unrecoverable_input"
INVALID_PRODUCT = "invalid_product"

BatchItem = Union[str, Tuple[Optional[str], str]]


def _failure(source: Optional[str], error: str, message: str) -> ParseOutcome:
    log_verbose("PARSE", f"{source or '<text>'}: {error} ({message})")
    return ParseOutcome(failure=ParseFailure(source=source, error=error, message=message))


def parse_coa_text(
    text: Optional[str],
    filename: Optional[str] = None,
    cfg: Optional[ModelConfig] = None
) -> ParseOutcome:
    """
    Parse raw COA text into a Product.

    Args:
        text: Raw COA text (page text already extracted by the caller)
        filename: Source filename, used as last-resort name and recorded on the Product
        cfg: Model config (default: packaged config)

    Returns:
        ParseOutcome with either `product` or `failure` set. Fails with
        "empty_input" for blank text and "unrecoverable_input" when neither a
        Total THC value nor any terpene could be recovered.
    """
    cfg = cfg or get_default_config()
    normalized = normalize_text(text)
    if not normalized:
        return _failure(filename, EMPTY_INPUT, "COA text is empty")

    fields = extract_fields(normalized, filename, cfg)
    terpenes = merge_terpenes(extract_terpene_candidates(normalized, cfg), cfg)

    if fields.total_thc_pct is None and not terpenes:
        return _failure(filename, UNRECOVERABLE_INPUT, "No Total THC and no terpenes found")

    name = fields.name or (Path(filename).stem if filename else None) or "Unnamed product"
    try:
        product = Product(
            name=name,
            form_raw=fields.form_raw,
            form_key=normalize_form_key(fields.form_raw, cfg),
            metrics=ProductMetrics(
                total_thc_pct=fields.total_thc_pct,
                total_terpenes_pct=fields.total_terpenes_pct,
                total_cannabinoids_pct=fields.total_cannabinoids_pct,
                thc_per_unit_mg=fields.thc_per_unit_mg,
            ),
            terpenes=terpenes,
            source_file_name=filename,
        )
    except ValueError as e:
        return _failure(filename, INVALID_PRODUCT, str(e))

    missing = missing_fields(fields)
    log_verbose(
        "PARSE",
        f"{product.name!r} form={product.form_key} thc={product.metrics.total_thc_pct} "
        f"terpenes={len(product.terpenes)} missing={missing or '-'}"
    )
    return ParseOutcome(product=product, missing_fields=missing)


def parse_coa_batch(items: Iterable[BatchItem], cfg: Optional[ModelConfig] = None) -> BatchParseResult:
    """
    Parse many COA texts independently; one failure never aborts the batch.

    Args:
        items: Plain texts or (filename, text) pairs
        cfg: Model config (default: packaged config)

    Returns:
        BatchParseResult with the parsed products and one ParseFailure per failed item
    """
    cfg = cfg or get_default_config()
    result = BatchParseResult()

    for index, item in enumerate(items, 1):
        if isinstance(item, tuple):
            filename, text = item
        else:
            filename, text = None, item

        outcome = parse_coa_text(text, filename, cfg)
        if outcome.ok:
            result.products.append(outcome.product)
        else:
            failure = outcome.failure
            if failure.source is None:
                failure = failure.model_copy(update={"source": f"item {index}"})
            result.errors.append(failure)

    log_verbose("PARSE", f"Batch: {len(result.products)} parsed, {len(result.errors)} failed")
    return result
