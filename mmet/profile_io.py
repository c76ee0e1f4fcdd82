"""
Profile import / export.

The exported document is JSON with camelCase keys:

    {"app": "MMET Predictor", "version": 2, "exportedAt": "...",
     "profileName": "...", "products": [...], "sessionLog": [...]}

import_profile(export_profile(doc)) reproduces products and sessionLog exactly.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, Union

from pydantic import ValidationError

from mmet.feature_flags import log_verbose
from mmet.schemas import ProfileDocument


def export_profile(doc: ProfileDocument, indent: int = 2) -> str:
    """Serialize a profile document, stamping exportedAt."""
    stamped = doc.model_copy(update={"exported_at": datetime.now(timezone.utc)})
    payload = stamped.model_dump_json(by_alias=True, indent=indent)
    log_verbose(
        "PROFILE",
        f"Exported {len(doc.products)} product(s), {len(doc.session_log)} session(s)"
    )
    return payload


def import_profile(data: Union[str, bytes, Dict[str, Any]]) -> ProfileDocument:
    """
    Parse an exported profile.

    Args:
        data: JSON text / bytes, or an already-decoded dict

    Returns:
        Validated ProfileDocument

    Raises:
        ValueError: On malformed JSON or records that fail validation
    """
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Profile is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Profile must be a JSON object, got {type(data).__name__}")

    try:
        doc = ProfileDocument.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Invalid profile document: {e}") from e

    log_verbose(
        "PROFILE",
        f"Imported {doc.profile_name!r}: {len(doc.products)} product(s), {len(doc.session_log)} session(s)"
    )
    return doc
