"""
Free-text product form → form key / FormProfile.
"""
from typing import Optional

from mmet.config_loader import ModelConfig, get_default_config
from mmet.schemas import FormProfile


def normalize_form_key(form_raw: Optional[str], cfg: Optional[ModelConfig] = None) -> str:
    """
    Resolve a free-text form ("Live Badder", "510 Cart", "Gummies") to a form key.

    Keyword families are checked in configured order; a family matches when
    all of its `requires` tokens and at least one `any` token appear in the
    lowercased text. Unmatched or empty text falls back to the default key.

    Args:
        form_raw: Form text as printed on the COA, or an existing form key
        cfg: Model config (default: packaged config)

    Returns:
        A key of cfg.forms.profiles
    """
    forms = (cfg or get_default_config()).forms
    s = (form_raw or "").strip().lower()
    if not s:
        return forms.default_key

    if s.replace(" ", "_") in forms.profiles:
        return s.replace(" ", "_")

    for family in forms.keyword_families:
        if not all(token in s for token in family.requires):
            continue
        if any(token in s for token in family.any):
            return family.key
    return forms.default_key


def get_form_profile(form_key: Optional[str], cfg: Optional[ModelConfig] = None) -> FormProfile:
    """FormProfile for a key; unknown keys get the default (flower) profile."""
    forms = (cfg or get_default_config()).forms
    profile = forms.profiles.get((form_key or "").strip().lower())
    if profile is None:
        profile = forms.profiles[forms.default_key]
    return profile
