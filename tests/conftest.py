"""
Pytest configuration and shared COA fixtures.
"""
import sys
from pathlib import Path

import pytest

# Add repo root to path for imports
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root))

from mmet.config_loader import get_default_config
from mmet.schemas import Product, ProductMetrics, TerpeneEntry


FLOWER_COA = """Modern Canna Labs
Certificate of Analysis
Product Name: Blue Dream
Sample Matrix: Flower
Batch: BD-2024-118

POTENCY SUMMARY
Total THC: 22.4%
Total CBD: 0.1%
Total Cannabinoids: 25.3%

TERPENES
- beta-Myrcene 0.82%
- β-Caryophyllene 0.41%
- D-Limonene 0.35%
- alpha-Pinene 0.12%
Total Terpenes: 1.70%

PESTICIDES
Bifenazate ND
"""

COMPONENT_COA = """Cultivar: Gelato 41
Sample Matrix: Live Badder

Cannabinoid Profile
Δ9-THC 20.0%
THCa 60.0%
CBGa 1.2%

Terpenes
Caryophyllene 1.0%
Limonene (0.60%); Linalool (0.25%)
Humulene 0.31
"""

TABULAR_COA = """SC Labs\r\nTerpenes Summary (Top Ten)\r\nAnalyte mg/g %\r\nbeta-Caryophyllene 1.77\r\nLinalool 0.695\r\nD-Limonene 0.507\r\nTotal Terpenes 809.00\r\n\r\n\r\n\r\nPage 2 of 4\r\nMyrcene 0.9\r\n"""


@pytest.fixture(scope="session")
def cfg():
    """Packaged model config, loaded once."""
    return get_default_config()


@pytest.fixture
def flower_coa():
    return FLOWER_COA


@pytest.fixture
def component_coa():
    return COMPONENT_COA


@pytest.fixture
def tabular_coa():
    return TABULAR_COA


def make_product(
    name="Test Product",
    thc=20.0,
    terps_total=2.0,
    form_key="flower",
    terpenes=None,
    product_id=None
) -> Product:
    """Build a Product directly (bypassing COA parsing)."""
    kwargs = {}
    if product_id:
        kwargs["id"] = product_id
    return Product(
        name=name,
        form_raw=form_key,
        form_key=form_key,
        metrics=ProductMetrics(total_thc_pct=thc, total_terpenes_pct=terps_total),
        terpenes=[TerpeneEntry(name=n, pct=p) for n, p in (terpenes or {}).items()],
        **kwargs
    )


@pytest.fixture
def product_factory():
    return make_product
