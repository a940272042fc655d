"""
wealthflow.constants — Single source of truth for flow-engine constants.

Every module that needs these values MUST import from here.
No hardcoded duplicates anywhere in the codebase.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Precision
# ---------------------------------------------------------------------------

ROUND_PRECISION: int = 8
"""Decimal places used when amounts leave the engine (API bodies, export
files, hash input). The engine itself never rounds: aggregation works on
the raw synthesized amounts and rounding happens once, at serialization."""

BILLION: float = 1_000_000_000.0
"""Indicator values arrive in current US dollars; flow amounts are billions."""

# ---------------------------------------------------------------------------
# Flow categories — canonical order
# ---------------------------------------------------------------------------

FLOW_CATEGORIES: tuple[str, ...] = (
    "profit",
    "resources",
    "debt",
    "tax",
    "remittance",
    "aid",
)

FLOW_CATEGORY_SET: frozenset[str] = frozenset(FLOW_CATEGORIES)

ALL_CATEGORIES: str = "all"
"""Selection keyword meaning "no category filter"."""

SYNTHESIS_ORDER: tuple[str, ...] = (
    "profit",
    "remittance",
    "debt",
    "aid",
    "resources",
    "tax",
)
"""Order in which synthesizer outputs are concatenated into the FlowSet."""

CATEGORY_DESCRIPTIONS: dict[str, str] = {
    "profit": "Profit Repatriation: Earnings from foreign investments sent back to home countries",
    "resources": "Resource Extraction: Money paid for raw materials, minerals, oil, and other natural resources",
    "debt": "Debt Service: Payments for interest and principal on international loans",
    "tax": "Tax Avoidance: Wealth moved to avoid taxation in home countries",
    "remittance": "Remittances: Money sent by workers to family in their home countries",
    "aid": "Aid: Official development assistance from governments",
}

# ---------------------------------------------------------------------------
# Indicator catalog — engine key → World Bank indicator code
# ---------------------------------------------------------------------------

INDICATOR_CODES: dict[str, str] = {
    "fdi_outflows": "BM.KLT.DINV.CD.WD",
    "fdi_inflows": "BX.KLT.DINV.CD.WD",
    "remittance_inflows": "BX.TRF.PWKR.CD.DT",
    "debt_service": "DT.TDS.DECT.CD",
    "external_debt": "DT.DOD.DECT.CD",
    "resource_rents": "NY.GDP.TOTL.RT.ZS",
    "gdp": "NY.GDP.MKTP.CD",
    "aid_received": "DT.ODA.ALLD.CD",
    "aid_given": "DC.ODA.TOTL.CD",
    "exports": "NE.EXP.GNFS.CD",
    "imports": "NE.IMP.GNFS.CD",
}

INDICATOR_KEYS: tuple[str, ...] = tuple(INDICATOR_CODES)

# ---------------------------------------------------------------------------
# Magnitude floors (billions) — below these a potential flow is noise
# ---------------------------------------------------------------------------

MAGNITUDE_FLOORS: dict[str, float] = {
    "profit": 1.0,
    "remittance": 1.0,
    "debt": 1.0,
    "aid": 0.5,
    "resources": 5.0,
    "tax": 5.0,
}

# ---------------------------------------------------------------------------
# Presentation support
# ---------------------------------------------------------------------------

TOP_PARTNER_LIMIT: int = 5
"""Number of partners shown per direction in a country detail view."""
