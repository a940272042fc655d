"""
wealthflow.policies — Static per-category synthesis policies.

THIS IS THE ONLY PLACE where indicator bindings, magnitude floors,
role-exclusion sets, partner-routing tables, tax tiers and fallback
literals exist. The synthesizers read them from here; nothing is
runtime-configurable.

Routing is a two-step lookup: contributor code → group tag → weighted
partner sequence. Codes without a group use the policy's default route.

Direction:
    outbound — contributor pays partner (profit, debt, resources, tax)
    inbound  — partner pays contributor (remittance, aid)
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, NamedTuple

from wealthflow.constants import MAGNITUDE_FLOORS
from wealthflow.flows import FlowSet, flows_from_tuples
from wealthflow.registry import Country

OUTBOUND = "outbound"
INBOUND = "inbound"


class Share(NamedTuple):
    partner: str
    weight: float


Route = tuple[Share, ...]
Deriver = Callable[[Country, tuple[float, ...]], float]


@dataclass(frozen=True)
class CategoryPolicy:
    """Everything one synthesizer needs. Immutable."""

    category: str
    indicators: tuple[str, ...]
    floor: float
    excluded: frozenset[str]
    direction: str
    groups: Mapping[str, str]
    routes: Mapping[str, Route]
    default_route: Route
    fallback: FlowSet
    derive: Deriver

    def route_for(self, code: str) -> Route:
        tag = self.groups.get(code)
        if tag is None:
            return self.default_route
        return self.routes[tag]


def _route(*pairs: tuple[str, float]) -> Route:
    return tuple(Share(partner, weight) for partner, weight in pairs)


def _groups(table: dict[str, tuple[str, ...]]) -> Mapping[str, str]:
    """Invert {tag: codes} into {code: tag}. A code may belong to one group only."""
    index: dict[str, str] = {}
    for tag, codes in table.items():
        for code in codes:
            if code in index:
                raise ValueError(f"Country '{code}' is in groups '{index[code]}' and '{tag}'")
            index[code] = tag
    return MappingProxyType(index)


# ---------------------------------------------------------------------------
# Derivers — raw currency units from the policy's indicator values, in
# the order the policy lists them. Called only when every value is present.
# ---------------------------------------------------------------------------

def _direct(country: Country, values: tuple[float, ...]) -> float:
    return values[0]


def _resource_rents_value(country: Country, values: tuple[float, ...]) -> float:
    rents_pct, gdp = values
    # divide first: gdp * rents_pct may exceed the float range
    return gdp / 100 * rents_pct


# Larger economies with known capital flight
CAPITAL_FLIGHT_CODES: frozenset[str] = frozenset({
    "CHN", "BRA", "IND", "MEX", "ZAF", "NGA", "SAU", "IDN",
})

TAX_RATE_CAPITAL_FLIGHT = 0.03
TAX_RATE_SOUTH = 0.02
TAX_RATE_NORTH = 0.01


def tax_rate(country: Country) -> float:
    """Share of GDP estimated to leave as tax-motivated outflow."""
    if country.code in CAPITAL_FLIGHT_CODES:
        return TAX_RATE_CAPITAL_FLIGHT
    if not country.is_north:
        return TAX_RATE_SOUTH
    return TAX_RATE_NORTH


def _tax_value(country: Country, values: tuple[float, ...]) -> float:
    (gdp,) = values
    return gdp * tax_rate(country)


# ---------------------------------------------------------------------------
# Shared region groupings
# ---------------------------------------------------------------------------

LATIN_AMERICA = ("MEX", "COL", "BRA", "ARG", "PER", "CHL", "VEN")
SOUTH_ASIA = ("IND", "PAK", "BGD")
AFRICA = ("NGA", "GHA", "KEN", "ETH", "ZAF", "EGY", "MAR", "DZA")
AFRICA_WITH_COD = AFRICA + ("COD",)
SOUTHEAST_ASIA = ("PHL", "VNM", "THA", "MYS", "IDN")

# ---------------------------------------------------------------------------
# profit — FDI outflows repatriated to financial hubs
# ---------------------------------------------------------------------------

FINANCIAL_HUBS: tuple[str, ...] = ("USA", "GBR", "CHE", "NLD", "JPN", "DEU")

PROFIT = CategoryPolicy(
    category="profit",
    indicators=("fdi_outflows",),
    floor=MAGNITUDE_FLOORS["profit"],
    excluded=frozenset(FINANCIAL_HUBS),
    direction=OUTBOUND,
    groups=MappingProxyType({}),
    routes=MappingProxyType({}),
    # primary hub, then the next two hubs in hub order
    default_route=_route(("USA", 0.60), ("GBR", 0.25), ("CHE", 0.15)),
    fallback=flows_from_tuples([
        ("BRA", "USA", 45, "profit"),
        ("BRA", "GBR", 12, "profit"),
        ("MEX", "USA", 40, "profit"),
        ("IND", "USA", 35, "profit"),
        ("IND", "GBR", 25, "profit"),
        ("CHN", "USA", 70, "profit"),
        ("ZAF", "GBR", 18, "profit"),
        ("ZAF", "USA", 14, "profit"),
        ("NGA", "GBR", 15, "profit"),
        ("NGA", "FRA", 12, "profit"),
        ("IDN", "NLD", 22, "profit"),
        ("PHL", "USA", 16, "profit"),
        ("CHL", "USA", 18, "profit"),
        ("COL", "USA", 14, "profit"),
        ("VNM", "JPN", 12, "profit"),
    ]),
    derive=_direct,
)

# ---------------------------------------------------------------------------
# remittance — workers abroad sending money home (inbound)
# ---------------------------------------------------------------------------

REMITTANCE_SOURCES: tuple[str, ...] = (
    "USA", "GBR", "DEU", "FRA", "ITA", "ESP", "CAN", "AUS", "SAU",
)

REMITTANCE = CategoryPolicy(
    category="remittance",
    indicators=("remittance_inflows",),
    floor=MAGNITUDE_FLOORS["remittance"],
    excluded=frozenset(REMITTANCE_SOURCES),
    direction=INBOUND,
    groups=_groups({
        "latin_america": LATIN_AMERICA,
        "south_asia": SOUTH_ASIA,
        "africa": AFRICA,
        "east_asia": ("CHN", "PHL", "VNM", "THA", "MYS", "IDN"),
    }),
    routes=MappingProxyType({
        "latin_america": _route(("USA", 0.6), ("ESP", 0.4)),
        "south_asia": _route(("USA", 0.6), ("GBR", 0.25), ("SAU", 0.15)),
        "africa": _route(("GBR", 0.6), ("FRA", 0.25), ("ITA", 0.15)),
        "east_asia": _route(("USA", 0.6), ("JPN", 0.25), ("AUS", 0.15)),
    }),
    default_route=_route(("USA", 0.6), ("DEU", 0.4)),
    fallback=flows_from_tuples([
        ("USA", "MEX", 35, "remittance"),
        ("USA", "IND", 25, "remittance"),
        ("USA", "CHN", 18, "remittance"),
        ("USA", "PHL", 12, "remittance"),
        ("GBR", "IND", 15, "remittance"),
        ("GBR", "PAK", 8, "remittance"),
        ("GBR", "BGD", 7, "remittance"),
        ("FRA", "MAR", 9, "remittance"),
        ("FRA", "DZA", 12, "remittance"),
        ("ESP", "COL", 6, "remittance"),
        ("USA", "COL", 8, "remittance"),
    ]),
    derive=_direct,
)

# ---------------------------------------------------------------------------
# debt — external debt service paid to creditors
# ---------------------------------------------------------------------------

CREDITORS: tuple[str, ...] = ("USA", "CHN", "JPN", "DEU", "GBR", "FRA")

DEBT = CategoryPolicy(
    category="debt",
    indicators=("debt_service",),
    floor=MAGNITUDE_FLOORS["debt"],
    excluded=frozenset(CREDITORS),
    direction=OUTBOUND,
    groups=_groups({
        "latin_america": LATIN_AMERICA,
        "africa": AFRICA_WITH_COD,
        "south_asia": SOUTH_ASIA,
        "southeast_asia": SOUTHEAST_ASIA,
    }),
    routes=MappingProxyType({
        "latin_america": _route(("USA", 0.7), ("CHN", 0.3)),
        "africa": _route(("CHN", 0.6), ("FRA", 0.2), ("USA", 0.2)),
        "south_asia": _route(("USA", 0.4), ("CHN", 0.4), ("JPN", 0.2)),
        "southeast_asia": _route(("JPN", 0.4), ("CHN", 0.3), ("USA", 0.3)),
    }),
    default_route=_route(("USA", 0.5), ("CHN", 0.3), ("DEU", 0.2)),
    fallback=flows_from_tuples([
        ("ARG", "USA", 20, "debt"),
        ("BRA", "USA", 35, "debt"),
        ("MEX", "USA", 25, "debt"),
        ("COL", "USA", 12, "debt"),
        ("EGY", "USA", 15, "debt"),
        ("PAK", "CHN", 25, "debt"),
        ("KEN", "CHN", 15, "debt"),
        ("ETH", "CHN", 12, "debt"),
        ("IND", "USA", 30, "debt"),
        ("IDN", "USA", 20, "debt"),
        ("ZAF", "USA", 18, "debt"),
        ("NGA", "CHN", 22, "debt"),
    ]),
    derive=_direct,
)

# ---------------------------------------------------------------------------
# aid — official development assistance from donors (inbound)
# ---------------------------------------------------------------------------

DONORS: tuple[str, ...] = ("USA", "DEU", "GBR", "JPN", "FRA", "CHN")

AID = CategoryPolicy(
    category="aid",
    indicators=("aid_received",),
    floor=MAGNITUDE_FLOORS["aid"],
    excluded=frozenset(DONORS),
    direction=INBOUND,
    groups=_groups({
        "latin_america": LATIN_AMERICA,
        "africa": AFRICA_WITH_COD,
        "south_asia": SOUTH_ASIA,
        "southeast_asia": SOUTHEAST_ASIA,
    }),
    routes=MappingProxyType({
        "latin_america": _route(("USA", 0.7), ("ESP", 0.3)),
        "africa": _route(("USA", 0.3), ("GBR", 0.2), ("FRA", 0.2), ("CHN", 0.3)),
        "south_asia": _route(("USA", 0.4), ("GBR", 0.3), ("JPN", 0.3)),
        "southeast_asia": _route(("JPN", 0.4), ("USA", 0.3), ("AUS", 0.3)),
    }),
    default_route=_route(("USA", 0.4), ("DEU", 0.3), ("JPN", 0.3)),
    fallback=flows_from_tuples([
        ("USA", "EGY", 10, "aid"),
        ("USA", "COL", 5, "aid"),
        ("USA", "PAK", 4, "aid"),
        ("USA", "ETH", 3, "aid"),
        ("USA", "KEN", 3, "aid"),
        ("GBR", "IND", 3, "aid"),
        ("GBR", "KEN", 2, "aid"),
        ("GBR", "NGA", 2, "aid"),
        ("CHN", "ETH", 5, "aid"),
        ("CHN", "KEN", 4, "aid"),
    ]),
    derive=_direct,
)

# ---------------------------------------------------------------------------
# resources — natural-resource rents paid by major importers
# ---------------------------------------------------------------------------

RESOURCE_IMPORTERS: tuple[str, ...] = ("USA", "CHN", "JPN", "DEU", "IND")

RESOURCES = CategoryPolicy(
    category="resources",
    indicators=("resource_rents", "gdp"),
    floor=MAGNITUDE_FLOORS["resources"],
    excluded=frozenset(RESOURCE_IMPORTERS),
    direction=OUTBOUND,
    groups=_groups({
        "oil_exporters": ("SAU", "VEN", "NGA", "DZA"),
        "south_america": ("BRA", "CHL", "PER", "COL"),
        "africa": ("ZAF", "COD", "GHA"),
        "southeast_asia": ("IDN", "MYS", "THA"),
    }),
    routes=MappingProxyType({
        "oil_exporters": _route(("USA", 0.4), ("CHN", 0.4), ("IND", 0.2)),
        "south_america": _route(("CHN", 0.5), ("USA", 0.3), ("JPN", 0.2)),
        "africa": _route(("CHN", 0.6), ("USA", 0.2), ("GBR", 0.2)),
        "southeast_asia": _route(("CHN", 0.5), ("JPN", 0.3), ("USA", 0.2)),
    }),
    default_route=_route(("CHN", 0.4), ("USA", 0.4), ("DEU", 0.2)),
    fallback=flows_from_tuples([
        ("SAU", "USA", 60, "resources"),
        ("SAU", "CHN", 40, "resources"),
        ("BRA", "CHN", 50, "resources"),
        ("ZAF", "CHN", 35, "resources"),
        ("NGA", "USA", 30, "resources"),
        ("NGA", "CHN", 25, "resources"),
        ("IDN", "CHN", 35, "resources"),
        ("IDN", "JPN", 20, "resources"),
        ("COL", "USA", 25, "resources"),
        ("CHL", "CHN", 40, "resources"),
        ("PER", "CHN", 30, "resources"),
        ("COD", "CHN", 25, "resources"),
        ("VEN", "USA", 20, "resources"),
    ]),
    derive=_resource_rents_value,
)

# ---------------------------------------------------------------------------
# tax — estimated tax-motivated outflows to havens
# ---------------------------------------------------------------------------

TAX_HAVENS: tuple[str, ...] = ("CHE", "GBR", "USA", "NLD")

TAX = CategoryPolicy(
    category="tax",
    indicators=("gdp",),
    floor=MAGNITUDE_FLOORS["tax"],
    excluded=frozenset(TAX_HAVENS),
    direction=OUTBOUND,
    groups=_groups({
        "latin_america": ("MEX", "COL", "BRA", "ARG", "CHL", "PER", "VEN"),
        "commonwealth": ("IND", "PAK", "BGD", "ZAF", "NGA", "GHA", "KEN", "EGY"),
        "francophone": ("MAR", "DZA"),
        "southeast_asia": ("IDN", "MYS", "VNM", "THA", "PHL"),
    }),
    routes=MappingProxyType({
        "latin_america": _route(("USA", 0.5), ("CHE", 0.3)),
        "commonwealth": _route(("GBR", 0.5), ("CHE", 0.3), ("USA", 0.2)),
        "francophone": _route(("FRA", 0.5), ("CHE", 0.3)),
        # SGP is outside the registry; its share is dropped at synthesis
        "southeast_asia": _route(("CHE", 0.5), ("USA", 0.3), ("SGP", 0.2)),
    }),
    default_route=_route(("CHE", 0.5), ("GBR", 0.3), ("USA", 0.2)),
    fallback=flows_from_tuples([
        ("CHN", "GBR", 35, "tax"),
        ("CHN", "CHE", 25, "tax"),
        ("RUS", "CHE", 35, "tax"),
        ("BRA", "USA", 12, "tax"),
        ("BRA", "CHE", 15, "tax"),
        ("IND", "CHE", 25, "tax"),
        ("IND", "GBR", 15, "tax"),
        ("MEX", "USA", 20, "tax"),
        ("ZAF", "GBR", 8, "tax"),
        ("ZAF", "CHE", 12, "tax"),
        ("NGA", "GBR", 10, "tax"),
        ("NGA", "CHE", 8, "tax"),
        ("SAU", "CHE", 30, "tax"),
        ("IDN", "CHE", 10, "tax"),
        ("IDN", "USA", 8, "tax"),
    ]),
    derive=_tax_value,
)

# ---------------------------------------------------------------------------
# Registry of policies — keyed by category
# ---------------------------------------------------------------------------

POLICIES: Mapping[str, CategoryPolicy] = MappingProxyType({
    policy.category: policy
    for policy in (PROFIT, REMITTANCE, DEBT, AID, RESOURCES, TAX)
})


def get_policy(category: str) -> CategoryPolicy:
    """Raises KeyError for an unknown category."""
    if category not in POLICIES:
        raise KeyError(f"Unknown flow category: '{category}'")
    return POLICIES[category]
