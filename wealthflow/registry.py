"""
wealthflow.registry — Closed country catalog.

The registry is loaded once at import time and never mutated. Membership
is fixed for the deployment: every flow endpoint the synthesizers derive
is drawn from here, and aggregation uses it to classify endpoints as
Global North or Global South.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True, slots=True)
class Country:
    """Immutable registry entry."""

    code: str
    name: str
    is_north: bool
    coordinates: tuple[float, float]
    """(longitude, latitude) of the map marker."""

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "name": self.name,
            "is_north": self.is_north,
            "region": "Global North" if self.is_north else "Global South",
            "coordinates": list(self.coordinates),
        }


class UnknownCountryError(KeyError):
    """Raised by explicit registry lookups for a code outside the catalog."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Country '{code}' is not in the registry.")


# ---------------------------------------------------------------------------
# Catalog — (code, name, is_north, lon, lat)
# ---------------------------------------------------------------------------

_CATALOG: tuple[tuple[str, str, bool, float, float], ...] = (
    ("USA", "United States", True, -95.7129, 37.0902),
    ("CAN", "Canada", True, -106.3468, 56.1304),
    ("GBR", "United Kingdom", True, -3.4360, 55.3781),
    ("FRA", "France", True, 2.2137, 46.2276),
    ("DEU", "Germany", True, 10.4515, 51.1657),
    ("CHE", "Switzerland", True, 8.2275, 46.8182),
    ("ITA", "Italy", True, 12.5674, 41.8719),
    ("ESP", "Spain", True, -3.7492, 40.4637),
    ("JPN", "Japan", True, 138.2529, 36.2048),
    ("AUS", "Australia", True, 133.7751, -25.2744),
    ("NLD", "Netherlands", True, 5.2913, 52.1326),

    ("CHN", "China", False, 104.1954, 35.8617),
    ("IND", "India", False, 78.9629, 20.5937),
    ("BRA", "Brazil", False, -51.9253, -14.2350),
    ("MEX", "Mexico", False, -102.5528, 23.6345),
    ("ZAF", "South Africa", False, 22.9375, -30.5595),
    ("NGA", "Nigeria", False, 8.6753, 9.0820),
    ("SAU", "Saudi Arabia", False, 45.0792, 23.8859),
    ("IDN", "Indonesia", False, 113.9213, -0.7893),
    ("ARG", "Argentina", False, -63.6167, -38.4161),
    ("COL", "Colombia", False, -74.2973, 4.5709),
    ("VEN", "Venezuela", False, -66.5897, 6.4238),
    ("PER", "Peru", False, -75.0152, -9.1900),
    ("CHL", "Chile", False, -71.5430, -35.6751),
    ("COD", "DR Congo", False, 21.7587, -4.0383),
    ("KEN", "Kenya", False, 37.9062, -0.0236),
    ("ETH", "Ethiopia", False, 40.4897, 9.1450),
    ("EGY", "Egypt", False, 30.8025, 26.8206),
    ("PAK", "Pakistan", False, 69.3451, 30.3753),
    ("BGD", "Bangladesh", False, 90.3563, 23.6850),
    ("PHL", "Philippines", False, 121.7740, 12.8797),
    ("VNM", "Vietnam", False, 108.2772, 14.0583),
    ("MYS", "Malaysia", False, 101.9758, 4.2105),
    ("THA", "Thailand", False, 100.9925, 15.8700),
    ("MAR", "Morocco", False, -7.0926, 31.7917),
    ("DZA", "Algeria", False, 1.6596, 28.0339),
    ("GHA", "Ghana", False, -1.0800, 7.9465),
)

COUNTRY_REGISTRY: Mapping[str, Country] = MappingProxyType({
    code: Country(code=code, name=name, is_north=is_north, coordinates=(lon, lat))
    for code, name, is_north, lon, lat in _CATALOG
})
"""code → Country, in catalog order (North first)."""

COUNTRY_CODES: tuple[str, ...] = tuple(COUNTRY_REGISTRY)


def get_country(code: str, registry: Mapping[str, Country] = COUNTRY_REGISTRY) -> Country:
    """Look up a country. Raises UnknownCountryError for codes outside the catalog."""
    try:
        return registry[code]
    except KeyError:
        raise UnknownCountryError(code) from None


def is_known(code: str, registry: Mapping[str, Country] = COUNTRY_REGISTRY) -> bool:
    return code in registry
