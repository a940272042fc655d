"""
wealthflow.indicators — Immutable Indicator Store snapshot.

The store maps (country_code, indicator_key) to a finite float or to
"absent". Absent is not zero: a stored 0.0 is a real measurement and is
returned as such, while a missing key returns None.

The store is an explicit value handed to the synthesis phase. It is built
once, after every indicator fetch has settled, and never mutated.
"""

from __future__ import annotations

import math
from types import MappingProxyType
from typing import Any, Iterator, Mapping


def coerce_indicator_value(raw: Any) -> float | None:
    """Normalize a raw payload value. Returns None when it is not a usable number.

    Booleans, None, strings, NaN and +/-Inf are all treated as absent.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if not isinstance(raw, (int, float)):
        return None
    value = float(raw)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


class IndicatorStore:
    """Read-only snapshot of per-country indicator values.

    Usage::

        store = IndicatorStore.from_nested({"BRA": {"fdi_outflows": 5e9}})
        store.get("BRA", "fdi_outflows")   # 5000000000.0
        store.get("BRA", "gdp")            # None (absent)
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[tuple[str, str], float] | None = None) -> None:
        cleaned: dict[tuple[str, str], float] = {}
        for key, raw in (values or {}).items():
            value = coerce_indicator_value(raw)
            if value is not None:
                cleaned[key] = value
        self._values: Mapping[tuple[str, str], float] = MappingProxyType(cleaned)

    @classmethod
    def from_nested(cls, data: Mapping[str, Mapping[str, Any]]) -> IndicatorStore:
        """Build from ``{country_code: {indicator_key: value}}``."""
        flat: dict[tuple[str, str], Any] = {}
        for code, indicators in data.items():
            for key, raw in indicators.items():
                flat[(code, key)] = raw
        return cls(flat)

    @classmethod
    def empty(cls) -> IndicatorStore:
        return cls()

    def get(self, country_code: str, indicator_key: str) -> float | None:
        return self._values.get((country_code, indicator_key))

    def has(self, country_code: str, indicator_key: str) -> bool:
        return (country_code, indicator_key) in self._values

    def for_country(self, country_code: str) -> dict[str, float]:
        return {
            key: value
            for (code, key), value in self._values.items()
            if code == country_code
        }

    def coverage(self) -> dict[str, int]:
        """Number of countries with a value, per indicator key."""
        counts: dict[str, int] = {}
        for _, key in self._values:
            counts[key] = counts.get(key, 0) + 1
        return dict(sorted(counts.items()))

    def to_nested(self) -> dict[str, dict[str, float]]:
        nested: dict[str, dict[str, float]] = {}
        for (code, key), value in sorted(self._values.items()):
            nested.setdefault(code, {})[key] = value
        return nested

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self._values)

    def __bool__(self) -> bool:
        return bool(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndicatorStore):
            return NotImplemented
        return dict(self._values) == dict(other._values)

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"IndicatorStore({len(self._values)} values)"
