"""
tests/test_indicators.py — IndicatorStore and registry tests.

Requires: pytest
"""

from __future__ import annotations

import math

import pytest

from wealthflow.indicators import IndicatorStore, coerce_indicator_value
from wealthflow.registry import (
    COUNTRY_CODES,
    COUNTRY_REGISTRY,
    UnknownCountryError,
    get_country,
    is_known,
)


class TestCoerce:
    @pytest.mark.parametrize("raw, expected", [
        (5, 5.0),
        (2.5e9, 2.5e9),
        (0, 0.0),
        (-1.5, -1.5),
    ])
    def test_numbers(self, raw, expected):
        assert coerce_indicator_value(raw) == expected

    @pytest.mark.parametrize("raw", [
        None, True, False, "12", float("nan"), float("inf"), -math.inf, [1], {},
    ])
    def test_unusable(self, raw):
        assert coerce_indicator_value(raw) is None


class TestIndicatorStore:
    def test_absent_is_not_zero(self):
        store = IndicatorStore.from_nested({"BRA": {"gdp": 0.0}})
        assert store.get("BRA", "gdp") == 0.0
        assert store.has("BRA", "gdp")
        assert store.get("BRA", "fdi_outflows") is None
        assert not store.has("MEX", "gdp")

    def test_unusable_values_dropped_at_build(self):
        store = IndicatorStore.from_nested({"BRA": {"gdp": float("nan"), "exports": None}})
        assert len(store) == 0
        assert not store

    def test_for_country(self):
        store = IndicatorStore.from_nested({
            "BRA": {"gdp": 2e12, "fdi_outflows": 5e9},
            "MEX": {"gdp": 1.5e12},
        })
        assert store.for_country("BRA") == {"gdp": 2e12, "fdi_outflows": 5e9}
        assert store.for_country("ARG") == {}

    def test_coverage(self):
        store = IndicatorStore.from_nested({
            "BRA": {"gdp": 2e12, "fdi_outflows": 5e9},
            "MEX": {"gdp": 1.5e12},
        })
        assert store.coverage() == {"fdi_outflows": 1, "gdp": 2}
        assert list(store.coverage()) == ["fdi_outflows", "gdp"]

    def test_nested_round_trip(self):
        nested = {"BRA": {"fdi_outflows": 5e9, "gdp": 2e12}, "MEX": {"gdp": 1.5e12}}
        assert IndicatorStore.from_nested(nested).to_nested() == nested

    def test_immutable(self):
        source = {("BRA", "gdp"): 2e12}
        store = IndicatorStore(source)
        source[("BRA", "gdp")] = 0.0
        assert store.get("BRA", "gdp") == 2e12
        with pytest.raises(AttributeError):
            store.extra = 1  # type: ignore[attr-defined]

    def test_equality(self):
        a = IndicatorStore.from_nested({"BRA": {"gdp": 1.0}})
        b = IndicatorStore({("BRA", "gdp"): 1.0})
        assert a == b
        assert a != IndicatorStore.empty()

    def test_unhashable(self):
        with pytest.raises(TypeError):
            hash(IndicatorStore.empty())


class TestRegistry:
    def test_both_sides_populated(self):
        north = [c for c in COUNTRY_REGISTRY.values() if c.is_north]
        assert len(north) == 11
        assert len(COUNTRY_REGISTRY) - len(north) == 26

    def test_size_and_uniqueness(self):
        assert len(COUNTRY_CODES) == 37
        assert len(set(COUNTRY_CODES)) == len(COUNTRY_CODES)

    def test_classification(self):
        assert COUNTRY_REGISTRY["USA"].is_north
        assert COUNTRY_REGISTRY["AUS"].is_north
        assert not COUNTRY_REGISTRY["CHN"].is_north
        assert not COUNTRY_REGISTRY["SAU"].is_north

    def test_coordinates_in_range(self):
        for country in COUNTRY_REGISTRY.values():
            lon, lat = country.coordinates
            assert -180 <= lon <= 180
            assert -90 <= lat <= 90

    def test_get_country(self):
        assert get_country("BRA").name == "Brazil"

    def test_unknown_country(self):
        with pytest.raises(UnknownCountryError) as exc_info:
            get_country("RUS")
        assert exc_info.value.code == "RUS"
        assert isinstance(exc_info.value, KeyError)
        assert not is_known("RUS")
        assert is_known("RUS", {"RUS": None})

    def test_read_only(self):
        with pytest.raises(TypeError):
            COUNTRY_REGISTRY["RUS"] = None  # type: ignore[index]

    def test_to_dict(self):
        body = COUNTRY_REGISTRY["BRA"].to_dict()
        assert body["region"] == "Global South"
        assert body["coordinates"] == [-51.9253, -14.2350]
