"""
wealthflow.aggregation — Pure reducers over a FlowSet.

Pure-computation module. Zero I/O. Zero global state.

Four independent reducers, each returning a fresh immutable result:

    derive_totals(flows)                    → category → sum
    derive_net_balance(flows, registry)     → code → inflow - outflow
    derive_country_stats(flows, registry)   → code → CountryStats
    derive_north_south(flows, registry)     → NorthSouthTotals

aggregate() composes them into AggregateViews.

Order independence: every sum is computed with math.fsum, which is
exactly rounded, so any permutation of the FlowSet yields bit-identical
views. A sum past the float range is math.inf, never an OverflowError.

Unknown-code policy: a record always counts in totals_by_category. In
net balance and country stats each endpoint is counted on its own, so
the registry side of a record with one unknown code still sees it (the
unknown code shows up as a partner). North/South needs both endpoints
in the registry. Nothing raises.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping

from wealthflow.constants import FLOW_CATEGORIES, ROUND_PRECISION, TOP_PARTNER_LIMIT
from wealthflow.flows import FlowRecord
from wealthflow.registry import COUNTRY_REGISTRY, Country, is_known


def _r(value: float) -> float:
    return round(value, ROUND_PRECISION)


def _fsum(values: Iterable[float]) -> float:
    try:
        return math.fsum(values)
    except OverflowError:
        return math.inf


def _resolvable(flow: FlowRecord, registry: Mapping[str, Country]) -> bool:
    return is_known(flow.source, registry) and is_known(flow.destination, registry)


# ---------------------------------------------------------------------------
# View value objects
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class FlowTotals:
    """One direction (in or out) of a country's flows."""

    total: float
    per_category: Mapping[str, float]

    def to_dict(self) -> dict:
        return {
            "total": _r(self.total),
            **{category: _r(self.per_category[category]) for category in FLOW_CATEGORIES},
        }


@dataclass(frozen=True, slots=True)
class CountryStats:
    outflows: FlowTotals
    inflows: FlowTotals
    partners_outgoing: Mapping[str, float]
    partners_incoming: Mapping[str, float]

    @property
    def net(self) -> float:
        return self.inflows.total - self.outflows.total

    def top_outgoing(self, limit: int = TOP_PARTNER_LIMIT) -> list[tuple[str, float]]:
        return rank_partners(self.partners_outgoing, limit)

    def top_incoming(self, limit: int = TOP_PARTNER_LIMIT) -> list[tuple[str, float]]:
        return rank_partners(self.partners_incoming, limit)

    def to_dict(self) -> dict:
        return {
            "outflows": self.outflows.to_dict(),
            "inflows": self.inflows.to_dict(),
            "partners": {
                "outgoing": {code: _r(v) for code, v in sorted(self.partners_outgoing.items())},
                "incoming": {code: _r(v) for code, v in sorted(self.partners_incoming.items())},
            },
        }


@dataclass(frozen=True, slots=True)
class NorthSouthTotals:
    south_to_north: float
    north_to_south: float

    @property
    def net_transfer(self) -> float:
        """South-to-North minus North-to-South."""
        return self.south_to_north - self.north_to_south

    @property
    def flow_ratio(self) -> float | None:
        """Dollars flowing North per dollar flowing South. None when nothing flows South."""
        if self.north_to_south == 0:
            return None
        return self.south_to_north / self.north_to_south

    def to_dict(self) -> dict:
        ratio = self.flow_ratio
        return {
            "south_to_north": _r(self.south_to_north),
            "north_to_south": _r(self.north_to_south),
            "net_transfer": _r(self.net_transfer),
            "flow_ratio": None if ratio is None else _r(ratio),
        }


@dataclass(frozen=True, slots=True)
class AggregateViews:
    totals_by_category: Mapping[str, float]
    net_balance: Mapping[str, float]
    country_stats: Mapping[str, CountryStats]
    north_south: NorthSouthTotals

    @property
    def grand_total(self) -> float:
        return _fsum(self.totals_by_category.values())

    def to_dict(self) -> dict:
        return {
            "totals_by_category": {
                category: _r(self.totals_by_category[category]) for category in FLOW_CATEGORIES
            },
            "net_balance": {code: _r(v) for code, v in self.net_balance.items()},
            "country_stats": {code: s.to_dict() for code, s in self.country_stats.items()},
            "north_south": self.north_south.to_dict(),
        }


# ---------------------------------------------------------------------------
# Reducers
# ---------------------------------------------------------------------------

def derive_totals(flows: Iterable[FlowRecord]) -> Mapping[str, float]:
    """Sum of amounts per category. All six categories are present."""
    buckets: dict[str, list[float]] = {category: [] for category in FLOW_CATEGORIES}
    for flow in flows:
        buckets[flow.category].append(flow.amount)
    return MappingProxyType({
        category: _fsum(amounts) for category, amounts in buckets.items()
    })


def _directional_amounts(
    flows: Iterable[FlowRecord],
    registry: Mapping[str, Country],
) -> tuple[dict[str, list[float]], dict[str, list[float]]]:
    inflows: dict[str, list[float]] = {code: [] for code in registry}
    outflows: dict[str, list[float]] = {code: [] for code in registry}
    for flow in flows:
        if is_known(flow.source, registry):
            outflows[flow.source].append(flow.amount)
        if is_known(flow.destination, registry):
            inflows[flow.destination].append(flow.amount)
    return inflows, outflows


def derive_net_balance(
    flows: Iterable[FlowRecord],
    registry: Mapping[str, Country] = COUNTRY_REGISTRY,
) -> Mapping[str, float]:
    """Inflow minus outflow for every registry country."""
    inflows, outflows = _directional_amounts(flows, registry)
    return MappingProxyType({
        code: _fsum(inflows[code]) - _fsum(outflows[code]) for code in registry
    })


def _freeze_totals(by_category: dict[str, list[float]]) -> FlowTotals:
    everything = [amount for amounts in by_category.values() for amount in amounts]
    return FlowTotals(
        total=_fsum(everything),
        per_category=MappingProxyType({
            category: _fsum(by_category[category]) for category in FLOW_CATEGORIES
        }),
    )


def _freeze_partners(partners: dict[str, list[float]]) -> Mapping[str, float]:
    return MappingProxyType({
        code: _fsum(amounts) for code, amounts in sorted(partners.items())
    })


def derive_country_stats(
    flows: Iterable[FlowRecord],
    registry: Mapping[str, Country] = COUNTRY_REGISTRY,
) -> Mapping[str, CountryStats]:
    """Per-country inflow/outflow breakdown and bilateral partner sums."""
    out_cat = {code: defaultdict(list) for code in registry}
    in_cat = {code: defaultdict(list) for code in registry}
    out_partners = {code: defaultdict(list) for code in registry}
    in_partners = {code: defaultdict(list) for code in registry}

    for flow in flows:
        if is_known(flow.source, registry):
            out_cat[flow.source][flow.category].append(flow.amount)
            out_partners[flow.source][flow.destination].append(flow.amount)
        if is_known(flow.destination, registry):
            in_cat[flow.destination][flow.category].append(flow.amount)
            in_partners[flow.destination][flow.source].append(flow.amount)

    return MappingProxyType({
        code: CountryStats(
            outflows=_freeze_totals(out_cat[code]),
            inflows=_freeze_totals(in_cat[code]),
            partners_outgoing=_freeze_partners(out_partners[code]),
            partners_incoming=_freeze_partners(in_partners[code]),
        )
        for code in registry
    })


def derive_north_south(
    flows: Iterable[FlowRecord],
    registry: Mapping[str, Country] = COUNTRY_REGISTRY,
) -> NorthSouthTotals:
    """Aggregate South→North and North→South transfer.

    Same-classification flows count in neither bucket.
    """
    s2n: list[float] = []
    n2s: list[float] = []
    for flow in flows:
        if not _resolvable(flow, registry):
            continue
        source_north = registry[flow.source].is_north
        dest_north = registry[flow.destination].is_north
        if not source_north and dest_north:
            s2n.append(flow.amount)
        elif source_north and not dest_north:
            n2s.append(flow.amount)
    return NorthSouthTotals(south_to_north=_fsum(s2n), north_to_south=_fsum(n2s))


def aggregate(
    flows: Iterable[FlowRecord],
    registry: Mapping[str, Country] = COUNTRY_REGISTRY,
) -> AggregateViews:
    """Compute all four views from scratch."""
    flows = tuple(flows)
    return AggregateViews(
        totals_by_category=derive_totals(flows),
        net_balance=derive_net_balance(flows, registry),
        country_stats=derive_country_stats(flows, registry),
        north_south=derive_north_south(flows, registry),
    )


def rank_partners(
    partners: Mapping[str, float],
    limit: int | None = TOP_PARTNER_LIMIT,
) -> list[tuple[str, float]]:
    """Partners by amount descending, ties broken by code. ``limit=None`` keeps all."""
    ranked = sorted(partners.items(), key=lambda item: (-item[1], item[0]))
    if limit is None:
        return ranked
    return ranked[:limit]
