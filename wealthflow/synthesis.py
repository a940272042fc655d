"""
wealthflow.synthesis — Flow synthesizers, one per category.

Pure-computation module. Zero I/O. Zero global state. Zero randomness.
Every synthesizer is total: for any IndicatorStore, including an empty
one, it returns a non-empty tuple of FlowRecord and never raises.

Shared algorithm (per contributor in the registry):
    1. read the policy's indicators; any absent → skip
    2. derive the category value in billions; not finite → skip
    3. below the magnitude floor → skip
    4. contributor in the role-exclusion set → skip
    5. resolve the weighted partner route
    6. emit one record per share, amount = value * weight

If no record is emitted for any contributor, the category's literal
fallback list is returned instead. Real and fallback records are never
mixed.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Mapping

from wealthflow.constants import BILLION, SYNTHESIS_ORDER
from wealthflow.flows import FlowRecord, FlowSet
from wealthflow.indicators import IndicatorStore
from wealthflow.policies import INBOUND, POLICIES, CategoryPolicy, get_policy
from wealthflow.registry import COUNTRY_REGISTRY, Country

logger = logging.getLogger("wealthflow.synthesis")


@dataclass(frozen=True, slots=True)
class SynthesisResult:
    category: str
    flows: FlowSet
    used_fallback: bool


def to_billions(value: float) -> float:
    return value / BILLION


def _contributor_flows(
    policy: CategoryPolicy,
    country: Country,
    value: float,
    registry: Mapping[str, Country],
) -> list[FlowRecord]:
    flows: list[FlowRecord] = []
    for share in policy.route_for(country.code):
        if share.partner not in registry or share.partner == country.code:
            logger.debug(json.dumps({
                "event": "synthesis_share_dropped",
                "category": policy.category,
                "contributor": country.code,
                "partner": share.partner,
            }))
            continue
        amount = value * share.weight
        if not amount > 0:
            continue
        if policy.direction == INBOUND:
            source, destination = share.partner, country.code
        else:
            source, destination = country.code, share.partner
        flows.append(FlowRecord(
            source=source,
            destination=destination,
            amount=amount,
            category=policy.category,
        ))
    return flows


def synthesize_category(
    policy: CategoryPolicy,
    store: IndicatorStore,
    registry: Mapping[str, Country] = COUNTRY_REGISTRY,
) -> SynthesisResult:
    """Run the shared synthesis algorithm for one category policy."""
    flows: list[FlowRecord] = []
    skipped = {"missing": 0, "non_finite": 0, "below_floor": 0, "excluded": 0}

    for country in registry.values():
        values = tuple(store.get(country.code, key) for key in policy.indicators)
        if any(v is None for v in values):
            skipped["missing"] += 1
            continue

        value = to_billions(policy.derive(country, values))
        if not math.isfinite(value):
            skipped["non_finite"] += 1
            continue
        if value < policy.floor:
            skipped["below_floor"] += 1
            continue

        if country.code in policy.excluded:
            skipped["excluded"] += 1
            continue

        flows.extend(_contributor_flows(policy, country, value, registry))

    if not flows:
        logger.info(json.dumps({
            "event": "synthesis_fallback",
            "category": policy.category,
            "fallback_records": len(policy.fallback),
            **skipped,
        }))
        return SynthesisResult(policy.category, policy.fallback, used_fallback=True)

    logger.debug(json.dumps({
        "event": "synthesis_complete",
        "category": policy.category,
        "records": len(flows),
        **skipped,
    }))
    return SynthesisResult(policy.category, tuple(flows), used_fallback=False)


# ---------------------------------------------------------------------------
# Per-category entry points
# ---------------------------------------------------------------------------

def synthesize_profit(store: IndicatorStore) -> FlowSet:
    """FDI outflows repatriated to financial hubs (60/25/15)."""
    return synthesize_category(get_policy("profit"), store).flows


def synthesize_remittance(store: IndicatorStore) -> FlowSet:
    return synthesize_category(get_policy("remittance"), store).flows


def synthesize_debt(store: IndicatorStore) -> FlowSet:
    return synthesize_category(get_policy("debt"), store).flows


def synthesize_aid(store: IndicatorStore) -> FlowSet:
    return synthesize_category(get_policy("aid"), store).flows


def synthesize_resources(store: IndicatorStore) -> FlowSet:
    """Resource rents (GDP * rents% / 100). Needs both indicators."""
    return synthesize_category(get_policy("resources"), store).flows


def synthesize_tax(store: IndicatorStore) -> FlowSet:
    """GDP-tiered estimate of tax-motivated outflows (1%/2%/3%)."""
    return synthesize_category(get_policy("tax"), store).flows


def synthesize_all(
    store: IndicatorStore,
    registry: Mapping[str, Country] = COUNTRY_REGISTRY,
) -> tuple[SynthesisResult, ...]:
    """Run every synthesizer independently, in FlowSet concatenation order."""
    return tuple(
        synthesize_category(POLICIES[category], store, registry)
        for category in SYNTHESIS_ORDER
    )
