"""
wealthflow.pipeline — Indicator Store → FlowSet → AggregateViews.

A FlowSnapshot is the unit the serving layer and the export CLI hand
out. It is built in one go from one IndicatorStore and replaced, never
patched, when the store changes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Mapping

from wealthflow.aggregation import AggregateViews, aggregate
from wealthflow.flows import FlowSet, flows_from_tuples, flows_to_dicts
from wealthflow.hashing import compute_flow_set_hash, compute_views_hash
from wealthflow.indicators import IndicatorStore
from wealthflow.registry import COUNTRY_REGISTRY, Country
from wealthflow.synthesis import synthesize_all
from wealthflow.worldbank import FetchReport, fetch_indicator_store

logger = logging.getLogger("wealthflow.pipeline")

# Last-resort data set drawn on the map when flow generation itself breaks.
EXAMPLE_FLOWS: FlowSet = flows_from_tuples([
    ("BRA", "USA", 45, "profit"),
    ("IND", "USA", 35, "profit"),
    ("CHN", "USA", 70, "profit"),
    ("NGA", "USA", 30, "resources"),
    ("ZAF", "CHN", 35, "resources"),
    ("BRA", "CHN", 50, "resources"),
    ("BRA", "USA", 35, "debt"),
    ("MEX", "USA", 25, "debt"),
    ("IND", "USA", 30, "debt"),
    ("BRA", "CHE", 15, "tax"),
    ("CHN", "GBR", 35, "tax"),
    ("IND", "CHE", 25, "tax"),
    ("USA", "MEX", 35, "remittance"),
    ("USA", "IND", 25, "remittance"),
    ("GBR", "IND", 15, "remittance"),
    ("USA", "COL", 5, "aid"),
    ("USA", "ETH", 3, "aid"),
    ("GBR", "IND", 3, "aid"),
])


@dataclass(frozen=True)
class FlowSnapshot:
    indicators: IndicatorStore
    flows: FlowSet
    views: AggregateViews
    fallback_categories: tuple[str, ...]
    flow_set_hash: str
    views_hash: str
    built_at: str
    fetch_report: FetchReport | None = None
    degraded: bool = False
    """True when EXAMPLE_FLOWS replaced the synthesized FlowSet."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "meta": {
                "built_at": self.built_at,
                "flow_count": len(self.flows),
                "flow_set_hash": self.flow_set_hash,
                "views_hash": self.views_hash,
                "fallback_categories": list(self.fallback_categories),
                "degraded": self.degraded,
                "indicator_coverage": self.indicators.coverage(),
                "fetch": self.fetch_report.to_dict() if self.fetch_report else None,
            },
            "flows": flows_to_dicts(self.flows),
            "views": self.views.to_dict(),
        }


def build_flow_set(
    store: IndicatorStore,
    registry: Mapping[str, Country] = COUNTRY_REGISTRY,
) -> tuple[FlowSet, tuple[str, ...]]:
    """Concatenate all synthesizer outputs. Returns (flows, fallback categories)."""
    results = synthesize_all(store, registry)
    flows: FlowSet = tuple(flow for result in results for flow in result.flows)
    fallbacks = tuple(result.category for result in results if result.used_fallback)
    return flows, fallbacks


def build_snapshot(
    store: IndicatorStore,
    fetch_report: FetchReport | None = None,
    registry: Mapping[str, Country] = COUNTRY_REGISTRY,
) -> FlowSnapshot:
    """Synthesize and aggregate from one immutable store snapshot."""
    degraded = False
    try:
        flows, fallbacks = build_flow_set(store, registry)
    except Exception:
        logger.exception(json.dumps({"event": "flow_generation_failed"}))
        flows, fallbacks, degraded = EXAMPLE_FLOWS, (), True

    views = aggregate(flows, registry)
    snapshot = FlowSnapshot(
        indicators=store,
        flows=flows,
        views=views,
        fallback_categories=fallbacks,
        flow_set_hash=compute_flow_set_hash(flows),
        views_hash=compute_views_hash(views),
        built_at=datetime.now(UTC).isoformat(),
        fetch_report=fetch_report,
        degraded=degraded,
    )
    logger.info(json.dumps({
        "event": "snapshot_built",
        "flows": len(flows),
        "fallback_categories": list(fallbacks),
        "degraded": degraded,
        "flow_set_hash": snapshot.flow_set_hash[:16],
    }))
    return snapshot


def load_snapshot(fetch: bool = True, session: Any = None) -> FlowSnapshot:
    """Fetch indicators (unless ``fetch`` is False) and build a snapshot.

    With ``fetch=False`` the store is empty and every category uses its
    fallback set.
    """
    if not fetch:
        return build_snapshot(IndicatorStore.empty())
    store, report = fetch_indicator_store(session=session)
    return build_snapshot(store, fetch_report=report)
