"""
wealthflow.selection — Visible-flow projection for the map.

Given a selected country and an optional category, returns the subset of
the FlowSet to draw. No side effects.
"""

from __future__ import annotations

from typing import Iterable

from wealthflow.constants import ALL_CATEGORIES, FLOW_CATEGORY_SET
from wealthflow.flows import FlowRecord, FlowSet


def normalize_category(category: str | None) -> str:
    """Lower-case and validate a category filter. None → "all"."""
    if category is None:
        return ALL_CATEGORIES
    value = category.strip().lower()
    if value != ALL_CATEGORIES and value not in FLOW_CATEGORY_SET:
        raise ValueError(f"Unknown flow category: '{category}'")
    return value


def filter_category(flows: Iterable[FlowRecord], category: str | None = ALL_CATEGORIES) -> FlowSet:
    category = normalize_category(category)
    if category == ALL_CATEGORIES:
        return tuple(flows)
    return tuple(flow for flow in flows if flow.category == category)


def visible_flows(
    flows: Iterable[FlowRecord],
    selected_country: str | None,
    category: str | None = ALL_CATEGORIES,
) -> FlowSet:
    """Flows touching the selected country, optionally for one category.

    No selection means nothing is drawn.
    """
    category = normalize_category(category)
    if not selected_country:
        return ()
    related = (flow for flow in flows if flow.involves(selected_country))
    return filter_category(related, category)
