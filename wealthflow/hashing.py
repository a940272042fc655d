"""
wealthflow.hashing — Deterministic fingerprints for FlowSets.

All hash inputs are human-readable text, inspectable for debugging.

Design contract:
    - canonical_float() is locale-free fixed-point text.
    - compute_flow_set_hash() is deterministic for identical FlowSets
      and changes when any record, or the record order, changes.
    - compute_views_hash() is order-independent by construction, since
      the views themselves are.
"""

from __future__ import annotations

import hashlib
import json
from typing import Iterable

from wealthflow.aggregation import AggregateViews
from wealthflow.constants import ROUND_PRECISION
from wealthflow.flows import FlowRecord


def canonical_float(value: float) -> str:
    """Fixed-point text with exactly ROUND_PRECISION decimals.

    Examples (ROUND_PRECISION=8):
        canonical_float(45)    → "45.00000000"
        canonical_float(0.75)  → "0.75000000"
    """
    return f"{round(float(value), ROUND_PRECISION):.{ROUND_PRECISION}f}"


def flow_hash_line(index: int, flow: FlowRecord) -> str:
    return (
        f"{index}:{flow.category}:{flow.source}>{flow.destination}"
        f"={canonical_float(flow.amount)}"
    )


def compute_flow_set_hash(flows: Iterable[FlowRecord]) -> str:
    """SHA-256 hex digest over one line per record, newline-terminated."""
    lines = [flow_hash_line(i, flow) for i, flow in enumerate(flows)]
    hash_input = "\n".join(lines) + "\n"
    return hashlib.sha256(hash_input.encode("utf-8")).hexdigest()


def compute_views_hash(views: AggregateViews) -> str:
    """SHA-256 over the canonical JSON of the rounded views."""
    payload = json.dumps(views.to_dict(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
