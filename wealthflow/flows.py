"""
wealthflow.flows — FlowRecord value object.

A FlowRecord is one directed, categorized, valued transfer between two
countries, in billions of current US dollars. Records are immutable and
never merged at generation time; records sharing (source, destination,
category) are summed only by aggregation.

A FlowSet is a plain tuple of FlowRecord. Its order only matters for
display keys.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from wealthflow.constants import FLOW_CATEGORY_SET, ROUND_PRECISION


@dataclass(frozen=True, slots=True)
class FlowRecord:
    source: str
    destination: str
    amount: float
    category: str

    def __post_init__(self) -> None:
        if self.category not in FLOW_CATEGORY_SET:
            raise ValueError(f"Unknown flow category: '{self.category}'")
        if isinstance(self.amount, bool) or not isinstance(self.amount, (int, float)):
            raise ValueError(f"Flow amount must be numeric, got {type(self.amount).__name__}")
        if math.isnan(self.amount) or math.isinf(self.amount):
            raise ValueError("Flow amount must be finite")
        if self.amount <= 0:
            raise ValueError(
                f"Flow amount must be > 0, got {self.amount} "
                f"({self.source}->{self.destination}, {self.category})"
            )

    def involves(self, code: str) -> bool:
        return self.source == code or self.destination == code

    def to_dict(self) -> dict:
        return {
            "source": self.source,
            "destination": self.destination,
            "amount": round(float(self.amount), ROUND_PRECISION),
            "category": self.category,
        }

    def as_tuple(self) -> tuple[str, str, float, str]:
        return (self.source, self.destination, self.amount, self.category)


FlowSet = tuple[FlowRecord, ...]


def flows_from_tuples(rows: Iterable[tuple[str, str, float, str]]) -> FlowSet:
    """Build a FlowSet from ``(source, destination, amount, category)`` rows."""
    return tuple(
        FlowRecord(source=source, destination=destination, amount=float(amount), category=category)
        for source, destination, amount, category in rows
    )


def flows_to_dicts(flows: Iterable[FlowRecord]) -> list[dict]:
    return [flow.to_dict() for flow in flows]
