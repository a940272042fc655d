"""
wealthflow.worldbank — World Bank v2 indicator client.

Fetches the most recent non-empty value of every catalog indicator for
every registry country, one HTTP request per indicator, issued
concurrently. Each request settles independently: a failed indicator is
logged and reported, never raised, and the others proceed. Once all
requests have settled the collected values become one immutable
IndicatorStore snapshot.

No retries. Callers wanting backoff wrap the session.

Source: World Bank Indicators API v2
  https://api.worldbank.org/v2/country/{codes}/indicator/{indicator}

Environment variables:
    WB_API_BASE        — API root (default: https://api.worldbank.org/v2)
    WB_FETCH_TIMEOUT   — per-request timeout in seconds (default: 30)
    WB_FETCH_WORKERS   — thread pool size (default: one per indicator)
"""

from __future__ import annotations

import json
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

import requests

from wealthflow.constants import INDICATOR_CODES
from wealthflow.indicators import IndicatorStore, coerce_indicator_value
from wealthflow.registry import COUNTRY_CODES

logger = logging.getLogger("wealthflow.fetch")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

WB_API_BASE: str = os.getenv("WB_API_BASE", "https://api.worldbank.org/v2").rstrip("/")
TIMEOUT: float = float(os.getenv("WB_FETCH_TIMEOUT", "30"))
MAX_WORKERS: int | None = int(os.getenv("WB_FETCH_WORKERS", "0")) or None

PER_PAGE = 1000

STATUS_SUCCESS = "success"
STATUS_EMPTY = "empty"
STATUS_ERROR = "error"


class IndicatorPayloadError(ValueError):
    """The API answered, but not with the expected ``[meta, rows]`` shape."""


@dataclass(frozen=True)
class FetchReport:
    """Outcome of one settle-all fetch round."""

    statuses: dict[str, str] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    values_loaded: dict[str, int] = field(default_factory=dict)

    @property
    def failed(self) -> list[str]:
        return sorted(k for k, s in self.statuses.items() if s == STATUS_ERROR)

    @property
    def complete(self) -> bool:
        return bool(self.statuses) and all(s == STATUS_SUCCESS for s in self.statuses.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "statuses": dict(sorted(self.statuses.items())),
            "errors": dict(sorted(self.errors.items())),
            "values_loaded": dict(sorted(self.values_loaded.items())),
            "failed": self.failed,
            "complete": self.complete,
        }


def build_indicator_url(indicator_code: str, countries: Iterable[str]) -> str:
    return f"{WB_API_BASE}/country/{';'.join(countries)}/indicator/{indicator_code}"


def parse_indicator_payload(payload: Any, known_codes: Iterable[str]) -> dict[str, float]:
    """Extract ``{iso3: value}`` from a ``[meta, rows]`` response body.

    Rows with a null value, a non-numeric value or a country outside
    ``known_codes`` are ignored. A payload with only the meta element
    (the API's way of saying "no data") yields an empty dict.
    """
    if not isinstance(payload, list) or not payload:
        raise IndicatorPayloadError(f"expected a non-empty JSON array, got {type(payload).__name__}")
    if len(payload) < 2 or payload[1] is None:
        # Error responses come back as [{"message": [...]}]
        meta = payload[0]
        if isinstance(meta, dict) and "message" in meta:
            raise IndicatorPayloadError(f"API error: {meta['message']}")
        return {}
    rows = payload[1]
    if not isinstance(rows, list):
        raise IndicatorPayloadError(f"expected rows array, got {type(rows).__name__}")

    known = frozenset(known_codes)
    values: dict[str, float] = {}
    for row in rows:
        if not isinstance(row, dict):
            continue
        code = row.get("countryiso3code")
        if code not in known:
            continue
        value = coerce_indicator_value(row.get("value"))
        if value is not None:
            values[code] = value
    return values


def fetch_indicator(
    session: Any,
    indicator_code: str,
    countries: Iterable[str] = COUNTRY_CODES,
    timeout: float = TIMEOUT,
) -> dict[str, float]:
    """Fetch one indicator for all countries. Raises on transport or payload errors."""
    countries = tuple(countries)
    url = build_indicator_url(indicator_code, countries)
    params = {"format": "json", "per_page": PER_PAGE, "mrnev": 1}
    logger.debug(json.dumps({"event": "fetch_start", "indicator": indicator_code, "url": url}))
    response = session.get(url, params=params, timeout=timeout)
    response.raise_for_status()
    return parse_indicator_payload(response.json(), countries)


def _settle(
    session: Any,
    key: str,
    indicator_code: str,
    countries: tuple[str, ...],
    timeout: float,
) -> tuple[str, dict[str, float] | None, str | None]:
    """Run one fetch to completion. Returns (key, values, error)."""
    try:
        if session is None:
            with requests.Session() as own_session:
                values = fetch_indicator(own_session, indicator_code, countries, timeout)
        else:
            values = fetch_indicator(session, indicator_code, countries, timeout)
    except (requests.RequestException, ValueError) as exc:
        logger.warning(json.dumps({
            "event": "fetch_failed",
            "indicator": key,
            "code": indicator_code,
            "error_type": type(exc).__name__,
            "error": str(exc),
        }))
        return key, None, f"{type(exc).__name__}: {exc}"
    return key, values, None


def fetch_indicator_store(
    session: Any = None,
    countries: Iterable[str] = COUNTRY_CODES,
    indicators: Mapping[str, str] = INDICATOR_CODES,
    timeout: float = TIMEOUT,
    max_workers: int | None = MAX_WORKERS,
) -> tuple[IndicatorStore, FetchReport]:
    """Fetch every indicator concurrently and wait for all to settle.

    Args:
        session: Object with a ``requests.Session``-compatible ``get``.
                 None → each request opens its own session.
        countries: ISO3 codes to request.
        indicators: {engine_key: World Bank indicator code}.

    Returns:
        (IndicatorStore snapshot, FetchReport). Never raises for
        per-indicator failures; an all-failed round yields an empty store.
    """
    countries = tuple(countries)
    statuses: dict[str, str] = {}
    errors: dict[str, str] = {}
    loaded: dict[str, int] = {}
    collected: dict[tuple[str, str], float] = {}

    if not indicators:
        return IndicatorStore.empty(), FetchReport()

    workers = max_workers or len(indicators)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="wb-fetch") as pool:
        futures = [
            pool.submit(_settle, session, key, code, countries, timeout)
            for key, code in indicators.items()
        ]
        results = [future.result() for future in futures]

    for key, values, error in results:
        if error is not None:
            statuses[key] = STATUS_ERROR
            errors[key] = error
            loaded[key] = 0
            continue
        statuses[key] = STATUS_SUCCESS if values else STATUS_EMPTY
        loaded[key] = len(values)
        for code, value in values.items():
            collected[(code, key)] = value

    report = FetchReport(statuses=statuses, errors=errors, values_loaded=loaded)
    logger.info(json.dumps({
        "event": "fetch_settled",
        "indicators": len(indicators),
        "failed": report.failed,
        "values": len(collected),
    }))
    return IndicatorStore(collected), report
