"""
tests/conftest.py — Shared test configuration.

Tests never touch the network: the API builds its snapshot from an
empty Indicator Store unless a test installs one explicitly.
"""

from __future__ import annotations

import os

os.environ.setdefault("WEALTHFLOW_FETCH", "0")
os.environ.setdefault("ENV", "dev")
