"""Shared test configuration."""
from __future__ import annotations

import pytest


@pytest.fixture
def anyio_backend():
    # The simulation uses asyncio primitives directly; run anyio tests on asyncio only.
    return "asyncio"
