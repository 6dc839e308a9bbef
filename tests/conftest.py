"""
FILE: tests/conftest.py
Shared fixtures for allocator tests.
"""

from pathlib import Path

import pytest

from src.api.routers.treasury import reset_treasury_service_for_tests
from tests.factories import FakeClock, build_portfolio


def _has_marker(item: pytest.Item, name: str) -> bool:
    return item.get_closest_marker(name) is not None


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        if _has_marker(item, "unit") or _has_marker(item, "integration"):
            continue

        path = Path(str(item.fspath)).as_posix().lower()
        if "/tests/api/" in path or "_integration.py" in path:
            item.add_marker(pytest.mark.integration)
            continue
        item.add_marker(pytest.mark.unit)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def portfolio(clock):
    return build_portfolio(clock=clock)


@pytest.fixture(autouse=True)
def treasury_runtime_test_harness(monkeypatch: pytest.MonkeyPatch):
    """Deterministic env and fresh API singletons for every test."""

    monkeypatch.setenv("TREASURY_ADMIN_ACTOR_IDS", "treasury_admin")
    monkeypatch.delenv("TREASURY_STRATEGY_CATALOG_JSON", raising=False)
    monkeypatch.delenv("TREASURY_ADMIN_APIS_ENABLED", raising=False)
    monkeypatch.delenv("TREASURY_MAX_TARGETS", raising=False)
    monkeypatch.delenv("TREASURY_REBALANCE_INTERVAL_SECONDS", raising=False)
    monkeypatch.delenv("TREASURY_REBALANCE_THRESHOLD_BPS", raising=False)
    reset_treasury_service_for_tests()
    yield
    reset_treasury_service_for_tests()
