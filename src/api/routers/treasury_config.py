import os
from typing import Optional

from src.api.routers.runtime_utils import env_int
from src.core.allocation import StaticRoleAccessControl, TreasuryPortfolio
from src.core.allocation.access import parse_admin_ids
from src.core.allocation.models import BPS_DENOMINATOR, MAX_REBALANCE_INTERVAL_SECONDS
from src.infrastructure.strategies import EnvJsonStrategyCatalog

DEFAULT_REBALANCE_INTERVAL_SECONDS = 86_400
DEFAULT_REBALANCE_THRESHOLD_BPS = 500


def admin_actor_ids() -> list[str]:
    return parse_admin_ids(os.getenv("TREASURY_ADMIN_ACTOR_IDS"))


def rebalance_interval_seconds() -> int:
    value = env_int("TREASURY_REBALANCE_INTERVAL_SECONDS", DEFAULT_REBALANCE_INTERVAL_SECONDS)
    if value > MAX_REBALANCE_INTERVAL_SECONDS:
        return DEFAULT_REBALANCE_INTERVAL_SECONDS
    return value


def rebalance_threshold_bps() -> int:
    value = env_int("TREASURY_REBALANCE_THRESHOLD_BPS", DEFAULT_REBALANCE_THRESHOLD_BPS)
    if value > BPS_DENOMINATOR:
        return DEFAULT_REBALANCE_THRESHOLD_BPS
    return value


def max_targets() -> Optional[int]:
    value = env_int("TREASURY_MAX_TARGETS", 0)
    return value or None


def build_portfolio() -> TreasuryPortfolio:
    return TreasuryPortfolio(
        access_control=StaticRoleAccessControl(admin_ids=admin_actor_ids()),
        rebalance_interval_seconds=rebalance_interval_seconds(),
        rebalance_threshold_bps=rebalance_threshold_bps(),
        max_targets=max_targets(),
    )


def build_strategy_catalog() -> EnvJsonStrategyCatalog:
    return EnvJsonStrategyCatalog(catalog_json=os.getenv("TREASURY_STRATEGY_CATALOG_JSON"))
