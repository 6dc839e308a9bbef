import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class StrategyAdapter(Protocol):
    """Capability surface every backend strategy exposes to the allocator.

    Amounts are integers in the portfolio base unit. Implementations are
    untrusted: any call may raise, under-fulfil, or try to call back into the
    portfolio that is driving it.
    """

    def allocate(self, amount: int) -> bool: ...

    def withdraw(self, amount: int) -> int: ...

    def valuation(self) -> int: ...

    def harvest_yield(self) -> int: ...


def strategy_name(adapter: StrategyAdapter) -> str:
    return str(getattr(adapter, "name", None) or type(adapter).__name__)


def read_valuation(adapter: StrategyAdapter, *, target_id: str) -> tuple[int, bool]:
    """Returns (value, ok). A failed or malformed read counts as zero for this read only."""
    try:
        value = int(adapter.valuation())
    except Exception as exc:
        logger.warning("Valuation read failed for target %s: %s", target_id, exc)
        return 0, False
    if value < 0:
        logger.warning("Negative valuation %s reported by target %s", value, target_id)
        return 0, False
    return value, True


def call_withdraw(adapter: StrategyAdapter, amount: int, *, target_id: str) -> int:
    try:
        returned = int(adapter.withdraw(amount))
    except Exception as exc:
        logger.warning("Withdraw of %s failed for target %s: %s", amount, target_id, exc)
        return 0
    return max(returned, 0)


def call_allocate(adapter: StrategyAdapter, amount: int, *, target_id: str) -> bool:
    try:
        return bool(adapter.allocate(amount))
    except Exception as exc:
        logger.warning("Allocate of %s failed for target %s: %s", amount, target_id, exc)
        return False


def call_harvest(adapter: StrategyAdapter, *, target_id: str) -> int:
    try:
        realized = int(adapter.harvest_yield())
    except Exception as exc:
        logger.warning("Yield harvest failed for target %s: %s", target_id, exc)
        return 0
    return max(realized, 0)
