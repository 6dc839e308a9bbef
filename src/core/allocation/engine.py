import logging
from datetime import datetime

from src.core.allocation.adapters import call_allocate, call_harvest, call_withdraw, read_valuation
from src.core.allocation.models import (
    DrainOutcome,
    HarvestOutcome,
    RebalanceOutcome,
    RebalancePlan,
    RebalancePlanEntry,
    TargetMovement,
)
from src.core.allocation.registry import AllocationTarget
from src.core.allocation.state import PortfolioState
from src.core.allocation.valuation import ValuationSnapshot, target_value_for

logger = logging.getLogger(__name__)


def build_rebalance_plan(snapshot: ValuationSnapshot) -> RebalancePlan:
    total_value = snapshot.total_value
    entries = []
    for item in snapshot.targets:
        target_value = target_value_for(total_value, item.target.weight_bps)
        entries.append(
            RebalancePlanEntry(
                target_id=item.target.target_id,
                weight_bps=item.target.weight_bps,
                current_value=item.value,
                target_value=target_value,
                delta=target_value - item.value,
                valuation_ok=item.ok,
            )
        )
    return RebalancePlan(total_value=total_value, buffer=snapshot.buffer, entries=entries)


def _withdraw_status(requested: int, executed: int) -> str:
    if executed >= requested:
        return "FILLED"
    if executed > 0:
        return "PARTIAL"
    return "REJECTED"


class RebalanceEngine:
    """Moves capital between the buffer and backend strategies.

    The buffer on ``PortfolioState`` is updated after every individual
    backend call, so the accounting identity holds at each step even when a
    cycle stops early.
    """

    def rebalance(
        self, *, state: PortfolioState, snapshot: ValuationSnapshot, now: datetime
    ) -> RebalanceOutcome:
        buffer_before = state.buffer
        if snapshot.total_value <= 0:
            return RebalanceOutcome(
                status="NO_ASSETS",
                total_value=0,
                buffer_before=buffer_before,
                buffer_after=state.buffer,
            )

        plan = build_rebalance_plan(snapshot)
        targets = {item.target.target_id: item.target for item in snapshot.targets}
        movements: list[TargetMovement] = []
        warnings: list[str] = []
        excluded = [entry.target_id for entry in plan.entries if not entry.valuation_ok]
        for target_id in excluded:
            warnings.append(f"VALUATION_FAILED:{target_id}")

        for entry in plan.entries:
            if not entry.valuation_ok or entry.delta >= 0:
                continue
            requested = min(-entry.delta, entry.current_value)
            if requested <= 0:
                continue
            executed = call_withdraw(
                targets[entry.target_id].adapter, requested, target_id=entry.target_id
            )
            state.buffer += executed
            status = _withdraw_status(requested, executed)
            if status != "FILLED":
                warnings.append(f"PARTIAL_WITHDRAWAL:{entry.target_id}")
            movements.append(
                TargetMovement(
                    target_id=entry.target_id,
                    action="WITHDRAW",
                    requested=requested,
                    executed=executed,
                    status=status,
                )
            )

        for entry in plan.entries:
            if not entry.valuation_ok or entry.delta <= 0:
                continue
            available = min(entry.delta, state.buffer)
            if available <= 0:
                warnings.append(f"INSUFFICIENT_BUFFER:{entry.target_id}")
                movements.append(
                    TargetMovement(
                        target_id=entry.target_id,
                        action="ALLOCATE",
                        requested=entry.delta,
                        executed=0,
                        status="NO_LIQUIDITY",
                    )
                )
                continue
            accepted = call_allocate(
                targets[entry.target_id].adapter, available, target_id=entry.target_id
            )
            if accepted:
                state.buffer -= available
            else:
                warnings.append(f"ALLOCATION_REJECTED:{entry.target_id}")
            movements.append(
                TargetMovement(
                    target_id=entry.target_id,
                    action="ALLOCATE",
                    requested=available,
                    executed=available if accepted else 0,
                    status="FILLED" if accepted else "REJECTED",
                )
            )

        state.last_rebalance_at = now
        logger.info(
            "Rebalance completed total_value=%s buffer_before=%s buffer_after=%s movements=%s",
            plan.total_value,
            buffer_before,
            state.buffer,
            len(movements),
        )
        return RebalanceOutcome(
            status="REBALANCED",
            total_value=plan.total_value,
            buffer_before=buffer_before,
            buffer_after=state.buffer,
            plan=plan,
            movements=movements,
            excluded_target_ids=excluded,
            warnings=warnings,
            rebalanced_at=now,
        )

    def drain(self, *, state: PortfolioState, target: AllocationTarget) -> DrainOutcome:
        value, ok = read_valuation(target.adapter, target_id=target.target_id)
        if not ok:
            logger.warning("Valuation unavailable while draining target %s", target.target_id)
            return DrainOutcome(
                target_id=target.target_id,
                requested=0,
                drained=0,
                stranded_value=target.stranded_value,
                valuation_ok=False,
            )
        drained = 0
        if value > 0:
            drained = call_withdraw(target.adapter, value, target_id=target.target_id)
            state.buffer += drained
        stranded = max(value - drained, 0)
        if stranded:
            logger.warning(
                "Target %s returned %s of %s while draining", target.target_id, drained, value
            )
        return DrainOutcome(
            target_id=target.target_id,
            requested=value,
            drained=drained,
            stranded_value=stranded,
        )

    def harvest(self, *, state: PortfolioState, targets: list[AllocationTarget]) -> HarvestOutcome:
        harvested: dict[str, int] = {}
        for target in targets:
            realized = call_harvest(target.adapter, target_id=target.target_id)
            state.buffer += realized
            harvested[target.target_id] = realized
        total = sum(harvested.values())
        logger.info("Harvested %s across %s targets", total, len(targets))
        return HarvestOutcome(
            total_harvested=total,
            harvested_by_target=harvested,
            buffer_after=state.buffer,
        )
