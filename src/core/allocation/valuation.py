from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from src.core.allocation.adapters import read_valuation
from src.core.allocation.models import BPS_DENOMINATOR, PortfolioStats, TargetStats
from src.core.allocation.registry import AllocationTarget


@dataclass(frozen=True)
class TargetValuation:
    target: AllocationTarget
    value: int
    ok: bool


@dataclass(frozen=True)
class ValuationSnapshot:
    buffer: int
    targets: list[TargetValuation]

    @property
    def invested_value(self) -> int:
        return sum(item.value for item in self.targets)

    @property
    def total_value(self) -> int:
        return self.buffer + self.invested_value


def share_bps(value: int, total_value: int) -> int:
    if total_value <= 0:
        return 0
    return value * BPS_DENOMINATOR // total_value


def target_value_for(total_value: int, weight_bps: int) -> int:
    return total_value * weight_bps // BPS_DENOMINATOR


def drift_bps(current_value: int, weight_bps: int, total_value: int) -> int:
    if total_value <= 0:
        return 0
    target_value = target_value_for(total_value, weight_bps)
    return abs(current_value - target_value) * BPS_DENOMINATOR // total_value


class ValuationAggregator:
    """Reads backend valuations; failed reads are zero for the read only."""

    def snapshot(self, *, buffer: int, targets: Iterable[AllocationTarget]) -> ValuationSnapshot:
        rows = []
        for target in targets:
            value, ok = read_valuation(target.adapter, target_id=target.target_id)
            rows.append(TargetValuation(target=target, value=value, ok=ok))
        return ValuationSnapshot(buffer=buffer, targets=rows)

    def total_value(self, *, buffer: int, targets: Iterable[AllocationTarget]) -> int:
        return self.snapshot(buffer=buffer, targets=targets).total_value

    @staticmethod
    def target_share(target: AllocationTarget) -> int:
        return target.weight_bps

    def portfolio_stats(
        self,
        *,
        buffer: int,
        targets: list[AllocationTarget],
        paused: bool,
        last_rebalance_at: Optional[datetime],
        rebalance_interval_seconds: int,
        rebalance_threshold_bps: int,
    ) -> PortfolioStats:
        snapshot = self.snapshot(buffer=buffer, targets=targets)
        total_value = snapshot.total_value
        return PortfolioStats(
            total_value=total_value,
            buffer=buffer,
            invested_value=snapshot.invested_value,
            buffer_share_bps=share_bps(buffer, total_value),
            total_weight_bps=sum(target.weight_bps for target in targets),
            paused=paused,
            last_rebalance_at=last_rebalance_at,
            rebalance_interval_seconds=rebalance_interval_seconds,
            rebalance_threshold_bps=rebalance_threshold_bps,
            targets=[
                TargetStats(
                    target_id=item.target.target_id,
                    weight_bps=item.target.weight_bps,
                    current_value=item.value,
                    current_share_bps=share_bps(item.value, total_value),
                    drift_bps=drift_bps(item.value, item.target.weight_bps, total_value),
                    valuation_ok=item.ok,
                )
                for item in snapshot.targets
            ],
        )
