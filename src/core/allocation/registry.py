from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from src.core.allocation.adapters import StrategyAdapter, strategy_name
from src.core.allocation.errors import (
    DuplicateTargetError,
    InvalidAddressError,
    InvalidParameterError,
    InvalidWeightError,
    TargetLimitExceededError,
    TargetNotFoundError,
    WeightExceededError,
)
from src.core.allocation.models import BPS_DENOMINATOR, TargetView


@dataclass
class AllocationTarget:
    target_id: str
    adapter: StrategyAdapter
    weight_bps: int
    added_at: datetime
    active: bool = True
    removed_at: Optional[datetime] = None
    stranded_value: int = 0

    def to_view(self) -> TargetView:
        return TargetView(
            target_id=self.target_id,
            strategy_name=strategy_name(self.adapter),
            weight_bps=self.weight_bps,
            active=self.active,
            added_at=self.added_at,
            removed_at=self.removed_at,
            stranded_value=self.stranded_value,
        )


def _validate_weight(weight_bps: int) -> None:
    if isinstance(weight_bps, bool) or not isinstance(weight_bps, int):
        raise InvalidWeightError("INVALID_WEIGHT")
    if weight_bps <= 0 or weight_bps > BPS_DENOMINATOR:
        raise InvalidWeightError("INVALID_WEIGHT")


class AllocationRegistry:
    """Ordered set of active allocation targets and their weights.

    Every mutation is validated in full before anything is written, so a
    rejected call leaves the registry exactly as it was. Retired targets are
    kept for audit and never count towards the weight sum. A backend adapter
    backs at most one active target. ``max_targets`` is ``None`` for no limit.
    """

    def __init__(self, *, max_targets: Optional[int] = None) -> None:
        if max_targets is not None and (
            isinstance(max_targets, bool) or not isinstance(max_targets, int) or max_targets <= 0
        ):
            raise InvalidParameterError("INVALID_MAX_TARGETS")
        self._max_targets = max_targets
        self._active: dict[str, AllocationTarget] = {}
        self._retired: list[AllocationTarget] = []

    def add_target(
        self,
        *,
        target_id: str,
        adapter: Optional[StrategyAdapter],
        weight_bps: int,
        now: datetime,
    ) -> AllocationTarget:
        if adapter is None or not target_id or not target_id.strip():
            raise InvalidAddressError("INVALID_ADDRESS")
        _validate_weight(weight_bps)
        if target_id in self._active:
            raise DuplicateTargetError("DUPLICATE_TARGET")
        if self.is_adapter_active(adapter):
            raise DuplicateTargetError("DUPLICATE_STRATEGY")
        if self.total_weight_bps() + weight_bps > BPS_DENOMINATOR:
            raise WeightExceededError("WEIGHT_EXCEEDED")
        if self._max_targets is not None and len(self._active) >= self._max_targets:
            raise TargetLimitExceededError("TARGET_LIMIT_EXCEEDED")

        target = AllocationTarget(
            target_id=target_id,
            adapter=adapter,
            weight_bps=weight_bps,
            added_at=now,
        )
        self._active[target_id] = target
        return target

    def update_weight(self, *, target_id: str, weight_bps: int) -> AllocationTarget:
        target = self.get_target(target_id)
        _validate_weight(weight_bps)
        if self.total_weight_bps() - target.weight_bps + weight_bps > BPS_DENOMINATOR:
            raise WeightExceededError("WEIGHT_EXCEEDED")
        target.weight_bps = weight_bps
        return target

    def retire_target(
        self, *, target_id: str, stranded_value: int, now: datetime
    ) -> AllocationTarget:
        target = self.get_target(target_id)
        del self._active[target_id]
        target.active = False
        target.removed_at = now
        target.stranded_value = stranded_value
        self._retired.append(target)
        return target

    def get_target(self, target_id: str) -> AllocationTarget:
        target = self._active.get(target_id)
        if target is None:
            raise TargetNotFoundError("TARGET_NOT_FOUND")
        return target

    def get_retired_target(self, target_id: str) -> AllocationTarget:
        # latest retirement wins when an id was re-added and retired again
        for target in reversed(self._retired):
            if target.target_id == target_id:
                return target
        raise TargetNotFoundError("TARGET_NOT_FOUND")

    def is_adapter_active(self, adapter: StrategyAdapter) -> bool:
        # identity, not equality
        return any(target.adapter is adapter for target in self._active.values())

    def get_targets(self) -> list[AllocationTarget]:
        return list(self._active.values())

    def retired_targets(self) -> list[AllocationTarget]:
        return list(self._retired)

    def total_weight_bps(self) -> int:
        return sum(target.weight_bps for target in self._active.values())

    def __len__(self) -> int:
        return len(self._active)
