import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from src.core.allocation.access import AccessControl
from src.core.allocation.adapters import StrategyAdapter
from src.core.allocation.engine import RebalanceEngine, build_rebalance_plan
from src.core.allocation.errors import (
    DuplicateTargetError,
    InsufficientBufferError,
    InvalidParameterError,
    PortfolioPausedError,
    UnauthorizedError,
    ValuationUnavailableError,
)
from src.core.allocation.gate import (
    evaluate_rebalance_gate,
    validate_rebalance_interval,
    validate_rebalance_threshold,
)
from src.core.allocation.guard import ConcurrencyGuard
from src.core.allocation.models import (
    BufferMovementOutcome,
    DrainOutcome,
    EmergencyExitOutcome,
    HarvestOutcome,
    PortfolioEvent,
    PortfolioEventType,
    PortfolioStats,
    RebalanceGateDecision,
    RebalanceOutcome,
    RebalancePlan,
    TargetRemovalOutcome,
    TargetView,
)
from src.core.allocation.registry import AllocationRegistry
from src.core.allocation.state import PortfolioState
from src.core.allocation.valuation import ValuationAggregator, ValuationSnapshot

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _validate_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidParameterError("INVALID_AMOUNT")
    return amount


class TreasuryPortfolio:
    """Pool of base-asset capital kept distributed across weighted strategies.

    Every mutating operation runs inside the portfolio's ``ConcurrencyGuard``;
    backend adapters that call back into the portfolio while it is moving
    capital get ``ReentrantCallError``. Read-only operations are not guarded.

    Rebalancing when the gate is not satisfied is a silent no-op reported as
    status ``NOT_DUE``; an empty portfolio reports ``NO_ASSETS``.
    """

    def __init__(
        self,
        *,
        access_control: AccessControl,
        rebalance_interval_seconds: int = 86_400,
        rebalance_threshold_bps: int = 500,
        max_targets: Optional[int] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._access_control = access_control
        self._clock = clock
        self._state = PortfolioState(
            rebalance_interval_seconds=validate_rebalance_interval(rebalance_interval_seconds),
            rebalance_threshold_bps=validate_rebalance_threshold(rebalance_threshold_bps),
        )
        self._registry = AllocationRegistry(max_targets=max_targets)
        self._aggregator = ValuationAggregator()
        self._engine = RebalanceEngine()
        self._guard = ConcurrencyGuard()
        self._events: list[PortfolioEvent] = []

    @property
    def buffer(self) -> int:
        return self._state.buffer

    @property
    def paused(self) -> bool:
        return self._state.paused

    @property
    def last_rebalance_at(self) -> Optional[datetime]:
        return self._state.last_rebalance_at

    @property
    def rebalance_interval_seconds(self) -> int:
        return self._state.rebalance_interval_seconds

    @property
    def rebalance_threshold_bps(self) -> int:
        return self._state.rebalance_threshold_bps

    @property
    def guard(self) -> ConcurrencyGuard:
        return self._guard

    def add_target(
        self,
        *,
        actor_id: Optional[str],
        target_id: str,
        adapter: Optional[StrategyAdapter],
        weight_bps: int,
    ) -> TargetView:
        with self._guard.hold("add_target"):
            self._require_admin(actor_id)
            now = self._clock()
            target = self._registry.add_target(
                target_id=target_id, adapter=adapter, weight_bps=weight_bps, now=now
            )
            self._record(
                "TARGET_ADDED",
                actor_id=actor_id,
                target_id=target_id,
                details={"weight_bps": str(weight_bps)},
            )
            logger.info("Target %s added with weight %s bps", target_id, weight_bps)
            return target.to_view()

    def update_weight(
        self, *, actor_id: Optional[str], target_id: str, weight_bps: int
    ) -> TargetView:
        with self._guard.hold("update_weight"):
            self._require_admin(actor_id)
            previous = self._registry.get_target(target_id).weight_bps
            target = self._registry.update_weight(target_id=target_id, weight_bps=weight_bps)
            self._record(
                "TARGET_WEIGHT_UPDATED",
                actor_id=actor_id,
                target_id=target_id,
                details={"from_weight_bps": str(previous), "to_weight_bps": str(weight_bps)},
            )
            return target.to_view()

    def remove_target(self, *, actor_id: Optional[str], target_id: str) -> TargetRemovalOutcome:
        with self._guard.hold("remove_target"):
            self._require_admin(actor_id)
            target = self._registry.get_target(target_id)
            drain = self._engine.drain(state=self._state, target=target)
            if not drain.valuation_ok:
                raise ValuationUnavailableError("VALUATION_UNAVAILABLE")
            retired = self._registry.retire_target(
                target_id=target_id, stranded_value=drain.stranded_value, now=self._clock()
            )
            self._record(
                "TARGET_REMOVED",
                actor_id=actor_id,
                target_id=target_id,
                details={
                    "drained": str(drain.drained),
                    "stranded_value": str(drain.stranded_value),
                },
            )
            logger.info(
                "Target %s removed; drained %s, stranded %s",
                target_id,
                drain.drained,
                drain.stranded_value,
            )
            return TargetRemovalOutcome(
                drain=drain, target=retired.to_view(), buffer_after=self._state.buffer
            )

    def sweep_retired_target(self, *, actor_id: Optional[str], target_id: str) -> DrainOutcome:
        with self._guard.hold("sweep_retired_target"):
            self._require_admin(actor_id)
            target = self._registry.get_retired_target(target_id)
            if self._registry.is_adapter_active(target.adapter):
                raise DuplicateTargetError("STRATEGY_REASSIGNED")
            drain = self._engine.drain(state=self._state, target=target)
            if not drain.valuation_ok:
                raise ValuationUnavailableError("VALUATION_UNAVAILABLE")
            target.stranded_value = drain.stranded_value
            self._record(
                "RETIRED_TARGET_SWEPT",
                actor_id=actor_id,
                target_id=target_id,
                details={
                    "drained": str(drain.drained),
                    "stranded_value": str(drain.stranded_value),
                },
            )
            return drain

    def set_rebalance_interval(self, *, actor_id: Optional[str], seconds: int) -> None:
        with self._guard.hold("set_rebalance_interval"):
            self._require_admin(actor_id)
            self._state.rebalance_interval_seconds = validate_rebalance_interval(seconds)
            self._record(
                "REBALANCE_INTERVAL_UPDATED",
                actor_id=actor_id,
                details={"seconds": str(seconds)},
            )

    def set_rebalance_threshold(self, *, actor_id: Optional[str], bps: int) -> None:
        with self._guard.hold("set_rebalance_threshold"):
            self._require_admin(actor_id)
            self._state.rebalance_threshold_bps = validate_rebalance_threshold(bps)
            self._record(
                "REBALANCE_THRESHOLD_UPDATED",
                actor_id=actor_id,
                details={"bps": str(bps)},
            )

    def rebalance(self, *, actor_id: Optional[str]) -> RebalanceOutcome:
        with self._guard.hold("rebalance"):
            self._require_admin(actor_id)
            if self._state.paused:
                raise PortfolioPausedError("PORTFOLIO_PAUSED")
            now = self._clock()
            snapshot = self._aggregator.snapshot(
                buffer=self._state.buffer, targets=self._registry.get_targets()
            )
            if snapshot.total_value <= 0:
                return self._engine.rebalance(state=self._state, snapshot=snapshot, now=now)

            decision = self._gate_decision(snapshot=snapshot, now=now)
            if not decision.needed:
                logger.info("Rebalance not due; max drift %s bps", decision.max_drift_bps)
                return RebalanceOutcome(
                    status="NOT_DUE",
                    total_value=snapshot.total_value,
                    buffer_before=self._state.buffer,
                    buffer_after=self._state.buffer,
                )

            outcome = self._engine.rebalance(state=self._state, snapshot=snapshot, now=now)
            self._record(
                "REBALANCED",
                actor_id=actor_id,
                details={
                    "total_value": str(outcome.total_value),
                    "buffer_after": str(outcome.buffer_after),
                    "reasons": ",".join(decision.reasons),
                },
            )
            return outcome

    def harvest_all(self, *, actor_id: Optional[str]) -> HarvestOutcome:
        with self._guard.hold("harvest_all"):
            self._require_admin(actor_id)
            outcome = self._engine.harvest(
                state=self._state, targets=self._registry.get_targets()
            )
            self._record(
                "YIELD_HARVESTED",
                actor_id=actor_id,
                details={"total_harvested": str(outcome.total_harvested)},
            )
            return outcome

    def deposit(self, *, amount: int, actor_id: Optional[str] = None) -> BufferMovementOutcome:
        with self._guard.hold("deposit"):
            _validate_amount(amount)
            if self._state.paused:
                raise PortfolioPausedError("PORTFOLIO_PAUSED")
            self._state.buffer += amount
            self._record("DEPOSITED", actor_id=actor_id, details={"amount": str(amount)})
            return BufferMovementOutcome(amount=amount, buffer_after=self._state.buffer)

    def redeem(self, *, amount: int, actor_id: Optional[str] = None) -> BufferMovementOutcome:
        with self._guard.hold("redeem"):
            _validate_amount(amount)
            if amount > self._state.buffer:
                raise InsufficientBufferError("INSUFFICIENT_BUFFER")
            self._state.buffer -= amount
            self._record("REDEEMED", actor_id=actor_id, details={"amount": str(amount)})
            return BufferMovementOutcome(amount=amount, buffer_after=self._state.buffer)

    def pause(self, *, actor_id: Optional[str]) -> None:
        with self._guard.hold("pause"):
            self._require_admin(actor_id)
            if not self._state.paused:
                self._state.paused = True
                self._record("PAUSED", actor_id=actor_id)
                logger.warning("Portfolio paused by %s", actor_id)

    def unpause(self, *, actor_id: Optional[str]) -> None:
        with self._guard.hold("unpause"):
            self._require_admin(actor_id)
            if self._state.paused:
                self._state.paused = False
                self._record("UNPAUSED", actor_id=actor_id)

    def emergency_exit(self, *, actor_id: Optional[str]) -> EmergencyExitOutcome:
        with self._guard.hold("emergency_exit"):
            self._require_admin(actor_id)
            self._state.paused = True
            drains = [
                self._engine.drain(state=self._state, target=target)
                for target in self._registry.get_targets()
            ]
            total_drained = sum(item.drained for item in drains)
            self._record(
                "EMERGENCY_EXIT",
                actor_id=actor_id,
                details={
                    "total_drained": str(total_drained),
                    "stranded_value": str(sum(item.stranded_value for item in drains)),
                    "valuation_failures": ",".join(
                        item.target_id for item in drains if not item.valuation_ok
                    ),
                },
            )
            logger.warning("Emergency exit drained %s into the buffer", total_drained)
            return EmergencyExitOutcome(
                drains=drains, total_drained=total_drained, buffer_after=self._state.buffer
            )

    def get_targets(self) -> list[TargetView]:
        return [target.to_view() for target in self._registry.get_targets()]

    def retired_targets(self) -> list[TargetView]:
        return [target.to_view() for target in self._registry.retired_targets()]

    def total_weight_bps(self) -> int:
        return self._registry.total_weight_bps()

    def target_share(self, target_id: str) -> int:
        return self._aggregator.target_share(self._registry.get_target(target_id))

    def total_value(self) -> int:
        return self._aggregator.total_value(
            buffer=self._state.buffer, targets=self._registry.get_targets()
        )

    def evaluate_gate(self) -> RebalanceGateDecision:
        snapshot = self._aggregator.snapshot(
            buffer=self._state.buffer, targets=self._registry.get_targets()
        )
        return self._gate_decision(snapshot=snapshot, now=self._clock())

    def is_rebalance_needed(self) -> bool:
        return self.evaluate_gate().needed

    def plan_rebalance(self) -> RebalancePlan:
        snapshot = self._aggregator.snapshot(
            buffer=self._state.buffer, targets=self._registry.get_targets()
        )
        return build_rebalance_plan(snapshot)

    def portfolio_stats(self) -> PortfolioStats:
        return self._aggregator.portfolio_stats(
            buffer=self._state.buffer,
            targets=self._registry.get_targets(),
            paused=self._state.paused,
            last_rebalance_at=self._state.last_rebalance_at,
            rebalance_interval_seconds=self._state.rebalance_interval_seconds,
            rebalance_threshold_bps=self._state.rebalance_threshold_bps,
        )

    def list_events(
        self, *, event_type: Optional[str] = None, limit: Optional[int] = None
    ) -> list[PortfolioEvent]:
        rows = [
            event
            for event in self._events
            if event_type is None or event.event_type == event_type
        ]
        if limit is not None:
            rows = rows[-limit:]
        return [event.model_copy(deep=True) for event in rows]

    def _gate_decision(
        self, *, snapshot: ValuationSnapshot, now: datetime
    ) -> RebalanceGateDecision:
        return evaluate_rebalance_gate(
            snapshot=snapshot,
            last_rebalance_at=self._state.last_rebalance_at,
            interval_seconds=self._state.rebalance_interval_seconds,
            threshold_bps=self._state.rebalance_threshold_bps,
            now=now,
        )

    def _require_admin(self, actor_id: Optional[str]) -> None:
        if not self._access_control.is_admin(actor_id):
            raise UnauthorizedError("UNAUTHORIZED")

    def _record(
        self,
        event_type: PortfolioEventType,
        *,
        actor_id: Optional[str],
        target_id: Optional[str] = None,
        details: Optional[dict[str, str]] = None,
    ) -> None:
        self._events.append(
            PortfolioEvent(
                event_id=f"tev_{uuid.uuid4().hex[:12]}",
                event_type=event_type,
                actor_id=actor_id,
                occurred_at=self._clock(),
                target_id=target_id,
                details=details or {},
            )
        )
