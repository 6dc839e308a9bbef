from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

BPS_DENOMINATOR = 10_000
MAX_REBALANCE_INTERVAL_SECONDS = 2**32 - 1

PortfolioEventType = Literal[
    "TARGET_ADDED",
    "TARGET_WEIGHT_UPDATED",
    "TARGET_REMOVED",
    "RETIRED_TARGET_SWEPT",
    "REBALANCE_INTERVAL_UPDATED",
    "REBALANCE_THRESHOLD_UPDATED",
    "REBALANCED",
    "YIELD_HARVESTED",
    "DEPOSITED",
    "REDEEMED",
    "PAUSED",
    "UNPAUSED",
    "EMERGENCY_EXIT",
]
MovementStatus = Literal["FILLED", "PARTIAL", "REJECTED", "NO_LIQUIDITY"]
RebalanceStatus = Literal["REBALANCED", "NOT_DUE", "NO_ASSETS"]


class TargetView(BaseModel):
    target_id: str = Field(description="Stable allocation slot identifier.", examples=["aave_usdc"])
    strategy_name: str = Field(
        description="Display name of the backend strategy behind the slot.",
        examples=["InMemoryStrategyAdapter"],
    )
    weight_bps: int = Field(description="Target share of total value in bps.", examples=[6000])
    active: bool = Field(description="Whether the slot participates in rebalancing.")
    added_at: datetime = Field(description="UTC timestamp when the slot was added.")
    removed_at: Optional[datetime] = Field(
        default=None, description="UTC timestamp when the slot was retired."
    )
    stranded_value: int = Field(
        default=0,
        description="Value the backend failed to return while the slot was being drained.",
        examples=[0],
    )


class RebalancePlanEntry(BaseModel):
    target_id: str = Field(description="Allocation slot identifier.", examples=["aave_usdc"])
    weight_bps: int = Field(description="Configured weight in bps.", examples=[6000])
    current_value: int = Field(description="Backend valuation at plan time.", examples=[55000])
    target_value: int = Field(
        description="total_value * weight_bps / 10000, truncated.", examples=[60000]
    )
    delta: int = Field(
        description="target_value - current_value; negative means over-allocated.",
        examples=[5000],
    )
    valuation_ok: bool = Field(
        default=True,
        description="False when the backend valuation read failed and was counted as zero.",
    )


class RebalancePlan(BaseModel):
    total_value: int = Field(description="Buffer plus all backend valuations.", examples=[100000])
    buffer: int = Field(description="Uninvested buffer at plan time.", examples=[0])
    entries: List[RebalancePlanEntry] = Field(
        default_factory=list, description="Per-target plan rows in registry order."
    )


class TargetMovement(BaseModel):
    target_id: str = Field(description="Allocation slot identifier.", examples=["aave_usdc"])
    action: Literal["WITHDRAW", "ALLOCATE"] = Field(
        description="Direction of capital movement.", examples=["WITHDRAW"]
    )
    requested: int = Field(description="Amount asked from or offered to the backend.")
    executed: int = Field(description="Amount that actually moved.")
    status: MovementStatus = Field(description="Fulfilment outcome.", examples=["FILLED"])


class RebalanceOutcome(BaseModel):
    status: RebalanceStatus = Field(description="Cycle outcome.", examples=["REBALANCED"])
    total_value: int = Field(description="Total value observed at cycle start.")
    buffer_before: int = Field(description="Buffer at cycle start.")
    buffer_after: int = Field(description="Buffer at cycle end.")
    plan: Optional[RebalancePlan] = Field(default=None, description="Plan used by the cycle.")
    movements: List[TargetMovement] = Field(
        default_factory=list, description="Executed withdrawals then allocations."
    )
    excluded_target_ids: List[str] = Field(
        default_factory=list,
        description="Targets skipped because their valuation read failed.",
    )
    warnings: List[str] = Field(default_factory=list, description="Non-fatal cycle warnings.")
    rebalanced_at: Optional[datetime] = Field(
        default=None, description="Timestamp recorded for a completed cycle."
    )


class RebalanceGateDecision(BaseModel):
    needed: bool = Field(description="Whether a rebalance may proceed.", examples=[True])
    reasons: List[str] = Field(
        default_factory=list,
        description="Reason codes that made the rebalance due.",
        examples=[["INTERVAL_ELAPSED", "DRIFT_EXCEEDED:aave_usdc"]],
    )
    total_value: int = Field(description="Total value used for drift computation.")
    max_drift_bps: int = Field(default=0, description="Largest per-target drift in bps.")
    evaluated_at: datetime = Field(description="Evaluation timestamp.")


class TargetStats(BaseModel):
    target_id: str = Field(description="Allocation slot identifier.")
    weight_bps: int = Field(description="Configured weight in bps.")
    current_value: int = Field(description="Backend valuation.")
    current_share_bps: int = Field(description="Current share of total value in bps.")
    drift_bps: int = Field(description="Absolute drift from target value in bps of total.")
    valuation_ok: bool = Field(default=True, description="Valuation read succeeded.")


class PortfolioStats(BaseModel):
    total_value: int = Field(description="Buffer plus all backend valuations.", examples=[100000])
    buffer: int = Field(description="Uninvested buffer.", examples=[0])
    invested_value: int = Field(description="Sum of backend valuations.", examples=[100000])
    buffer_share_bps: int = Field(description="Buffer share of total value in bps.")
    total_weight_bps: int = Field(description="Sum of active weights.", examples=[10000])
    paused: bool = Field(description="Whether the portfolio is paused.")
    last_rebalance_at: Optional[datetime] = Field(
        default=None, description="Timestamp of the last completed rebalance."
    )
    rebalance_interval_seconds: int = Field(description="Configured rebalance interval.")
    rebalance_threshold_bps: int = Field(description="Configured drift threshold.")
    targets: List[TargetStats] = Field(default_factory=list, description="Per-target stats.")


class HarvestOutcome(BaseModel):
    total_harvested: int = Field(description="Yield realized into the buffer.", examples=[120])
    harvested_by_target: Dict[str, int] = Field(
        default_factory=dict, description="Realized yield per target."
    )
    buffer_after: int = Field(description="Buffer after harvesting.")


class DrainOutcome(BaseModel):
    target_id: str = Field(description="Drained allocation slot.")
    requested: int = Field(description="Valuation requested back from the backend.")
    drained: int = Field(description="Amount returned into the buffer.")
    stranded_value: int = Field(description="Valuation left behind in the backend.")
    valuation_ok: bool = Field(
        default=True,
        description="False when the backend valuation could not be read; nothing was drained.",
    )


class TargetRemovalOutcome(BaseModel):
    drain: DrainOutcome = Field(description="Drain performed before retiring the slot.")
    target: TargetView = Field(description="Retired slot.")
    buffer_after: int = Field(description="Buffer after the drain.")


class EmergencyExitOutcome(BaseModel):
    drains: List[DrainOutcome] = Field(default_factory=list, description="Per-target drains.")
    total_drained: int = Field(description="Total returned into the buffer.")
    buffer_after: int = Field(description="Buffer after the exit.")


class BufferMovementOutcome(BaseModel):
    amount: int = Field(description="Amount deposited or redeemed.", examples=[1000])
    buffer_after: int = Field(description="Buffer after the movement.", examples=[1000])


class PortfolioEvent(BaseModel):
    event_id: str = Field(description="Event identifier.", examples=["tev_0123456789ab"])
    event_type: PortfolioEventType = Field(description="Event type.", examples=["REBALANCED"])
    actor_id: Optional[str] = Field(default=None, description="Acting principal, when known.")
    occurred_at: datetime = Field(description="UTC timestamp of the event.")
    target_id: Optional[str] = Field(default=None, description="Related target, if any.")
    details: Dict[str, str] = Field(
        default_factory=dict, description="Deterministic structured details."
    )
