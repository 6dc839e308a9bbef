from datetime import datetime
from typing import Optional

from src.core.allocation.errors import InvalidParameterError
from src.core.allocation.models import (
    BPS_DENOMINATOR,
    MAX_REBALANCE_INTERVAL_SECONDS,
    RebalanceGateDecision,
)
from src.core.allocation.valuation import ValuationSnapshot, drift_bps


def validate_rebalance_interval(seconds: int) -> int:
    if isinstance(seconds, bool) or not isinstance(seconds, int):
        raise InvalidParameterError("INVALID_REBALANCE_INTERVAL")
    if seconds < 0 or seconds > MAX_REBALANCE_INTERVAL_SECONDS:
        raise InvalidParameterError("INVALID_REBALANCE_INTERVAL")
    return seconds


def validate_rebalance_threshold(bps: int) -> int:
    if isinstance(bps, bool) or not isinstance(bps, int):
        raise InvalidParameterError("INVALID_REBALANCE_THRESHOLD")
    if bps < 0 or bps > BPS_DENOMINATOR:
        raise InvalidParameterError("INVALID_REBALANCE_THRESHOLD")
    return bps


def _interval_elapsed(
    *, last_rebalance_at: Optional[datetime], interval_seconds: int, now: datetime
) -> bool:
    if last_rebalance_at is None:
        return True
    return (now - last_rebalance_at).total_seconds() >= interval_seconds


def evaluate_rebalance_gate(
    *,
    snapshot: ValuationSnapshot,
    last_rebalance_at: Optional[datetime],
    interval_seconds: int,
    threshold_bps: int,
    now: datetime,
) -> RebalanceGateDecision:
    total_value = snapshot.total_value
    if total_value <= 0:
        return RebalanceGateDecision(
            needed=False,
            reasons=["NO_ASSETS"],
            total_value=0,
            evaluated_at=now,
        )

    reasons: list[str] = []
    if _interval_elapsed(
        last_rebalance_at=last_rebalance_at, interval_seconds=interval_seconds, now=now
    ):
        reasons.append("INTERVAL_ELAPSED")

    max_drift = 0
    for item in snapshot.targets:
        drift = drift_bps(item.value, item.target.weight_bps, total_value)
        max_drift = max(max_drift, drift)
        if drift > threshold_bps:
            reasons.append(f"DRIFT_EXCEEDED:{item.target.target_id}")

    return RebalanceGateDecision(
        needed=bool(reasons),
        reasons=reasons,
        total_value=total_value,
        max_drift_bps=max_drift,
        evaluated_at=now,
    )
