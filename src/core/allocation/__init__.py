from src.core.allocation.access import AccessControl, StaticRoleAccessControl
from src.core.allocation.adapters import StrategyAdapter
from src.core.allocation.errors import (
    AllocationError,
    DuplicateTargetError,
    InsufficientBufferError,
    InvalidAddressError,
    InvalidParameterError,
    InvalidWeightError,
    PortfolioPausedError,
    ReentrantCallError,
    TargetLimitExceededError,
    TargetNotFoundError,
    UnauthorizedError,
    UnknownStrategyError,
    ValuationUnavailableError,
    WeightExceededError,
)
from src.core.allocation.models import (
    BufferMovementOutcome,
    DrainOutcome,
    EmergencyExitOutcome,
    HarvestOutcome,
    PortfolioEvent,
    PortfolioStats,
    RebalanceGateDecision,
    RebalanceOutcome,
    RebalancePlan,
    TargetRemovalOutcome,
    TargetView,
)
from src.core.allocation.service import TreasuryPortfolio

__all__ = [
    "AccessControl",
    "AllocationError",
    "BufferMovementOutcome",
    "DrainOutcome",
    "DuplicateTargetError",
    "EmergencyExitOutcome",
    "HarvestOutcome",
    "InsufficientBufferError",
    "InvalidAddressError",
    "InvalidParameterError",
    "InvalidWeightError",
    "PortfolioEvent",
    "PortfolioPausedError",
    "PortfolioStats",
    "RebalanceGateDecision",
    "RebalanceOutcome",
    "RebalancePlan",
    "ReentrantCallError",
    "StaticRoleAccessControl",
    "StrategyAdapter",
    "TargetLimitExceededError",
    "TargetNotFoundError",
    "TargetRemovalOutcome",
    "TargetView",
    "TreasuryPortfolio",
    "UnauthorizedError",
    "UnknownStrategyError",
    "ValuationUnavailableError",
    "WeightExceededError",
]
