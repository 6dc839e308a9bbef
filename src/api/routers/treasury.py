from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Path, Query, status

from src.api.request_models import (
    AddTargetRequest,
    BufferAmountRequest,
    RebalanceIntervalRequest,
    RebalanceThresholdRequest,
    UpdateWeightRequest,
)
from src.api.routers import treasury_config
from src.api.routers.runtime_utils import assert_feature_enabled
from src.api.routers.treasury_http_errors import raise_treasury_http_exception
from src.core.allocation import (
    AllocationError,
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
    TreasuryPortfolio,
)
from src.infrastructure.strategies import EnvJsonStrategyCatalog, StrategyDefinition

router = APIRouter(tags=["Treasury Allocation"])

_PORTFOLIO: Optional[TreasuryPortfolio] = None
_CATALOG: Optional[EnvJsonStrategyCatalog] = None

ActorHeader = Annotated[
    Optional[str],
    Header(
        alias="X-Actor-Id",
        description="Acting principal; administrative operations require an admin actor.",
        examples=["treasury_admin"],
    ),
]
TargetIdPath = Annotated[
    str, Path(description="Allocation slot identifier.", examples=["aave_usdc"])
]


def get_treasury_portfolio() -> TreasuryPortfolio:
    global _PORTFOLIO
    if _PORTFOLIO is None:
        _PORTFOLIO = treasury_config.build_portfolio()
    return _PORTFOLIO


def get_strategy_catalog() -> EnvJsonStrategyCatalog:
    global _CATALOG
    if _CATALOG is None:
        _CATALOG = treasury_config.build_strategy_catalog()
    return _CATALOG


def reset_treasury_service_for_tests() -> None:
    global _PORTFOLIO
    global _CATALOG
    _PORTFOLIO = None
    _CATALOG = None


def _assert_admin_apis_enabled() -> None:
    assert_feature_enabled(
        name="TREASURY_ADMIN_APIS_ENABLED",
        default=True,
        detail="TREASURY_ADMIN_APIS_DISABLED",
    )


PortfolioDep = Annotated[TreasuryPortfolio, Depends(get_treasury_portfolio)]
CatalogDep = Annotated[EnvJsonStrategyCatalog, Depends(get_strategy_catalog)]


@router.get(
    "/treasury/strategies",
    response_model=list[StrategyDefinition],
    status_code=status.HTTP_200_OK,
    summary="List Strategy Catalog",
    description="Lists backend strategies that targets can be attached to.",
)
def list_strategies(catalog: CatalogDep) -> list[StrategyDefinition]:
    return catalog.list_strategies()


@router.get(
    "/treasury/targets",
    response_model=list[TargetView],
    status_code=status.HTTP_200_OK,
    summary="List Active Targets",
    description="Returns active allocation targets in registry order.",
)
def list_targets(portfolio: PortfolioDep) -> list[TargetView]:
    return portfolio.get_targets()


@router.get(
    "/treasury/targets/retired",
    response_model=list[TargetView],
    status_code=status.HTTP_200_OK,
    summary="List Retired Targets",
    description="Returns removed targets kept for audit, including any stranded value.",
)
def list_retired_targets(portfolio: PortfolioDep) -> list[TargetView]:
    return portfolio.retired_targets()


@router.post(
    "/treasury/targets",
    response_model=TargetView,
    status_code=status.HTTP_201_CREATED,
    summary="Add Target",
    description=(
        "Adds an allocation target backed by a catalog strategy. Rejected when the weight "
        "is zero, the id is already active, or the weight sum would exceed 10000 bps."
    ),
)
def add_target(
    payload: AddTargetRequest,
    portfolio: PortfolioDep,
    catalog: CatalogDep,
    actor_id: ActorHeader = None,
) -> TargetView:
    _assert_admin_apis_enabled()
    try:
        adapter = catalog.get_strategy(strategy_id=payload.strategy_id)
        return portfolio.add_target(
            actor_id=actor_id,
            target_id=payload.target_id,
            adapter=adapter,
            weight_bps=payload.weight_bps,
        )
    except AllocationError as exc:
        raise_treasury_http_exception(exc)


@router.put(
    "/treasury/targets/{target_id}/weight",
    response_model=TargetView,
    status_code=status.HTTP_200_OK,
    summary="Update Target Weight",
    description="Changes a target weight; capital moves on the next rebalance.",
)
def update_target_weight(
    target_id: TargetIdPath,
    payload: UpdateWeightRequest,
    portfolio: PortfolioDep,
    actor_id: ActorHeader = None,
) -> TargetView:
    _assert_admin_apis_enabled()
    try:
        return portfolio.update_weight(
            actor_id=actor_id, target_id=target_id, weight_bps=payload.weight_bps
        )
    except AllocationError as exc:
        raise_treasury_http_exception(exc)


@router.delete(
    "/treasury/targets/{target_id}",
    response_model=TargetRemovalOutcome,
    status_code=status.HTTP_200_OK,
    summary="Remove Target",
    description="Drains the target's backend into the buffer, then retires the slot.",
)
def remove_target(
    target_id: TargetIdPath,
    portfolio: PortfolioDep,
    actor_id: ActorHeader = None,
) -> TargetRemovalOutcome:
    _assert_admin_apis_enabled()
    try:
        return portfolio.remove_target(actor_id=actor_id, target_id=target_id)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)


@router.post(
    "/treasury/targets/{target_id}/sweep",
    response_model=DrainOutcome,
    status_code=status.HTTP_200_OK,
    summary="Sweep Retired Target",
    description="Retries draining value a retired target's backend failed to return.",
)
def sweep_retired_target(
    target_id: TargetIdPath,
    portfolio: PortfolioDep,
    actor_id: ActorHeader = None,
) -> DrainOutcome:
    _assert_admin_apis_enabled()
    try:
        return portfolio.sweep_retired_target(actor_id=actor_id, target_id=target_id)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)


@router.put(
    "/treasury/config/rebalance-interval",
    response_model=PortfolioStats,
    status_code=status.HTTP_200_OK,
    summary="Set Rebalance Interval",
)
def set_rebalance_interval(
    payload: RebalanceIntervalRequest,
    portfolio: PortfolioDep,
    actor_id: ActorHeader = None,
) -> PortfolioStats:
    _assert_admin_apis_enabled()
    try:
        portfolio.set_rebalance_interval(actor_id=actor_id, seconds=payload.seconds)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)
    return portfolio.portfolio_stats()


@router.put(
    "/treasury/config/rebalance-threshold",
    response_model=PortfolioStats,
    status_code=status.HTTP_200_OK,
    summary="Set Rebalance Drift Threshold",
)
def set_rebalance_threshold(
    payload: RebalanceThresholdRequest,
    portfolio: PortfolioDep,
    actor_id: ActorHeader = None,
) -> PortfolioStats:
    _assert_admin_apis_enabled()
    try:
        portfolio.set_rebalance_threshold(actor_id=actor_id, bps=payload.bps)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)
    return portfolio.portfolio_stats()


@router.post(
    "/treasury/rebalance",
    response_model=RebalanceOutcome,
    status_code=status.HTTP_200_OK,
    summary="Rebalance Portfolio",
    description=(
        "Runs one withdraw-then-allocate cycle. Outcome status is `REBALANCED`, or "
        "`NOT_DUE` when neither the interval nor the drift threshold is reached, or "
        "`NO_ASSETS` for an empty portfolio. Backend partial failures are reported "
        "as warnings, not errors."
    ),
)
def rebalance(portfolio: PortfolioDep, actor_id: ActorHeader = None) -> RebalanceOutcome:
    _assert_admin_apis_enabled()
    try:
        return portfolio.rebalance(actor_id=actor_id)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)


@router.get(
    "/treasury/rebalance/plan",
    response_model=RebalancePlan,
    status_code=status.HTTP_200_OK,
    summary="Preview Rebalance Plan",
    description="Computes per-target current, target and delta values without moving capital.",
)
def preview_rebalance_plan(portfolio: PortfolioDep) -> RebalancePlan:
    return portfolio.plan_rebalance()


@router.get(
    "/treasury/rebalance/status",
    response_model=RebalanceGateDecision,
    status_code=status.HTTP_200_OK,
    summary="Rebalance Gate Status",
)
def rebalance_status(portfolio: PortfolioDep) -> RebalanceGateDecision:
    return portfolio.evaluate_gate()


@router.post(
    "/treasury/harvest",
    response_model=HarvestOutcome,
    status_code=status.HTTP_200_OK,
    summary="Harvest Yield",
    description="Realizes accrued yield from every active target into the buffer.",
)
def harvest_all(portfolio: PortfolioDep, actor_id: ActorHeader = None) -> HarvestOutcome:
    _assert_admin_apis_enabled()
    try:
        return portfolio.harvest_all(actor_id=actor_id)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)


@router.get(
    "/treasury/stats",
    response_model=PortfolioStats,
    status_code=status.HTTP_200_OK,
    summary="Portfolio Stats",
    description="Total value, buffer and per-target share and drift.",
)
def portfolio_stats(portfolio: PortfolioDep) -> PortfolioStats:
    return portfolio.portfolio_stats()


@router.post(
    "/treasury/deposits",
    response_model=BufferMovementOutcome,
    status_code=status.HTTP_200_OK,
    summary="Deposit Into Buffer",
)
def deposit(
    payload: BufferAmountRequest,
    portfolio: PortfolioDep,
    actor_id: ActorHeader = None,
) -> BufferMovementOutcome:
    try:
        return portfolio.deposit(amount=payload.amount, actor_id=actor_id)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)


@router.post(
    "/treasury/redemptions",
    response_model=BufferMovementOutcome,
    status_code=status.HTTP_200_OK,
    summary="Redeem From Buffer",
)
def redeem(
    payload: BufferAmountRequest,
    portfolio: PortfolioDep,
    actor_id: ActorHeader = None,
) -> BufferMovementOutcome:
    try:
        return portfolio.redeem(amount=payload.amount, actor_id=actor_id)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)


@router.post(
    "/treasury/pause",
    response_model=PortfolioStats,
    status_code=status.HTTP_200_OK,
    summary="Pause Portfolio",
    description="Blocks rebalancing and deposits until unpaused.",
)
def pause(portfolio: PortfolioDep, actor_id: ActorHeader = None) -> PortfolioStats:
    _assert_admin_apis_enabled()
    try:
        portfolio.pause(actor_id=actor_id)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)
    return portfolio.portfolio_stats()


@router.post(
    "/treasury/unpause",
    response_model=PortfolioStats,
    status_code=status.HTTP_200_OK,
    summary="Unpause Portfolio",
)
def unpause(portfolio: PortfolioDep, actor_id: ActorHeader = None) -> PortfolioStats:
    _assert_admin_apis_enabled()
    try:
        portfolio.unpause(actor_id=actor_id)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)
    return portfolio.portfolio_stats()


@router.post(
    "/treasury/emergency-exit",
    response_model=EmergencyExitOutcome,
    status_code=status.HTTP_200_OK,
    summary="Emergency Exit",
    description="Pauses the portfolio and drains every active target into the buffer.",
)
def emergency_exit(portfolio: PortfolioDep, actor_id: ActorHeader = None) -> EmergencyExitOutcome:
    _assert_admin_apis_enabled()
    try:
        return portfolio.emergency_exit(actor_id=actor_id)
    except AllocationError as exc:
        raise_treasury_http_exception(exc)


@router.get(
    "/treasury/events",
    response_model=list[PortfolioEvent],
    status_code=status.HTTP_200_OK,
    summary="List Portfolio Events",
)
def list_events(
    portfolio: PortfolioDep,
    event_type: Annotated[
        Optional[str], Query(description="Event type filter.", examples=["REBALANCED"])
    ] = None,
    limit: Annotated[int, Query(description="Most recent events to return.", ge=1, le=500)] = 100,
) -> list[PortfolioEvent]:
    return portfolio.list_events(event_type=event_type, limit=limit)
