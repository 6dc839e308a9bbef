import json
from typing import Literal, Optional

from pydantic import BaseModel, Field

from src.core.allocation.adapters import StrategyAdapter
from src.core.allocation.errors import UnknownStrategyError
from src.infrastructure.strategies.in_memory import (
    InMemoryStrategyAdapter,
    LendingStrategyAdapter,
    SyntheticExposureAdapter,
)


class StrategyDefinition(BaseModel):
    strategy_id: str = Field(description="Catalog key of the backend.", examples=["aave_usdc"])
    kind: Literal["BASIC", "LENDING", "SYNTHETIC"] = Field(
        default="BASIC", description="Backend implementation kind.", examples=["LENDING"]
    )
    annual_rate_bps: int = Field(
        default=0, ge=0, description="Lending rate for LENDING backends.", examples=[400]
    )
    price: Optional[int] = Field(
        default=None, gt=0, description="Initial unit price for SYNTHETIC backends."
    )
    liquidity_limit: Optional[int] = Field(
        default=None, ge=0, description="Maximum single withdrawal the backend honours."
    )
    max_allocation: Optional[int] = Field(
        default=None, ge=0, description="Maximum value the backend accepts in total."
    )


def parse_strategy_catalog(catalog_json: Optional[str]) -> dict[str, StrategyDefinition]:
    normalized_json = (catalog_json or "").strip()
    if not normalized_json:
        return {}
    try:
        raw = json.loads(normalized_json)
    except json.JSONDecodeError:
        return {}
    if not isinstance(raw, dict):
        return {}

    catalog: dict[str, StrategyDefinition] = {}
    for strategy_id, definition in raw.items():
        if not isinstance(strategy_id, str) or not isinstance(definition, dict):
            continue
        normalized_id = strategy_id.strip()
        if not normalized_id:
            continue
        try:
            parsed = StrategyDefinition.model_validate({**definition, "strategy_id": normalized_id})
        except ValueError:
            continue
        if parsed.kind == "SYNTHETIC" and parsed.price is None:
            continue
        catalog[normalized_id] = parsed
    return catalog


def build_strategy_adapter(definition: StrategyDefinition) -> StrategyAdapter:
    if definition.kind == "LENDING":
        return LendingStrategyAdapter(
            name=definition.strategy_id,
            annual_rate_bps=definition.annual_rate_bps,
            liquidity_limit=definition.liquidity_limit,
            max_allocation=definition.max_allocation,
        )
    if definition.kind == "SYNTHETIC":
        return SyntheticExposureAdapter(
            name=definition.strategy_id,
            price=definition.price,
            liquidity_limit=definition.liquidity_limit,
        )
    return InMemoryStrategyAdapter(
        name=definition.strategy_id,
        liquidity_limit=definition.liquidity_limit,
        max_allocation=definition.max_allocation,
    )


class EnvJsonStrategyCatalog:
    """Backends declared in JSON, instantiated once and shared by id."""

    def __init__(self, *, catalog_json: Optional[str]) -> None:
        self._definitions = parse_strategy_catalog(catalog_json)
        self._adapters: dict[str, StrategyAdapter] = {}

    def list_strategies(self) -> list[StrategyDefinition]:
        return sorted(self._definitions.values(), key=lambda item: item.strategy_id)

    def get_strategy(self, *, strategy_id: str) -> StrategyAdapter:
        definition = self._definitions.get(strategy_id)
        if definition is None:
            raise UnknownStrategyError("UNKNOWN_STRATEGY")
        adapter = self._adapters.get(strategy_id)
        if adapter is None:
            adapter = build_strategy_adapter(definition)
            self._adapters[strategy_id] = adapter
        return adapter
