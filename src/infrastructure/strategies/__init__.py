from src.infrastructure.strategies.env_json import (
    EnvJsonStrategyCatalog,
    StrategyDefinition,
    parse_strategy_catalog,
)
from src.infrastructure.strategies.in_memory import (
    InMemoryStrategyAdapter,
    LendingStrategyAdapter,
    SyntheticExposureAdapter,
)

__all__ = [
    "EnvJsonStrategyCatalog",
    "InMemoryStrategyAdapter",
    "LendingStrategyAdapter",
    "StrategyDefinition",
    "SyntheticExposureAdapter",
    "parse_strategy_catalog",
]
