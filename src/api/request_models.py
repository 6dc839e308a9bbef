from pydantic import BaseModel, Field

from src.core.allocation.models import BPS_DENOMINATOR, MAX_REBALANCE_INTERVAL_SECONDS


class AddTargetRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "example": {"target_id": "aave_usdc", "strategy_id": "aave_usdc", "weight_bps": 6000}
        }
    }

    target_id: str = Field(
        description="Allocation slot identifier, unique among active targets.",
        examples=["aave_usdc"],
    )
    strategy_id: str = Field(
        description="Catalog key of the backend strategy that holds the slot's capital.",
        examples=["aave_usdc"],
    )
    weight_bps: int = Field(
        description="Target share of total portfolio value in basis points.",
        examples=[6000],
    )


class UpdateWeightRequest(BaseModel):
    weight_bps: int = Field(
        description="New target share in basis points; capital moves on the next rebalance.",
        examples=[3000],
    )


class RebalanceIntervalRequest(BaseModel):
    seconds: int = Field(
        description=(
            "Minimum seconds between interval-triggered rebalances "
            f"(0 to {MAX_REBALANCE_INTERVAL_SECONDS})."
        ),
        examples=[86400],
    )


class RebalanceThresholdRequest(BaseModel):
    bps: int = Field(
        description=f"Drift threshold in basis points (0 to {BPS_DENOMINATOR}).",
        examples=[500],
    )


class BufferAmountRequest(BaseModel):
    amount: int = Field(
        description="Positive amount in the portfolio base unit.",
        examples=[100000],
    )
