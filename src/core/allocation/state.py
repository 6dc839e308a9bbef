from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class PortfolioState:
    buffer: int = 0
    rebalance_interval_seconds: int = 86_400
    rebalance_threshold_bps: int = 500
    last_rebalance_at: Optional[datetime] = None
    paused: bool = False
