from threading import Lock
from typing import Optional

SECONDS_PER_YEAR = 365 * 24 * 60 * 60
PRICE_SCALE = 10**6


class InMemoryStrategyAdapter:
    """Backend holding base-asset value in process memory.

    ``liquidity_limit`` caps a single withdrawal, ``max_allocation`` caps the
    value the backend will hold, and ``accept_allocations`` switches deposits
    off entirely. Accrued yield is part of the valuation until harvested.
    """

    def __init__(
        self,
        *,
        name: Optional[str] = None,
        liquidity_limit: Optional[int] = None,
        max_allocation: Optional[int] = None,
        accept_allocations: bool = True,
    ) -> None:
        self.name = name or type(self).__name__
        self.liquidity_limit = liquidity_limit
        self.max_allocation = max_allocation
        self.accept_allocations = accept_allocations
        self._lock = Lock()
        self._principal = 0
        self._accrued_yield = 0

    def allocate(self, amount: int) -> bool:
        with self._lock:
            if not self.accept_allocations or amount <= 0:
                return False
            if (
                self.max_allocation is not None
                and self._principal + self._accrued_yield + amount > self.max_allocation
            ):
                return False
            self._principal += amount
            return True

    def withdraw(self, amount: int) -> int:
        with self._lock:
            available = self._principal + self._accrued_yield
            if self.liquidity_limit is not None:
                available = min(available, self.liquidity_limit)
            withdrawn = max(min(amount, available), 0)
            from_yield = min(withdrawn, self._accrued_yield)
            self._accrued_yield -= from_yield
            self._principal -= withdrawn - from_yield
            return withdrawn

    def valuation(self) -> int:
        with self._lock:
            return self._principal + self._accrued_yield

    def harvest_yield(self) -> int:
        with self._lock:
            realized = self._accrued_yield
            self._accrued_yield = 0
            return realized

    def accrue_yield(self, amount: int) -> None:
        with self._lock:
            self._accrued_yield += amount

    def mark_to_market(self, change: int) -> None:
        # external price movement; never below zero
        with self._lock:
            self._principal = max(self._principal + change, 0)


class LendingStrategyAdapter(InMemoryStrategyAdapter):
    def __init__(self, *, annual_rate_bps: int = 0, **kwargs) -> None:
        super().__init__(**kwargs)
        self.annual_rate_bps = annual_rate_bps

    def accrue(self, seconds: int) -> int:
        interest = self.valuation() * self.annual_rate_bps * seconds // (10_000 * SECONDS_PER_YEAR)
        if interest > 0:
            self.accrue_yield(interest)
        return interest


class SyntheticExposureAdapter:
    """Holds synthetic units priced by an externally supplied price.

    Prices are base-asset units per whole synthetic unit scaled by
    ``PRICE_SCALE``. Unit balances are whole units, so allocations and
    withdrawals round in favour of the backend.
    """

    def __init__(
        self,
        *,
        price: int,
        name: Optional[str] = None,
        liquidity_limit: Optional[int] = None,
    ) -> None:
        if price <= 0:
            raise ValueError("price must be positive")
        self.name = name or type(self).__name__
        self.liquidity_limit = liquidity_limit
        self._lock = Lock()
        self._price = price
        self._units = 0

    @property
    def units(self) -> int:
        return self._units

    def set_price(self, price: int) -> None:
        if price <= 0:
            raise ValueError("price must be positive")
        with self._lock:
            self._price = price

    def allocate(self, amount: int) -> bool:
        if amount <= 0:
            return False
        with self._lock:
            units = amount * PRICE_SCALE // self._price
            if units <= 0:
                return False
            self._units += units
            return True

    def withdraw(self, amount: int) -> int:
        with self._lock:
            held = self._units * self._price // PRICE_SCALE
            if self.liquidity_limit is not None:
                held = min(held, self.liquidity_limit)
            target = max(min(amount, held), 0)
            units = min(-(-target * PRICE_SCALE // self._price), self._units)
            self._units -= units
            return min(units * self._price // PRICE_SCALE, target)

    def valuation(self) -> int:
        with self._lock:
            return self._units * self._price // PRICE_SCALE

    def harvest_yield(self) -> int:
        return 0
