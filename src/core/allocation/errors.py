class AllocationError(Exception):
    pass


class InvalidAddressError(AllocationError):
    pass


class InvalidWeightError(AllocationError):
    pass


class InvalidParameterError(AllocationError):
    pass


class DuplicateTargetError(AllocationError):
    pass


class TargetNotFoundError(AllocationError):
    pass


class WeightExceededError(AllocationError):
    pass


class TargetLimitExceededError(AllocationError):
    pass


class UnauthorizedError(AllocationError):
    pass


class ReentrantCallError(AllocationError):
    pass


class PortfolioPausedError(AllocationError):
    pass


class InsufficientBufferError(AllocationError):
    pass


class UnknownStrategyError(AllocationError):
    pass


class ValuationUnavailableError(AllocationError):
    pass
