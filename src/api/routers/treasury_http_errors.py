from typing import NoReturn

from fastapi import HTTPException, status

from src.api.http_status import HTTP_422_UNPROCESSABLE
from src.core.allocation import (
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


def raise_treasury_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, TargetNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, UnauthorizedError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    if isinstance(
        exc,
        (
            DuplicateTargetError,
            WeightExceededError,
            TargetLimitExceededError,
            ReentrantCallError,
            PortfolioPausedError,
            InsufficientBufferError,
            ValuationUnavailableError,
        ),
    ):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(
        exc,
        (InvalidAddressError, InvalidWeightError, InvalidParameterError, UnknownStrategyError),
    ):
        raise HTTPException(status_code=HTTP_422_UNPROCESSABLE, detail=str(exc)) from exc
    raise exc
