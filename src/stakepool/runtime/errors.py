from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class ApplyError(Exception):
    """Canonical error type for pool, scheduler and ledger failures.

    Any ApplyError raised inside an atomic entry point reverts every state
    change made by that call.
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class ZeroAmountError(ApplyError):
    """A zero-value deposit or mint was attempted."""


class ZeroSharesError(ApplyError):
    """A distribution was attempted while no claim-shares are outstanding."""


class NotFoundError(ApplyError):
    """Deposit or pool identifier is out of range."""


class TooSoonError(ApplyError):
    """Withdrawal attempted before the deposit's lock expired."""


class TransferDisabledError(ApplyError):
    """Share movement on a non-transferable pool."""


class DuplicatePoolError(ApplyError):
    pass


class CapacityExceededError(ApplyError):
    pass


class PermissionDeniedError(ApplyError):
    pass


class TransferFailure(ApplyError):
    """Token pull/push (or share burn/move) rejected for balance or allowance."""


class InvalidParameterError(ApplyError):
    pass


class ArithmeticOverflowError(ApplyError):
    pass
