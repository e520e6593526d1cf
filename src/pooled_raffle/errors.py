from __future__ import annotations


class RaffleError(RuntimeError):
    """Base class. `reason` is stable so off-chain tooling can match on it."""

    reason = "RaffleError"
    retryable = False

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.reason)


# Precondition violations: the call was made at the wrong time or with bad input.
class PreconditionFailed(RaffleError):
    reason = "PreconditionFailed"


class InvalidState(PreconditionFailed):
    reason = "InvalidState"


BadState = InvalidState


class UnknownGame(PreconditionFailed):
    reason = "UnknownGame"


class WindowNotElapsed(PreconditionFailed):
    reason = "WindowNotElapsed"


class WindowClosed(PreconditionFailed):
    reason = "WindowClosed"


class EmptyPool(PreconditionFailed):
    reason = "EmptyPool"


class ParticipantCapReached(PreconditionFailed):
    reason = "ParticipantCapReached"


class TokenNotAllowed(PreconditionFailed):
    reason = "TokenNotAllowed"


class DepositTooSmall(PreconditionFailed):
    reason = "DepositTooSmall"


class RandomNotReady(PreconditionFailed):
    reason = "RandomNotReady"


class AlreadySettled(PreconditionFailed):
    reason = "AlreadySettled"


class NothingToClaim(PreconditionFailed):
    reason = "NothingToClaim"


class FeeTooHigh(PreconditionFailed):
    reason = "FeeTooHigh"


class UnknownRequest(PreconditionFailed):
    reason = "UnknownRequest"


class ReentrantCall(PreconditionFailed):
    reason = "ReentrantCall"


# Authentication violations.
class Unauthorized(RaffleError):
    reason = "Unauthorized"


class NotOwner(Unauthorized):
    reason = "NotOwner"


class UnauthorizedCallback(Unauthorized):
    reason = "UnauthorizedCallback"


# External dependency failures: safe to retry once the outside world recovers.
class ExternalDependencyFailed(RaffleError):
    reason = "ExternalDependencyFailed"
    retryable = True


class StalePrice(ExternalDependencyFailed):
    reason = "StalePrice"


class SlippageExceeded(ExternalDependencyFailed):
    reason = "SlippageExceeded"


# Internal consistency failures: a ledger invariant is broken. Never retry.
class InvariantViolation(RaffleError):
    reason = "InvariantViolation"


class RangeInvariantViolation(InvariantViolation):
    reason = "RangeInvariantViolation"
