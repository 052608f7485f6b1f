"""Error taxonomy for economy operations.

Every failure is raised before the record is mutated, so callers may retry
any of these safely. ``code`` is the stable identifier sent over the wire.
"""

from __future__ import annotations


class EconomyError(Exception):
    code = "economy_error"
    default_message = "Economy operation failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ValidationError(EconomyError):
    code = "validation_error"
    default_message = "Invalid request."


class InsufficientFunds(EconomyError):
    code = "insufficient_funds"
    default_message = "Not enough gems."

    def __init__(self, balance: int, cost: int) -> None:
        self.balance = balance
        self.cost = cost
        super().__init__(f"Not enough gems. You have {balance:,} but need {cost:,}.")


class AlreadyFull(EconomyError):
    code = "already_full"
    default_message = "Hearts are already full."


class UnlimitedActive(EconomyError):
    code = "unlimited_active"
    default_message = "Unlimited hearts are active."


class AlreadyActive(EconomyError):
    code = "already_active"
    default_message = "That power-up is already active."


class AlreadyUsed(EconomyError):
    code = "already_used"
    default_message = "That power-up can only be used once."


class NoHeartsRemaining(EconomyError):
    code = "no_hearts_remaining"
    default_message = "No hearts remaining."


class NotFound(EconomyError):
    code = "not_found"
    default_message = "User not found."


class InternalError(EconomyError):
    code = "internal_error"
    default_message = "Internal server error."
