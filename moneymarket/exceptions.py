"""Settlement error taxonomy."""
from __future__ import annotations

from typing import Hashable


class SettlementError(Exception):
    """Base class for settlement failures."""

    code = "SETTLEMENT_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Preconditions: rejected before any external call or mutation
# ---------------------------------------------------------------------------


class PreconditionFailure(SettlementError):
    code = "PRECONDITION_FAILED"


class InsufficientGas(PreconditionFailure):
    code = "INSUFFICIENT_GAS"

    def __init__(self, flow: str, required: int, provided: int) -> None:
        self.required = required
        self.provided = provided
        super().__init__(
            f"Prepaid gas is not enough for {flow} flow: "
            f"required {required} Tgas, provided {provided} Tgas"
        )


class AlreadyLocked(PreconditionFailure):
    code = "ALREADY_LOCKED"

    def __init__(self, account: Hashable, action: str) -> None:
        self.account = account
        self.action = action
        super().__init__(
            f"Account {account} is locked by an in-flight '{action}' settlement"
        )


class OrderNotFound(PreconditionFailure):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class InvalidOrderStatus(PreconditionFailure):
    code = "INVALID_ORDER_STATUS"

    def __init__(self, order_id: int, status: str, required: str = "Pending") -> None:
        self.order_id = order_id
        self.status = status
        super().__init__(
            f"Order {order_id} has status {status}, its status must be {required}"
        )


class Unauthorized(PreconditionFailure):
    code = "UNAUTHORIZED"

    def __init__(self, caller: str) -> None:
        self.caller = caller
        super().__init__(f"Account {caller} does not have access to call this method")


class UnknownTransferAction(PreconditionFailure):
    code = "UNKNOWN_TRANSFER_ACTION"

    def __init__(self, msg: str) -> None:
        self.msg = msg
        super().__init__(f"Unknown action in transfer message: {msg!r}")


class InsufficientShares(PreconditionFailure):
    code = "INSUFFICIENT_SHARES"

    def __init__(self, account: str, requested: int, available: int) -> None:
        self.account = account
        self.requested = requested
        self.available = available
        super().__init__(
            f"Account {account} holds {available} pool shares, requested {requested}"
        )


# ---------------------------------------------------------------------------
# External call failures
# ---------------------------------------------------------------------------


class ExternalCallFailure(SettlementError):
    code = "EXTERNAL_CALL_FAILED"

    def __init__(self, step: str, reason: str) -> None:
        self.step = step
        self.reason = reason
        super().__init__(f"{step} failed: {reason}")


class GatewayError(ExternalCallFailure):
    """Raised by the RPC transport when a contract call cannot be completed."""

    code = "GATEWAY_ERROR"

    def __init__(self, reason: str, step: str = "rpc") -> None:
        super().__init__(step, reason)


class ResultParseError(ExternalCallFailure):
    code = "RESULT_PARSE_ERROR"

    def __init__(self, reason: str, step: str = "parse") -> None:
        super().__init__(step, reason)


# ---------------------------------------------------------------------------
# Business rules
# ---------------------------------------------------------------------------


class BusinessRuleViolation(SettlementError):
    code = "BUSINESS_RULE_VIOLATION"


class RepayShortfall(BusinessRuleViolation):
    code = "REPAY_SHORTFALL"

    def __init__(self, debt: int, repaid: int) -> None:
        self.debt = debt
        self.repaid = repaid
        self.shortfall = debt - repaid
        super().__init__(
            f"repay amount {repaid} is less than actual debt {debt} "
            f"(shortfall {self.shortfall})"
        )


class InsufficientLiquidity(BusinessRuleViolation):
    code = "INSUFFICIENT_LIQUIDITY"

    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Market holds {available} of the underlying, {requested} requested"
        )


class CompensatedFailure(SettlementError):
    """A later step failed and the already-applied steps were reversed."""

    code = "COMPENSATED"

    def __init__(self, step: str, reason: str) -> None:
        self.step = step
        self.reason = reason
        super().__init__(f"{step} failed and was reversed: {reason}")


class LeaseError(SettlementError):
    """Raised when state is mutated without holding the account's live lease."""

    code = "LEASE_ERROR"
