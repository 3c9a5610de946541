"""Unified error codes and custom exceptions.

Every internal failure is translated into one of these before it reaches the
HTTP layer; main.py maps them onto the error envelope.

Error code ranges:
  1xxx: Request validation
  3xxx: Market
  4xxx: Transaction
  9xxx: System / state machine / external ledger
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- Taxonomy roots ---

class ValidationError(AppError):
    """Malformed or out-of-range input. Never retried."""

    def __init__(self, message: str, code: int = 1001, http_status: int = 400) -> None:
        super().__init__(code, message, http_status)


class NotFoundError(AppError):
    def __init__(self, message: str, code: int = 1004) -> None:
        super().__init__(code, message, 404)


class ConflictError(AppError):
    def __init__(self, message: str, code: int = 1009) -> None:
        super().__init__(code, message, 409)


class CapacityError(AppError):
    def __init__(self, message: str, code: int = 3004) -> None:
        super().__init__(code, message, 409)


class InvalidTransitionError(AppError):
    def __init__(self, entity: str, current: str, target: str) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(
            9003, f"Invalid {entity} status transition: {current} -> {target}", 409
        )


class TransientLedgerError(AppError):
    """Network/timeout talking to the external ledger. Retryable."""

    def __init__(self, detail: str) -> None:
        super().__init__(9004, f"Ledger temporarily unavailable: {detail}", 503)


# --- 3xxx: Market ---

class MarketNotFoundError(NotFoundError):
    def __init__(self, market_id: str) -> None:
        super().__init__(f"Market not found: {market_id}", 3001)


class DuplicateMarketError(ConflictError):
    def __init__(self, issuer: str, bond_symbol: str) -> None:
        super().__init__(
            f"Market with symbol {bond_symbol} already exists for issuer {issuer}", 3002
        )


class LedgerAccountConflictError(ConflictError):
    def __init__(self, market_id: str) -> None:
        super().__init__(
            f"Market {market_id} is already bound to different ledger accounts", 3003
        )


class SupplyExceededError(CapacityError):
    def __init__(self, market_id: str, quantity: int, available: int) -> None:
        super().__init__(
            f"Market {market_id}: cannot apply {quantity} bonds, {available} available"
        )


class LedgerAccountMissingError(ValidationError):
    def __init__(self, address: str) -> None:
        super().__init__(f"Ledger account does not exist: {address}", 3005, 422)


# --- 4xxx: Transaction ---

class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"Transaction not found: {transaction_id}", 4001)


class SettlementReferenceConflictError(ConflictError):
    def __init__(self, settlement_reference: str) -> None:
        super().__init__(
            f"Settlement reference already recorded with different details: "
            f"{settlement_reference}",
            4002,
        )


# --- 9xxx: System ---

class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
