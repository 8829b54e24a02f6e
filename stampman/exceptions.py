"""Stampman exceptions."""


class BaseError(Exception):
    """
    Structured exception with a stable code.

    Subclasses declare `_default_messages` keyed by code. Extra keyword
    arguments are kept in `data` for the caller to build precise messages.
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class LedgerError(BaseError):
    """
    Structured exception for ledger operations.

    Every failure is scoped to one command and raised before any mutation.

    Usage:
        try:
            ledger.redeem_reward(card_id, reward_id, store_id="sto_01")
        except LedgerError as e:
            if e.code == "INSUFFICIENT_BALANCE":
                show_balance(e.data["available"])
    """

    _default_messages = {
        # Card commands
        "WRONG_CARD_TYPE": "Operation not supported for this card type",
        "CARD_NOT_ACTIVE": "Card is not active",
        "INVALID_QUANTITY": "Quantity must be greater than zero",
        "INVALID_POINTS_AMOUNT": "Points amount must be greater than zero",
        "INVALID_TRANSACTION_AMOUNT": "Transaction amount cannot be negative",
        "MISSING_STORE": "Store is required",
        "REWARD_PROGRAM_MISMATCH": "Reward belongs to a different program",
        "REWARD_INACTIVE": "Reward is not active",
        "REWARD_NOT_VALID_AT_TIME": "Reward is not valid at this time",
        "INSUFFICIENT_BALANCE": "Insufficient balance for reward redemption",
        "INVALID_STATUS_TRANSITION": "Card status transition not allowed",
        "INVALID_EXPIRATION_DATE": "Expiration date must be in the future",
        # Concurrency
        "VERSION_CONFLICT": "Card was modified concurrently",
        # Lookups / orchestration
        "CARD_NOT_FOUND": "Loyalty card not found",
        "PROGRAM_NOT_FOUND": "Loyalty program not found",
        "REWARD_NOT_FOUND": "Reward not found",
        "ALREADY_ENROLLED": "Customer already enrolled in this program",
        "PROGRAM_INACTIVE": "Program is not accepting this operation",
        "DAILY_STAMP_LIMIT_EXCEEDED": "Daily stamp limit exceeded",
        "CARD_PROGRAM_TYPE_MISMATCH": "Card type differs from program type",
        # Program construction
        "INVALID_TIER": "Invalid tier definition",
        "INVALID_REWARD": "Invalid reward definition",
        # Ledger
        "TRANSACTION_IMMUTABLE": "Transactions cannot be modified or deleted",
    }


class VersionConflict(LedgerError):
    """Card version changed between load and save. Retry from a fresh load."""

    def __init__(self, message: str | None = None, **data):
        super().__init__("VERSION_CONFLICT", message=message, **data)
