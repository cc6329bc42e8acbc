# MIT License
# Copyright (c) 2025 Hashborn

from enum import Enum, IntEnum


class CallType(str, Enum):
    # Token
    APPROVE = "APPROVE"
    TRANSFER = "TRANSFER"
    GRANT_ROLE = "GRANT_ROLE"

    # Staking
    STAKE = "STAKE"
    CASH_BACK = "CASH_BACK"
    CLAIM = "CLAIM"
    WITHDRAW = "WITHDRAW"

    # Admin
    UPDATE_REF_WALLET = "UPDATE_REF_WALLET"


class StakeType(IntEnum):
    HALF_YEAR = 1
    ONE_YEAR = 2
    TWO_YEARS = 3


class ProtocolError(Exception):
    pass


class ValidationError(ProtocolError):
    pass


class LedgerError(ValidationError):
    """Base for ledger rejections. `code` is stable and safe to expose to clients."""

    code = "LEDGER_ERROR"
    default_message = "ledger operation rejected"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidStakeType(LedgerError):
    code = "INVALID_STAKE_TYPE"
    default_message = "invalid stake type"


class BelowMinimumStake(LedgerError):
    code = "BELOW_MINIMUM_STAKE"
    default_message = "amount below minimum stake"


class InsufficientAllowance(LedgerError):
    code = "INSUFFICIENT_ALLOWANCE"
    default_message = "insufficient allowance"


class InsufficientBalance(LedgerError):
    code = "INSUFFICIENT_BALANCE"
    default_message = "insufficient balance"


class InvalidStakeId(LedgerError):
    code = "INVALID_STAKE_ID"
    default_message = "invalid stake id"


class AlreadyClaimed(LedgerError):
    code = "ALREADY_CLAIMED"
    default_message = "cashback already claimed"


class AlreadyWithdrawn(LedgerError):
    code = "ALREADY_WITHDRAWN"
    default_message = "stake already withdrawn"


class LockNotExpired(LedgerError):
    code = "LOCK_NOT_EXPIRED"
    default_message = "stake is still locked"


class Unauthorized(LedgerError):
    code = "UNAUTHORIZED"
    default_message = "caller is not authorized"


class InvalidAddress(LedgerError):
    code = "INVALID_ADDRESS"
    default_message = "zero address"


class InvalidAmount(LedgerError):
    code = "INVALID_AMOUNT"
    default_message = "amount must be a non-negative integer"


class MaxSupplyExceeded(LedgerError):
    code = "MAX_SUPPLY_EXCEEDED"
    default_message = "max supply exceeded"


# Call authentication (node level)

class InvalidSignature(ValidationError):
    code = "INVALID_SIGNATURE"


class InvalidNonce(ValidationError):
    code = "INVALID_NONCE"


class UnknownCall(ValidationError):
    code = "UNKNOWN_CALL"


class InvalidArguments(ValidationError):
    code = "INVALID_ARGUMENTS"
