# ==========================================================
#                  EXCEPTIONS
# ==========================================================
# Every failure surfaced to a caller carries a stable code, an HTTP status
# and a human readable message. Storage errors never reach the client as-is.


class LedgerError(Exception):
    """Base ledger exception"""
    code = "ledger_error"
    status = 400
    default_message = "Request could not be processed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {"message": self.message, "code": self.code}


class ValidationError(LedgerError):
    code = "validation_error"
    default_message = "Invalid request"


class InvalidAmount(LedgerError):
    code = "invalid_amount"
    default_message = "Amount must be a positive number"


class InsufficientFunds(LedgerError):
    code = "insufficient_funds"
    default_message = "Insufficient balance"


class NotFound(LedgerError):
    code = "not_found"
    status = 404
    default_message = "Not found"


class InvalidState(LedgerError):
    code = "invalid_state"
    status = 409
    default_message = "Request has already been processed"


class Conflict(LedgerError):
    code = "conflict"
    status = 409
    default_message = "Resource already exists"


class Unauthorized(LedgerError):
    code = "unauthorized"
    status = 401
    default_message = "Authentication required"


class Forbidden(LedgerError):
    code = "forbidden"
    status = 403
    default_message = "Admin access required"


class ReferralCycle(LedgerError):
    code = "referral_cycle"
    status = 409
    default_message = "Referral chain is inconsistent"


class CodeGenerationError(LedgerError):
    code = "code_generation_failed"
    status = 503
    default_message = "Could not allocate a referral code, please retry later"
