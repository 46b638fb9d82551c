"""
errors.py — AppError base class, StoreError, and the error code registry.

Every error returned by the SplitSync API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose shown to the user as-is.
  - Command failures propagate to the caller. Subscription failures never do:
    the sync layer logs them and degrades the affected slice to empty.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class StoreError(AppError):
    """
    Raised by a LedgerStore when a read or write cannot be completed
    (connectivity, permission, or an unsupported query such as an oversized
    "in" filter). Writes re-raise it to the caller; subscriptions hand it to
    their error callback instead.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(ErrorCode.STORE_UNAVAILABLE, message, 503)
        self.cause = cause


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# IMPORTANT: these are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    EMPTY_SPLIT                = "EMPTY_SPLIT"
    DUPLICATE_SPLIT_USER       = "DUPLICATE_SPLIT_USER"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_FRIEND           = "DUPLICATE_FRIEND"
    ALREADY_REGISTERED         = "ALREADY_REGISTERED"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    FRIEND_NOT_FOUND           = "FRIEND_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    EXPENSE_NOT_FOUND          = "EXPENSE_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    SELF_FRIEND                = "SELF_FRIEND"
    PAYER_NOT_MEMBER           = "PAYER_NOT_MEMBER"
    SPLIT_USER_NOT_MEMBER      = "SPLIT_USER_NOT_MEMBER"
    RECIPIENT_NOT_MEMBER       = "RECIPIENT_NOT_MEMBER"
    SELF_SETTLEMENT            = "SELF_SETTLEMENT"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed
    TOKEN_MISSING              = "TOKEN_MISSING"          # 401
    TOKEN_INVALID              = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                  = "FORBIDDEN"              # 403

    # ── System Errors ──────────────────────────────────────────────────────
    STORE_UNAVAILABLE          = "STORE_UNAVAILABLE"      # 503
    INTERNAL_ERROR             = "INTERNAL_ERROR"         # 500


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They do not block the request.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Settlement amount exceeds what the payer currently owes the payee.
    # Still recorded; paying ahead is allowed.
    OVERPAYMENT = "OVERPAYMENT"
