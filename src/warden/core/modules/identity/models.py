"""Request identity models."""

from dataclasses import dataclass
from enum import StrEnum
from uuid import UUID

from warden.core.modules.account.models import Account
from warden.core.modules.session.models import Session
from warden.errors import AuthRejectedError


class AuthMode(StrEnum):
    """Pipeline variants; they differ only in how far the pipeline runs.

    - OPTIONAL: block check only, anonymous callers pass
    - USER: full pipeline, any role
    - ADMIN: full pipeline plus admin flag on both token and account
    """

    OPTIONAL = "optional"
    USER = "user"
    ADMIN = "admin"


class Rejection(StrEnum):
    """Stable codes for every way the pipeline can reject a request."""

    ACCESS_DENIED = "access_denied"
    AUTHENTICATION_REQUIRED = "authentication_required"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_TERMINATED = "session_terminated"
    SESSION_EXPIRED = "session_expired"
    ACCOUNT_NOT_FOUND = "account_not_found"
    ACCOUNT_NOT_VERIFIED = "account_not_verified"
    ACCOUNT_ERROR = "account_error"
    NOT_ADMIN = "not_admin"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def message(self) -> str:
        return _MESSAGES[self]

    def error(self) -> AuthRejectedError:
        return AuthRejectedError(code=self.value, message=self.message, status_code=self.status_code)


# 401 means "authenticate again"; 403 means re-authenticating with the same credentials will not help
_STATUS_CODES = {
    Rejection.ACCESS_DENIED: 403,
    Rejection.AUTHENTICATION_REQUIRED: 401,
    Rejection.INVALID_TOKEN: 403,
    Rejection.TOKEN_EXPIRED: 401,
    Rejection.SESSION_NOT_FOUND: 401,
    Rejection.SESSION_TERMINATED: 403,
    Rejection.SESSION_EXPIRED: 401,
    Rejection.ACCOUNT_NOT_FOUND: 403,
    Rejection.ACCOUNT_NOT_VERIFIED: 403,
    Rejection.ACCOUNT_ERROR: 403,
    Rejection.NOT_ADMIN: 403,
}

_MESSAGES = {
    Rejection.ACCESS_DENIED: "Access denied",
    Rejection.AUTHENTICATION_REQUIRED: "Authentication required",
    Rejection.INVALID_TOKEN: "Invalid token",
    Rejection.TOKEN_EXPIRED: "Token expired",
    Rejection.SESSION_NOT_FOUND: "Session not found",
    Rejection.SESSION_TERMINATED: "Session terminated",
    Rejection.SESSION_EXPIRED: "Session expired",
    Rejection.ACCOUNT_NOT_FOUND: "Account not found",
    Rejection.ACCOUNT_NOT_VERIFIED: "Account not verified",
    Rejection.ACCOUNT_ERROR: "Account error",
    Rejection.NOT_ADMIN: "Not authorized as admin",
}


@dataclass(frozen=True)
class RequestInfo:
    """What the pipeline needs to know about an inbound request."""

    client_ip: str
    email: str | None = None
    token: str | None = None


@dataclass(frozen=True)
class Principal:
    subject_id: UUID
    is_admin: bool


@dataclass(frozen=True)
class AuthContext:
    """Result of a successful resolution, passed explicitly to handlers."""

    principal: Principal
    session: Session
    account: Account
    client_ip: str
