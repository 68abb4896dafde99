"""Token payload model."""

from typing import NewType
from uuid import UUID

from pydantic import BaseModel, Field

AuthToken = NewType("AuthToken", str)


class TokenPayload(BaseModel):
    """Claims carried by a signed access token."""

    sub: UUID = Field(..., description="Subject (account) ID")
    is_admin: bool
    iat: int = Field(..., description="Issued at, epoch seconds")
    exp: int = Field(..., description="Expires at, epoch seconds")
    jti: str = Field(..., description="Random token ID; keeps tokens issued in the same second distinct")

    def is_expired(self, at: int) -> bool:
        return self.exp <= at


class TokenVerificationError(Exception):
    """Base class for token verification failures."""


class TokenInvalidError(TokenVerificationError):
    """Signature mismatch, malformed token or malformed payload."""


class TokenExpiredError(TokenVerificationError):
    """Signature is valid but the payload's exp has passed."""

    def __init__(self, payload: TokenPayload) -> None:
        super().__init__("Token expired")
        self.payload = payload
