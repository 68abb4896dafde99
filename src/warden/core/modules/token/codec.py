"""Signing and verification of access tokens."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING
from uuid import UUID

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from warden.core.modules.token.models import (
    AuthToken,
    TokenExpiredError,
    TokenInvalidError,
    TokenPayload,
)
from warden.utils import now_seconds

if TYPE_CHECKING:
    from warden.config import Config

DAY_SECONDS = 24 * 60 * 60


class TokenCodec:
    """Stateless JWT codec.

    Holds no mutable state, so one instance is shared by every request.
    Expiry is checked here against the payload's own exp claim; the JWT
    library's built-in exp check is switched off so an expired token is
    reported separately from a bad signature.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        admin_lifetime_seconds: int = 7 * DAY_SECONDS,
        user_lifetime_seconds: int = 14 * DAY_SECONDS,
    ) -> None:
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._secret = secret
        self._algorithm = algorithm
        self.admin_lifetime_seconds = admin_lifetime_seconds
        self.user_lifetime_seconds = user_lifetime_seconds

    @classmethod
    def from_config(cls, config: Config) -> TokenCodec:
        return cls(
            secret=config.jwt_secret,
            algorithm=config.jwt_algorithm,
            admin_lifetime_seconds=config.admin_token_lifetime_days * DAY_SECONDS,
            user_lifetime_seconds=config.user_token_lifetime_days * DAY_SECONDS,
        )

    def issue(self, subject_id: UUID, is_admin: bool, issued_at: int | None = None) -> AuthToken:
        """Sign a new token for the subject."""
        iat = now_seconds() if issued_at is None else issued_at
        lifetime = self.admin_lifetime_seconds if is_admin else self.user_lifetime_seconds
        claims = {
            "sub": str(subject_id),
            "is_admin": bool(is_admin),
            "iat": iat,
            "exp": iat + lifetime,
            "jti": secrets.token_urlsafe(16),
        }
        return AuthToken(jwt.encode(claims, self._secret, algorithm=self._algorithm))

    def decode(self, token: str) -> TokenPayload:
        """Check signature and payload shape only. Raises TokenInvalidError."""
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            raise TokenInvalidError(str(e)) from e
        try:
            return TokenPayload.model_validate(claims)
        except PydanticValidationError as e:
            raise TokenInvalidError("Malformed token payload") from e

    def verify(self, token: str, at: int | None = None) -> TokenPayload:
        """Decode and check expiry.

        Raises:
            TokenInvalidError: signature or shape is wrong
            TokenExpiredError: signature is fine but exp <= now
        """
        payload = self.decode(token)
        if payload.is_expired(now_seconds() if at is None else at):
            raise TokenExpiredError(payload)
        return payload
