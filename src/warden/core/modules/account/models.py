from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from warden.core.db import MongoModel
from warden.utils import now


class Account(MongoModel):
    """Account domain model with credentials and standing flags."""

    email: str  # lowercased, unique
    name: str = ""
    password_hash: str  # bcrypt hash
    is_verified: bool = False
    is_admin: bool = False
    is_blocked: bool = False  # banned by an admin
    is_deleted: bool = False  # soft deleted by its owner or an admin
    created_at: datetime = Field(default_factory=now)
    last_online_at: datetime | None = None

    @property
    def in_good_standing(self) -> bool:
        return not (self.is_blocked or self.is_deleted)


class AccountView(BaseModel):
    """Account information (API representation)."""

    id: UUID = Field(..., description="Account ID")
    email: str = Field(..., description="Email address")
    name: str = Field(..., description="Display name")
    is_admin: bool = Field(..., description="Whether the account has admin privileges")
    is_verified: bool = Field(..., description="Whether the email address has been verified")
    is_blocked: bool = Field(..., description="Whether the account is banned")
    is_deleted: bool = Field(..., description="Whether the account is soft deleted")

    @classmethod
    def from_domain(cls, account: Account) -> "AccountView":
        """Create view model from domain model."""
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            is_admin=account.is_admin,
            is_verified=account.is_verified,
            is_blocked=account.is_blocked,
            is_deleted=account.is_deleted,
        )


class LoginResult(BaseModel):
    """Successful login: a fresh token bound to a new session."""

    token: str = Field(..., description="Bearer token for subsequent requests")
    session_id: UUID = Field(..., description="ID of the session created for this device")
    account: AccountView
