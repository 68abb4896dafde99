"""Session management models."""

from uuid import UUID

from pydantic import BaseModel, Field

from warden.core.db import MongoModel
from warden.utils import now_ms

UNKNOWN = "unknown"


class DeviceInfo(BaseModel):
    """Client-reported device metadata captured at login."""

    device_name: str = Field(..., min_length=1, description="Human readable device name")
    user_agent: str = UNKNOWN
    device_os: str = UNKNOWN
    os_version: str = UNKNOWN
    device_resolution: str = UNKNOWN
    device_reg_id: str | None = Field(None, description="Push registration ID")
    app_version_name: str = UNKNOWN
    app_version_code: str = UNKNOWN


class Session(MongoModel):
    """One authenticated device/client instance, bound to the literal token.

    Timestamps are epoch milliseconds.
    Indexed on token - unique, (user_id, is_terminated, last_active), (is_terminated, last_active).
    """

    user_id: UUID
    token: str
    user_agent: str = UNKNOWN
    ip: str = UNKNOWN
    device_os: str = UNKNOWN
    os_version: str = UNKNOWN
    device_name: str = UNKNOWN
    device_resolution: str = UNKNOWN
    device_reg_id: str | None = None
    app_version_name: str = UNKNOWN
    app_version_code: str = UNKNOWN
    created_at: int = Field(default_factory=now_ms)
    last_active: int = Field(default_factory=now_ms)
    is_terminated: bool = False
    expires_at: int

    def is_expired(self, at_ms: int) -> bool:
        return self.expires_at <= at_ms

    def is_live(self, at_ms: int) -> bool:
        return not self.is_terminated and not self.is_expired(at_ms)


class SessionView(BaseModel):
    """Session as shown to its owner (API representation, never includes the token)."""

    id: UUID = Field(..., description="Session ID")
    ip: str
    user_agent: str
    device_os: str
    os_version: str
    device_name: str
    device_resolution: str
    app_version_name: str
    app_version_code: str
    created_at: int = Field(..., description="Epoch milliseconds")
    last_active: int = Field(..., description="Epoch milliseconds")
    expires_at: int = Field(..., description="Epoch milliseconds")
    is_current: bool = False

    @classmethod
    def from_domain(cls, session: Session, current_session_id: UUID | None = None) -> "SessionView":
        return cls(
            id=session.id,
            ip=session.ip,
            user_agent=session.user_agent,
            device_os=session.device_os,
            os_version=session.os_version,
            device_name=session.device_name,
            device_resolution=session.device_resolution,
            app_version_name=session.app_version_name,
            app_version_code=session.app_version_code,
            created_at=session.created_at,
            last_active=session.last_active,
            expires_at=session.expires_at,
            is_current=session.id == current_session_id,
        )
