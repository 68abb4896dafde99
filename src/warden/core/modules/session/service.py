from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from warden.core.core import Service
from warden.core.modules.session.admission import SessionAdmissionPolicy
from warden.core.modules.session.models import DeviceInfo, Session
from warden.core.modules.token.models import AuthToken
from warden.utils import now_ms

logger = structlog.get_logger(__name__)


class SessionService(Service):
    """Session store plus session issuance.

    Every mutation is a single-document or bulk update; no transactions.
    Terminating is idempotent: already terminated sessions are not matched.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("sessions")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("token", 1)], unique=True)
        await self._collection.create_index([("user_id", 1), ("is_terminated", 1), ("last_active", 1)])
        await self._collection.create_index([("is_terminated", 1), ("last_active", 1)])

    @property
    def admission(self) -> SessionAdmissionPolicy:
        return SessionAdmissionPolicy(self, self.core.config.session_max_count)

    async def open_session(self, user_id: UUID, is_admin: bool, device: DeviceInfo, ip: str) -> Session:
        """Apply the admission policy, issue a token and store the new session."""
        await self.admission.admit(user_id)
        token = self.core.token_codec.issue(user_id, is_admin)
        created_at = now_ms()
        session = Session(
            user_id=user_id,
            token=token,
            ip=ip,
            created_at=created_at,
            last_active=created_at,
            expires_at=created_at + self.core.config.session_lifetime_ms,
            **device.model_dump(),
        )
        await self.create(session)
        logger.info("session_created", user_id=user_id, session_id=session.id, device_name=device.device_name)
        return session

    async def create(self, session: Session) -> Session:
        """Insert a session. DuplicateKeyError propagates if the token is already stored."""
        await self._collection.insert_one(session.to_mongo())
        return session

    async def find_by_token(self, token: AuthToken | str) -> Session | None:
        return Session.from_mongo(await self._collection.find_one({"token": token}))

    async def get_session(self, session_id: UUID) -> Session | None:
        return Session.from_mongo(await self._collection.find_one({"_id": session_id}))

    async def count_live(self, user_id: UUID) -> int:
        return await self._collection.count_documents(self._live_filter(user_id))

    async def list_live(self, user_id: UUID) -> list[Session]:
        """Live sessions, most recently active first."""
        cursor = self._collection.find(self._live_filter(user_id)).sort("last_active", -1)
        return await Session.list_cursor(cursor)

    async def find_oldest_live(self, user_id: UUID, limit: int) -> list[Session]:
        if limit <= 0:
            return []
        cursor = self._collection.find(self._live_filter(user_id)).sort("last_active", 1).limit(limit)
        return await Session.list_cursor(cursor)

    async def terminate(self, session_id: UUID) -> bool:
        """Terminate one session. Returns False if it was missing or already terminated."""
        result = await self._collection.update_one(
            {"_id": session_id, "is_terminated": False},
            {"$set": {"is_terminated": True, "last_active": now_ms()}},
        )
        return result.modified_count > 0

    async def terminate_owned(self, user_id: UUID, session_id: UUID) -> bool:
        """Terminate a session only if it belongs to user_id."""
        result = await self._collection.update_one(
            {"_id": session_id, "user_id": user_id, "is_terminated": False},
            {"$set": {"is_terminated": True, "last_active": now_ms()}},
        )
        return result.modified_count > 0

    async def terminate_by_ids(self, session_ids: list[UUID]) -> int:
        if not session_ids:
            return 0
        result = await self._collection.update_many(
            {"_id": {"$in": session_ids}, "is_terminated": False},
            {"$set": {"is_terminated": True, "last_active": now_ms()}},
        )
        return result.modified_count

    async def terminate_all(self, user_id: UUID, except_session_id: UUID | None = None) -> int:
        """Terminate every non-terminated session of a user, optionally keeping one."""
        query: dict[str, Any] = {"user_id": user_id, "is_terminated": False}
        if except_session_id is not None:
            query["_id"] = {"$ne": except_session_id}
        result = await self._collection.update_many(query, {"$set": {"is_terminated": True, "last_active": now_ms()}})
        if result.modified_count:
            logger.info("sessions_terminated", user_id=user_id, count=result.modified_count, kept=except_session_id)
        return result.modified_count

    async def touch(self, session_id: UUID) -> None:
        """Best-effort last_active bump for a live session."""
        await self._collection.update_one(
            {"_id": session_id, "is_terminated": False},
            {"$set": {"last_active": now_ms()}},
        )

    async def delete_terminated_older_than(self, cutoff_ms: int) -> int:
        """Delete terminated sessions whose last activity is before cutoff. Live sessions are never touched."""
        result = await self._collection.delete_many({"is_terminated": True, "last_active": {"$lt": cutoff_ms}})
        return result.deleted_count

    @staticmethod
    def _live_filter(user_id: UUID) -> dict[str, Any]:
        return {"user_id": user_id, "is_terminated": False, "expires_at": {"$gt": now_ms()}}
