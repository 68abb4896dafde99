from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from warden.core.core import Service
from warden.core.modules.block.models import (
    BlockKind,
    BlockRule,
    BlockRuleCreate,
    BlockRuleUpdate,
    normalize_email,
    normalize_ip,
    normalize_rule_value,
)
from warden.errors import NotFoundError, ValidationError
from warden.utils import now

logger = structlog.get_logger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class BlockService(Service):
    """Block registry: deny rules by IP, IP prefix, or email."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("block_rules")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        # At most one active rule per (kind, value)
        await self._collection.create_index(
            [("kind", 1), ("value", 1)],
            unique=True,
            partialFilterExpression={"is_active": True},
            name="kind_value_active_unique",
        )
        await self._collection.create_index([("expires_at", 1)], sparse=True)

    async def is_blocked(self, client_ip: str | None, email: str | None) -> bool:
        """Check whether any active, unexpired rule vetoes this client.

        Fails open: a lookup error is logged and treated as not blocked.
        """
        try:
            rule = await self.find_matching_rule(client_ip, email)
        except Exception:
            logger.exception("block_check_failed", client_ip=client_ip)
            return False
        if rule is None:
            return False
        logger.info("access_blocked", kind=rule.kind, value=rule.value, rule_id=rule.id, client_ip=client_ip)
        return True

    async def find_matching_rule(self, client_ip: str | None, email: str | None) -> BlockRule | None:
        """Return the first effective rule matching the client, or None."""
        candidates: list[dict[str, Any]] = [{"kind": BlockKind.IP_RANGE}]
        if client_ip:
            candidates.append({"kind": BlockKind.IP, "value": normalize_ip(client_ip)})
        if email:
            candidates.append({"kind": BlockKind.EMAIL, "value": normalize_email(email)})

        at = now()
        rules = await BlockRule.list_cursor(self._collection.find({"is_active": True, "$or": candidates}))
        for rule in rules:
            # Expiry is evaluated here, not by a cleanup job
            if rule.is_effective(at) and rule.matches(client_ip, email):
                return rule
        return None

    async def list_rules(self) -> list[BlockRule]:
        return await BlockRule.list_cursor(self._collection.find({}).sort("created_at", -1))

    async def get_rule(self, rule_id: UUID) -> BlockRule:
        rule = BlockRule.from_mongo(await self._collection.find_one({"_id": rule_id}))
        if rule is None:
            raise NotFoundError(f"Block rule '{rule_id}' not found")
        return rule

    async def create_rule(self, data: BlockRuleCreate, created_by: UUID | None) -> BlockRule:
        """Create a rule; rejects a duplicate of an already active (kind, value)."""
        value = normalize_rule_value(data.kind, data.value)
        if data.is_active:
            await self._ensure_no_active_duplicate(data.kind, value)

        rule = BlockRule(
            kind=data.kind,
            value=value,
            reason=data.reason,
            is_active=data.is_active,
            expires_at=_as_utc(data.expires_at),
            created_by=created_by,
        )
        try:
            await self._collection.insert_one(rule.to_mongo())
        except DuplicateKeyError:
            raise ValidationError(f"{data.kind} '{value}' is already blocked") from None
        logger.info("block_rule_created", rule_id=rule.id, kind=rule.kind, value=rule.value, created_by=created_by)
        return rule

    async def update_rule(self, rule_id: UUID, data: BlockRuleUpdate) -> BlockRule:
        rule = await self.get_rule(rule_id)
        changes: dict[str, Any] = {}
        if data.reason is not None:
            changes["reason"] = data.reason
        if data.is_active is not None:
            if data.is_active and not rule.is_active:
                await self._ensure_no_active_duplicate(rule.kind, rule.value)
            changes["is_active"] = data.is_active
        if data.clear_expiry:
            changes["expires_at"] = None
        elif data.expires_at is not None:
            changes["expires_at"] = _as_utc(data.expires_at)

        if changes:
            changes["updated_at"] = now()
            try:
                await self._collection.update_one({"_id": rule_id}, {"$set": changes})
            except DuplicateKeyError:
                raise ValidationError(f"{rule.kind} '{rule.value}' is already blocked") from None
        return await self.get_rule(rule_id)

    async def delete_rule(self, rule_id: UUID) -> None:
        result = await self._collection.delete_one({"_id": rule_id})
        if result.deleted_count == 0:
            raise NotFoundError(f"Block rule '{rule_id}' not found")
        logger.info("block_rule_deleted", rule_id=rule_id)

    async def _ensure_no_active_duplicate(self, kind: BlockKind, value: str) -> None:
        """Reject a second active rule for (kind, value); an expired holder of the slot is retired instead."""
        existing = BlockRule.from_mongo(await self._collection.find_one({"kind": kind, "value": value, "is_active": True}))
        if existing is None:
            return
        if existing.is_effective(now()):
            raise ValidationError(f"{kind} '{value}' is already blocked")
        await self._collection.update_one(
            {"_id": existing.id, "is_active": True}, {"$set": {"is_active": False, "updated_at": now()}}
        )
        logger.info("block_rule_expired_retired", rule_id=existing.id, kind=kind, value=value)
