from typing import Any
from uuid import UUID

import bcrypt
import structlog
from pymongo.asynchronous.database import AsyncDatabase

from warden.core.core import Service
from warden.core.modules.account.models import Account
from warden.core.modules.account.validators import validate_email, validate_password
from warden.errors import AccessDeniedError, NotFoundError, ValidationError
from warden.utils import now

logger = structlog.get_logger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))


class AccountService(Service):
    """Account store.

    Reads always go to the database: the identity pipeline relies on seeing
    bans and deletions on the very next request.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("accounts")

    async def on_start(self) -> None:
        """Create indexes and the bootstrap admin account."""
        await self._collection.create_index([("email", 1)], unique=True)
        await self.ensure_admin_account_exists()

    async def find_by_id(self, account_id: UUID) -> Account | None:
        return Account.from_mongo(await self._collection.find_one({"_id": account_id}))

    async def find_by_email(self, email: str) -> Account | None:
        return Account.from_mongo(await self._collection.find_one({"email": email.strip().lower()}))

    async def get_account(self, account_id: UUID) -> Account:
        account = await self.find_by_id(account_id)
        if account is None:
            raise NotFoundError(f"Account '{account_id}' not found")
        return account

    async def create_account(
        self, email: str, password: str, name: str = "", is_admin: bool = False, is_verified: bool = True
    ) -> Account:
        """Create account with hashed password."""
        email = validate_email(email)
        if await self.find_by_email(email) is not None:
            raise ValidationError(f"Account '{email}' already exists")

        validate_password(password)
        account = Account(
            email=email,
            name=name,
            password_hash=hash_password(password),
            is_admin=is_admin,
            is_verified=is_verified,
        )
        await self._collection.insert_one(account.to_mongo())
        logger.info("account_created", account_id=account.id, is_admin=is_admin)
        return account

    async def authenticate(self, email: str, password: str) -> Account:
        """Check credentials and account standing for a login attempt.

        Raises:
            ValidationError: Unknown email, wrong password, or unverified account
            AccessDeniedError: Account is banned
        """
        account = await self.find_by_email(email)
        if account is None or account.is_deleted or not check_password(password, account.password_hash):
            logger.warning("login_failed", reason="invalid_credentials")
            raise ValidationError("Invalid credentials")
        if not account.is_verified:
            logger.warning("login_failed", reason="not_verified", account_id=account.id)
            raise ValidationError("Account not verified")
        if account.is_blocked:
            logger.warning("login_failed", reason="banned", account_id=account.id)
            raise AccessDeniedError("Your account has been banned. Please contact support for assistance.")
        return account

    async def change_password(self, account_id: UUID, old_password: str, new_password: str) -> None:
        """Change password after verifying the current one."""
        account = await self.get_account(account_id)
        if not check_password(old_password, account.password_hash):
            raise ValidationError("Invalid current password")

        validate_password(new_password)
        await self._collection.update_one({"_id": account_id}, {"$set": {"password_hash": hash_password(new_password)}})

    async def update_last_online(self, account_id: UUID) -> None:
        await self._collection.update_one({"_id": account_id}, {"$set": {"last_online_at": now()}})

    async def set_blocked(self, account_id: UUID, blocked: bool) -> Account:
        account = await self.get_account(account_id)
        if blocked and account.is_admin:
            raise AccessDeniedError("Cannot block admin accounts")
        await self._collection.update_one({"_id": account_id}, {"$set": {"is_blocked": blocked}})
        return await self.get_account(account_id)

    async def set_deleted(self, account_id: UUID, deleted: bool) -> Account:
        """Admin soft delete or undelete. Deleting also lifts a ban; admin accounts are off limits."""
        account = await self.get_account(account_id)
        if account.is_admin:
            raise AccessDeniedError("Cannot delete or undelete admin accounts")
        changes: dict[str, Any] = {"is_deleted": deleted}
        if deleted:
            changes["is_blocked"] = False
        await self._collection.update_one({"_id": account_id}, {"$set": changes})
        return await self.get_account(account_id)

    async def soft_delete(self, account_id: UUID) -> None:
        """Mark deleted; a deleted account is also unblocked."""
        result = await self._collection.update_one(
            {"_id": account_id}, {"$set": {"is_deleted": True, "is_blocked": False}}
        )
        if result.matched_count == 0:
            raise NotFoundError(f"Account '{account_id}' not found")

    async def ensure_admin_account_exists(self) -> None:
        """Create the configured bootstrap admin if missing."""
        config = self.core.config
        if not config.admin_email or not config.admin_password:
            return
        if await self.find_by_email(config.admin_email) is None:
            await self.create_account(config.admin_email, config.admin_password, name="admin", is_admin=True)
