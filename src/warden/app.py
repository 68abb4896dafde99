from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from uuid import UUID

import structlog

from warden.config import Config
from warden.core.core import Core
from warden.core.modules.account.models import AccountView, LoginResult
from warden.core.modules.block.models import BlockRule, BlockRuleCreate, BlockRuleUpdate
from warden.core.modules.identity.client_ip import TrustedNetworks
from warden.core.modules.identity.models import AuthContext, AuthMode, RequestInfo
from warden.core.modules.session.models import DeviceInfo, SessionView
from warden.errors import AccessDeniedError, NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


class App:
    """Facade for all application operations, validates permissions before delegating to Core."""

    def __init__(self, config: Config, core: Core | None = None) -> None:
        self._core = core if core is not None else Core(config)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    @property
    def config(self) -> Config:
        return self._core.config

    @property
    def trusted_proxies(self) -> TrustedNetworks:
        return self._core.services.identity.trusted_proxies

    async def resolve_identity(self, request: RequestInfo, mode: AuthMode) -> AuthContext | None:
        """Run the identity pipeline for one request."""
        return await self._core.services.identity.resolve(request, mode)

    # === Authentication ===
    async def login(self, email: str, password: str, device: DeviceInfo, client_ip: str) -> LoginResult:
        """Authenticate and open a new session, evicting the oldest ones over the cap."""
        account = await self._core.services.account.authenticate(email, password)
        session = await self._core.services.session.open_session(account.id, account.is_admin, device, client_ip)
        logger.info("login_succeeded", account_id=account.id, session_id=session.id, ip=client_ip)
        return LoginResult(token=session.token, session_id=session.id, account=AccountView.from_domain(account))

    async def logout(self, ctx: AuthContext) -> None:
        """Terminate the current session."""
        await self._core.services.session.terminate(ctx.session.id)
        logger.info("logout", account_id=ctx.account.id, session_id=ctx.session.id)

    async def list_sessions(self, ctx: AuthContext) -> list[SessionView]:
        """Live sessions of the caller, flagged with the current one."""
        sessions = await self._core.services.session.list_live(ctx.account.id)
        return [SessionView.from_domain(session, ctx.session.id) for session in sessions]

    async def close_session(self, ctx: AuthContext, session_id: UUID) -> None:
        """Close one of the caller's own sessions."""
        if not await self._core.services.session.terminate_owned(ctx.account.id, session_id):
            raise NotFoundError("Session not found")

    async def close_other_sessions(self, ctx: AuthContext) -> int:
        """Terminate every session of the caller except the current one."""
        return await self._core.services.session.terminate_all(ctx.account.id, except_session_id=ctx.session.id)

    # === Profile ===
    async def get_current_account(self, ctx: AuthContext) -> AccountView:
        return AccountView.from_domain(ctx.account)

    async def change_password(self, ctx: AuthContext, old_password: str, new_password: str) -> None:
        """Change password and log out every other session."""
        await self._core.services.account.change_password(ctx.account.id, old_password, new_password)
        await self._core.services.session.terminate_all(ctx.account.id, except_session_id=ctx.session.id)

    async def delete_account(self, ctx: AuthContext) -> None:
        """Soft delete the caller's account and terminate all of its sessions."""
        await self._core.services.account.soft_delete(ctx.account.id)
        await self._core.services.session.terminate_all(ctx.account.id)
        logger.info("account_deleted", account_id=ctx.account.id)

    # === Admin: accounts ===
    async def create_account(
        self, ctx: AuthContext, email: str, password: str, name: str = "", is_admin: bool = False
    ) -> AccountView:
        """Create a verified account (admin only)."""
        self._ensure_admin(ctx)
        account = await self._core.services.account.create_account(email, password, name=name, is_admin=is_admin)
        return AccountView.from_domain(account)

    async def set_account_blocked(self, ctx: AuthContext, account_id: UUID, blocked: bool) -> AccountView:
        """Ban or unban an account (admin only); banning terminates all its sessions."""
        self._ensure_admin(ctx)
        if account_id == ctx.account.id:
            raise ValidationError("Cannot block yourself")
        account = await self._core.services.account.set_blocked(account_id, blocked)
        if blocked:
            await self._core.services.session.terminate_all(account_id)
        logger.info("account_block_changed", account_id=account_id, blocked=blocked, admin_id=ctx.account.id)
        return AccountView.from_domain(account)

    async def set_account_deleted(self, ctx: AuthContext, account_id: UUID, deleted: bool) -> AccountView:
        """Soft delete or undelete an account (admin only); deleting terminates all its sessions."""
        self._ensure_admin(ctx)
        account = await self._core.services.account.set_deleted(account_id, deleted)
        if deleted:
            await self._core.services.session.terminate_all(account_id)
        logger.info("account_deleted_changed", account_id=account_id, deleted=deleted, admin_id=ctx.account.id)
        return AccountView.from_domain(account)

    async def get_account_sessions(self, ctx: AuthContext, account_id: UUID) -> list[SessionView]:
        """Live sessions of any account (admin only)."""
        self._ensure_admin(ctx)
        await self._core.services.account.get_account(account_id)
        sessions = await self._core.services.session.list_live(account_id)
        return [SessionView.from_domain(session) for session in sessions]

    # === Admin: block rules ===
    async def list_block_rules(self, ctx: AuthContext) -> list[BlockRule]:
        self._ensure_admin(ctx)
        return await self._core.services.block.list_rules()

    async def get_block_rule(self, ctx: AuthContext, rule_id: UUID) -> BlockRule:
        self._ensure_admin(ctx)
        return await self._core.services.block.get_rule(rule_id)

    async def create_block_rule(self, ctx: AuthContext, data: BlockRuleCreate) -> BlockRule:
        self._ensure_admin(ctx)
        return await self._core.services.block.create_rule(data, created_by=ctx.account.id)

    async def update_block_rule(self, ctx: AuthContext, rule_id: UUID, data: BlockRuleUpdate) -> BlockRule:
        self._ensure_admin(ctx)
        return await self._core.services.block.update_rule(rule_id, data)

    async def delete_block_rule(self, ctx: AuthContext, rule_id: UUID) -> None:
        self._ensure_admin(ctx)
        await self._core.services.block.delete_rule(rule_id)

    # === Private helpers ===
    @staticmethod
    def _ensure_admin(ctx: AuthContext) -> None:
        if not (ctx.principal.is_admin and ctx.account.is_admin):
            raise AccessDeniedError("Admin privileges required")
