import asyncio
from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from warden.core.core import Service
from warden.core.modules.identity.client_ip import TrustedNetworks, parse_trusted_proxies
from warden.core.modules.identity.models import AuthContext, AuthMode, Principal, Rejection, RequestInfo
from warden.core.modules.token.models import TokenExpiredError, TokenInvalidError
from warden.utils import now_ms

logger = structlog.get_logger(__name__)


class IdentityService(Service):
    """Per-request identity resolution.

    Steps run in a fixed order and the first failure is terminal:
    block check, token present, token signature, token expiry, session
    found/live/unexpired, account found/verified/in good standing, then the
    admin check for the admin variant. The account is reloaded on every
    request so bans and deletions apply before the token expires.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._background_tasks: set[asyncio.Task[Any]] = set()
        self._trusted_proxies: TrustedNetworks | None = None

    @property
    def trusted_proxies(self) -> TrustedNetworks:
        if self._trusted_proxies is None:
            self._trusted_proxies = parse_trusted_proxies(self.core.config.trusted_proxies)
        return self._trusted_proxies

    async def on_stop(self) -> None:
        """Let in-flight activity updates finish before the database closes."""
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

    async def check_not_blocked(self, request: RequestInfo) -> None:
        """Block check shared by every variant. Raises the access_denied rejection."""
        if await self.core.services.block.is_blocked(request.client_ip, request.email):
            raise Rejection.ACCESS_DENIED.error()

    async def resolve(self, request: RequestInfo, mode: AuthMode) -> AuthContext | None:
        """Run the pipeline for the given variant.

        Returns None for OPTIONAL (nothing beyond the block check is resolved).

        Raises:
            AuthRejectedError: On the first failing step
        """
        await self.check_not_blocked(request)
        if mode == AuthMode.OPTIONAL:
            return None

        if not request.token:
            raise Rejection.AUTHENTICATION_REQUIRED.error()

        try:
            payload = self.core.token_codec.verify(request.token)
        except TokenExpiredError:
            raise Rejection.TOKEN_EXPIRED.error() from None
        except TokenInvalidError:
            raise Rejection.INVALID_TOKEN.error() from None

        # Token can stay cryptographically valid after its session was revoked
        session = await self.core.services.session.find_by_token(request.token)
        if session is None:
            raise Rejection.SESSION_NOT_FOUND.error()
        if session.is_terminated:
            raise Rejection.SESSION_TERMINATED.error()
        if session.is_expired(now_ms()):
            raise Rejection.SESSION_EXPIRED.error()

        account = await self.core.services.account.find_by_id(payload.sub)
        if account is None:
            raise Rejection.ACCOUNT_NOT_FOUND.error()
        if not account.is_verified:
            raise Rejection.ACCOUNT_NOT_VERIFIED.error()
        if not account.in_good_standing:
            raise Rejection.ACCOUNT_ERROR.error()

        if mode == AuthMode.ADMIN and not (payload.is_admin and account.is_admin):
            logger.warning(
                "admin_check_failed", account_id=account.id, token_admin=payload.is_admin, account_admin=account.is_admin
            )
            raise Rejection.NOT_ADMIN.error()

        self.record_activity(account.id, session.id)
        return AuthContext(
            principal=Principal(subject_id=payload.sub, is_admin=payload.is_admin),
            session=session,
            account=account,
            client_ip=request.client_ip,
        )

    def record_activity(self, account_id: UUID, session_id: UUID) -> None:
        """Fire-and-forget last-online and last-active update; never awaited by the request."""
        task = asyncio.create_task(self._record_activity_async(account_id, session_id))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _record_activity_async(self, account_id: UUID, session_id: UUID) -> None:
        try:
            await self.core.services.account.update_last_online(account_id)
            await self.core.services.session.touch(session_id)
        except Exception:
            logger.exception("record_activity_failed", account_id=account_id, session_id=session_id)
