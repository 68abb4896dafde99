from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, cast
from urllib.parse import urlparse

from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from warden.config import Config
from warden.core.modules.token.codec import TokenCodec


class Service:
    """Base class for services with direct database access."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self.database = database
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core


class Services:
    """Service registry that automatically discovers and initializes services."""

    from warden.core.modules.account.service import AccountService  # noqa: PLC0415
    from warden.core.modules.block.service import BlockService  # noqa: PLC0415
    from warden.core.modules.identity.service import IdentityService  # noqa: PLC0415
    from warden.core.modules.session.service import SessionService  # noqa: PLC0415
    from warden.core.modules.sweeper.service import SweeperService  # noqa: PLC0415

    account: AccountService
    block: BlockService
    session: SessionService
    identity: IdentityService
    sweeper: SweeperService

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        # Start order matters: indexes and the bootstrap admin exist before the sweeper runs
        service_configs = [
            ("account", "warden.core.modules.account.service", "AccountService"),
            ("block", "warden.core.modules.block.service", "BlockService"),
            ("session", "warden.core.modules.session.service", "SessionService"),
            ("identity", "warden.core.modules.identity.service", "IdentityService"),
            ("sweeper", "warden.core.modules.sweeper.service", "SweeperService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop services in reverse start order."""
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, database, token codec, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    database: AsyncDatabase[dict[str, Any]]
    token_codec: TokenCodec
    services: Services

    def __init__(self, config: Config, database: AsyncDatabase[dict[str, Any]] | None = None) -> None:
        """Initialize core with config and MongoDB, then auto-register services.

        An already opened database can be passed in; the core then does not own a client.
        """
        self.config = config
        if database is None:
            self.mongo_client = AsyncMongoClient(config.database_url, uuidRepresentation="standard", tz_aware=True)
            database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
        else:
            self.mongo_client = None
        self.database = database
        self.token_codec = TokenCodec.from_config(config)
        self.services = Services(self.database)
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close MongoDB connection on shutdown."""
        await self.services.stop_all()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()
