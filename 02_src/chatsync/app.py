"""Application bootstrap and lifecycle management."""

import os
from typing import Protocol

from .config import SyncSettings, resolve_db_path
from .event_bus import SyncEventBus
from .logging_config import get_logger
from .storage import IStorage, Storage
from .sync import ChatSyncController
from .tracker import ITracker, Tracker
from .transport import HttpChatTransport, IChatTransport, InMemoryChatServer

logger = get_logger(__name__)


class IApplication(Protocol):
    """Bootstrap and lifecycle."""

    async def start(self) -> None:
        """Initialize components in dependency order."""
        ...

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        ...

    async def reset(self) -> None:
        """Reset data between test runs."""
        ...


class Application:
    """Main application bootstrap."""

    def __init__(
        self,
        db_path: str | None = None,
        settings: SyncSettings | None = None,
        transport: IChatTransport | None = None,
    ):
        env_db_path = os.getenv("DATABASE_URL") if db_path is None else db_path
        self._db_path = resolve_db_path(env_db_path)
        self._settings = settings or SyncSettings.from_env()

        # Components (will be initialized in start())
        self._storage: IStorage | None = None
        self._event_bus: SyncEventBus | None = None
        self._tracker: ITracker | None = None
        self._transport: IChatTransport | None = transport
        self._controller: ChatSyncController | None = None

    async def start(self) -> None:
        """Initialize components in dependency order."""
        logger.info("Starting application")

        # 1. Storage (no dependencies)
        self._storage = Storage(self._db_path)
        await self._storage.init()
        logger.info("Storage initialized")

        # 2. SyncEventBus (no dependencies)
        self._event_bus = SyncEventBus()

        # 3. Tracker (depends on SyncEventBus + Storage)
        self._tracker = Tracker(self._event_bus, self._storage)
        await self._tracker.start()

        # 4. Transport: real backend when configured, loopback otherwise
        if self._transport is None:
            self._transport = self._create_transport()
        logger.info("Transport: %s", type(self._transport).__name__)

        # 5. Controller (depends on everything above)
        self._controller = ChatSyncController(
            transport=self._transport,
            current_user_id=self._settings.current_user_id,
            event_bus=self._event_bus,
            tracker=self._tracker,
            settings=self._settings,
        )
        await self._controller.start()
        logger.info("All components initialized successfully")

    async def stop(self) -> None:
        """Shutdown in reverse order."""
        if self._controller:
            await self._controller.stop()
        if self._transport:
            await self._transport.close()
        if self._tracker:
            await self._tracker.stop()
        if self._storage:
            await self._storage.close()
            logger.info("Storage closed")

    async def reset(self) -> None:
        """Reset data between test runs."""
        if self._controller:
            await self._controller.reset()

        if self._storage:
            await self._storage.clear()
            logger.info("Storage cleared")

        if self._controller:
            await self._controller.start()
            logger.info("Reset complete")

    def _create_transport(self) -> IChatTransport:
        if self._settings.api_url:
            return HttpChatTransport(
                base_url=self._settings.api_url,
                token=self._settings.api_token,
                timeout=self._settings.http_timeout,
            )
        return InMemoryChatServer(current_user_id=self._settings.current_user_id)

    @property
    def settings(self) -> SyncSettings:
        return self._settings

    @property
    def storage(self) -> IStorage:
        """Get storage instance."""
        if not self._storage:
            raise RuntimeError("Application not started")
        return self._storage

    @property
    def tracker(self) -> ITracker:
        """Get tracker instance."""
        if not self._tracker:
            raise RuntimeError("Application not started")
        return self._tracker

    @property
    def transport(self) -> IChatTransport:
        """Get transport instance."""
        if not self._transport:
            raise RuntimeError("Application not started")
        return self._transport

    @property
    def controller(self) -> ChatSyncController:
        """Get sync controller instance."""
        if not self._controller:
            raise RuntimeError("Application not started")
        return self._controller
