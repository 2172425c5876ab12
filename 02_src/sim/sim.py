"""SIM implementation - virtual remote users chatting through the loopback backend."""

import asyncio
import random
from typing import Protocol

from chatsync.logging_config import get_logger
from chatsync.tracker import ITracker
from chatsync.transport import InMemoryChatServer

logger = get_logger(__name__)

VIRTUAL_USERS = [
    {"user_id": "user_001", "name": "Alice"},
    {"user_id": "user_002", "name": "Bob"},
    {"user_id": "user_003", "name": "Charlie"},
]

GROUP_CHAT_ID = "study-group"

# One script per virtual user, posted round by round
MESSAGES_PER_USER = [
    ["Has anyone shared the lecture notes?", "I uploaded mine to the resources page", "Thanks!"],
    ["Hi everyone", "Is the lab due on Friday?", "Got it, thanks"],
    ["Good afternoon", "Can someone explain question 3?", "Makes sense now"],
]


class ISim(Protocol):
    """Generate chat traffic from virtual users."""

    async def start(self) -> None:
        """Start scenario."""
        ...

    async def stop(self) -> None:
        """Stop scenario."""
        ...


class Sim:
    """SIM posting scripted messages into group and private chats."""

    def __init__(
        self,
        server: InMemoryChatServer | None = None,
        tracker: ITracker | None = None,
        min_delay: float = 1.0,
        max_delay: float = 3.0,
    ):
        self._server = server
        self._tracker = tracker
        self._min_delay = min_delay
        self._max_delay = max_delay
        self._running = False
        self._task: asyncio.Task | None = None

    def set_tracker(self, tracker: ITracker) -> None:
        """Inject tracker for SIM trace events."""
        self._tracker = tracker

    def attach(self, application) -> None:
        """Wire the SIM to a started application's tracker and loopback server."""
        self._tracker = application.tracker
        if isinstance(application.transport, InMemoryChatServer):
            self._server = application.transport
            self._ensure_chats()

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start scenario."""
        if self._running:
            return
        if self._server is None:
            raise RuntimeError("SIM needs the in-memory chat server")

        self._ensure_chats()
        self._running = True
        self._task = asyncio.create_task(self._run_scenario())

    async def stop(self) -> None:
        """Stop scenario."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def _ensure_chats(self) -> None:
        if not self._server.has_chat(GROUP_CHAT_ID):
            self._server.create_chat(
                GROUP_CHAT_ID,
                is_group=True,
                participants=[u["user_id"] for u in VIRTUAL_USERS],
                name="Study group",
            )
        for user in VIRTUAL_USERS:
            chat_id = _private_chat_id(user["user_id"])
            if not self._server.has_chat(chat_id):
                self._server.create_chat(
                    chat_id, participants=[user["user_id"]], name=user["name"]
                )

    async def _run_scenario(self) -> None:
        """Post every scripted message, alternating group and private chats."""
        stats = {
            "scenario": "study_group",
            "user_count": len(VIRTUAL_USERS),
            "message_count": sum(len(m) for m in MESSAGES_PER_USER),
        }

        try:
            if self._tracker:
                await self._tracker.track("sim_started", "sim", stats)

            for round_idx in range(max(len(m) for m in MESSAGES_PER_USER)):
                if not self._running:
                    break

                for user_idx, user in enumerate(VIRTUAL_USERS):
                    if not self._running:
                        break

                    script = MESSAGES_PER_USER[user_idx]
                    if round_idx < len(script):
                        # Last line of each script goes to the private chat
                        chat_id = (
                            _private_chat_id(user["user_id"])
                            if round_idx == len(script) - 1
                            else GROUP_CHAT_ID
                        )
                        await self._post(chat_id, user["user_id"], script[round_idx])
                        await asyncio.sleep(random.uniform(self._min_delay, self._max_delay))

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM scenario error: %s", e)
        finally:
            self._running = False
            if self._tracker:
                await self._tracker.track("sim_completed", "sim", stats)

    async def _post(self, chat_id: str, user_id: str, text: str) -> None:
        try:
            message = await self._server.post_message(chat_id, user_id, text)
            logger.info("SIM: %s -> %s: %s", user_id, chat_id, text)
            logger.debug("SIM: Posted message %s", message.id)
        except Exception as e:
            logger.error("SIM: Failed to post message: %s", e)


def _private_chat_id(user_id: str) -> str:
    return f"dm-{user_id}"
