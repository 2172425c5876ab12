"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "chat_sync.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"

# Distance from the bottom (px) under which the view counts as "at the bottom"
DEFAULT_NEAR_BOTTOM_PX = 150
# Quiet period after the last scroll event before "scrolled away" is latched
DEFAULT_SCROLL_SETTLE_SECONDS = 1.0
DEFAULT_RECONCILE_INTERVAL_SECONDS = 30.0
DEFAULT_HTTP_TIMEOUT = 10.0
# How much older than a pending draft a server copy may be and still confirm it
DEFAULT_ADOPTION_SKEW_SECONDS = 120.0


PathLike = Union[str, Path]


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """Resolve DATABASE_URL to an absolute path."""
    if not env_value:
        return DEFAULT_DB_PATH

    if str(env_value) == ":memory:":
        return ":memory:"

    candidate = Path(env_value)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class SyncSettings:
    """Tunables for the sync engine and its transport."""

    current_user_id: str = "me"
    near_bottom_px: int = DEFAULT_NEAR_BOTTOM_PX
    scroll_settle_seconds: float = DEFAULT_SCROLL_SETTLE_SECONDS
    reconcile_interval_seconds: float = DEFAULT_RECONCILE_INTERVAL_SECONDS
    strict: bool = False
    api_url: str | None = None
    api_token: str | None = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    adoption_skew_seconds: float = DEFAULT_ADOPTION_SKEW_SECONDS

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """Build settings from environment variables."""
        return cls(
            current_user_id=os.getenv("CHAT_USER_ID", "me"),
            near_bottom_px=int(os.getenv("CHAT_NEAR_BOTTOM_PX", DEFAULT_NEAR_BOTTOM_PX)),
            scroll_settle_seconds=float(
                os.getenv("CHAT_SCROLL_SETTLE_SECONDS", DEFAULT_SCROLL_SETTLE_SECONDS)
            ),
            reconcile_interval_seconds=float(
                os.getenv(
                    "CHAT_RECONCILE_INTERVAL_SECONDS",
                    DEFAULT_RECONCILE_INTERVAL_SECONDS,
                )
            ),
            strict=_env_flag("CHATSYNC_STRICT"),
            api_url=os.getenv("CHAT_API_URL") or None,
            api_token=os.getenv("CHAT_API_TOKEN") or None,
            http_timeout=float(os.getenv("CHAT_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)),
            adoption_skew_seconds=float(
                os.getenv("CHAT_ADOPTION_SKEW_SECONDS", DEFAULT_ADOPTION_SKEW_SECONDS)
            ),
        )
