"""Scroll-related data models."""

from dataclasses import dataclass
from enum import Enum


class ScrollTrigger(str, Enum):
    """What caused the view to consider scrolling."""

    INITIAL_LOAD = "initial_load"
    USER_SENT = "user_sent"
    REMOTE_ARRIVED = "remote_arrived"


@dataclass(frozen=True)
class ContainerMetrics:
    """Geometry of the message container as reported by the UI."""

    scroll_top: float
    scroll_height: float
    client_height: float

    @property
    def distance_from_bottom(self) -> float:
        return self.scroll_height - self.scroll_top - self.client_height


@dataclass(frozen=True)
class ScrollState:
    """Ephemeral per-chat scroll state."""

    is_near_bottom: bool = True
    user_has_scrolled_away: bool = False
