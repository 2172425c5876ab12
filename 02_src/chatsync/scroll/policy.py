"""Auto-scroll decisions and the debounced "scrolled away" flag."""

import asyncio

from ..config import DEFAULT_NEAR_BOTTOM_PX, DEFAULT_SCROLL_SETTLE_SECONDS
from ..models import ContainerMetrics, ScrollState, ScrollTrigger


class ScrollPolicy:
    """Scroll state of one open chat plus the auto-scroll decision table."""

    def __init__(
        self,
        near_bottom_px: float = DEFAULT_NEAR_BOTTOM_PX,
        settle_seconds: float = DEFAULT_SCROLL_SETTLE_SECONDS,
    ):
        self._near_bottom_px = near_bottom_px
        self._settle_seconds = settle_seconds
        self._scrolled_away = False
        self._timer: asyncio.TimerHandle | None = None
        self._state = ScrollState()

    @property
    def state(self) -> ScrollState:
        return self._state

    @staticmethod
    def should_auto_scroll(
        state: ScrollState,
        trigger: ScrollTrigger,
        prior_message_count: int = 0,
    ) -> bool:
        """
        Decide whether the view should jump to the newest message.

        Args:
            state: Current scroll state of the chat.
            trigger: What happened.
            prior_message_count: Messages the chat held before it was loaded;
                only consulted for INITIAL_LOAD.
        """
        if trigger is ScrollTrigger.INITIAL_LOAD:
            return prior_message_count == 0
        if trigger is ScrollTrigger.USER_SENT:
            return True
        return state.is_near_bottom and not state.user_has_scrolled_away

    def recompute(self, metrics: ContainerMetrics) -> ScrollState:
        """Pure function of the container geometry and the current flag."""
        return ScrollState(
            is_near_bottom=metrics.distance_from_bottom < self._near_bottom_px,
            user_has_scrolled_away=self._scrolled_away,
        )

    def on_scroll(self, metrics: ContainerMetrics) -> ScrollState:
        """
        Handle a scroll/resize event.

        Back at the bottom clears the flag at once. Away from the bottom
        (re)arms the settle timer, so the flag is latched only after scrolling
        stops for the full window.
        """
        state = self.recompute(metrics)
        self._cancel_timer()

        if state.is_near_bottom:
            self._scrolled_away = False
        else:
            loop = asyncio.get_running_loop()
            self._timer = loop.call_later(self._settle_seconds, self._settle_away)

        self._state = ScrollState(
            is_near_bottom=state.is_near_bottom,
            user_has_scrolled_away=self._scrolled_away,
        )
        return self._state

    def cancel(self) -> None:
        """Stop the pending settle timer (chat closed)."""
        self._cancel_timer()

    def _settle_away(self) -> None:
        self._timer = None
        self._scrolled_away = True
        self._state = ScrollState(
            is_near_bottom=self._state.is_near_bottom,
            user_has_scrolled_away=True,
        )

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
