"""Tests for ScrollPolicy."""

import asyncio

import pytest

from chatsync.models import ContainerMetrics, ScrollState, ScrollTrigger
from chatsync.scroll import ScrollPolicy

SETTLE = 0.1

AT_BOTTOM = ContainerMetrics(scroll_top=900, scroll_height=1500, client_height=600)
NEAR_BOTTOM = ContainerMetrics(scroll_top=800, scroll_height=1500, client_height=600)
FAR_UP = ContainerMetrics(scroll_top=100, scroll_height=1500, client_height=600)


class TestShouldAutoScroll:
    """Decision table for should_auto_scroll()."""

    @pytest.mark.parametrize(
        "state, trigger, prior, expected",
        [
            (ScrollState(True, False), ScrollTrigger.INITIAL_LOAD, 0, True),
            (ScrollState(False, True), ScrollTrigger.INITIAL_LOAD, 0, True),
            (ScrollState(True, False), ScrollTrigger.INITIAL_LOAD, 12, False),
            (ScrollState(True, False), ScrollTrigger.USER_SENT, 0, True),
            (ScrollState(False, True), ScrollTrigger.USER_SENT, 0, True),
            (ScrollState(True, False), ScrollTrigger.REMOTE_ARRIVED, 0, True),
            (ScrollState(True, True), ScrollTrigger.REMOTE_ARRIVED, 0, False),
            (ScrollState(False, True), ScrollTrigger.REMOTE_ARRIVED, 0, False),
            (ScrollState(False, False), ScrollTrigger.REMOTE_ARRIVED, 0, False),
        ],
    )
    def test_decision_table(self, state, trigger, prior, expected):
        assert ScrollPolicy.should_auto_scroll(state, trigger, prior) is expected


class TestRecompute:
    """Tests for ScrollPolicy.recompute()."""

    def test_near_bottom_inside_threshold(self):
        """Test that 100px from the bottom counts as near."""
        policy = ScrollPolicy(near_bottom_px=150)

        assert policy.recompute(NEAR_BOTTOM).is_near_bottom is True
        assert policy.recompute(AT_BOTTOM).is_near_bottom is True

    def test_far_from_bottom(self):
        policy = ScrollPolicy(near_bottom_px=150)

        assert policy.recompute(FAR_UP).is_near_bottom is False

    def test_threshold_is_exclusive(self):
        """Test that exactly the threshold distance is not near."""
        policy = ScrollPolicy(near_bottom_px=150)
        metrics = ContainerMetrics(scroll_top=750, scroll_height=1500, client_height=600)

        assert policy.recompute(metrics).is_near_bottom is False

    def test_recompute_has_no_side_effects(self):
        """Test that recompute leaves the tracked state alone."""
        policy = ScrollPolicy()

        policy.recompute(FAR_UP)

        assert policy.state == ScrollState()


class TestOnScroll:
    """Tests for the debounced scrolled-away flag."""

    async def test_flag_latches_after_settle_window(self):
        """Test that staying away for the full window sets the flag."""
        policy = ScrollPolicy(settle_seconds=SETTLE)

        state = policy.on_scroll(FAR_UP)
        assert state == ScrollState(is_near_bottom=False, user_has_scrolled_away=False)

        await asyncio.sleep(SETTLE * 2)

        assert policy.state.user_has_scrolled_away is True

    async def test_new_scroll_rearms_timer(self):
        """Test that continued scrolling postpones the flag."""
        policy = ScrollPolicy(settle_seconds=SETTLE)

        policy.on_scroll(FAR_UP)
        await asyncio.sleep(SETTLE * 0.6)
        policy.on_scroll(FAR_UP)
        await asyncio.sleep(SETTLE * 0.6)

        assert policy.state.user_has_scrolled_away is False

        await asyncio.sleep(SETTLE)

        assert policy.state.user_has_scrolled_away is True

    async def test_returning_to_bottom_clears_flag_immediately(self):
        """Test that scrolling back down clears the flag without waiting."""
        policy = ScrollPolicy(settle_seconds=SETTLE)
        policy.on_scroll(FAR_UP)
        await asyncio.sleep(SETTLE * 2)

        state = policy.on_scroll(AT_BOTTOM)

        assert state == ScrollState(is_near_bottom=True, user_has_scrolled_away=False)

    async def test_returning_to_bottom_cancels_pending_timer(self):
        """Test that a brief excursion never latches the flag."""
        policy = ScrollPolicy(settle_seconds=SETTLE)

        policy.on_scroll(FAR_UP)
        policy.on_scroll(AT_BOTTOM)
        await asyncio.sleep(SETTLE * 2)

        assert policy.state.user_has_scrolled_away is False

    async def test_cancel_stops_timer(self):
        """Test that closing the chat tears the timer down."""
        policy = ScrollPolicy(settle_seconds=SETTLE)

        policy.on_scroll(FAR_UP)
        policy.cancel()
        await asyncio.sleep(SETTLE * 2)

        assert policy.state.user_has_scrolled_away is False
