"""Tests for browser actions: random_sleep and scroll_until_stable."""

import asyncio
from unittest.mock import AsyncMock, patch

from jobscan.browser.actions import (
    MAX_SCROLL_ATTEMPTS,
    SCROLL_DELAY_FLOOR,
    random_sleep,
    scroll_until_stable,
)

# ---------------------------------------------------------------------------
# TestRandomSleep
# ---------------------------------------------------------------------------


class TestRandomSleep:
    """random_sleep: clamping, range, actual sleeping."""

    async def test_returns_duration_in_range(self) -> None:
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            duration = await random_sleep(0.0, 0.01)
        assert 0.0 <= duration <= 0.01

    async def test_max_below_min_is_clamped(self) -> None:
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            duration = await random_sleep(5.0, 2.0)
        assert duration == 5.0

    async def test_negative_min_clamped_to_zero(self) -> None:
        with patch.object(asyncio, "sleep", new_callable=AsyncMock):
            duration = await random_sleep(-1.0, 0.5)
        assert duration >= 0.0

    async def test_actually_calls_asyncio_sleep(self) -> None:
        with patch.object(asyncio, "sleep", new_callable=AsyncMock) as mock_sleep:
            await random_sleep(0.1, 0.2)
        mock_sleep.assert_called_once()
        assert 0.1 <= mock_sleep.call_args[0][0] <= 0.2


# ---------------------------------------------------------------------------
# TestScrollUntilStable
# ---------------------------------------------------------------------------


def _make_page_mock(card_counts: list[int]) -> AsyncMock:
    """Mock page whose card count follows ``card_counts`` (last value repeats)."""
    page = AsyncMock()
    calls = 0

    async def _query_selector_all(selector: str) -> list[object]:
        nonlocal calls
        count = card_counts[min(calls, len(card_counts) - 1)]
        calls += 1
        return [object() for _ in range(count)]

    page.query_selector_all = AsyncMock(side_effect=_query_selector_all)
    return page


class TestScrollUntilStable:
    async def test_stops_when_count_stable(self) -> None:
        page = _make_page_mock([10, 20, 20])
        with patch("jobscan.browser.actions.random_sleep", new_callable=AsyncMock):
            count = await scroll_until_stable(page, "li.card")
        assert count == 20
        assert page.evaluate.await_count == 2

    async def test_bounded_by_max_attempts(self) -> None:
        page = _make_page_mock(list(range(1, 100)))
        with patch("jobscan.browser.actions.random_sleep", new_callable=AsyncMock):
            await scroll_until_stable(page, "li.card")
        assert page.evaluate.await_count == MAX_SCROLL_ATTEMPTS

    async def test_delay_floor_enforced(self) -> None:
        page = _make_page_mock([1, 1])
        with patch("jobscan.browser.actions.random_sleep", new_callable=AsyncMock) as sleep:
            await scroll_until_stable(page, "li.card", delay_min=0.0, delay_max=0.1)
        min_s, max_s = sleep.call_args[0]
        assert min_s == SCROLL_DELAY_FLOOR
        assert max_s == SCROLL_DELAY_FLOOR

    async def test_empty_page(self) -> None:
        page = _make_page_mock([0])
        with patch("jobscan.browser.actions.random_sleep", new_callable=AsyncMock):
            count = await scroll_until_stable(page, "li.card")
        assert count == 0
        assert page.query_selector_all.await_count == 2
