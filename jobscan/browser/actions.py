"""Reusable browser actions: randomized waits and scroll-to-settle.

Result lists on most boards load lazily, so a page's HTML is only captured
after the card count stops growing.
"""

import asyncio
import logging
import random
from typing import Any

logger = logging.getLogger(__name__)

MAX_SCROLL_ATTEMPTS = 5
SCROLL_DELAY_FLOOR = 0.5


async def random_sleep(min_s: float, max_s: float) -> float:
    """Sleep for a random duration between min_s and max_s seconds.

    Negative bounds are clamped to zero; if max_s < min_s, max_s is raised to
    min_s. Returns the actual sleep duration.
    """
    floor = max(min_s, 0.0)
    ceiling = max(max_s, floor)
    duration = random.uniform(floor, ceiling)
    await asyncio.sleep(duration)
    return duration


async def scroll_until_stable(
    page: Any,
    card_selector: str,
    *,
    max_attempts: int = MAX_SCROLL_ATTEMPTS,
    delay_min: float = 0.5,
    delay_max: float = 1.5,
) -> int:
    """Scroll to the bottom until the number of cards stops changing.

    Returns the last observed card count.
    """
    delay_min = max(delay_min, SCROLL_DELAY_FLOOR)
    delay_max = max(delay_max, delay_min)

    previous = -1
    count = 0
    for attempt in range(max_attempts):
        count = len(await page.query_selector_all(card_selector))
        if count == previous:
            logger.debug("Card count stable at %d after %d scrolls", count, attempt)
            break
        previous = count
        await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
        await random_sleep(delay_min, delay_max)
    return count
