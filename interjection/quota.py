from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Awaitable, Callable, TypeVar

from config.defaults import IMAGE_CATEGORY
from config.defaults import TEXT_CATEGORY
from interjection.rate_limiter import Admission
from interjection.rate_limiter import RateLimiter
from misc.discord_timestamps import epoch_timestamp_tag
from misc.discord_timestamps import next_utc_midnight_epoch
from misc.errors import QuotaExhaustedError

T = TypeVar("T")

_CATEGORY_LABELS = {
    TEXT_CATEGORY: "text generation",
    IMAGE_CATEGORY: "image generation",
}


class QuotaManager:
    """
    Watches metered calls for upstream quota exhaustion.

    A QuotaExhaustedError locks the category in the rate limiter until the
    next UTC midnight and queues one notice for the next person who talks to
    the bot directly.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        *,
        clock: Callable[[], float] = time.time,
        on_lockout: Callable[[str, float], None] | None = None,
    ):
        self.rate_limiter = rate_limiter
        self._clock = clock
        self._on_lockout = on_lockout
        self._pending_notice: dict[str, float] = {}
        self._lock = threading.Lock()

    async def run_metered(
        self,
        category: str,
        call: Callable[[], Awaitable[T]],
    ) -> tuple[T | None, Admission]:
        admission = self.rate_limiter.try_acquire(category)
        if not admission:
            return None, admission
        try:
            result = await call()
        except QuotaExhaustedError:
            self.record_exhaustion(category)
            raise
        return result, admission

    def record_exhaustion(self, category: str) -> float:
        until = next_utc_midnight_epoch(self._clock())
        self.rate_limiter.mark_exhausted(category, until)
        with self._lock:
            self._pending_notice[category] = until
        until_iso = datetime.fromtimestamp(until, tz=timezone.utc).isoformat()
        print(f"[Quota] {category} quota exhausted upstream; disabled until {until_iso}")
        if self._on_lockout is not None:
            self._on_lockout(category, until)
        return until

    def take_notice(self, category: str) -> str | None:
        with self._lock:
            until = self._pending_notice.pop(category, None)
        if until is None or self._clock() >= until:
            return None
        label = _CATEGORY_LABELS.get(category, category)
        return (
            f"Heads up: I've hit my daily {label} quota, so that's switched off "
            f"until midnight UTC ({epoch_timestamp_tag(until, 'R')})."
        )
