from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Mapping

MINUTE_SECONDS = 60.0
DAY_SECONDS = 86400.0


class DenyReason(str, Enum):
    MINUTE_LIMIT_REACHED = "MinuteLimitReached"
    DAY_LIMIT_REACHED = "DayLimitReached"
    QUOTA_EXHAUSTED = "QuotaExhausted"


@dataclass(frozen=True)
class Admission:
    admitted: bool
    reason: DenyReason | None = None
    retry_after: float | None = None

    def __bool__(self) -> bool:
        return self.admitted

    @classmethod
    def granted(cls) -> "Admission":
        return cls(admitted=True)

    @classmethod
    def denied(cls, reason: DenyReason, retry_after: float | None = None) -> "Admission":
        return cls(admitted=False, reason=reason, retry_after=retry_after)


@dataclass(slots=True)
class RateBudget:
    minute_limit: int
    day_limit: int
    minute_window_count: int = 0
    minute_window_started_at: float = 0.0
    day_window_count: int = 0
    day_window_started_at: float = 0.0
    exhausted_until: float | None = None


class RateLimiter:
    """
    Fixed-window call budgets, one per metered category.

    Each category has a minute window and a day window. A window that has run
    its full length is reset before the admission check, so bursts straddling
    a boundary can admit up to twice the limit. Admission never waits: callers
    get a denial immediately and decide what to do with it.
    """

    def __init__(
        self,
        budgets: Mapping[str, tuple[int, int]],
        *,
        clock: Callable[[], float] = time.time,
    ):
        self._clock = clock
        self._budgets: dict[str, RateBudget] = {}
        self._locks: dict[str, threading.Lock] = {}
        for category, (minute_limit, day_limit) in budgets.items():
            self._budgets[category] = RateBudget(minute_limit=int(minute_limit), day_limit=int(day_limit))
            self._locks[category] = threading.Lock()

    def categories(self) -> list[str]:
        return list(self._budgets)

    def _reset_expired_windows(self, budget: RateBudget, now: float) -> None:
        if now - budget.minute_window_started_at >= MINUTE_SECONDS:
            budget.minute_window_count = 0
            budget.minute_window_started_at = now
        if now - budget.day_window_started_at >= DAY_SECONDS:
            budget.day_window_count = 0
            budget.day_window_started_at = now

    def try_acquire(self, category: str) -> Admission:
        budget = self._budgets[category]
        with self._locks[category]:
            now = self._clock()
            if budget.exhausted_until is not None:
                if now < budget.exhausted_until:
                    return Admission.denied(DenyReason.QUOTA_EXHAUSTED, budget.exhausted_until - now)
                budget.exhausted_until = None
                print(f"[RateLimit] {category}: quota lockout cleared")

            self._reset_expired_windows(budget, now)

            if budget.day_window_count >= budget.day_limit:
                return Admission.denied(
                    DenyReason.DAY_LIMIT_REACHED,
                    budget.day_window_started_at + DAY_SECONDS - now,
                )
            if budget.minute_window_count >= budget.minute_limit:
                return Admission.denied(
                    DenyReason.MINUTE_LIMIT_REACHED,
                    budget.minute_window_started_at + MINUTE_SECONDS - now,
                )

            budget.minute_window_count += 1
            budget.day_window_count += 1
            return Admission.granted()

    def mark_exhausted(self, category: str, until_time: float) -> None:
        budget = self._budgets[category]
        with self._locks[category]:
            until = float(until_time)
            if budget.exhausted_until is None or until > budget.exhausted_until:
                budget.exhausted_until = until

    def is_exhausted(self, category: str) -> bool:
        budget = self._budgets[category]
        with self._locks[category]:
            return budget.exhausted_until is not None and self._clock() < budget.exhausted_until

    def snapshot(self, category: str) -> RateBudget:
        with self._locks[category]:
            return replace(self._budgets[category])

    def snapshot_all(self) -> dict[str, RateBudget]:
        return {category: self.snapshot(category) for category in self._budgets}

    def restore(self, category: str, state: RateBudget) -> None:
        """Load persisted counters. Limits stay as configured."""
        if category not in self._budgets:
            return
        budget = self._budgets[category]
        with self._locks[category]:
            budget.minute_window_count = max(0, int(state.minute_window_count))
            budget.minute_window_started_at = float(state.minute_window_started_at)
            budget.day_window_count = max(0, int(state.day_window_count))
            budget.day_window_started_at = float(state.day_window_started_at)
            budget.exhausted_until = float(state.exhausted_until) if state.exhausted_until is not None else None
