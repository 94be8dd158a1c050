from __future__ import annotations

import threading
import unittest
from concurrent.futures import ThreadPoolExecutor

from interjection.rate_limiter import DenyReason
from interjection.rate_limiter import RateBudget
from interjection.rate_limiter import RateLimiter


class _Clock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class RateLimiterTests(unittest.TestCase):
    def test_minute_limit_denies_then_resumes(self):
        clock = _Clock()
        limiter = RateLimiter({"text": (2, 100)}, clock=clock)
        self.assertTrue(limiter.try_acquire("text"))
        self.assertTrue(limiter.try_acquire("text"))

        denied = limiter.try_acquire("text")
        self.assertFalse(denied)
        self.assertEqual(denied.reason, DenyReason.MINUTE_LIMIT_REACHED)
        self.assertAlmostEqual(denied.retry_after, 60.0)

        clock.now += 60
        self.assertTrue(limiter.try_acquire("text"))

    def test_denial_does_not_consume_budget(self):
        clock = _Clock()
        limiter = RateLimiter({"text": (1, 100)}, clock=clock)
        limiter.try_acquire("text")
        for _ in range(5):
            limiter.try_acquire("text")
        snap = limiter.snapshot("text")
        self.assertEqual(snap.minute_window_count, 1)
        self.assertEqual(snap.day_window_count, 1)

    def test_day_limit_outranks_minute_limit(self):
        clock = _Clock()
        limiter = RateLimiter({"text": (5, 3)}, clock=clock)
        for _ in range(3):
            self.assertTrue(limiter.try_acquire("text"))
            clock.now += 61

        denied = limiter.try_acquire("text")
        self.assertEqual(denied.reason, DenyReason.DAY_LIMIT_REACHED)

        clock.now += 86400
        self.assertTrue(limiter.try_acquire("text"))

    def test_categories_are_independent(self):
        limiter = RateLimiter({"text": (1, 10), "image": (1, 10)}, clock=_Clock())
        self.assertTrue(limiter.try_acquire("text"))
        self.assertFalse(limiter.try_acquire("text"))
        self.assertTrue(limiter.try_acquire("image"))

    def test_unknown_category_raises(self):
        limiter = RateLimiter({"text": (1, 1)}, clock=_Clock())
        with self.assertRaises(KeyError):
            limiter.try_acquire("video")

    def test_exhaustion_lockout_then_clears(self):
        clock = _Clock()
        limiter = RateLimiter({"text": (10, 100)}, clock=clock)
        limiter.mark_exhausted("text", clock.now + 500)
        self.assertTrue(limiter.is_exhausted("text"))

        denied = limiter.try_acquire("text")
        self.assertEqual(denied.reason, DenyReason.QUOTA_EXHAUSTED)
        self.assertAlmostEqual(denied.retry_after, 500.0)
        self.assertEqual(limiter.snapshot("text").minute_window_count, 0)

        clock.now += 500
        self.assertFalse(limiter.is_exhausted("text"))
        self.assertTrue(limiter.try_acquire("text"))
        self.assertIsNone(limiter.snapshot("text").exhausted_until)

    def test_mark_exhausted_keeps_latest_deadline(self):
        clock = _Clock()
        limiter = RateLimiter({"text": (10, 100)}, clock=clock)
        limiter.mark_exhausted("text", clock.now + 900)
        limiter.mark_exhausted("text", clock.now + 100)
        self.assertEqual(limiter.snapshot("text").exhausted_until, clock.now + 900)

    def test_restore_keeps_configured_limits(self):
        clock = _Clock()
        limiter = RateLimiter({"text": (2, 100)}, clock=clock)
        limiter.restore(
            "text",
            RateBudget(
                minute_limit=0,
                day_limit=0,
                minute_window_count=2,
                minute_window_started_at=clock.now - 10,
                day_window_count=50,
                day_window_started_at=clock.now - 10,
            ),
        )
        snap = limiter.snapshot("text")
        self.assertEqual((snap.minute_limit, snap.day_limit), (2, 100))
        self.assertEqual(limiter.try_acquire("text").reason, DenyReason.MINUTE_LIMIT_REACHED)

    def test_snapshot_is_a_copy(self):
        limiter = RateLimiter({"text": (2, 100)}, clock=_Clock())
        snap = limiter.snapshot("text")
        snap.minute_window_count = 99
        self.assertEqual(limiter.snapshot("text").minute_window_count, 0)


class RateLimiterConcurrencyTests(unittest.TestCase):
    def test_parallel_callers_never_exceed_the_minute_limit(self):
        workers = 32
        limit = 5
        limiter = None
        start = threading.Barrier(workers)

        def _call(_):
            start.wait()
            return limiter.try_acquire("text")

        for _ in range(20):
            limiter = RateLimiter({"text": (limit, 1000), "image": (2, 100)}, clock=_Clock())
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(_call, range(workers)))

            self.assertEqual(sum(1 for r in results if r), limit)
            self.assertTrue(all(r.reason == DenyReason.MINUTE_LIMIT_REACHED for r in results if not r))
            snap = limiter.snapshot("text")
            self.assertEqual((snap.minute_window_count, snap.day_window_count), (limit, limit))
            self.assertEqual(limiter.snapshot("image").minute_window_count, 0)


if __name__ == "__main__":
    unittest.main()
