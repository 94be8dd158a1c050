from __future__ import annotations

import math
import unittest

from interjection.activity import ChannelActivityTracker


class ChannelActivityTrackerTests(unittest.TestCase):
    def test_unknown_channel_uses_sentinel(self):
        self.assertEqual(ChannelActivityTracker().silence_duration(1, 100.0), math.inf)
        self.assertEqual(ChannelActivityTracker(unknown_silence=0.0).silence_duration(1, 100.0), 0.0)

    def test_silence_is_time_since_last_touch(self):
        tracker = ChannelActivityTracker()
        tracker.touch(1, 1000.0)
        self.assertEqual(tracker.silence_duration(1, 1600.0), 600.0)

    def test_touch_never_moves_backwards(self):
        tracker = ChannelActivityTracker()
        tracker.touch(1, 1000.0)
        tracker.touch(1, 900.0)
        self.assertEqual(tracker.last_message_at(1), 1000.0)

    def test_clock_skew_clamps_to_zero(self):
        tracker = ChannelActivityTracker()
        tracker.touch(1, 2000.0)
        self.assertEqual(tracker.silence_duration(1, 1500.0), 0.0)

    def test_channels_are_independent(self):
        tracker = ChannelActivityTracker()
        tracker.touch(1, 100.0)
        tracker.touch(2, 500.0)
        self.assertEqual(tracker.silence_duration(1, 600.0), 500.0)
        self.assertEqual(tracker.silence_duration(2, 600.0), 100.0)

    def test_seed_loads_last_seen_without_regressing(self):
        tracker = ChannelActivityTracker()
        tracker.touch(1, 5000.0)
        seeded = tracker.seed({1: 100, 2: 200})
        self.assertEqual(seeded, 2)
        self.assertEqual(tracker.last_message_at(1), 5000.0)
        self.assertEqual(tracker.last_message_at(2), 200.0)


if __name__ == "__main__":
    unittest.main()
