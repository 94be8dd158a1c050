from __future__ import annotations

import math
import threading
from typing import Mapping


class ChannelActivityTracker:
    """Last observed message time per channel, in epoch seconds. In memory only."""

    def __init__(self, *, unknown_silence: float = math.inf):
        self._unknown_silence = float(unknown_silence)
        self._last_message_at: dict[int, float] = {}
        self._lock = threading.Lock()

    def touch(self, channel_id: int, at_time: float) -> None:
        key = int(channel_id)
        at = float(at_time)
        with self._lock:
            current = self._last_message_at.get(key)
            if current is None or at > current:
                self._last_message_at[key] = at

    def seed(self, last_seen: Mapping[int, float]) -> int:
        for channel_id, at_time in last_seen.items():
            self.touch(channel_id, at_time)
        return len(last_seen)

    def last_message_at(self, channel_id: int) -> float | None:
        with self._lock:
            return self._last_message_at.get(int(channel_id))

    def silence_duration(self, channel_id: int, now: float) -> float:
        last = self.last_message_at(channel_id)
        if last is None:
            return self._unknown_silence
        return max(0.0, float(now) - last)
