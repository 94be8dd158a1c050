from __future__ import annotations

import random
import time
from typing import Callable, Protocol

from interjection.activity import ChannelActivityTracker
from interjection.models import InterjectionConfig
from interjection.models import InterjectionType

SECONDS_PER_HOUR = 3600.0


class RandomSource(Protocol):
    def random(self) -> float: ...


def silence_ramp(silence_hours: float, start_hours: float, max_hours: float) -> float:
    """0.0 at or below start_hours, 1.0 at or above max_hours, linear in between."""
    if silence_hours <= start_hours:
        return 0.0
    if silence_hours >= max_hours:
        return 1.0
    span = max_hours - start_hours
    if span <= 0:
        return 1.0
    return min(1.0, max(0.0, (silence_hours - start_hours) / span))


def effective_probability(
    base: float,
    silence_hours: float,
    *,
    start_hours: float,
    max_hours: float,
    enabled: bool = True,
) -> float:
    """
    Scale a base probability by how long the channel has been silent.

    A base of 0 stays 0: the type is switched off, not merely unlikely.
    """
    if base <= 0.0:
        return 0.0
    if not enabled:
        return min(1.0, base)
    t = silence_ramp(silence_hours, start_hours, max_hours)
    if t >= 1.0:
        return 1.0
    return min(1.0, base + (1.0 - base) * t)


def select_interjection(
    config: InterjectionConfig,
    silence_hours: float,
    rng: RandomSource,
) -> InterjectionType | None:
    """
    Run one Bernoulli trial per type in priority order and return the first hit.
    Types configured at 0 are skipped without drawing from rng.
    """
    for candidate in config.candidates:
        if candidate.probability <= 0.0:
            continue
        p = effective_probability(
            candidate.probability,
            silence_hours,
            start_hours=config.fill_silence_start_hours,
            max_hours=config.fill_silence_max_hours,
            enabled=config.fill_silence_enabled,
        )
        if rng.random() < p:
            return candidate.type
    return None


class InterjectionScheduler:
    """Per-message decision: should the bot speak unprompted here, and as what."""

    def __init__(
        self,
        config: InterjectionConfig,
        activity: ChannelActivityTracker,
        *,
        rng: RandomSource | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.activity = activity
        self._rng = rng if rng is not None else random.Random()
        self._clock = clock

    def decide(
        self,
        channel_id: int,
        channel_name: str | None = None,
        now: float | None = None,
    ) -> InterjectionType | None:
        if self.config.is_quiet(channel_id, channel_name):
            return None
        if not self.config.is_target(channel_id, channel_name):
            return None

        at = self._clock() if now is None else float(now)
        silence_hours = 0.0
        if self.config.fill_silence_enabled:
            silence_hours = self.activity.silence_duration(channel_id, at) / SECONDS_PER_HOUR

        picked = select_interjection(self.config, silence_hours, self._rng)
        if picked is not None:
            print(f"[Interject] channel={channel_id} silence_h={silence_hours:.2f} fired={picked.value}")
        return picked
