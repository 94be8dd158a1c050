from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class InterjectionType(str, Enum):
    MST3K = "mst3k"
    MEMORY = "memory"
    PONDERING = "pondering"
    AI = "ai"
    FACT = "fact"
    NEWS = "news"


# Priority order for trials. Earlier entries win when several would fire.
CANONICAL_ORDER: tuple[InterjectionType, ...] = (
    InterjectionType.MST3K,
    InterjectionType.MEMORY,
    InterjectionType.PONDERING,
    InterjectionType.AI,
    InterjectionType.FACT,
    InterjectionType.NEWS,
)

# Types that need a context window and a metered text-generation call.
GENERATED_TYPES = frozenset({InterjectionType.AI, InterjectionType.FACT, InterjectionType.NEWS})


@dataclass(frozen=True)
class InterjectionCandidate:
    type: InterjectionType
    probability: float


@dataclass(frozen=True)
class InterjectionConfig:
    candidates: tuple[InterjectionCandidate, ...]
    context_message_count: int = 5
    fill_silence_enabled: bool = True
    fill_silence_start_hours: float = 1.5
    fill_silence_max_hours: float = 12.0
    quiet_channel_ids: frozenset[int] = field(default_factory=frozenset)
    quiet_channel_names: frozenset[str] = field(default_factory=frozenset)
    target_channel_ids: frozenset[int] = field(default_factory=frozenset)
    target_channel_names: frozenset[str] = field(default_factory=frozenset)

    def probability_for(self, kind: InterjectionType) -> float:
        for candidate in self.candidates:
            if candidate.type == kind:
                return candidate.probability
        return 0.0

    def is_quiet(self, channel_id: int, channel_name: str | None) -> bool:
        if int(channel_id) in self.quiet_channel_ids:
            return True
        name = (channel_name or "").strip().lower()
        return bool(name) and name in self.quiet_channel_names

    def is_target(self, channel_id: int, channel_name: str | None) -> bool:
        if not self.target_channel_ids and not self.target_channel_names:
            return True
        if int(channel_id) in self.target_channel_ids:
            return True
        name = (channel_name or "").strip().lower()
        return bool(name) and name in self.target_channel_names


def build_candidates(probabilities: dict[InterjectionType, float]) -> tuple[InterjectionCandidate, ...]:
    return tuple(
        InterjectionCandidate(type=kind, probability=float(probabilities.get(kind, 0.0)))
        for kind in CANONICAL_ORDER
    )
