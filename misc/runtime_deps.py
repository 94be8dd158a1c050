from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class RuntimeDeps:
    # core
    send_chunked: Callable
    clock: Callable[[], float]

    # channel scope
    followed_channel_ids: frozenset[int]
    followed_channel_names: frozenset[str]

    # logging / ingestion
    log_message_func: Callable
    log_message_edit_func: Callable

    # interjections
    scheduler: Any
    activity: Any
    interjection_deps: Any
    build_interjection_func: Callable

    # direct address
    get_context_text_func: Callable
    answer_direct_address_func: Callable
    generate_image_func: Callable
    quota: Any


@dataclass(frozen=True)
class RuntimeBootDeps:
    seed_activity_func: Callable
    restore_rate_budgets_func: Callable
    trim_loop_func: Callable
