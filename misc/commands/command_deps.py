from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Callable


def _default_false(*args, **kwargs) -> bool:
    return False


@dataclass(frozen=True)
class CommandDeps:
    # Core/shared
    db_lock: Any = None
    db_conn: Any = None
    send_chunked: Callable | None = None
    clock: Callable[[], float] | None = None

    # Generation + budgets
    rate_limiter: Any = None
    generate_image_func: Callable | None = None

    # Store functions
    find_last_message_by_name_sync: Callable | None = None
    count_messages_sync: Callable | None = None
    list_schema_migrations_sync: Callable | None = None
    run_trim_pass_func: Callable | None = None
    message_history_limit: int = 10000


@dataclass(frozen=True)
class CommandGates:
    in_followed_channel: Callable[[Any], bool] = _default_false
    user_is_owner: Callable[[Any], bool] = _default_false
