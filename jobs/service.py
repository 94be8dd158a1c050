from __future__ import annotations

import asyncio

from misc.errors import StorageError


async def persist_rate_budgets(
    *,
    db_lock,
    db_conn,
    rate_limiter,
    save_rate_budgets_sync,
) -> bool:
    try:
        async with db_lock:
            await asyncio.to_thread(save_rate_budgets_sync, db_conn, rate_limiter.snapshot_all())
    except StorageError as e:
        print(f"[RateLimit] could not persist budgets: {e}")
        return False
    return True


def schedule_budget_persist(
    tasks: set,
    *,
    db_lock,
    db_conn,
    rate_limiter,
    save_rate_budgets_sync,
) -> asyncio.Task:
    """Save budgets in the background. The task stays in `tasks` until it finishes."""
    task = asyncio.get_running_loop().create_task(
        persist_rate_budgets(
            db_lock=db_lock,
            db_conn=db_conn,
            rate_limiter=rate_limiter,
            save_rate_budgets_sync=save_rate_budgets_sync,
        )
    )
    tasks.add(task)
    task.add_done_callback(tasks.discard)
    return task


async def run_trim_pass(
    *,
    db_lock,
    db_conn,
    trim_messages_sync,
    retain_count: int,
) -> int:
    """One retention pass. Holds the store lock only for the DELETE itself."""
    async with db_lock:
        removed = await asyncio.to_thread(trim_messages_sync, db_conn, int(retain_count))
    if removed:
        print(f"[Trim] removed {removed} messages (retain={retain_count})")
    return removed


async def trim_loop(
    *,
    db_lock,
    db_conn,
    trim_messages_sync,
    retain_count: int,
    interval_seconds: int = 3600,
    rate_limiter=None,
    save_rate_budgets_sync=None,
) -> None:
    # Cancelling mid-pass is safe; the next pass picks up where this one stopped.
    while True:
        try:
            await run_trim_pass(
                db_lock=db_lock,
                db_conn=db_conn,
                trim_messages_sync=trim_messages_sync,
                retain_count=retain_count,
            )
            if rate_limiter is not None and save_rate_budgets_sync is not None:
                await persist_rate_budgets(
                    db_lock=db_lock,
                    db_conn=db_conn,
                    rate_limiter=rate_limiter,
                    save_rate_budgets_sync=save_rate_budgets_sync,
                )
        except StorageError as e:
            print(f"[Trim] pass failed, retrying next cycle: {e}")
        except Exception as e:
            print(f"[Trim] trim loop error: {e}")

        await asyncio.sleep(max(1, int(interval_seconds)))
