"""Cooperative cancellation for external calls."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from .errors import OperationCancelled

T = TypeVar("T")


async def run_cancellable(call: Awaitable[T], cancel: asyncio.Event | None = None) -> T:
    """Await ``call`` unless ``cancel`` is set first.

    The signal is checked before the call starts. If it is set while the call
    is in flight, the call is cancelled and :class:`OperationCancelled` raised.
    """
    if cancel is None:
        return await call

    if cancel.is_set():
        if asyncio.iscoroutine(call):
            call.close()
        raise OperationCancelled("Operation cancelled")

    task = asyncio.ensure_future(call)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    raise OperationCancelled("Operation cancelled")
