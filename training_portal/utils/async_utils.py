# training_portal/utils/async_utils.py
"""
Timeout races and stale-result guards.

There is no way to cancel a remote call once it is in flight. A race only
stops the *caller* from waiting; the call keeps running and whatever it
returns late is dropped. Generation counters make sure a slow completion
never overwrites state that a newer request already produced.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


async def race_timeout(aw: Awaitable[T], timeout: Optional[float]) -> T:
    """
    Await `aw` for at most `timeout` seconds.

    Raises asyncio.TimeoutError when the deadline passes first. The underlying
    task is shielded, so it is left running and its eventual result (or
    exception) is discarded.
    """
    task = asyncio.ensure_future(aw)
    if timeout is None:
        return await task
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout)
    except asyncio.TimeoutError:
        task.add_done_callback(_consume_result)
        raise


def _consume_result(task: "asyncio.Future") -> None:
    # keep "exception was never retrieved" out of the logs for abandoned calls
    if not task.cancelled():
        task.exception()


class Generation:
    """
    Monotonic request tagging.

        tag = gen.next()            # when a request starts
        ...await...
        if gen.try_apply(tag):      # when it completes
            write state

    `try_apply` accepts a tag only if no newer tag has been applied yet, so
    an older request finishing late is ignored. `invalidate()` bumps and
    applies in one step (used for local transitions such as sign-out).
    """

    __slots__ = ("_issued", "_applied")

    def __init__(self) -> None:
        self._issued = 0
        self._applied = 0

    def next(self) -> int:
        self._issued += 1
        return self._issued

    def try_apply(self, tag: int) -> bool:
        if tag < self._applied:
            return False
        self._applied = tag
        return True

    def invalidate(self) -> int:
        tag = self.next()
        self._applied = tag
        return tag
