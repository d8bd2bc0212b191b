"""Continuation runtime: runs external calls as tasks and delivers outcomes to flows.

Every external call is submitted together with the flow that waits for it.
The call runs as an ``asyncio`` task; its outcome is posted to an inbox and a
single dispatcher hands each ``(correlation_id, outcome)`` message to the
waiting flow's transition function. Transitions are synchronous, so no two
of them ever interleave.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

if TYPE_CHECKING:
    from .flows.base import Flow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome:
    """Result of one external call as seen by the callback that depends on it."""

    success: bool
    value: Any = None
    error: str = ""

    @classmethod
    def ok(cls, value: Any) -> Outcome:
        return cls(success=True, value=value)

    @classmethod
    def failed(cls, error: str) -> Outcome:
        return cls(success=False, error=error)


class BlockClock:
    """Chain progress source. Heights never move backwards."""

    def __init__(self, height: int = 0) -> None:
        self._height = height

    def current_height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("blocks must be non-negative")
        self._height += blocks
        return self._height

    def sync(self, height: int) -> int:
        if height > self._height:
            self._height = height
        return self._height


class Runtime:
    """Issues external calls and delivers their outcomes by message passing."""

    def __init__(self) -> None:
        self._inbox: asyncio.Queue[tuple[str, Outcome]] = asyncio.Queue()
        self._waiting: dict[str, Flow] = {}
        self._calls: set[asyncio.Task[None]] = set()
        self._dispatcher: asyncio.Task[None] | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def in_flight(self) -> list[str]:
        """Correlation ids of flows waiting on an external call."""
        return list(self._waiting)

    def submit(
        self,
        flow: Flow,
        label: str,
        call: Callable[[], Awaitable[Any]],
    ) -> None:
        """Start ``call`` and deliver its outcome to ``flow.resume`` later."""
        cid = flow.correlation_id
        if cid in self._waiting:
            raise RuntimeError(f"Flow {cid} already has an outstanding call")

        self._waiting[cid] = flow
        self._idle.clear()
        logger.debug("Submitted %s for flow %s", label, cid)

        task = asyncio.get_running_loop().create_task(self._execute(cid, label, call))
        self._calls.add(task)
        task.add_done_callback(self._calls.discard)

        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.get_running_loop().create_task(self._dispatch())
            self._dispatcher.add_done_callback(self._dispatcher_done)

    async def _execute(
        self, cid: str, label: str, call: Callable[[], Awaitable[Any]]
    ) -> None:
        try:
            value = await call()
            outcome = Outcome.ok(value)
        except asyncio.CancelledError:
            outcome = Outcome.failed(f"{label} was cancelled")
            await self._inbox.put((cid, outcome))
            raise
        except Exception as e:
            logger.warning("External call %s for flow %s failed: %s", label, cid, e)
            outcome = Outcome.failed(str(e) or type(e).__name__)
        await self._inbox.put((cid, outcome))

    async def _dispatch(self) -> None:
        while self._waiting:
            cid, outcome = await self._inbox.get()
            flow = self._waiting.pop(cid, None)
            if flow is None:
                logger.error("Dropping outcome for unknown flow %s", cid)
                continue
            try:
                flow.resume(outcome)
            except Exception as e:
                logger.exception("Transition of flow %s crashed", cid)
                # A call issued before the crash is orphaned; its outcome is dropped.
                self._waiting.pop(cid, None)
                flow.abort(e)
        self._idle.set()

    def _dispatcher_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            logger.warning(
                "Outcome dispatcher cancelled with %d flow(s) waiting", len(self._waiting)
            )
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Outcome dispatcher stopped with %d flow(s) waiting",
                len(self._waiting),
                exc_info=error,
            )

    async def drain(self) -> None:
        """Wait until every submitted chain has reached a terminal step."""
        await self._idle.wait()
