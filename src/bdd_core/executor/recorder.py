"""
Execution recorder.

The recorder owns a single chain of asynchronous tasks. Every task added
runs only after all previously added tasks have settled, so effects issued
without awaiting each other still execute, and appear in the trace, in the
order they were added. ``promise()`` is the drain: it resolves once every
task added before the call has settled.
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)


async def _settled(future: asyncio.Future) -> Any:
    if not future.done():
        await asyncio.wait([future])
    return future.result()


def _retrieve(task: asyncio.Future) -> None:
    # errors are re-raised through the chain and promise()
    if not task.cancelled():
        task.exception()


class Recorder:
    """Serializes recorded effects into one ordered trace"""

    def __init__(self):
        self._running = False
        self._tasks: List[str] = []
        self._tail: Optional[asyncio.Future] = None

    def start(self) -> None:
        """Begin a recording session with an empty trace"""
        if self._running:
            logger.warning("Recorder already running, restarting session")
        self._running = True
        self._tasks = []
        self._tail = None
        logger.debug("Recorder started")

    def start_unless_running(self) -> None:
        if not self._running:
            self.start()

    def stop(self) -> None:
        """Stop appending to the trace; outstanding tasks keep running"""
        self._running = False
        logger.debug("Recorder stopped")

    def is_running(self) -> bool:
        return self._running

    def _log(self, trace: List[str], line: str) -> None:
        # tasks left over from an earlier session never write to this one
        if self._running and trace is self._tasks:
            trace.append(line)
            logger.debug(f"Recorder: {line}")

    def add(self, name: str, fn: Optional[Callable[[], Any]] = None) -> asyncio.Future:
        """
        Chain a task after everything added so far.

        Args:
            name: Trace line written when the task starts
            fn: Callable run by the task; may return an awaitable

        Returns:
            Future resolving to the callable's result

        Raises:
            RuntimeError: If called without a running event loop
        """
        loop = asyncio.get_running_loop()
        task = loop.create_task(self._run_task(self._tasks, self._tail, name, fn))
        task.add_done_callback(_retrieve)
        self._tail = task
        return task

    async def _run_task(
            self,
            trace: List[str],
            previous: Optional[asyncio.Future],
            name: str,
            fn
    ) -> Any:
        if previous is not None:
            # a failed predecessor fails this task without running it
            await _settled(previous)

        self._log(trace, name)
        try:
            result = fn() if fn is not None else None
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            self._log(trace, f"error: {e}")
            raise

        return result

    def promise(self) -> Awaitable[Any]:
        """Awaitable settling once every task added before this call has settled"""
        return self._drain(self._tail)

    async def _drain(self, tail: Optional[asyncio.Future]) -> Any:
        if tail is None:
            return None
        return await _settled(tail)

    def recover(self) -> None:
        """Detach later tasks from a failed chain"""
        previous = self._tail
        if previous is None or previous.done():
            self._tail = None
            return

        loop = asyncio.get_running_loop()
        self._tail = loop.create_task(asyncio.wait([previous]))

    def scheduled(self) -> str:
        """Trace lines joined by newlines"""
        return "\n".join(self._tasks)

    def trace(self) -> List[str]:
        return list(self._tasks)


# Shared instance used by the module-level API
default_recorder = Recorder()
