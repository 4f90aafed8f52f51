import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

SUITE_BEFORE = "suite.before"
SUITE_AFTER = "suite.after"
TEST_STARTED = "test.started"
TEST_PASSED = "test.passed"
TEST_FAILED = "test.failed"
TEST_SKIPPED = "test.skipped"
TEST_FINISHED = "test.finished"
STEP_STARTED = "step.started"
STEP_PASSED = "step.passed"
STEP_FAILED = "step.failed"


class EventDispatcher:
    """Synchronous publish/subscribe for execution lifecycle events"""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = defaultdict(list)

    def on(self, event: str, listener: Callable) -> Callable:
        """Subscribe a listener; returns it so this can be used as a decorator"""
        self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Callable) -> None:
        """Unsubscribe a listener, ignoring ones never subscribed"""
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)

    def emit(self, event: str, *args: Any) -> None:
        """Call every listener of the event in subscription order"""
        logger.debug(f"Emitting {event}")
        for listener in list(self._listeners.get(event, [])):
            listener(*args)

    def clear(self) -> None:
        """Drop all listeners"""
        self._listeners.clear()


# Shared instance used by the module-level API
default_dispatcher = EventDispatcher()
