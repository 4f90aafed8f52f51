import asyncio
import inspect
import json
import logging
from typing import Any, Callable, Optional, Sequence

from ..core.exceptions import HelperNotFoundError
from .container import Container, default_container
from .events import EventDispatcher, default_dispatcher, STEP_STARTED, STEP_PASSED, STEP_FAILED
from .recorder import Recorder, default_recorder

logger = logging.getLogger(__name__)


def humanize_args(args: Sequence[Any]) -> str:
    """Render arguments the way trace lines show them: ``"add", 600``"""
    return ", ".join(json.dumps(arg, ensure_ascii=False, default=str) for arg in args)


class Actor:
    """
    Facade step bodies use to perform actions through helpers.

    ``I.do("add", 600)`` calls the first helper with an ``add`` method, or
    else the first helper with a catch-all ``do`` method as
    ``do("add", 600)``. Any other attribute, ``I.click("Login")``, dispatches
    that method name the same way. Every dispatch goes through the recorder
    and returns a future resolving to the helper's result.
    """

    def __init__(
            self,
            container: Optional[Container] = None,
            recorder: Optional[Recorder] = None,
            dispatcher: Optional[EventDispatcher] = None
    ):
        self._container = container if container is not None else default_container
        self._recorder = recorder if recorder is not None else default_recorder
        self._dispatcher = dispatcher if dispatcher is not None else default_dispatcher

    def do(self, action: str, *args: Any) -> asyncio.Future:
        """Dispatch a named action with arguments"""
        return self._dispatch('do', (action, *args), lambda: self._perform(action, args))

    def __getattr__(self, name: str) -> Callable[..., asyncio.Future]:
        if name.startswith('_'):
            raise AttributeError(name)

        def method(*args: Any) -> asyncio.Future:
            return self._dispatch(name, args, lambda: self._call(name, args))

        method.__name__ = name
        return method

    def _dispatch(self, step_name: str, args: Sequence[Any], perform: Callable[[], Any]) -> asyncio.Future:
        line = f"{step_name}: {humanize_args(args)}" if args else step_name
        step = {'name': step_name, 'args': list(args)}

        self._dispatcher.emit(STEP_STARTED, step)
        outcome = self._recorder.add(line, lambda: self._perform_step(step, perform))
        self._recorder.add('step passed', lambda: self._dispatcher.emit(STEP_PASSED, step))
        return self._recorder.add('return result', outcome.result)

    async def _perform_step(self, step: dict, perform: Callable[[], Any]) -> Any:
        try:
            result = perform()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(f"Step {step['name']} failed: {e}")
            self._dispatcher.emit(STEP_FAILED, step, e)
            raise
        return result

    def _find_helper(self, method: str) -> Any:
        if not method.isidentifier():
            return None
        for helper in self._container.helpers().values():
            if callable(getattr(helper, method, None)):
                return helper
        return None

    def _call(self, method: str, args: Sequence[Any]) -> Any:
        helper = self._find_helper(method)
        if helper is None:
            raise HelperNotFoundError(f"No helper provides '{method}'")
        return getattr(helper, method)(*args)

    def _perform(self, action: str, args: Sequence[Any]) -> Any:
        helper = self._find_helper(action)
        if helper is not None:
            return getattr(helper, action)(*args)

        helper = self._find_helper('do')
        if helper is None:
            raise HelperNotFoundError(f"No helper provides '{action}'")
        return helper.do(action, *args)


def actor(
        container: Optional[Container] = None,
        recorder: Optional[Recorder] = None,
        dispatcher: Optional[EventDispatcher] = None
) -> Actor:
    """Create an actor bound to the given (or default) container and recorder"""
    return Actor(container, recorder, dispatcher)
