import inspect
import logging
from typing import Dict, List, Callable, Pattern, Optional, Any, Union, Tuple
from dataclasses import dataclass, field

from ..core.exceptions import NoMatchError
from .patterns import CompiledPattern, compile_pattern, TOLERANT

logger = logging.getLogger(__name__)

KEYWORDS = ('given', 'when', 'then')


def _fit_arguments(function: Callable, args: Tuple[Any, ...]) -> Tuple[Any, ...]:
    """Drop positional arguments the function has no parameter for"""
    try:
        signature = inspect.signature(function)
    except (TypeError, ValueError):
        return args

    accepted = 0
    for parameter in signature.parameters.values():
        if parameter.kind == parameter.VAR_POSITIONAL:
            return args
        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD):
            accepted += 1

    return args[:accepted]


@dataclass(frozen=True)
class StepDefinition:
    """Represents a step definition with its compiled pattern and function"""
    keyword: str  # given, when, then (informational only)
    pattern: CompiledPattern
    function: Callable
    description: str = ""

    def match(self, step_text: str) -> Optional['StepMatch']:
        """Match the whole step text, returning the bound step or None"""
        params = self.pattern.match(step_text)
        if params is None:
            return None
        return StepMatch(definition=self, params=params)


@dataclass(frozen=True)
class StepMatch:
    """
    A step definition bound to the parameters extracted from one step text.

    Calling it with no arguments runs the step function with ``params``.
    Calling it with a single list or tuple is the same as calling it with
    that sequence unpacked, so ``match(match.params)`` and
    ``match(*match.params)`` behave identically.
    """
    definition: StepDefinition
    params: List[Any] = field(default_factory=list)

    @property
    def function(self) -> Callable:
        return self.definition.function

    def invoke(self, *args) -> Any:
        """Run the step function; may return an awaitable"""
        if not args:
            args = tuple(self.params)
        elif len(args) == 1 and isinstance(args[0], (list, tuple)):
            args = tuple(args[0])

        return self.function(*_fit_arguments(self.function, args))

    __call__ = invoke

    def with_argument(self, argument: Any) -> 'StepMatch':
        """Copy with a step argument (table or doc string) appended to params"""
        return StepMatch(definition=self.definition, params=[*self.params, argument])


class StepDefinitionRegistry:
    """Registry for step definitions"""

    def __init__(self, whitespace: str = TOLERANT):
        self.definitions: List[StepDefinition] = []
        self.whitespace = whitespace

    def add_definition(
            self,
            keyword: str,
            pattern: Union[str, Pattern],
            function: Callable,
            description: str = ""
    ) -> StepDefinition:
        """Add a step definition to registry"""
        definition = StepDefinition(
            keyword=keyword.lower(),
            pattern=compile_pattern(pattern, self.whitespace),
            function=function,
            description=description
        )

        self.definitions.append(definition)
        logger.debug(f"Registered step: {keyword} {definition.pattern.pattern}")
        return definition

    def _register(self, keyword: str, pattern, function: Optional[Callable], description: str):
        if function is not None:
            self.add_definition(keyword, pattern, function, description)
            return function

        def decorator(func):
            self.add_definition(keyword, pattern, func, description)
            return func

        return decorator

    def given(self, pattern, function: Optional[Callable] = None, description: str = ""):
        """Register a Given step, directly or as a decorator"""
        return self._register('given', pattern, function, description)

    def when(self, pattern, function: Optional[Callable] = None, description: str = ""):
        """Register a When step, directly or as a decorator"""
        return self._register('when', pattern, function, description)

    def then(self, pattern, function: Optional[Callable] = None, description: str = ""):
        """Register a Then step, directly or as a decorator"""
        return self._register('then', pattern, function, description)

    def step(self, pattern, function: Optional[Callable] = None, description: str = ""):
        """Register a step usable with any keyword"""
        return self._register('step', pattern, function, description)

    def find_step_definition(self, step_text: str) -> Optional[StepDefinition]:
        """Find the first registered definition matching the step text"""
        found = self._first_match(step_text)
        return found.definition if found else None

    def _first_match(self, step_text: str) -> Optional[StepMatch]:
        for definition in self.definitions:
            found = definition.match(step_text)
            if found is not None:
                logger.debug(f"Found matching step definition: {definition.pattern.pattern}")
                return found
        return None

    def match(self, step_text: str) -> StepMatch:
        """
        Match step text against registered definitions in registration order.

        Raises:
            NoMatchError: If no definition matches the whole text
        """
        found = self._first_match(step_text)
        if found is not None:
            return found

        # If no match found, log available patterns for debugging
        logger.warning(f"No step definition found for: {step_text}")
        logger.debug("Available patterns:")
        for definition in self.definitions:
            logger.debug(f"  {definition.keyword}: {definition.pattern.pattern}")

        raise NoMatchError(step_text)

    def list_definitions(self) -> List[Dict[str, str]]:
        """List all registered step definitions"""
        return [
            {
                'keyword': defn.keyword,
                'pattern': defn.pattern.pattern,
                'description': defn.description,
                'function': getattr(defn.function, '__name__', repr(defn.function))
            }
            for defn in self.definitions
        ]

    def clear(self):
        """Clear all registered definitions"""
        self.definitions.clear()

    def register_from_module(self, module):
        """Register all step definitions marked in a module, in source order"""
        marked = [obj for _, obj in inspect.getmembers(module) if hasattr(obj, '_step_definitions')]
        marked.sort(key=lambda obj: getattr(getattr(obj, '__code__', None), 'co_firstlineno', 0))

        for obj in marked:
            for step_info in obj._step_definitions:
                self.add_definition(
                    step_info['keyword'],
                    step_info['pattern'],
                    obj,
                    step_info.get('description', '')
                )


def _mark(keyword: str, pattern, description: str):
    def decorator(func):
        markers = list(getattr(func, '_step_definitions', ()))
        # Decorators apply bottom-up; keep source order
        markers.insert(0, {
            'keyword': keyword,
            'pattern': pattern,
            'description': description
        })
        func._step_definitions = markers
        return func

    return decorator


# Utility decorators for marking functions as step definitions
def given(pattern, description: str = ""):
    """Mark function as a Given step"""
    return _mark('given', pattern, description)


def when(pattern, description: str = ""):
    """Mark function as a When step"""
    return _mark('when', pattern, description)


def then(pattern, description: str = ""):
    """Mark function as a Then step"""
    return _mark('then', pattern, description)
