from .patterns import (
    PlaceholderPattern,
    RegexPattern,
    CompiledPattern,
    compile_pattern,
    TOLERANT,
    STRICT,
)
from .step_definitions import (
    StepDefinition,
    StepDefinitionRegistry,
    StepMatch,
    given,
    when,
    then,
)

# Registry behind the module-level registration API
default_registry = StepDefinitionRegistry()


def Given(pattern, function=None, description: str = ""):
    """Register a Given step on the default registry"""
    return default_registry.given(pattern, function, description)


def When(pattern, function=None, description: str = ""):
    """Register a When step on the default registry"""
    return default_registry.when(pattern, function, description)


def Then(pattern, function=None, description: str = ""):
    """Register a Then step on the default registry"""
    return default_registry.then(pattern, function, description)


def match_step(step_text: str) -> StepMatch:
    """Match step text against the default registry"""
    return default_registry.match(step_text)


def clear_steps() -> None:
    """Remove every step registered on the default registry"""
    default_registry.clear()


__all__ = [
    'PlaceholderPattern',
    'RegexPattern',
    'CompiledPattern',
    'compile_pattern',
    'TOLERANT',
    'STRICT',
    'StepDefinition',
    'StepDefinitionRegistry',
    'StepMatch',
    'default_registry',
    'Given',
    'When',
    'Then',
    'match_step',
    'clear_steps',
    'given',
    'when',
    'then',
]
