"""
BDD Core - compiles Gherkin scenarios into ordered, recorded test runs
"""

__version__ = "0.1.0"
__author__ = "BDD Core Contributors"

from .core import ConfigManager
from .steps import Given, When, Then, match_step, clear_steps
from .executor import (
    SuiteCompiler,
    Suite,
    Test,
    run,
    actor,
    default_recorder as recorder,
    default_container as container,
    default_dispatcher as event,
)

__all__ = [
    "ConfigManager",
    "Given",
    "When",
    "Then",
    "match_step",
    "clear_steps",
    "SuiteCompiler",
    "Suite",
    "Test",
    "run",
    "actor",
    "recorder",
    "container",
    "event",
]
