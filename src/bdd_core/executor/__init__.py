from .executor import SuiteCompiler, Suite, Test, ResolvedStep, DataTable, run
from .recorder import Recorder, default_recorder
from .container import Container, default_container
from .actor import Actor, actor, humanize_args
from .events import EventDispatcher, default_dispatcher
from .report_collector import ReportCollector

__all__ = [
    'SuiteCompiler',
    'Suite',
    'Test',
    'ResolvedStep',
    'DataTable',
    'run',
    'Recorder',
    'default_recorder',
    'Container',
    'default_container',
    'Actor',
    'actor',
    'humanize_args',
    'EventDispatcher',
    'default_dispatcher',
    'ReportCollector',
]
