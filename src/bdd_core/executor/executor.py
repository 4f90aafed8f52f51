import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

# Behave imports
try:
    from behave.parser import parse_feature
    from behave.model import Feature, Scenario, ScenarioOutline, Step
except ImportError:
    raise ImportError("Behave is not installed. Run: pip install behave")

from ..core.exceptions import FeatureCompileError, NoMatchError
from ..steps import StepDefinitionRegistry, StepMatch, default_registry
from .events import (
    EventDispatcher,
    default_dispatcher,
    SUITE_BEFORE,
    SUITE_AFTER,
    TEST_STARTED,
    TEST_PASSED,
    TEST_FAILED,
    TEST_SKIPPED,
    TEST_FINISHED,
)
from .recorder import Recorder, default_recorder

logger = logging.getLogger(__name__)


@dataclass
class DataTable:
    """Table argument attached to a step"""
    headings: List[str]
    rows: List[List[str]] = field(default_factory=list)

    @classmethod
    def from_behave(cls, table) -> 'DataTable':
        return cls(
            headings=list(table.headings),
            rows=[list(row.cells) for row in table.rows]
        )

    def raw(self) -> List[List[str]]:
        """All rows including the heading row"""
        return [list(self.headings)] + [list(row) for row in self.rows]

    def hashes(self) -> List[Dict[str, str]]:
        """One dict per body row, keyed by heading"""
        return [dict(zip(self.headings, row)) for row in self.rows]

    def rows_hash(self) -> Dict[str, str]:
        """First column to second column, for two-column tables"""
        raw = self.raw()
        if any(len(row) != 2 for row in raw):
            raise ValueError("rows_hash() needs a table with exactly two columns")
        return {row[0]: row[1] for row in raw}


@dataclass(frozen=True)
class ResolvedStep:
    """A scenario step bound to the definition that will run it"""
    keyword: str
    text: str
    match: StepMatch

    async def run(self) -> Any:
        result = self.match()
        if inspect.isawaitable(result):
            result = await result
        return result


@dataclass
class Test:
    """
    A compiled scenario.

    ``run()`` executes the steps strictly in order. After each step body it
    awaits the body's result and drains the recorder, so a step never starts
    before everything the previous step dispatched has settled.
    """
    __test__ = False  # not a pytest test class

    title: str
    steps: List[ResolvedStep] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    pending: bool = False
    recorder: Recorder = field(default=default_recorder, repr=False, compare=False)
    dispatcher: EventDispatcher = field(default=default_dispatcher, repr=False, compare=False)

    async def run(self) -> None:
        recorder = self.recorder
        recorder.start_unless_running()
        logger.info(f"Running test: {self.title}")
        self.dispatcher.emit(TEST_STARTED, self)

        if self.pending:
            # Scenario outlines are not expanded yet
            recorder.add('skip test', lambda: self.dispatcher.emit(TEST_SKIPPED, self))
            recorder.add('finish test', lambda: self.dispatcher.emit(TEST_FINISHED, self))
            await recorder.promise()
            return

        try:
            for step in self.steps:
                logger.debug(f"Step: {step.keyword} {step.text}")
                await step.run()
                await recorder.promise()

            recorder.add('fire test.passed', lambda: self.dispatcher.emit(TEST_PASSED, self))
            recorder.add('finish test', lambda: self.dispatcher.emit(TEST_FINISHED, self))
            await recorder.promise()

        except Exception as e:
            logger.error(f"Test failed: {self.title}: {e}")
            recorder.recover()
            recorder.add('fire test.failed', lambda error=e: self.dispatcher.emit(TEST_FAILED, self, error))
            recorder.add('finish test', lambda: self.dispatcher.emit(TEST_FINISHED, self))
            await recorder.promise()
            raise

    def fn(self, done: Optional[Callable[..., Any]] = None):
        """
        Entry point for test-framework bindings.

        Without a running event loop the test runs to completion, then
        ``done()`` (or ``done(error)``) is called; without ``done`` errors
        are raised. Inside a running loop the test is scheduled as a task,
        ``done`` is attached to it and the task is returned.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return self._run_sync(done)

        task = asyncio.ensure_future(self.run())
        if done is not None:
            task.add_done_callback(lambda finished: _notify(done, finished))
        return task

    def _run_sync(self, done: Optional[Callable[..., Any]]) -> None:
        try:
            asyncio.run(self.run())
        except Exception as e:
            if done is None:
                raise
            done(e)
            return
        if done is not None:
            done()


def _notify(done: Callable[..., Any], task: asyncio.Future) -> None:
    if task.cancelled():
        done(asyncio.CancelledError())
    elif task.exception() is not None:
        done(task.exception())
    else:
        done()


@dataclass
class Suite:
    """Compiled feature: a title and its tests in scenario order"""
    title: str
    tests: List[Test] = field(default_factory=list)
    description: str = ""
    tags: List[str] = field(default_factory=list)
    dispatcher: EventDispatcher = field(default=default_dispatcher, repr=False, compare=False)

    async def run(self) -> List[Tuple[Test, Optional[Exception]]]:
        """Run every test in order; returns each test with its error, if any"""
        self.dispatcher.emit(SUITE_BEFORE, self)
        outcomes = []

        for test in self.tests:
            try:
                await test.run()
            except Exception as e:
                outcomes.append((test, e))
            else:
                outcomes.append((test, None))

        self.dispatcher.emit(SUITE_AFTER, self)
        return outcomes


class SuiteCompiler:
    """
    Compiles Gherkin feature text into a Suite.

    Every step is resolved against the registry at compile time, so a
    missing step definition fails the compile before anything runs.
    Compiling never changes the registry.
    """

    def __init__(
            self,
            registry: Optional[StepDefinitionRegistry] = None,
            recorder: Optional[Recorder] = None,
            dispatcher: Optional[EventDispatcher] = None
    ):
        self.registry = registry if registry is not None else default_registry
        self.recorder = recorder if recorder is not None else default_recorder
        self.dispatcher = dispatcher if dispatcher is not None else default_dispatcher

    def compile(self, feature_text: str, filename: Optional[str] = None) -> Suite:
        """
        Compile feature text.

        Raises:
            behave.parser.ParserError: For invalid Gherkin
            FeatureCompileError: If the text holds no feature
            NoMatchError: If a step matches no registered definition
        """
        feature = parse_feature(feature_text, filename=filename)
        if feature is None:
            raise FeatureCompileError(f"No feature found in {filename or 'feature text'}")

        suite = Suite(
            title=feature.name,
            description="\n".join(feature.description),
            tags=[str(tag) for tag in feature.tags],
            dispatcher=self.dispatcher
        )

        background = self._background_steps(feature)
        for scenario in feature.scenarios:
            suite.tests.append(self._compile_scenario(feature, scenario, background))

        # Rules exist in behave >= 1.2.7 only
        for rule in getattr(feature, 'rules', None) or []:
            rule_background = background + self._background_steps(rule)
            for scenario in rule.scenarios:
                suite.tests.append(self._compile_scenario(feature, scenario, rule_background))

        logger.info(f"Compiled feature '{suite.title}' with {len(suite.tests)} tests")
        return suite

    @staticmethod
    def _background_steps(node) -> List[Step]:
        background = getattr(node, 'background', None)
        return list(background.steps) if background else []

    def _compile_scenario(self, feature: Feature, scenario: Scenario, background: List[Step]) -> Test:
        title = scenario.name or feature.name
        tags = [str(tag) for tag in scenario.tags]

        if isinstance(scenario, ScenarioOutline):
            logger.warning(f"Scenario outline '{title}' is not supported yet, marking it pending")
            return Test(title=title, tags=tags, pending=True,
                        recorder=self.recorder, dispatcher=self.dispatcher)

        try:
            steps = [self._resolve_step(step) for step in background + list(scenario.steps)]
        except NoMatchError as e:
            logger.error(f"Cannot compile scenario '{title}': {e}")
            raise

        return Test(title=title, steps=steps, tags=tags,
                    recorder=self.recorder, dispatcher=self.dispatcher)

    def _resolve_step(self, step: Step) -> ResolvedStep:
        match = self.registry.match(step.name)

        if step.table is not None:
            match = match.with_argument(DataTable.from_behave(step.table))
        if step.text is not None:
            match = match.with_argument(str(step.text))

        return ResolvedStep(keyword=step.keyword.strip(), text=step.name, match=match)


def run(feature_text: str, filename: Optional[str] = None) -> Suite:
    """Compile feature text against the default registry"""
    return SuiteCompiler().compile(feature_text, filename=filename)
