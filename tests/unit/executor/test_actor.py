import asyncio

import pytest

from bdd_core.core.exceptions import HelperNotFoundError
from bdd_core.executor import Actor, Container, EventDispatcher, Recorder, actor, humanize_args
from bdd_core.executor.events import STEP_STARTED, STEP_PASSED, STEP_FAILED


class CatchAllHelper:
    def __init__(self):
        self.calls = []

    async def do(self, *args):
        self.calls.append(args)
        return ' '.join(str(arg) for arg in args)


class CartHelper:
    def __init__(self):
        self.items = []

    def add(self, price):
        self.items.append(price)
        return len(self.items)

    def click(self, label):
        return f'clicked {label}'


@pytest.fixture
def recorder():
    recorder = Recorder()
    recorder.start()
    return recorder


@pytest.fixture
def dispatcher():
    return EventDispatcher()


def make_actor(recorder, dispatcher, **helpers):
    container = Container().create({'helpers': helpers})
    return Actor(container, recorder, dispatcher)


class TestActorDispatch:
    """Test how actions reach helpers"""

    @pytest.mark.asyncio
    async def test_catch_all_do(self, recorder, dispatcher):
        """Test helpers without the named method get do(action, *args)"""
        helper = CatchAllHelper()
        I = make_actor(recorder, dispatcher, simple=helper)

        result = await I.do('add', 600)

        assert result == 'add 600'
        assert helper.calls == [('add', 600)]
        assert recorder.trace() == ['do: "add", 600', 'step passed', 'return result']

    @pytest.mark.asyncio
    async def test_named_method_preferred(self, recorder, dispatcher):
        """Test a helper method named like the action is called directly"""
        catch_all = CatchAllHelper()
        cart = CartHelper()
        I = make_actor(recorder, dispatcher, simple=catch_all, cart=cart)

        assert await I.do('add', 600) == 1
        assert cart.items == [600]
        assert catch_all.calls == []

    @pytest.mark.asyncio
    async def test_action_without_arguments(self, recorder, dispatcher):
        """Test trace lines for argument-less actions"""
        I = make_actor(recorder, dispatcher, simple=CatchAllHelper())

        await I.do('add finish checkout')

        assert recorder.trace()[0] == 'do: "add finish checkout"'

    @pytest.mark.asyncio
    async def test_first_helper_wins(self, recorder, dispatcher):
        """Test helpers are searched in registration order"""
        first, second = CatchAllHelper(), CatchAllHelper()
        I = make_actor(recorder, dispatcher, first=first, second=second)

        await I.do('ping')

        assert first.calls == [('ping',)]
        assert second.calls == []

    @pytest.mark.asyncio
    async def test_attribute_dispatch(self, recorder, dispatcher):
        """Test I.<method>(...) dispatches that method"""
        I = make_actor(recorder, dispatcher, cart=CartHelper())

        assert await I.click('Login') == 'clicked Login'
        assert recorder.trace() == ['click: "Login"', 'step passed', 'return result']

    def test_private_attributes_are_not_actions(self, recorder, dispatcher):
        """Test underscore names raise AttributeError"""
        I = make_actor(recorder, dispatcher)

        with pytest.raises(AttributeError):
            I._secret

    @pytest.mark.asyncio
    async def test_missing_helper(self, recorder, dispatcher):
        """Test the result rejects when no helper provides the action"""
        I = make_actor(recorder, dispatcher, cart=CartHelper())

        with pytest.raises(HelperNotFoundError):
            await I.do('fly')

        assert recorder.trace() == ['do: "fly"', "error: No helper provides 'fly'"]

    @pytest.mark.asyncio
    async def test_helper_failure_rejects(self, recorder, dispatcher):
        """Test helper errors reject and skip the settlement lines"""

        class Failing:
            async def do(self, *args):
                raise RuntimeError('out of stock')

        I = make_actor(recorder, dispatcher, failing=Failing())

        with pytest.raises(RuntimeError, match='out of stock'):
            await I.do('add', 1)

        assert 'step passed' not in recorder.trace()
        assert recorder.trace()[-1] == 'error: out of stock'


class TestActorOrdering:
    """Test call order is preserved regardless of completion order"""

    @pytest.mark.asyncio
    async def test_unawaited_dispatches_keep_call_order(self, recorder, dispatcher):
        """Test a slow first action still settles before the next starts"""
        completed = []

        class Timed:
            async def do(self, name, delay):
                await asyncio.sleep(delay)
                completed.append(name)

        I = make_actor(recorder, dispatcher, timed=Timed())

        I.do('slow', 0.03)
        I.do('fast', 0)
        I.do('medium', 0.01)
        await recorder.promise()

        assert completed == ['slow', 'fast', 'medium']
        assert recorder.trace() == [
            'do: "slow", 0.03', 'step passed', 'return result',
            'do: "fast", 0', 'step passed', 'return result',
            'do: "medium", 0.01', 'step passed', 'return result',
        ]


class TestActorEvents:
    """Test step events emitted by the actor"""

    @pytest.mark.asyncio
    async def test_step_events(self, recorder, dispatcher):
        """Test started/passed events for a successful action"""
        seen = []
        dispatcher.on(STEP_STARTED, lambda step: seen.append(('started', step['name'])))
        dispatcher.on(STEP_PASSED, lambda step: seen.append(('passed', step['name'])))
        I = make_actor(recorder, dispatcher, simple=CatchAllHelper())

        await I.do('add', 1)

        assert seen == [('started', 'do'), ('passed', 'do')]

    @pytest.mark.asyncio
    async def test_step_failed_event(self, recorder, dispatcher):
        """Test failed actions emit step.failed with the error"""
        failures = []
        dispatcher.on(STEP_FAILED, lambda step, error: failures.append(error))
        I = make_actor(recorder, dispatcher)

        with pytest.raises(HelperNotFoundError):
            await I.do('fly')
        await asyncio.sleep(0)

        assert len(failures) == 1
        assert isinstance(failures[0], HelperNotFoundError)

    @pytest.mark.asyncio
    async def test_step_failed_listener_errors_propagate(self, recorder, dispatcher):
        """Test an error raised by a step.failed listener rejects the action"""
        def broken_listener(step, error):
            raise RuntimeError('listener broke')

        dispatcher.on(STEP_FAILED, broken_listener)
        I = make_actor(recorder, dispatcher)

        with pytest.raises(RuntimeError, match='listener broke'):
            await I.do('fly')

        assert recorder.trace() == ['do: "fly"', 'error: listener broke']


class TestActorFactory:
    """Test actor() defaults"""

    @pytest.mark.asyncio
    async def test_uses_default_container_and_recorder(self):
        """Test actor() dispatches through the shared instances"""
        from bdd_core import container, recorder

        helper = CatchAllHelper()
        container.append({'helpers': {'simple': helper}})

        await actor().do('add', 2)

        assert helper.calls == [('add', 2)]
        assert recorder.trace()[0] == 'do: "add", 2'


def test_humanize_args():
    """Test argument rendering in trace lines"""
    assert humanize_args(['add', 600]) == '"add", 600'
    assert humanize_args([1.5, None, True]) == '1.5, null, true'
    assert humanize_args([]) == ''
    assert humanize_args(['café', 'naïve']) == '"café", "naïve"'
