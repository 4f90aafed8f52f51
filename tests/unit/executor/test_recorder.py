import asyncio

import pytest

from bdd_core.executor.recorder import Recorder


@pytest.fixture
def recorder():
    recorder = Recorder()
    recorder.start()
    return recorder


class TestRecorder:
    """Test the ordered task chain"""

    @pytest.mark.asyncio
    async def test_tasks_run_in_call_order(self, recorder):
        """Test a slow task still finishes before later ones start"""
        executed = []

        async def slow():
            await asyncio.sleep(0.02)
            executed.append('slow')

        recorder.add('first', slow)
        recorder.add('second', lambda: executed.append('fast'))
        await recorder.promise()

        assert executed == ['slow', 'fast']
        assert recorder.trace() == ['first', 'second']

    @pytest.mark.asyncio
    async def test_add_returns_result(self, recorder):
        """Test the future resolves to the callable's result"""

        async def compute():
            return 42

        assert await recorder.add('compute', compute) == 42
        assert await recorder.add('marker') is None

    @pytest.mark.asyncio
    async def test_promise_waits_for_everything_added(self, recorder):
        """Test the drain settles only after all pending tasks"""
        futures = [recorder.add(f'task {i}', lambda: asyncio.sleep(0.01)) for i in range(3)]

        await recorder.promise()

        assert all(future.done() for future in futures)
        assert recorder.scheduled() == 'task 0\ntask 1\ntask 2'

    @pytest.mark.asyncio
    async def test_promise_without_tasks(self, recorder):
        """Test draining an empty chain resolves immediately"""
        assert await recorder.promise() is None

    @pytest.mark.asyncio
    async def test_failure_poisons_chain(self, recorder):
        """Test later tasks do not run after a failure"""
        executed = []

        def explode():
            raise ValueError('boom')

        recorder.add('explode', explode)
        later = recorder.add('later', lambda: executed.append('later'))

        with pytest.raises(ValueError, match='boom'):
            await recorder.promise()

        assert later.done()
        assert executed == []
        assert recorder.trace() == ['explode', 'error: boom']

    @pytest.mark.asyncio
    async def test_recover_after_failure(self, recorder):
        """Test recover lets new tasks run after a failed chain"""

        def explode():
            raise ValueError('boom')

        recorder.add('explode', explode)
        with pytest.raises(ValueError):
            await recorder.promise()

        recorder.recover()
        recorder.add('after')
        await recorder.promise()

        assert recorder.trace() == ['explode', 'error: boom', 'after']

    @pytest.mark.asyncio
    async def test_recover_waits_for_pending_tasks(self, recorder):
        """Test recovering while tasks are pending keeps them ordered"""

        async def slow_failure():
            await asyncio.sleep(0.01)
            raise ValueError('late')

        recorder.add('slow', slow_failure)
        recorder.recover()
        recorder.add('after')
        await recorder.promise()

        assert recorder.trace() == ['slow', 'error: late', 'after']

    @pytest.mark.asyncio
    async def test_stop_freezes_trace(self, recorder):
        """Test tasks still run after stop but are no longer traced"""
        executed = []
        recorder.add('before')
        await recorder.promise()

        recorder.stop()
        recorder.add('after', lambda: executed.append('after'))
        await recorder.promise()

        assert not recorder.is_running()
        assert executed == ['after']
        assert recorder.trace() == ['before']

    @pytest.mark.asyncio
    async def test_start_resets_session(self, recorder):
        """Test start clears the trace"""
        recorder.add('old')
        await recorder.promise()

        recorder.start()

        assert recorder.trace() == []
        assert recorder.scheduled() == ''

    @pytest.mark.asyncio
    async def test_restart_ignores_earlier_session_tasks(self, recorder):
        """Test tasks still pending from a previous session stay out of the new trace"""
        executed = []
        old = [
            recorder.add('old session', lambda: asyncio.sleep(0.02)),
            recorder.add('old second', lambda: executed.append('old second')),
        ]

        recorder.start()
        recorder.add('new session', lambda: executed.append('new session'))
        await recorder.promise()
        await asyncio.gather(*old)

        assert executed == ['new session', 'old second']
        assert recorder.trace() == ['new session']

    def test_start_unless_running(self):
        """Test start_unless_running keeps an active session"""
        recorder = Recorder()
        recorder.start_unless_running()
        recorder._tasks.append('kept')

        recorder.start_unless_running()

        assert recorder.is_running()
        assert recorder.trace() == ['kept']

    def test_add_requires_event_loop(self, recorder):
        """Test adding outside an event loop fails clearly"""
        with pytest.raises(RuntimeError):
            recorder.add('nowhere')
