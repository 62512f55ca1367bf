import pytest

from typerace.services.races.scheduler import TaskScheduler


class InlineSocketIO:
    """Queues background tasks until ``run_all``; ``sleep`` runs an optional hook."""

    def __init__(self):
        self.tasks = []
        self.slept = []
        self.during_sleep = None

    def start_background_task(self, target, *args):
        self.tasks.append((target, args))

    def sleep(self, seconds):
        self.slept.append(seconds)
        if self.during_sleep is not None:
            self.during_sleep()

    def run_all(self):
        tasks, self.tasks = self.tasks, []
        for target, args in tasks:
            target(*args)


@pytest.fixture()
def sio():
    return InlineSocketIO()


@pytest.fixture()
def tasks(sio):
    return TaskScheduler(sio)


def recorder():
    calls = []
    return calls, lambda: calls.append(1)


def test_task_fires_once_after_delay(sio, tasks):
    calls, callback = recorder()

    assert tasks.schedule(('start', 1), 5, callback) is True
    assert tasks.is_pending(('start', 1))
    sio.run_all()

    assert calls == [1]
    assert sio.slept == [5]
    assert not tasks.is_pending(('start', 1))


def test_pending_key_refuses_second_schedule(sio, tasks):
    first, first_cb = recorder()
    second, second_cb = recorder()

    assert tasks.schedule(('start', 1), 5, first_cb) is True
    assert tasks.schedule(('start', 1), 5, second_cb) is False
    assert len(sio.tasks) == 1
    sio.run_all()

    assert (first, second) == ([1], [])


def test_other_keys_are_independent(sio, tasks):
    calls, callback = recorder()
    assert tasks.schedule(('start', 1), 5, callback)
    assert tasks.schedule(('start', 2), 5, callback)
    assert tasks.schedule(('deadline', 1), 180, callback)
    sio.run_all()
    assert calls == [1, 1, 1]


def test_cancel_while_sleeping_skips_callback(sio, tasks):
    calls, callback = recorder()
    tasks.schedule(('start', 1), 5, callback)
    sio.during_sleep = lambda: tasks.cancel(('start', 1))

    sio.run_all()

    assert calls == []
    assert not tasks.is_pending(('start', 1))


def test_cancel_then_reschedule_runs_only_new_task(sio, tasks):
    old, old_cb = recorder()
    new, new_cb = recorder()

    tasks.schedule(('start', 1), 5, old_cb)
    assert tasks.cancel(('start', 1)) is True
    assert tasks.schedule(('start', 1), 5, new_cb) is True
    sio.run_all()

    assert (old, new) == ([], [1])
    assert not tasks.is_pending(('start', 1))


def test_cancel_unknown_key_is_noop(tasks):
    assert tasks.cancel(('start', 99)) is False


def test_cancel_all_suppresses_every_pending_task(sio, tasks):
    calls, callback = recorder()
    tasks.schedule(('start', 1), 5, callback)
    tasks.schedule(('deadline', 2), 180, callback)

    tasks.cancel_all()
    sio.run_all()

    assert calls == []
    assert not tasks.is_pending(('start', 1))
    assert not tasks.is_pending(('deadline', 2))


def test_failing_callback_is_contained(sio, tasks):
    def boom():
        raise RuntimeError('callback failed')

    tasks.schedule(('start', 1), 5, boom)
    sio.run_all()

    assert not tasks.is_pending(('start', 1))
    calls, callback = recorder()
    assert tasks.schedule(('start', 1), 5, callback) is True
    sio.run_all()
    assert calls == [1]


def test_zero_delay_does_not_sleep(sio, tasks):
    calls, callback = recorder()
    tasks.schedule(('start', 1), 0, callback)
    sio.run_all()
    assert calls == [1]
    assert sio.slept == []
