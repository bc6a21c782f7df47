import threading
import time

from muezzin.core.errors import Errors
from muezzin.core.task import BaseTask
from muezzin.core.task_manager import TaskManager


class CountingTask(BaseTask):
    def __init__(self, name="counting", initial_delay=0.01, interval=0.05):
        super().__init__(name, initial_delay, interval)
        self.count = 0
        self.ran = threading.Event()

    def run(self) -> Errors:
        self.count += 1
        self.ran.set()
        return Errors.empty()


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_runs_after_initial_delay_and_repeats_at_interval():
    manager = TaskManager()
    task = CountingTask()
    manager.register_task(task)
    manager.start()
    try:
        assert _wait_for(lambda: task.count >= 3)
        timers = manager.get_active_timers()
        assert [t["name"] for t in timers] == ["counting"]
        assert timers[0]["next_run_at"] is not None
    finally:
        manager.stop()


def test_stop_cancels_future_runs():
    manager = TaskManager()
    task = CountingTask()
    manager.register_task(task)
    manager.start()
    assert _wait_for(lambda: task.count >= 1)
    manager.stop()
    time.sleep(0.1)
    count = task.count
    time.sleep(0.2)
    assert task.count == count


def test_initial_delay_is_honored():
    manager = TaskManager()
    task = CountingTask(initial_delay=10, interval=10)
    manager.register_task(task)
    manager.start()
    try:
        time.sleep(0.1)
        assert task.count == 0
    finally:
        manager.stop()


def test_run_task_now():
    manager = TaskManager()
    task = CountingTask(initial_delay=10, interval=10)
    manager.register_task(task)
    assert manager.run_task_now("counting") is True
    assert task.ran.wait(5)
    assert manager.run_task_now("unknown") is False
