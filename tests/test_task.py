import threading

from muezzin.core.errors import ErrorKind, Errors
from muezzin.core.task import BaseTask, TaskState
from muezzin.sync.reconciler import SyncReport
from muezzin.sync.task import SyncTask


class BlockingTask(BaseTask):
    """Blocks in run() until released, like a slow provider fetch."""

    def __init__(self):
        super().__init__("blocking", initial_delay=0, interval=1)
        self.started = threading.Event()
        self.release = threading.Event()
        self.runs = 0

    def run(self) -> Errors:
        self.runs += 1
        self.started.set()
        self.release.wait(5)
        return Errors.empty()


class FailingTask(BaseTask):
    def __init__(self, errors=None, exc=None):
        super().__init__("failing")
        self.errors = errors
        self.exc = exc

    def run(self) -> Errors:
        if self.exc:
            raise self.exc
        return self.errors


def test_second_trigger_while_running_is_dropped():
    task = BlockingTask()
    thread = threading.Thread(target=task.trigger)
    thread.start()
    assert task.started.wait(5)

    assert task.state == TaskState.RUNNING
    assert task.trigger() is False
    assert task.state == TaskState.RUNNING
    assert task.dropped_ticks == 1

    task.release.set()
    thread.join(5)
    assert task.runs == 1
    assert task.state == TaskState.IDLE
    assert task.run_count == 1


def test_trigger_after_finish_runs_again():
    task = BlockingTask()
    task.release.set()
    assert task.trigger() is True
    assert task.trigger() is True
    assert task.runs == 2
    assert task.last_run_at is not None


def test_errors_fail_the_run_then_reset_to_idle(caplog):
    errors = Errors.single(ErrorKind.REQUEST_FAILED, "Timed out")
    task = FailingTask(errors=errors)
    assert task.trigger() is True
    assert task.state == TaskState.IDLE
    assert task.last_errors == errors
    assert "failing finished with requestFailed errors" in caplog.text


def test_unexpected_exception_is_contained():
    task = FailingTask(exc=RuntimeError("boom"))
    assert task.trigger() is True
    assert task.state == TaskState.IDLE
    assert task.last_errors.kinds == [ErrorKind.DATABASE]
    assert task.status()["last_errors"][0]["details"] == "boom"


class _Reconciler:
    def __init__(self, report):
        self.report = report
        self.cycles = 0

    def run_cycle(self):
        self.cycles += 1
        return self.report


def test_sync_task_returns_cycle_errors():
    errors = Errors.single(ErrorKind.DATABASE, "locked")
    reconciler = _Reconciler(SyncReport(errors, []))
    task = SyncTask(reconciler, initial_delay=5, interval=60)
    task.trigger()
    assert reconciler.cycles == 1
    assert task.last_errors == errors
    status = task.status()
    assert status["name"] == "sync"
    assert status["interval"] == 60
    assert status["operations"] == []
