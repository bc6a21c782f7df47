"""
Task state machine and abstract BaseTask with single-flight execution.
"""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from muezzin.core.errors import ErrorKind, Errors


class TaskState:
    """Idle -> Running -> Idle, or Running -> Failed -> Idle. Failed is never terminal."""
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


class BaseTask(ABC):
    """
    Abstract base for periodic background tasks. Subclasses implement run();
    trigger() guarantees at most one run in flight and drops overlapping ticks.
    """

    def __init__(self, name: str, initial_delay: float = 0, interval: float = 3600):
        self.name = name
        self.initial_delay = float(initial_delay)
        self.interval = float(interval)
        self.state = TaskState.IDLE
        self.last_run_at: Optional[datetime] = None
        self.last_errors = Errors.empty()
        self.run_count = 0
        self.dropped_ticks = 0
        self._lock = threading.Lock()
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def is_running(self) -> bool:
        return self.state == TaskState.RUNNING

    def trigger(self) -> bool:
        """Run once unless a run is already in flight. Returns False if the tick was dropped."""
        if not self._lock.acquire(blocking=False):
            self.dropped_ticks += 1
            self.logger.debug(f"{self.name} is still running, dropping tick")
            return False
        try:
            self.state = TaskState.RUNNING
            self.last_run_at = datetime.now(timezone.utc)
            self.run_count += 1
            try:
                errors = self.run()
            except Exception as e:
                self.logger.exception(f"{self.name} failed: {e}")
                errors = Errors.from_exception(ErrorKind.DATABASE, e, f"{self.__class__.__name__}.run")
            self.last_errors = errors
            if errors:
                self.state = TaskState.FAILED
                self.logger.error(f"{self.name} finished with {', '.join(errors.kinds)} errors: {errors.to_json()}")
            else:
                self.logger.info(f"{self.name} finished")
        finally:
            self.state = TaskState.IDLE
            self._lock.release()
        return True

    @abstractmethod
    def run(self) -> Errors:
        """Execute the task body; return the accumulated Errors (empty on success)."""
        pass

    def status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state,
            "initial_delay": self.initial_delay,
            "interval": self.interval,
            "last_run_at": self.last_run_at,
            "last_errors": self.last_errors.to_json(),
            "run_count": self.run_count,
            "dropped_ticks": self.dropped_ticks,
        }
