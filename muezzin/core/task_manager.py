"""
Single place for scheduling: one threading.Timer chain per registered task.
"""
import logging
import threading
from datetime import datetime, timezone
from threading import Timer
from typing import Any, Dict, List, Optional

from muezzin.core.task import BaseTask


class TaskManager:
    def __init__(self):
        self.tasks: Dict[str, BaseTask] = {}
        self.timers: Dict[str, Timer] = {}
        self.logger = logging.getLogger("TaskManager")
        self._lock = threading.Lock()
        self._stopped = False

    def register_task(self, task: BaseTask) -> None:
        self.tasks[task.name] = task
        self.logger.debug(f"Registered task: {task.name}")

    def start(self) -> None:
        """Schedule every registered task after its initial delay."""
        for task in self.tasks.values():
            self.schedule_task(task.name, task.initial_delay)

    def schedule_task(self, name: str, delay: float) -> None:
        """Schedule the named task's next tick after delay seconds."""
        with self._lock:
            if self._stopped:
                return
            if name in self.timers:
                self.timers[name].cancel()

            scheduled_time = datetime.now().timestamp() + delay
            timer = Timer(delay, self._run_task, args=(name,))
            timer.daemon = True
            timer.scheduled_time = scheduled_time
            self.timers[name] = timer
            timer.start()
        self.logger.debug(f"Timer started for {name}, scheduled for {datetime.fromtimestamp(scheduled_time)}")

    def _run_task(self, name: str) -> None:
        """Schedule the next tick first so the interval is fixed, then run in this timer's thread."""
        task = self.tasks.get(name)
        if task is None:
            return
        self.schedule_task(name, task.interval)
        try:
            task.trigger()
        except Exception as e:
            self.logger.exception(f"Error running task {name}: {e}")

    def run_task_now(self, name: str) -> bool:
        """Trigger the named task once in a background thread. Returns False if unknown."""
        task = self.tasks.get(name)
        if task is None:
            self.logger.warning(f"No task registered with name: {name}")
            return False
        threading.Thread(target=task.trigger, name=f"{name}-manual", daemon=True).start()
        return True

    def get_active_timers(self) -> List[Dict[str, Any]]:
        """Return task statuses with their next run time (for API)."""
        result = []
        for name, task in self.tasks.items():
            status = task.status()
            timer = self.timers.get(name)
            next_run: Optional[datetime] = None
            if timer is not None and getattr(timer, "scheduled_time", None) is not None:
                next_run = datetime.fromtimestamp(timer.scheduled_time, tz=timezone.utc)
            status["next_run_at"] = next_run
            result.append(status)
        return result

    def stop(self) -> None:
        """Stop all scheduled tasks."""
        with self._lock:
            self._stopped = True
            for timer in self.timers.values():
                timer.cancel()
            self.timers.clear()
