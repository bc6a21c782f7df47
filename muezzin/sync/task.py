"""
Periodic reconciliation job.
"""
from muezzin.core.errors import Errors
from muezzin.core.task import BaseTask
from muezzin.sync.reconciler import Reconciler, SyncReport


class SyncTask(BaseTask):
    """Runs one Reconciler cycle per tick."""

    def __init__(self, reconciler: Reconciler, initial_delay: float = 0, interval: float = 86400, name: str = "sync"):
        super().__init__(name, initial_delay, interval)
        self.reconciler = reconciler
        self.last_report = None

    def run(self) -> Errors:
        report: SyncReport = self.reconciler.run_cycle()
        self.last_report = report
        return report.errors

    def status(self):
        status = super().status()
        if self.last_report is not None:
            status["operations"] = [o._asdict() for o in self.last_report.operations]
        return status
