"""
Broom: periodic sweep of expired prayer times and stale cache entries.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional

from muezzin.core.cache import SnapshotCache
from muezzin.core.entities import EntityType
from muezzin.core.errors import Errors
from muezzin.core.task import BaseTask
from muezzin.store.gateway import StoreGateway

DEFAULT_EFFECT = timedelta(days=7)


class BroomTask(BaseTask):
    """
    Deletes prayer times dated before (now - effect) and expires cache entries
    older than the cache timeout. Runs independently of the sync job.
    """

    def __init__(
        self,
        store: StoreGateway,
        cache: Optional[SnapshotCache] = None,
        effect: timedelta = DEFAULT_EFFECT,
        initial_delay: float = 0,
        interval: float = 86400,
        now: Callable[[], datetime] = datetime.now,
        name: str = "broom",
    ):
        super().__init__(name, initial_delay, interval)
        self.store = store
        self.cache = cache
        self.effect = effect
        self.now = now

    def cutoff(self):
        return (self.now() - self.effect).date()

    def run(self) -> Errors:
        cutoff = self.cutoff()
        self.logger.info(f"Sweeping prayer times dated before {cutoff.isoformat()}")
        result = self.store.delete_prayer_times_before(cutoff)
        if self.cache is not None:
            if result.is_ok and result.value:
                self.cache.invalidate(EntityType.PRAYER_TIME)
            self.cache.sweep()
        return result.errors
