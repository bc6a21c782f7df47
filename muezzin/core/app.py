import logging
import sys
import threading
from pathlib import Path
from typing import Optional

from muezzin.broom.task import BroomTask
from muezzin.core.cache import SnapshotCache
from muezzin.core.config import Config
from muezzin.core.db import dispose_db, init_db
from muezzin.core.task_manager import TaskManager
from muezzin.provider import get_provider
from muezzin.service import PrayerTimesService
from muezzin.store.gateway import DEFAULT_BATCH_SIZE, StoreGateway
from muezzin.sync.reconciler import Reconciler
from muezzin.sync.task import SyncTask


class MuezzinApp:
    def __init__(self, config_path: Optional[str] = None, provider=None):
        self.logger = logging.getLogger(self.__class__.__name__)

        self.config = Config(config_path=config_path)
        self._setup_logging()

        # Initialize database before anything reads from it
        init_db(self.config.data)

        db_config = self.config.section("database")
        self.store = StoreGateway(batch_size=db_config.get("batch_size", DEFAULT_BATCH_SIZE))
        self.cache = SnapshotCache(self.config.duration("cache", "timeout").total_seconds())
        self.service = PrayerTimesService(self.store, self.cache)

        provider_config = self.config.section("provider")
        self.provider = provider or get_provider(provider_config)
        if self.provider is None:
            raise ValueError(f"Unknown provider type: {provider_config.get('type')}")

        sync_config = self.config.section("sync")
        self.reconciler = Reconciler(
            self.provider,
            self.store,
            cache=self.cache,
            countries=sync_config.get("countries"),
            cities=sync_config.get("cities"),
            districts=sync_config.get("districts"),
            month_window=sync_config.get("month_window", 1),
        )

        self.task_manager = TaskManager()
        if sync_config.get("enabled", True):
            self.task_manager.register_task(SyncTask(
                self.reconciler,
                initial_delay=self.config.duration("sync", "initial_delay").total_seconds(),
                interval=self.config.duration("sync", "interval").total_seconds(),
            ))
        broom_config = self.config.section("broom")
        if broom_config.get("enabled", True):
            self.task_manager.register_task(BroomTask(
                self.store,
                self.cache,
                effect=self.config.duration("broom", "effect"),
                initial_delay=self.config.duration("broom", "initial_delay").total_seconds(),
                interval=self.config.duration("broom", "interval").total_seconds(),
            ))

        self._stop_event = threading.Event()

    def _setup_logging(self):
        """Configure logging to write to both file and stdout"""
        logging_config = self.config.section("logging")
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
        root_logger.setLevel(getattr(logging, str(logging_config.get("level", "INFO")).upper(), logging.INFO))

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
        )

        log_file = logging_config.get("file")
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        logging.info("Muezzin starting...")

    def start(self) -> None:
        """Start background tasks and the API server (if enabled)."""
        self.task_manager.start()
        try:
            from muezzin.api import run_api_server
            run_api_server(self)
        except Exception as e:
            self.logger.warning(f"API server not started: {e}")

    def run(self) -> None:
        """Start and block until interrupted."""
        try:
            self.start()
            while not self._stop_event.wait(1.0):
                pass
        except KeyboardInterrupt:
            self.logger.info("Interrupted, shutting down")
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self._stop_event.set()
        self.task_manager.stop()
        self.cache.clear()
        dispose_db()
        self.logger.info("Muezzin stopped")
