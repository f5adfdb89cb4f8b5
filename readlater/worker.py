import logging
import signal
import threading
from typing import Optional

from .config import CrawlerSettings, get_crawler_settings
from .db import check_database, init_db
from .jobs import run_tick
from .jobs.scheduler import TickResult
from .observability.logging import bind_tick_id, setup_logging
from .observability.sentry import init_sentry
from .services import build_client


logger = logging.getLogger(__name__)


class CrawlerWorker:
    """Background worker that runs a crawler tick every ``crawl_interval``.

    Ticks never overlap: the next wait starts only after the previous tick
    returned, so a slow tick delays the schedule instead of piling up.
    ``stop()`` wakes the worker, prevents further ticks and makes a running
    batch stop before its next candidate.
    """

    def __init__(self, settings: CrawlerSettings):
        self.settings = settings
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.ticks = 0

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def tick(self) -> Optional[TickResult]:
        bind_tick_id()
        with build_client(self.settings.download_timeout_seconds) as client:
            try:
                return run_tick(self.settings, client=client, should_stop=self._stop.is_set)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Crawler tick failed: %s", exc)
                return None
            finally:
                self.ticks += 1

    def run(self) -> None:
        """Block until ``stop()`` is called, running one tick per interval."""
        interval = self.settings.crawl_interval.total_seconds()
        logger.info("Starting bookmark crawler", extra={"event": "worker_start", "interval_seconds": interval})
        while not self._stop.wait(interval):
            self.tick()
        logger.info("Bookmark crawler stopped", extra={"event": "worker_stop"})

    def start(self) -> threading.Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._thread = threading.Thread(target=self.run, name="readlater-crawler", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)


def run_forever() -> None:
    setup_logging()
    init_sentry()
    # invalid settings or an unreachable database are fatal here
    settings = get_crawler_settings()
    init_db()
    check_database()

    worker = CrawlerWorker(settings)

    def _handle_signal(signum, frame):  # noqa: ARG001
        logger.info("Received signal %s, shutting down crawler", signum)
        worker.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)
    worker.run()


if __name__ == "__main__":
    run_forever()
