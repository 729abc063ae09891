from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from gitanime.config import DEFAULT_SCRAPING_INTERVAL, ConfigStore

logger = logging.getLogger(__name__)


def next_run(cron: str, now: datetime) -> datetime:
    """Next time after ``now`` matching a daily or hourly cron expression.

    Only ``"M H * * *"`` and ``"M * * * *"`` are understood; anything else
    raises :class:`ValueError`.
    """
    fields = (cron or "").split()
    if len(fields) != 5 or fields[2:] != ["*", "*", "*"] or not fields[0].isdigit():
        raise ValueError(f"unsupported schedule {cron!r}")
    minute = int(fields[0])
    if not 0 <= minute <= 59:
        raise ValueError(f"minute out of range in {cron!r}")
    now = now.replace(second=0, microsecond=0)

    if fields[1] == "*":
        candidate = now.replace(minute=minute)
        if candidate <= now:
            candidate += timedelta(hours=1)
        return candidate

    if not fields[1].isdigit() or not 0 <= int(fields[1]) <= 23:
        raise ValueError(f"unsupported hour in {cron!r}")
    candidate = now.replace(hour=int(fields[1]), minute=minute)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class ScrapeScheduler:
    """Runs ``job`` on the ``scrapingInterval`` read from the config file.

    The config is re-read before every wait, so edits through the API take
    effect after the next run.
    """

    def __init__(
        self,
        job: Callable[[], object],
        config: ConfigStore,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.job = job
        self.config = config
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _next(self) -> datetime:
        cron = self.config.get().get("scrapingInterval") or DEFAULT_SCRAPING_INTERVAL
        try:
            return next_run(cron, self.clock())
        except ValueError as e:
            logger.warning("%s, falling back to %r", e, DEFAULT_SCRAPING_INTERVAL)
            return next_run(DEFAULT_SCRAPING_INTERVAL, self.clock())

    def tick(self) -> None:
        if not self.config.get().get("autoScraping", True):
            logger.info("Auto scraping disabled, skipping scheduled run")
            return
        logger.info("Running scheduled scrape")
        try:
            self.job()
        except Exception:
            logger.exception("Scheduled scrape failed")
        else:
            logger.info("Scheduled scrape finished")

    def run(self) -> None:
        while not self._stop.is_set():
            when = self._next()
            wait = max(0.0, (when - self.clock()).total_seconds())
            logger.info("Next scheduled scrape at %s", when.isoformat())
            if self._stop.wait(wait):
                break
            self.tick()

    def start(self) -> threading.Thread:
        if self._thread is None or not self._thread.is_alive():
            self._stop.clear()
            self._thread = threading.Thread(target=self.run, name="scrape-scheduler", daemon=True)
            self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
