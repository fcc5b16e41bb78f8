import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

SaveFn = Callable[[List[Dict[str, Any]]], Any]

SAVE_JOB_ID = "save:tabs"


def _write(save: SaveFn, snapshot: List[Dict[str, Any]]) -> None:
    try:
        if save(snapshot) is False:
            logger.warning("Tab save reported failure (%d tabs)", len(snapshot))
    except Exception:
        logger.exception("Tab save failed")


class ImmediatePersister:
    """Writes the snapshot inline; failures are logged, never raised."""

    def __init__(self, save: SaveFn) -> None:
        self._save = save

    def schedule_save(self, snapshot: List[Dict[str, Any]]) -> None:
        _write(self._save, snapshot)

    def shutdown(self) -> None:
        pass


class ScheduledPersister:
    """Queues saves on a background scheduler.

    All saves share one job id, so a burst of mutations collapses into a
    single write of the latest snapshot.
    """

    def __init__(self, save: SaveFn, scheduler: Optional[BackgroundScheduler] = None) -> None:
        self._save = save
        self._owns_scheduler = scheduler is None
        self._scheduler = scheduler or BackgroundScheduler(timezone="UTC")

    def start(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()

    def schedule_save(self, snapshot: List[Dict[str, Any]]) -> None:
        try:
            self._scheduler.add_job(
                _write,
                id=SAVE_JOB_ID,
                args=[self._save, snapshot],
                run_date=datetime.now(timezone.utc),
                replace_existing=True,
                misfire_grace_time=None,
            )
        except Exception:
            logger.exception("Could not schedule tab save")

    def shutdown(self) -> None:
        if self._owns_scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=True)
