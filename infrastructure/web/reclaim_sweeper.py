# infrastructure/web/reclaim_sweeper.py
# Periodic reclamation of expired shares on a daemon thread.
# The record store is the schedule: every row carries its own expires_at,
# so a restarted process picks up where the last one stopped.

import logging
import threading
from typing import Optional

from application.dto.share_dto import SweepReportDTO
from codeshare.core import ShareService

logger = logging.getLogger(__name__)


class ReclaimSweeper:
    """Run ``service.sweep()`` once at start, then every *interval_s* seconds."""

    def __init__(self, service: ShareService, interval_s: int = 60, batch_size: Optional[int] = None) -> None:
        self.service = service
        self.interval_s = interval_s
        self.batch_size = batch_size
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_report: Optional[SweepReportDTO] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="reclaim-sweeper",
            daemon=True,
        )
        self._thread.start()
        logger.info("sweeper started interval=%ds", self.interval_s)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def run_once(self) -> SweepReportDTO:
        """One sweep pass. Errors are logged, never raised."""
        try:
            self.last_report = self.service.sweep(batch_size=self.batch_size)
        except Exception as e:
            logger.error("sweep pass failed: %s", e, exc_info=True)
            self.last_report = SweepReportDTO(failures=1)
        return self.last_report

    def _run(self) -> None:
        # Recovery pass for rows that expired while no process was running
        self.run_once()
        while not self._stop.wait(self.interval_s):
            self.run_once()
