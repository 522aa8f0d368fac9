"""Periodic refresh of the knowledge base.

``init_data()`` runs one reconciliation pass before returning, so the store is
populated before the first question is answered, then keeps a background
thread that waits ``interval_minutes`` after each pass completes before
starting the next. Passes never overlap and missed intervals do not pile up.
"""

from __future__ import annotations

import threading

from gnosis.ingest.reconciler import Reconciler, ReconcileReport
from gnosis.log import get_logger

logger = get_logger(__name__)


class RefreshScheduler:
    """Drive a :class:`Reconciler` on a fixed delay.

    Args:
        reconciler: The reconciler to run.
        interval_minutes: Delay between the end of one pass and the start of
            the next.
    """

    def __init__(self, reconciler: Reconciler, interval_minutes: float = 60.0) -> None:
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be > 0")
        self._reconciler = reconciler
        self._interval = interval_minutes * 60.0
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def init_data(self) -> ReconcileReport | None:
        """Run the start-up pass, then start periodic refresh.

        A failing start-up pass is logged; the periodic loop still starts so
        the next interval gets another attempt.
        """
        report = self._safe_pass(phase="startup")
        self.start()
        return report

    def start(self) -> None:
        """Start the background loop (no-op if already running)."""
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="gnosis-refresh", daemon=True
        )
        self._thread.start()
        logger.info("refresh_scheduled", interval_seconds=self._interval)

    def stop(self, timeout: float | None = None) -> None:
        """Signal the loop to exit and wait for the current pass to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self._interval):
            self._safe_pass(phase="scheduled")

    def _safe_pass(self, phase: str) -> ReconcileReport | None:
        try:
            return self._reconciler.run_pass()
        except Exception:  # keep the schedule alive; next interval retries
            logger.exception("reconcile_failed", phase=phase)
            return None
