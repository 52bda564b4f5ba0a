# SPDX-License-Identifier: Apache-2.0

"""Background refresh scheduling."""

import threading
import time
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from .cache import InventoryCache
from .exceptions import InventorySyncError
from .models import InventorySnapshot

DEFAULT_POLL_INTERVAL = 1.0


class RefreshScheduler:
    """Runs refresh cycles on a timer, on request and on a trigger file.

    A failed cycle is logged and the previously published snapshot stays in
    place; the scheduler keeps running.

    Args:
        cache: Inventory cache to refresh
        interval: Seconds between refreshes, or None for triggers only
        on_publish: Called with every newly published snapshot
        trigger_file: File whose modification time change triggers a refresh
        poll_interval: How often the trigger file is checked
    """

    def __init__(
        self,
        cache: InventoryCache,
        interval: Optional[float] = None,
        on_publish: Optional[Callable[[InventorySnapshot], None]] = None,
        trigger_file: Optional[Path] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.cache = cache
        self.interval = interval
        self.on_publish = on_publish
        self.trigger_file = Path(trigger_file) if trigger_file else None
        self.poll_interval = poll_interval
        self._wakeup = threading.Event()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._trigger_mtime = self._read_trigger_mtime()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the scheduler thread; the first refresh runs immediately."""
        if self.running:
            return
        self._stopping.clear()
        self._thread = threading.Thread(
            target=self._run, name="inventory-refresh", daemon=True
        )
        self._thread.start()
        logger.info(
            "Refresh scheduler started"
            + (f" (every {self.interval:g}s)" if self.interval else " (on trigger only)")
        )

    def trigger(self) -> None:
        """Request a refresh as soon as possible."""
        self._wakeup.set()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the scheduler, cancelling a refresh in progress."""
        self._stopping.set()
        self._wakeup.set()
        self.cache.cancel()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Refresh scheduler stopped")

    def run_once(self) -> Optional[InventorySnapshot]:
        """Run one refresh cycle.

        Returns:
            The published snapshot, or None if the cycle failed
        """
        try:
            snapshot = self.cache.refresh()
        except InventorySyncError as e:
            logger.warning(f"Scheduled refresh failed: {e}")
            return None

        if self.on_publish is not None:
            try:
                self.on_publish(snapshot)
            except Exception:
                logger.exception(
                    f"Failed to export snapshot version {snapshot.version}"
                )
        return snapshot

    def _read_trigger_mtime(self) -> Optional[float]:
        if self.trigger_file is None:
            return None
        try:
            return self.trigger_file.stat().st_mtime
        except OSError:
            return None

    def _trigger_file_changed(self) -> bool:
        if self.trigger_file is None:
            return False
        mtime = self._read_trigger_mtime()
        if mtime is not None and mtime != self._trigger_mtime:
            self._trigger_mtime = mtime
            logger.info(f"Trigger file {self.trigger_file} changed")
            return True
        return False

    def _run(self) -> None:
        next_due = time.monotonic()
        while not self._stopping.is_set():
            now = time.monotonic()
            due = next_due is not None and now >= next_due
            requested = self._wakeup.is_set()
            self._wakeup.clear()

            if due or requested or self._trigger_file_changed():
                try:
                    self.run_once()
                except Exception:
                    logger.exception("Unexpected error in scheduled refresh")
                next_due = time.monotonic() + self.interval if self.interval else None

            timeout = self.poll_interval if self.trigger_file else None
            if next_due is not None:
                remaining = max(next_due - time.monotonic(), 0.0)
                timeout = remaining if timeout is None else min(timeout, remaining)
            self._wakeup.wait(timeout)
