# SPDX-License-Identifier: Apache-2.0

"""Inventory cache holding the published snapshot and running refreshes."""

import threading
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from loguru import logger

from .base import BaseSourceClient, SourceRecords
from .config import Config
from .exceptions import (
    InventorySyncError,
    NotReadyError,
    RefreshCancelledError,
    SnapshotConsistencyError,
)
from .file_cache import SnapshotStore
from .models import Host, InventorySnapshot, SkippedRecord
from .normalizer import InventoryNormalizer, record_source_id
from .rules import RuleSet, compose, group


class InventoryCache:
    """Holds the published inventory snapshot and builds new ones.

    Readers call :meth:`get`, which reads a single reference and never
    blocks. :meth:`refresh` builds a candidate off to the side and swaps it
    in on success. Concurrent refresh calls join the cycle already running.

    Args:
        config: Configuration
        source: Client fetching raw records
        store: Persistence for the last-known-good snapshot, optional
    """

    def __init__(
        self,
        config: Config,
        source: BaseSourceClient,
        store: Optional[SnapshotStore] = None,
    ):
        self.config = config
        self.source = source
        self.store = store
        self.rules = RuleSet.from_config(
            config.group_by, config.compose, config.group_vars
        )
        self._normalizer = InventoryNormalizer()
        self._published: Optional[InventorySnapshot] = None
        self._lock = threading.Lock()
        self._in_flight: Optional[Future] = None
        self._cancel_event: Optional[threading.Event] = None
        self._version = 0

    @property
    def published(self) -> Optional[InventorySnapshot]:
        """The published snapshot, or None; never raises."""
        return self._published

    @property
    def refreshing(self) -> bool:
        return self._in_flight is not None

    def get(self) -> InventorySnapshot:
        """Return the published snapshot.

        Raises:
            NotReadyError: If no snapshot has been published yet
        """
        snapshot = self._published
        if snapshot is None:
            raise NotReadyError("No inventory snapshot has been published yet")
        return snapshot

    def publish(self, candidate: InventorySnapshot) -> InventorySnapshot:
        """Publish a candidate snapshot, replacing the current one.

        Raises:
            SnapshotConsistencyError: If the candidate is inconsistent or
                older than the published snapshot
        """
        self._swap(candidate)
        if self.store is not None:
            self.store.save(candidate)
        return candidate

    def load(self) -> Optional[InventorySnapshot]:
        """Publish the persisted last-known-good snapshot, if there is one."""
        if self.store is None or self._published is not None:
            return self._published

        snapshot = self.store.load()
        if snapshot is None:
            return None
        try:
            self._swap(snapshot)
        except SnapshotConsistencyError as e:
            logger.error(f"Ignoring persisted snapshot: {e}")
            return None
        return snapshot

    def _swap(self, candidate: InventorySnapshot) -> None:
        candidate.check_consistency()
        with self._lock:
            current = self._published
            if current is not None and candidate.version <= current.version:
                raise SnapshotConsistencyError(
                    f"candidate version {candidate.version} is not newer than "
                    f"published version {current.version}"
                )
            self._version = max(self._version, candidate.version)
            self._published = candidate

        if not candidate.hosts:
            logger.warning(f"Published snapshot version {candidate.version} has no hosts")
        logger.info(
            f"Published snapshot version {candidate.version} with "
            f"{len(candidate.hosts)} hosts in {len(candidate.groups)} groups"
        )

    def _next_version(self) -> int:
        with self._lock:
            self._version += 1
            return self._version

    def refresh(self, timeout: Optional[float] = None) -> InventorySnapshot:
        """Run a refresh cycle, or join the one already in flight.

        Args:
            timeout: How long a joining caller waits for the running cycle

        Returns:
            The newly published snapshot

        Raises:
            InventorySyncError: If the cycle fails; the previously published
                snapshot stays in place
        """
        with self._lock:
            future = self._in_flight
            owner = future is None
            if owner:
                future = Future()
                cancel_event = threading.Event()
                self._in_flight = future
                self._cancel_event = cancel_event

        if not owner:
            logger.debug("Refresh already in progress, joining it")
            return future.result(timeout)

        try:
            snapshot = self._run_cycle(cancel_event)
        except BaseException as e:
            self._finish_cycle()
            future.set_exception(e)
            raise
        self._finish_cycle()
        future.set_result(snapshot)
        return snapshot

    def cancel(self) -> bool:
        """Cancel the running refresh cycle.

        Returns:
            True if a cycle was running
        """
        with self._lock:
            cancel_event = self._cancel_event
        if cancel_event is None:
            return False
        logger.info("Cancelling inventory refresh")
        cancel_event.set()
        return True

    def _finish_cycle(self) -> None:
        with self._lock:
            self._in_flight = None
            self._cancel_event = None

    def _run_cycle(self, cancel_event: threading.Event) -> InventorySnapshot:
        timer = None
        if self.config.cycle_timeout:
            timer = threading.Timer(self.config.cycle_timeout, cancel_event.set)
            timer.daemon = True
            timer.start()

        previous = self._published
        try:
            since = self._incremental_since(previous)
            started_at = datetime.now(timezone.utc)
            logger.info(
                "Refreshing inventory from NetBox"
                + (" (incremental)" if since is not None else "")
            )

            records = self.source.fetch(since=since, cancel_event=cancel_event)
            self._checkpoint(cancel_event, "fetch")

            hosts, skipped = self._build_hosts(records, previous)
            self._checkpoint(cancel_event, "normalization")

            groups = group(hosts, self.rules.group_by, self.rules.group_vars)
            host_vars = compose(hosts, self.rules.compose)
            candidate = InventorySnapshot.build(
                version=self._next_version(),
                hosts=hosts,
                groups=groups,
                host_vars=host_vars,
                skipped=skipped,
                fetched_at=started_at,
            )
            self._checkpoint(cancel_event, "grouping")

            if previous is not None and candidate == previous:
                logger.info(f"Inventory unchanged since version {previous.version}")
            return self.publish(candidate)
        except InventorySyncError as e:
            if previous is not None:
                logger.warning(
                    f"Inventory refresh failed: {e}. Keeping snapshot version "
                    f"{previous.version} fetched at {previous.fetched_at.isoformat()}"
                )
            else:
                logger.error(f"Inventory refresh failed: {e}. No snapshot available")
            raise
        finally:
            if timer is not None:
                timer.cancel()

    @staticmethod
    def _checkpoint(cancel_event: threading.Event, stage: str) -> None:
        if cancel_event.is_set():
            raise RefreshCancelledError(f"Refresh cancelled after {stage}")

    def _incremental_since(
        self, previous: Optional[InventorySnapshot]
    ) -> Optional[datetime]:
        if not self.config.incremental or previous is None:
            return None
        if any(host.source_id is None for host in previous.hosts):
            logger.debug("Published snapshot lacks source ids, running a full refresh")
            return None
        return previous.fetched_at

    def _build_hosts(
        self, records: SourceRecords, previous: Optional[InventorySnapshot]
    ) -> Tuple[List[Host], List[SkippedRecord]]:
        result = self._normalizer.normalize(records.devices, platforms=records.platforms)
        if not records.incremental or previous is None:
            return result.hosts, result.skipped

        # Changed records replace their previous host even when now skipped
        changed_ids = {record_source_id(record) for record in records.devices} - {None}
        changed_names = {host.name for host in result.hosts}
        present_ids = records.present_ids or frozenset()
        kept = [
            host
            for host in previous.hosts
            if host.source_id in present_ids
            and host.source_id not in changed_ids
            and host.name not in changed_names
        ]
        # Unchanged records skipped earlier are not re-fetched; keep their reasons
        kept_skipped = [
            skipped
            for skipped in previous.skipped
            if skipped.source_id in present_ids and skipped.source_id not in changed_ids
        ]
        logger.info(
            f"Incremental refresh: {len(result.hosts)} changed, {len(kept)} unchanged, "
            f"{len(previous.hosts) - len(kept)} replaced or removed"
        )
        return kept + result.hosts, kept_skipped + result.skipped
