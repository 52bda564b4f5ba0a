# SPDX-License-Identifier: Apache-2.0

"""File-based persistence for the last-known-good inventory snapshot."""

import json
from pathlib import Path
from typing import Optional

from loguru import logger

from .models import InventorySnapshot
from .utils import write_atomic


class SnapshotStore:
    """Persists the published snapshot so it survives restarts."""

    def __init__(self, cache_file: Path):
        """Initialize the snapshot store.

        Args:
            cache_file: Path to the cache file
        """
        self.cache_file = Path(cache_file)

    def load(self) -> Optional[InventorySnapshot]:
        """Load the persisted snapshot.

        Returns:
            The snapshot, or None if the file is missing or unreadable
        """
        if not self.cache_file.exists():
            logger.debug(f"Cache file {self.cache_file} does not exist")
            return None

        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                snapshot = InventorySnapshot.from_dict(json.load(f))
        except (json.JSONDecodeError, IOError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to load cache file {self.cache_file}: {e}")
            return None

        logger.info(
            f"Loaded snapshot version {snapshot.version} from {self.cache_file} "
            f"with {len(snapshot.hosts)} hosts"
        )
        return snapshot

    def save(self, snapshot: InventorySnapshot) -> None:
        """Save snapshot to file, replacing the previous one atomically."""
        try:
            write_atomic(
                self.cache_file,
                json.dumps(snapshot.to_dict(), indent=2, sort_keys=True, default=str),
            )
            logger.debug(
                f"Saved snapshot version {snapshot.version} to {self.cache_file}"
            )
        except IOError as e:
            logger.error(f"Failed to save cache file {self.cache_file}: {e}")
