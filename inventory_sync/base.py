# SPDX-License-Identifier: Apache-2.0

"""Base classes for inventory source clients."""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional


@dataclass
class SourceRecords:
    """Raw records returned by one fetch.

    Attributes:
        devices: Raw device (and virtual machine) records
        platforms: Raw platform records keyed by slug
        since: Lower bound of ``last_updated`` for an incremental fetch
        present_ids: Source ids of all objects still present, for incremental
            fetches
    """

    devices: List[Dict[str, Any]] = field(default_factory=list)
    platforms: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    since: Optional[datetime] = None
    present_ids: Optional[FrozenSet[str]] = None

    @property
    def incremental(self) -> bool:
        return self.since is not None


class BaseSourceClient(ABC):
    """Abstract base class for inventory source clients."""

    def connect(self) -> None:
        """Establish connection to the source."""
        pass

    def disconnect(self) -> None:
        """Close connection to the source."""
        pass

    @abstractmethod
    def fetch(
        self,
        since: Optional[datetime] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> SourceRecords:
        """Fetch raw inventory records.

        Args:
            since: Only fetch objects changed since this time, if supported
            cancel_event: Event that interrupts retries when set

        Returns:
            SourceRecords: Fetched records
        """
        pass
