# SPDX-License-Identifier: Apache-2.0

"""Query filter logic for NetBox requests."""

from datetime import datetime
from typing import Any, Dict, List

from .config import Config


class DeviceFilter:
    """Handles filter logic for NetBox device and virtual machine queries."""

    def __init__(self, config: Config):
        self.config = config

    def normalize_filters(self) -> List[Dict[str, Any]]:
        """Normalize query_filters to always be a list.

        An empty mapping stands for "all objects".

        Returns:
            List of filter dictionaries
        """
        if isinstance(self.config.query_filters, dict):
            return [self.config.query_filters]
        return list(self.config.query_filters) or [{}]

    def build_incremental_filter(
        self, base_filter: Dict[str, Any], since: datetime
    ) -> Dict[str, Any]:
        """Build filter for objects changed since a point in time.

        Args:
            base_filter: Base filter dictionary
            since: Lower bound for the ``last_updated`` field

        Returns:
            Copy of the filter restricted to recently updated objects
        """
        incremental_filter = base_filter.copy()
        incremental_filter["last_updated__gte"] = since.isoformat()
        return incremental_filter

    def build_brief_filter(self, base_filter: Dict[str, Any]) -> Dict[str, Any]:
        """Build filter listing only ids, used to detect deleted objects."""
        brief_filter = base_filter.copy()
        brief_filter["brief"] = 1
        return brief_filter

    def deduplicate_records(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Remove duplicate records by ID, keeping the first occurrence.

        Records without an ID are all kept.

        Args:
            records: List of raw records

        Returns:
            List of unique records
        """
        seen = set()
        unique_records = []
        for record in records:
            record_id = record.get("id") if isinstance(record, dict) else None
            if record_id is not None:
                if record_id in seen:
                    continue
                seen.add(record_id)
            unique_records.append(record)
        return unique_records
