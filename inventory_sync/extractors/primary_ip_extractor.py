# SPDX-License-Identifier: Apache-2.0

"""Primary IP address extractor."""

from typing import Any, Dict, Optional

from .base_extractor import BaseExtractor


def _address(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        value = value.get("address")
    if not value:
        return None
    return str(value).split("/")[0]


class PrimaryIPExtractor(BaseExtractor):
    """Extracts primary IP address from NetBox records."""

    def extract(self, record: Dict[str, Any], **kwargs) -> Optional[str]:
        """Extract primary IP address from record, prioritizing IPv4 over IPv6.

        Args:
            record: Raw record
            **kwargs: Additional parameters (unused)

        Returns:
            Primary IP address string without subnet mask, or None if not found
        """
        for key in ("primary_ip4", "primary_ip6", "primary_ip", "primary_address"):
            address = _address(record.get(key))
            if address:
                return address
        return None
