# SPDX-License-Identifier: Apache-2.0

"""Custom field extractor."""

from typing import Any, Dict

from .base_extractor import BaseExtractor


class CustomFieldExtractor(BaseExtractor):
    """Extracts custom fields from NetBox records."""

    def extract(self, record: Dict[str, Any], **kwargs) -> Dict[str, Any]:
        """Extract all custom fields that are set.

        Args:
            record: Raw record
            **kwargs: Additional parameters (unused)

        Returns:
            Dict of custom fields whose value is not None
        """
        custom_fields = record.get("custom_fields") or {}
        return {key: value for key, value in custom_fields.items() if value is not None}
