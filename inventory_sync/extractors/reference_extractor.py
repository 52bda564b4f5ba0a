# SPDX-License-Identifier: Apache-2.0

"""Extractors for nested object references and tags."""

from typing import Any, Dict, List, Optional, Sequence

from .base_extractor import BaseExtractor

# Keys identifying a nested reference, in order of preference
REFERENCE_KEYS = ("slug", "value", "name", "display")


class ReferenceExtractor(BaseExtractor):
    """Extracts the identifying value of a nested NetBox reference.

    NetBox nests related objects as ``{"id": 1, "name": "Cisco", "slug":
    "cisco", ...}`` and choice fields as ``{"value": "active", "label":
    "Active"}``. Flat records may carry the plain value instead.
    """

    def extract(
        self, record: Dict[str, Any], path: Sequence[str] = (), **kwargs
    ) -> Optional[str]:
        """Follow ``path`` through nested references and return the slug.

        Args:
            record: Raw record
            path: Keys to follow, e.g. ``("device_type", "manufacturer")``
            **kwargs: Additional parameters (unused)

        Returns:
            Slug, choice value or name of the referenced object, or None
        """
        value: Any = record
        for key in path:
            if not isinstance(value, dict):
                return None
            value = value.get(key)
            if value is None:
                return None
        return self.identify(value)

    @staticmethod
    def identify(value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, dict):
            for key in REFERENCE_KEYS:
                if value.get(key) not in (None, ""):
                    return str(value[key])
            return None
        if isinstance(value, (list, tuple)):
            return None
        text = str(value).strip()
        return text or None


class TagExtractor(BaseExtractor):
    """Extracts tag slugs from NetBox records."""

    def extract(self, record: Dict[str, Any], **kwargs) -> List[str]:
        """Return the slugs of the record's tags, sorted.

        Args:
            record: Raw record
            **kwargs: Additional parameters (unused)

        Returns:
            List of tag slugs; empty if the record has no tags
        """
        tags = record.get("tags") or []
        if not isinstance(tags, (list, tuple)):
            tags = [tags]
        slugs = {ReferenceExtractor.identify(tag) for tag in tags}
        return sorted(slug for slug in slugs if slug)
