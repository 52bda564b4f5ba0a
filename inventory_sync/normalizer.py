# SPDX-License-Identifier: Apache-2.0

"""Conversion of raw NetBox records into canonical hosts."""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

from loguru import logger

from .exceptions import SchemaError
from .extractors import (
    CustomFieldExtractor,
    PrimaryIPExtractor,
    ReferenceExtractor,
    TagExtractor,
)
from .models import OBJECT_TYPE_DEVICE, Host, SkippedRecord, source_id_for

# Fields mapped onto Host core fields or handled by a dedicated extractor
CONSUMED_FIELDS = {
    "id",
    "name",
    "platform",
    "manufacturer",
    "site",
    "role",
    "device_role",
    "primary_ip",
    "primary_ip4",
    "primary_ip6",
    "primary_address",
    "tags",
    "custom_fields",
    "config_context",
}
# API bookkeeping fields with no inventory meaning
IGNORED_FIELDS = {"url", "display", "display_url"}
PLATFORM_META_FIELDS = ("name", "manufacturer", "network_driver", "napalm_driver")


def _is_reference(value: Mapping[str, Any]) -> bool:
    """Tell nested object references and choice fields from plain mappings."""
    return "id" in value or "url" in value or ("value" in value and "label" in value)


def record_source_id(record: Any) -> Optional[str]:
    """Return the source id of a raw record, or None if it has no id."""
    if not isinstance(record, Mapping) or record.get("id") is None:
        return None
    return source_id_for(record.get("object_type") or OBJECT_TYPE_DEVICE, record["id"])


@dataclass
class NormalizationResult:
    """Hosts built from one batch and the records that were skipped."""

    hosts: List[Host] = field(default_factory=list)
    skipped: List[SkippedRecord] = field(default_factory=list)


class InventoryNormalizer:
    """Normalizes raw records with record-level error tolerance."""

    def __init__(self):
        self.reference_extractor = ReferenceExtractor()
        self.primary_ip_extractor = PrimaryIPExtractor()
        self.tag_extractor = TagExtractor()
        self.custom_field_extractor = CustomFieldExtractor()

    def normalize(
        self,
        records: Sequence[Any],
        platforms: Optional[Mapping[str, Dict[str, Any]]] = None,
    ) -> NormalizationResult:
        """Normalize a batch of raw records.

        Records without a name or platform, records that are not mappings and
        records repeating an earlier host name are skipped with a warning.

        Args:
            records: Raw records
            platforms: Raw platform records keyed by slug

        Returns:
            NormalizationResult: Hosts and skipped records

        Raises:
            SchemaError: If records is not a list of records
        """
        if not isinstance(records, (list, tuple)):
            raise SchemaError(f"expected a list of records, got {type(records).__name__}")

        result = NormalizationResult()
        seen_names = set()
        for index, record in enumerate(records):
            try:
                host = self.normalize_record(record, index=index, platforms=platforms)
                if host.name in seen_names:
                    raise SchemaError("duplicate host name", index=index, name=host.name)
            except SchemaError as e:
                logger.warning(f"Skipping {e}")
                result.skipped.append(
                    SkippedRecord(
                        index=index,
                        reason=e.reason,
                        name=e.name,
                        source_id=record_source_id(record),
                    )
                )
                continue
            seen_names.add(host.name)
            result.hosts.append(host)

        logger.debug(
            f"Normalized {len(result.hosts)} hosts, skipped {len(result.skipped)} records"
        )
        return result

    def normalize_record(
        self,
        record: Any,
        index: Optional[int] = None,
        platforms: Optional[Mapping[str, Dict[str, Any]]] = None,
    ) -> Host:
        """Normalize one raw record.

        Raises:
            SchemaError: If the record lacks a usable name or platform
        """
        if not isinstance(record, Mapping):
            raise SchemaError("record is not a mapping", index=index)

        name = record.get("name")
        if name is not None and not isinstance(name, str):
            raise SchemaError(
                f"field 'name' has unsupported type {type(name).__name__}", index=index
            )
        name = (name or "").strip()
        if not name:
            raise SchemaError("missing required field 'name'", index=index)

        platform = self.reference_extractor.extract(record, ("platform",))
        if not platform:
            raise SchemaError("missing required field 'platform'", index=index, name=name)

        manufacturer = self.reference_extractor.extract(
            record, ("manufacturer",)
        ) or self.reference_extractor.extract(record, ("device_type", "manufacturer"))
        # NetBox < 3.6 calls the role field device_role
        role = self.reference_extractor.extract(
            record, ("role",)
        ) or self.reference_extractor.extract(record, ("device_role",))

        attrs = self._extract_attrs(record)
        if platforms and platform in platforms:
            attrs["platform_meta"] = self._platform_meta(platforms[platform])

        return Host(
            name=name,
            platform=platform,
            manufacturer=manufacturer,
            site=self.reference_extractor.extract(record, ("site",)),
            role=role,
            primary_address=self.primary_ip_extractor.extract(record),
            source_id=record_source_id(record),
            attrs=attrs,
        )

    def _extract_attrs(self, record: Mapping[str, Any]) -> Dict[str, Any]:
        attrs: Dict[str, Any] = {}
        for key, value in record.items():
            if key in CONSUMED_FIELDS or key in IGNORED_FIELDS or value is None:
                continue
            if isinstance(value, dict) and _is_reference(value):
                attrs[key] = self.reference_extractor.identify(value)
            else:
                attrs[key] = copy.deepcopy(value)

        tags = self.tag_extractor.extract(record)
        if tags:
            attrs["tags"] = tags

        custom_fields = self.custom_field_extractor.extract(record)
        if custom_fields:
            attrs["custom_fields"] = copy.deepcopy(custom_fields)

        config_context = record.get("config_context")
        if config_context:
            attrs["config_context"] = copy.deepcopy(dict(config_context))

        return attrs

    def _platform_meta(self, platform: Mapping[str, Any]) -> Dict[str, Any]:
        meta = {}
        for key in PLATFORM_META_FIELDS:
            value = platform.get(key)
            if isinstance(value, dict):
                value = self.reference_extractor.identify(value)
            if value not in (None, ""):
                meta[key] = value
        return meta


def normalize(
    records: Sequence[Any],
    platforms: Optional[Mapping[str, Dict[str, Any]]] = None,
) -> NormalizationResult:
    """Normalize raw records into hosts; see InventoryNormalizer.normalize."""
    return InventoryNormalizer().normalize(records, platforms=platforms)
