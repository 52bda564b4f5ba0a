# SPDX-License-Identifier: Apache-2.0

"""Field extractors for raw NetBox records."""

from .base_extractor import BaseExtractor
from .custom_field_extractor import CustomFieldExtractor
from .primary_ip_extractor import PrimaryIPExtractor
from .reference_extractor import ReferenceExtractor, TagExtractor

__all__ = [
    "BaseExtractor",
    "CustomFieldExtractor",
    "PrimaryIPExtractor",
    "ReferenceExtractor",
    "TagExtractor",
]
