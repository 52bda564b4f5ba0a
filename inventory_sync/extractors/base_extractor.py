# SPDX-License-Identifier: Apache-2.0

"""Base extractor abstract class."""

from abc import ABC, abstractmethod
from typing import Any, Dict


class BaseExtractor(ABC):
    """Abstract base class for all field extractors."""

    @abstractmethod
    def extract(self, record: Dict[str, Any], **kwargs) -> Any:
        """Extract data from a raw NetBox record.

        Args:
            record: Raw record as returned by the NetBox API
            **kwargs: Additional parameters for extraction

        Returns:
            Extracted data in appropriate format
        """
        pass
