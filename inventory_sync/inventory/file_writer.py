# SPDX-License-Identifier: Apache-2.0

"""File writing functionality for inventory export."""

from pathlib import Path

from loguru import logger

from ..utils import write_atomic
from .base import BaseInventoryComponent


class FileWriter(BaseInventoryComponent):
    """Handles writing rendered inventory to files."""

    def write(self, output_file: Path, content: str) -> None:
        """Replace output_file with content atomically.

        Args:
            output_file: Destination path
            content: Rendered inventory
        """
        logger.debug(f"Writing inventory to {output_file}")
        write_atomic(Path(output_file), content)
