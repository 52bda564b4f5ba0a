# SPDX-License-Identifier: Apache-2.0

"""Main inventory manager that coordinates all export operations."""

from pathlib import Path
from typing import Optional

from loguru import logger

from ..config import Config
from ..models import InventorySnapshot
from .file_writer import FileWriter
from .host_group_writer import HostGroupWriter
from .renderer import render, to_json, to_yaml


class InventoryManager:
    """Manages inventory export in the configured format."""

    def __init__(self, config: Config):
        self.config = config
        self.file_writer = FileWriter(config)
        self.host_group_writer = HostGroupWriter(config)

    def render_text(self, snapshot: InventorySnapshot, output_format: str = None) -> str:
        """Render a snapshot as text.

        Args:
            snapshot: Snapshot to render
            output_format: json, yaml or ini; defaults to the configured format

        Returns:
            Rendered inventory
        """
        output_format = output_format or self.config.output_format
        if output_format == "ini":
            return self.host_group_writer.render(snapshot)
        if output_format == "yaml":
            return to_yaml(render(snapshot))
        if output_format == "json":
            return to_json(render(snapshot))
        raise ValueError(f"Unsupported output format '{output_format}'")

    def write(
        self, snapshot: InventorySnapshot, output_path: Optional[Path] = None
    ) -> Optional[Path]:
        """Write a snapshot to the configured output path.

        Args:
            snapshot: Snapshot to write
            output_path: Destination overriding the configured output_path

        Returns:
            The written path, or None if no output path is configured
        """
        output_path = output_path or self.config.output_path
        if output_path is None:
            logger.debug("No output path configured, skipping inventory file writing")
            return None

        self.file_writer.write(output_path, self.render_text(snapshot))
        logger.info(
            f"Wrote snapshot version {snapshot.version} to {output_path} "
            f"({self.config.output_format})"
        )
        return Path(output_path)
