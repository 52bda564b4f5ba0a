# SPDX-License-Identifier: Apache-2.0

"""INI host group rendering for inventory export."""

import json
import re
from typing import Any, Dict, List

import jinja2
from loguru import logger

from ..config import Config
from ..models import InventorySnapshot
from .base import BaseInventoryComponent

TEMPLATE_NAME = "hosts.ini.j2"

_PLAIN_VALUE = re.compile(r"^[\w.:/@+-]+$")
_WHITESPACE = re.compile(r"\s")


def ini_value(value: Any) -> str:
    """Format a variable value for an INI inventory line."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str) and _PLAIN_VALUE.match(value):
        return value
    return json.dumps(value, sort_keys=True, default=str)


class HostGroupWriter(BaseInventoryComponent):
    """Renders host groups into an Ansible INI inventory."""

    def __init__(self, config: Config):
        super().__init__(config)
        self.jinja_env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(searchpath=str(config.template_path)),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.jinja_env.filters["ini_value"] = ini_value

    def _host_lines(self, snapshot: InventorySnapshot) -> Dict[str, str]:
        """Build one INI line per host, leaving out names containing whitespace."""
        lines = {}
        for host in snapshot.hosts:
            if _WHITESPACE.search(host.name):
                logger.warning(
                    f"Leaving host '{host.name}' out of the INI inventory: "
                    "name contains whitespace"
                )
                continue
            variables: Dict[str, Any] = {}
            if host.primary_address:
                variables["ansible_host"] = host.primary_address
            variables.update(snapshot.host_vars.get(host.name, {}))
            parts: List[str] = [host.name]
            parts.extend(
                f"{key}={ini_value(value)}" for key, value in sorted(variables.items())
            )
            lines[host.name] = " ".join(parts)
        return lines

    def render(self, snapshot: InventorySnapshot) -> str:
        """Render the snapshot's groups as INI text.

        Args:
            snapshot: Snapshot to render

        Returns:
            INI inventory text
        """
        template = self.jinja_env.get_template(TEMPLATE_NAME)
        result = template.render(
            {"groups": snapshot.groups, "host_lines": self._host_lines(snapshot)}
        )
        # Remove empty lines
        cleaned_lines = [line for line in result.splitlines() if line.strip()]
        return "\n".join(cleaned_lines) + "\n"
