# SPDX-License-Identifier: Apache-2.0

"""Inventory export package: renders snapshots for Ansible."""

from .manager import InventoryManager
from .renderer import render, render_ansible, render_host, to_json, to_yaml

__all__ = [
    "InventoryManager",
    "render",
    "render_ansible",
    "render_host",
    "to_json",
    "to_yaml",
]
