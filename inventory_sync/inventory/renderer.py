# SPDX-License-Identifier: Apache-2.0

"""Pure rendering of inventory snapshots.

Every function here depends only on its snapshot argument, so rendering the
same snapshot twice gives structurally identical output.
"""

import copy
import json
from typing import Any, Dict

import yaml

from ..models import Host, InventorySnapshot


def host_attributes(snapshot: InventorySnapshot, host: Host) -> Dict[str, Any]:
    """Return a host's attributes merged with its composed variables."""
    attributes = host.as_dict()
    attributes.update(snapshot.host_vars.get(host.name, {}))
    return copy.deepcopy(attributes)


def render(snapshot: InventorySnapshot) -> Dict[str, Any]:
    """Render a snapshot into the structured inventory document.

    Args:
        snapshot: Snapshot to render

    Returns:
        ``{"groups": {name: {"hosts": [...], "vars": {...}}},
        "hosts": {name: {"attrs": {...}}}}``
    """
    return {
        "groups": {
            group.name: {"hosts": list(group.hosts), "vars": copy.deepcopy(group.vars)}
            for group in snapshot.groups
        },
        "hosts": {
            host.name: {"attrs": host_attributes(snapshot, host)}
            for host in snapshot.hosts
        },
    }


def _ansible_hostvars(snapshot: InventorySnapshot, host: Host) -> Dict[str, Any]:
    hostvars: Dict[str, Any] = {}
    if host.primary_address:
        hostvars["ansible_host"] = host.primary_address
    hostvars.update(host_attributes(snapshot, host))
    return hostvars


def render_ansible(snapshot: InventorySnapshot) -> Dict[str, Any]:
    """Render a snapshot in the Ansible dynamic inventory ``--list`` format.

    Args:
        snapshot: Snapshot to render

    Returns:
        Document with ``_meta.hostvars``, ``all.children`` and one entry per
        group
    """
    document: Dict[str, Any] = {
        "_meta": {
            "hostvars": {
                host.name: _ansible_hostvars(snapshot, host) for host in snapshot.hosts
            }
        },
        "all": {"children": [group.name for group in snapshot.groups]},
    }
    for group in snapshot.groups:
        document[group.name] = {
            "hosts": list(group.hosts),
            "vars": copy.deepcopy(group.vars),
        }
    return document


def render_host(snapshot: InventorySnapshot, name: str) -> Dict[str, Any]:
    """Render the Ansible ``--host`` variables of one host; empty if unknown."""
    host = snapshot.host(name)
    if host is None:
        return {}
    return _ansible_hostvars(snapshot, host)


def to_json(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, sort_keys=True, default=str) + "\n"


def to_yaml(document: Dict[str, Any]) -> str:
    return yaml.dump(document, Dumper=yaml.Dumper, default_flow_style=False)
