# SPDX-License-Identifier: Apache-2.0

"""Grouping engine: declarative group-by and compose rules.

Rules are small tagged values interpreted by pure functions. Nothing here
evaluates expressions, so the same hosts and rules always give the same
groups and variables.
"""

import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Iterable, List, Mapping, Optional, Tuple

from loguru import logger

from .exceptions import ConfigError
from .models import UNGROUPED, Group, Host

# group_by name -> (host attribute, group name prefix)
GROUP_BY_ATTRIBUTES = {
    "manufacturer": ("manufacturer", "manufacturers"),
    "manufacturers": ("manufacturer", "manufacturers"),
    "platform": ("platform", "platforms"),
    "platforms": ("platform", "platforms"),
    "site": ("site", "sites"),
    "sites": ("site", "sites"),
    "role": ("role", "device_roles"),
    "roles": ("role", "device_roles"),
    "device_role": ("role", "device_roles"),
    "device_roles": ("role", "device_roles"),
    "device_type": ("device_type", "device_types"),
    "device_types": ("device_type", "device_types"),
    "tenant": ("tenant", "tenants"),
    "tenants": ("tenant", "tenants"),
    "rack": ("rack", "racks"),
    "racks": ("rack", "racks"),
    "location": ("location", "locations"),
    "locations": ("location", "locations"),
    "cluster": ("cluster", "clusters"),
    "clusters": ("cluster", "clusters"),
    "tag": ("tags", "tags"),
    "tags": ("tags", "tags"),
    "status": ("status", "status"),
}

_UNSAFE_CHARACTERS = re.compile(r"[^a-z0-9_]+")


def sanitize_group_name(name: str) -> str:
    """Lower-case a group name and replace unsafe characters with ``_``."""
    return _UNSAFE_CHARACTERS.sub("_", name.lower()).strip("_")


@dataclass(frozen=True)
class GroupByRule:
    """Partition hosts by the value of one attribute."""

    kind: ClassVar[str] = "group_by"

    attribute: str
    prefix: str

    @classmethod
    def from_name(cls, name: str) -> "GroupByRule":
        """Build a rule from a ``group_by`` entry such as ``manufacturers``."""
        key = name.strip().lower()
        attribute, prefix = GROUP_BY_ATTRIBUTES.get(key, (name.strip(), key))
        return cls(attribute=attribute, prefix=sanitize_group_name(prefix))

    def group_names(self, host: Host) -> List[str]:
        """Return the group names a host belongs to; empty if it lacks the attribute."""
        value = host.get(self.attribute)
        if value is None or value == "" or value == []:
            return []
        values = value if isinstance(value, (list, tuple, set)) else [value]
        names = []
        for item in values:
            if isinstance(item, (dict, list)):
                continue
            suffix = sanitize_group_name(str(item))
            if suffix:
                names.append(f"{self.prefix}_{suffix}")
        return sorted(set(names))


@dataclass(frozen=True)
class ComposeRule:
    """Derive one variable from a host attribute.

    ``source`` names a host attribute; dots descend into mapping attributes,
    e.g. ``custom_fields.os_version`` or ``platform_meta.network_driver``.
    ``mapping`` translates the value; unmapped values fall back to
    ``default`` when one is declared, otherwise pass through unchanged.
    """

    kind: ClassVar[str] = "compose"

    name: str
    source: str
    mapping: Optional[Dict[str, Any]] = field(default=None, hash=False)
    default: Any = field(default=None, hash=False)
    has_default: bool = False

    @classmethod
    def from_config(cls, name: str, spec: Any) -> "ComposeRule":
        """Build a rule from a ``compose`` entry.

        Accepted forms: ``"platform"`` or
        ``{"source": "platform", "map": {...}, "default": ...}``.

        Raises:
            ConfigError: If the entry has no usable source
        """
        if isinstance(spec, str):
            return cls(name=name, source=spec)
        if isinstance(spec, Mapping) and isinstance(spec.get("source"), str):
            mapping = spec.get("map")
            if mapping is not None and not isinstance(mapping, Mapping):
                raise ConfigError(f"compose rule '{name}': map must be a mapping")
            return cls(
                name=name,
                source=spec["source"],
                mapping=dict(mapping) if mapping is not None else None,
                default=spec.get("default"),
                has_default="default" in spec,
            )
        raise ConfigError(
            f"compose rule '{name}' must be an attribute name or a mapping with 'source'"
        )

    def resolve(self, host: Host) -> Tuple[bool, Any]:
        """Look up the source attribute; returns (found, value)."""
        head, *rest = self.source.split(".")
        value = host.get(head)
        for key in rest:
            if not isinstance(value, Mapping):
                return False, None
            value = value.get(key)
        if value is None:
            return False, None
        return True, value

    def evaluate(self, host: Host) -> Tuple[bool, Any]:
        """Compute the variable for one host; returns (defined, value)."""
        found, value = self.resolve(host)
        if not found:
            return (True, self.default) if self.has_default else (False, None)
        if self.mapping is not None:
            key = value if isinstance(value, str) else str(value)
            if key in self.mapping:
                return True, self.mapping[key]
            if self.has_default:
                return True, self.default
        return True, value


@dataclass(frozen=True)
class RuleSet:
    """Ordered group-by and compose rules plus static group vars."""

    group_by: Tuple[GroupByRule, ...] = ()
    compose: Tuple[ComposeRule, ...] = ()
    group_vars: Dict[str, Dict[str, Any]] = field(default_factory=dict, hash=False)

    @classmethod
    def from_config(
        cls,
        group_by: Iterable[str] = (),
        compose: Optional[Mapping[str, Any]] = None,
        group_vars: Optional[Mapping[str, Dict[str, Any]]] = None,
    ) -> "RuleSet":
        return cls(
            group_by=tuple(GroupByRule.from_name(name) for name in group_by),
            compose=tuple(
                ComposeRule.from_config(name, spec)
                for name, spec in (compose or {}).items()
            ),
            group_vars={
                sanitize_group_name(name): dict(values)
                for name, values in (group_vars or {}).items()
            },
        )


def group(
    hosts: Iterable[Host],
    rules: Iterable[GroupByRule],
    group_vars: Optional[Mapping[str, Dict[str, Any]]] = None,
) -> Tuple[Group, ...]:
    """Apply group-by rules to hosts.

    Each rule yields one group per distinct attribute value. Hosts lacking an
    attribute, and hosts that end up in no group at all, go to ``ungrouped``.

    Args:
        hosts: Hosts to group
        rules: Group-by rules in declaration order
        group_vars: Static variables attached to groups of the same name

    Returns:
        Groups sorted by name, each with sorted member names
    """
    hosts = sorted(hosts, key=lambda host: host.name)
    rules = list(rules)
    members: Dict[str, set] = {}
    grouped = set()

    for rule in rules:
        for host in hosts:
            names = rule.group_names(host)
            if not names:
                logger.debug(
                    f"Host {host.name} has no '{rule.attribute}', adding to {UNGROUPED}"
                )
                names = [UNGROUPED]
            for name in names:
                members.setdefault(name, set()).add(host.name)
                if name != UNGROUPED:
                    grouped.add(host.name)

    for host in hosts:
        if host.name not in grouped:
            members.setdefault(UNGROUPED, set()).add(host.name)

    group_vars = group_vars or {}
    return tuple(
        Group(name=name, hosts=tuple(sorted(names)), vars=dict(group_vars.get(name, {})))
        for name, names in sorted(members.items())
    )


def compose(
    hosts: Iterable[Host], rules: Iterable[ComposeRule]
) -> Dict[str, Dict[str, Any]]:
    """Evaluate compose rules for every host.

    Rules only see the host's own attributes, never each other's output.

    Returns:
        Mapping of host name to derived variables; hosts without any derived
        variable are left out
    """
    rules = list(rules)
    host_vars: Dict[str, Dict[str, Any]] = {}
    for host in sorted(hosts, key=lambda host: host.name):
        values = {}
        for rule in rules:
            defined, value = rule.evaluate(host)
            if defined:
                values[rule.name] = value
        if values:
            host_vars[host.name] = values
    return host_vars
