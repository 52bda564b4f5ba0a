# SPDX-License-Identifier: Apache-2.0

"""Canonical inventory model shared by all components."""

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, Iterable, Optional, Tuple

from .exceptions import SnapshotConsistencyError

OBJECT_TYPE_DEVICE = "device"
OBJECT_TYPE_VIRTUAL_MACHINE = "virtual_machine"
UNGROUPED = "ungrouped"


def source_id_for(object_type: str, record_id: Any) -> str:
    """Build the identifier of a NetBox object, unique across endpoints."""
    return f"{object_type}:{record_id}"


@dataclass(frozen=True)
class Host:
    """A single inventory host.

    Hosts are replaced wholesale on every refresh and never mutated.
    """

    CORE_FIELDS: ClassVar[Tuple[str, ...]] = (
        "platform",
        "manufacturer",
        "site",
        "role",
        "primary_address",
    )

    name: str
    platform: str
    manufacturer: Optional[str] = None
    site: Optional[str] = None
    role: Optional[str] = None
    primary_address: Optional[str] = None
    source_id: Optional[str] = None
    attrs: Dict[str, Any] = field(default_factory=dict, hash=False)

    def get(self, attribute: str, default: Any = None) -> Any:
        """Return a core field or an entry of ``attrs``."""
        if attribute == "name":
            return self.name
        if attribute in self.CORE_FIELDS:
            value = getattr(self, attribute)
            return default if value is None else value
        return self.attrs.get(attribute, default)

    def as_dict(self) -> Dict[str, Any]:
        """Return attrs merged with the core fields that are set."""
        result = dict(self.attrs)
        for name in self.CORE_FIELDS:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "platform": self.platform,
            "manufacturer": self.manufacturer,
            "site": self.site,
            "role": self.role,
            "primary_address": self.primary_address,
            "source_id": self.source_id,
            "attrs": self.attrs,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Host":
        return cls(
            name=data["name"],
            platform=data["platform"],
            manufacturer=data.get("manufacturer"),
            site=data.get("site"),
            role=data.get("role"),
            primary_address=data.get("primary_address"),
            source_id=data.get("source_id"),
            attrs=dict(data.get("attrs") or {}),
        )


@dataclass(frozen=True)
class Group:
    """A named set of hosts derived from grouping rules."""

    name: str
    hosts: Tuple[str, ...] = ()
    vars: Dict[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True)
class SkippedRecord:
    """A raw record rejected during normalization."""

    index: int
    reason: str
    name: Optional[str] = None
    source_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "reason": self.reason,
            "name": self.name,
            "source_id": self.source_id,
        }


def _canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


@dataclass(frozen=True)
class InventorySnapshot:
    """Immutable, versioned view of the inventory produced by one refresh.

    Equality compares content only; ``version``, ``fetched_at`` and
    ``fingerprint`` are markers and do not take part.

    Attributes:
        version: Monotonic version marker
        hosts: Hosts sorted by name
        groups: Groups sorted by name
        host_vars: Composed variables per host name
        skipped: Records skipped during normalization
        fetched_at: When the fetch for this snapshot started
        fingerprint: Digest of the snapshot content
    """

    version: int = field(compare=False)
    hosts: Tuple[Host, ...]
    groups: Tuple[Group, ...]
    host_vars: Dict[str, Dict[str, Any]] = field(default_factory=dict, hash=False)
    skipped: Tuple[SkippedRecord, ...] = ()
    fetched_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False
    )
    fingerprint: str = field(default="", compare=False)

    @classmethod
    def build(
        cls,
        version: int,
        hosts: Iterable[Host],
        groups: Iterable[Group],
        host_vars: Optional[Dict[str, Dict[str, Any]]] = None,
        skipped: Iterable[SkippedRecord] = (),
        fetched_at: Optional[datetime] = None,
    ) -> "InventorySnapshot":
        """Build a snapshot with sorted members and a content fingerprint."""
        hosts = tuple(sorted(hosts, key=lambda host: host.name))
        groups = tuple(sorted(groups, key=lambda group: group.name))
        host_vars = {name: dict(values) for name, values in (host_vars or {}).items()}
        skipped = tuple(skipped)
        content = {
            "hosts": [host.to_dict() for host in hosts],
            "groups": [[g.name, list(g.hosts), g.vars] for g in groups],
            "host_vars": host_vars,
            "skipped": [s.to_dict() for s in skipped],
        }
        fingerprint = hashlib.sha256(_canonical_json(content).encode("utf-8"))
        return cls(
            version=version,
            hosts=hosts,
            groups=groups,
            host_vars=host_vars,
            skipped=skipped,
            fetched_at=fetched_at or datetime.now(timezone.utc),
            fingerprint=fingerprint.hexdigest(),
        )

    def host(self, name: str) -> Optional[Host]:
        for host in self.hosts:
            if host.name == name:
                return host
        return None

    def group(self, name: str) -> Optional[Group]:
        for group in self.groups:
            if group.name == name:
                return group
        return None

    def check_consistency(self) -> None:
        """Verify that groups and host vars only reference known hosts.

        Raises:
            SnapshotConsistencyError: If a reference is dangling or a host
                belongs to no group
        """
        host_names = [host.name for host in self.hosts]
        known = set(host_names)
        if len(known) != len(host_names):
            raise SnapshotConsistencyError("duplicate host names in snapshot")

        grouped = set()
        group_names = set()
        for group in self.groups:
            if group.name in group_names:
                raise SnapshotConsistencyError(f"duplicate group '{group.name}'")
            group_names.add(group.name)
            unknown = set(group.hosts) - known
            if unknown:
                raise SnapshotConsistencyError(
                    f"group '{group.name}' references unknown hosts {sorted(unknown)}"
                )
            grouped.update(group.hosts)

        orphans = known - grouped
        if orphans:
            raise SnapshotConsistencyError(
                f"hosts without any group: {sorted(orphans)}"
            )

        unknown_vars = set(self.host_vars) - known
        if unknown_vars:
            raise SnapshotConsistencyError(
                f"host vars reference unknown hosts {sorted(unknown_vars)}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "fetched_at": self.fetched_at.isoformat(),
            "fingerprint": self.fingerprint,
            "hosts": [host.to_dict() for host in self.hosts],
            "groups": [
                {"name": g.name, "hosts": list(g.hosts), "vars": g.vars}
                for g in self.groups
            ],
            "host_vars": self.host_vars,
            "skipped": [s.to_dict() for s in self.skipped],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InventorySnapshot":
        return cls.build(
            version=int(data["version"]),
            hosts=[Host.from_dict(host) for host in data["hosts"]],
            groups=[
                Group(name=g["name"], hosts=tuple(g["hosts"]), vars=g.get("vars") or {})
                for g in data["groups"]
            ],
            host_vars=data.get("host_vars") or {},
            skipped=[
                SkippedRecord(
                    index=s["index"],
                    reason=s["reason"],
                    name=s.get("name"),
                    source_id=s.get("source_id"),
                )
                for s in data.get("skipped") or []
            ],
            fetched_at=datetime.fromisoformat(data["fetched_at"]),
        )
