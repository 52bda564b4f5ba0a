# SPDX-License-Identifier: Apache-2.0

"""NetBox inventory synchronization for Ansible."""

from .cache import InventoryCache
from .config import Config
from .exceptions import (
    AuthError,
    ConfigError,
    InventorySyncError,
    NetworkError,
    NotReadyError,
    RateLimitError,
    RefreshCancelledError,
    SchemaError,
    SnapshotConsistencyError,
    SourceAPIError,
    SourceError,
)
from .inventory import render, render_ansible
from .models import Group, Host, InventorySnapshot
from .netbox_client import NetBoxClient
from .normalizer import normalize
from .rules import RuleSet, compose, group

__version__ = "0.1.0"

__all__ = [
    "AuthError",
    "Config",
    "ConfigError",
    "Group",
    "Host",
    "InventoryCache",
    "InventorySnapshot",
    "InventorySyncError",
    "NetBoxClient",
    "NetworkError",
    "NotReadyError",
    "RateLimitError",
    "RefreshCancelledError",
    "RuleSet",
    "SchemaError",
    "SnapshotConsistencyError",
    "SourceAPIError",
    "SourceError",
    "compose",
    "group",
    "normalize",
    "render",
    "render_ansible",
]
