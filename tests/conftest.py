# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures for the inventory synchronization tests."""

import copy
import threading
from typing import Any, Dict, List
from unittest.mock import MagicMock

import pytest

from inventory_sync.base import BaseSourceClient, SourceRecords
from inventory_sync.config import Config

TOKEN = "0123456789abcdef0123456789abcdef01234567"

SCENARIO_RECORDS = [
    {"name": "R1", "manufacturer": "cisco", "platform": "ios"},
    {"name": "SW1", "manufacturer": "cisco", "platform": "ios"},
    {"name": "VYOS1", "manufacturer": "vyos", "platform": "vyos"},
]


class FakeSource(BaseSourceClient):
    """Source returning canned responses; the last response repeats.

    A response is a list of raw records, a SourceRecords instance or an
    exception to raise. With a gate, fetch blocks until the gate is set.
    """

    def __init__(self, responses: List[Any], gate: threading.Event = None):
        self.responses = list(responses)
        self.gate = gate
        self.calls: List[Dict[str, Any]] = []
        self.started = threading.Event()

    def fetch(self, since=None, cancel_event=None):
        self.calls.append({"since": since, "cancel_event": cancel_event})
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        if len(self.responses) > 1:
            response = self.responses.pop(0)
        else:
            response = self.responses[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, SourceRecords):
            return response
        return SourceRecords(devices=copy.deepcopy(response))


def make_config(**overrides) -> Config:
    values = {
        "api_endpoint": "https://netbox.example.com",
        "token": TOKEN,
        "group_by": ["manufacturer"],
        "backoff_initial": 1.0,
    }
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def config() -> Config:
    """Configuration grouping by manufacturer, without persistence."""
    return make_config()


@pytest.fixture
def scenario_records() -> List[Dict[str, Any]]:
    """The three-device example from the NetBox and Ansible tutorial."""
    return copy.deepcopy(SCENARIO_RECORDS)


@pytest.fixture
def netbox_device() -> Dict[str, Any]:
    """Device record shaped like a NetBox 4 API response."""
    return {
        "id": 42,
        "url": "https://netbox.example.com/api/dcim/devices/42/",
        "display": "R1",
        "name": "R1",
        "device_type": {
            "id": 7,
            "model": "ISR4331",
            "slug": "isr4331",
            "manufacturer": {"id": 1, "name": "Cisco", "slug": "cisco"},
        },
        "role": {"id": 2, "name": "Router", "slug": "router"},
        "platform": {"id": 3, "name": "Cisco IOS", "slug": "ios"},
        "site": {"id": 4, "name": "Lab", "slug": "lab"},
        "status": {"value": "active", "label": "Active"},
        "primary_ip": {"id": 5, "address": "192.0.2.10/24"},
        "primary_ip4": {"id": 5, "address": "192.0.2.10/24"},
        "primary_ip6": None,
        "tenant": None,
        "serial": "FDO1234X0AB",
        "tags": [
            {"id": 2, "name": "Edge", "slug": "edge"},
            {"id": 1, "name": "Core", "slug": "core"},
        ],
        "custom_fields": {"os_version": "17.3", "owner": None},
        "config_context": {"ntp_servers": ["192.0.2.1"]},
        "object_type": "device",
    }


@pytest.fixture
def mock_api() -> MagicMock:
    """pynetbox API mock with empty endpoints."""
    api = MagicMock()
    api.dcim.devices.all.return_value = []
    api.dcim.devices.filter.return_value = []
    api.dcim.platforms.all.return_value = []
    api.virtualization.virtual_machines.all.return_value = []
    api.virtualization.virtual_machines.filter.return_value = []
    return api
