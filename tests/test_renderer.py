# SPDX-License-Identifier: Apache-2.0

"""Tests for snapshot rendering and inventory export."""

import json
import os
import stat

import pytest
import yaml

from conftest import FakeSource, make_config
from inventory_sync.cache import InventoryCache
from inventory_sync.inventory import (
    InventoryManager,
    render,
    render_ansible,
    render_host,
    to_json,
    to_yaml,
)
from inventory_sync.inventory.host_group_writer import ini_value


@pytest.fixture
def snapshot(scenario_records):
    scenario_records[0]["primary_ip4"] = {"id": 9, "address": "192.0.2.1/24"}
    config = make_config(
        compose={
            "ansible_network_os": {
                "source": "platform",
                "map": {"ios": "cisco.ios.ios", "vyos": "vyos.vyos.vyos"},
            }
        },
        group_vars={"manufacturers_vyos": {"ansible_user": "vyos"}},
    )
    return InventoryCache(config, FakeSource([scenario_records])).refresh()


@pytest.fixture
def umask_022():
    previous = os.umask(0o022)
    yield
    os.umask(previous)


class TestRender:
    def test_document_shape(self, snapshot):
        document = render(snapshot)

        assert document["groups"] == {
            "manufacturers_cisco": {"hosts": ["R1", "SW1"], "vars": {}},
            "manufacturers_vyos": {"hosts": ["VYOS1"], "vars": {"ansible_user": "vyos"}},
        }
        assert document["hosts"]["R1"]["attrs"] == {
            "platform": "ios",
            "manufacturer": "cisco",
            "primary_address": "192.0.2.1",
            "ansible_network_os": "cisco.ios.ios",
        }

    def test_rendering_is_deterministic(self, snapshot):
        assert render(snapshot) == render(snapshot)
        assert to_json(render(snapshot)) == to_json(render(snapshot))

    def test_output_does_not_alias_snapshot(self, snapshot):
        document = render(snapshot)
        document["groups"]["manufacturers_vyos"]["vars"]["ansible_user"] = "root"
        document["hosts"]["R1"]["attrs"]["platform"] = "eos"

        assert render(snapshot) != document
        assert snapshot.group("manufacturers_vyos").vars == {"ansible_user": "vyos"}

    def test_yaml_output(self, snapshot):
        assert yaml.safe_load(to_yaml(render(snapshot))) == render(snapshot)


class TestRenderAnsible:
    def test_list_document(self, snapshot):
        document = render_ansible(snapshot)

        assert document["all"] == {
            "children": ["manufacturers_cisco", "manufacturers_vyos"]
        }
        assert document["manufacturers_cisco"]["hosts"] == ["R1", "SW1"]
        assert document["_meta"]["hostvars"]["R1"]["ansible_host"] == "192.0.2.1"
        assert "ansible_host" not in document["_meta"]["hostvars"]["SW1"]
        assert json.loads(to_json(document)) == document

    def test_host(self, snapshot):
        assert render_host(snapshot, "VYOS1")["ansible_network_os"] == "vyos.vyos.vyos"
        assert render_host(snapshot, "missing") == {}


class TestIniValue:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, "true"),
            (22, "22"),
            ("cisco.ios.ios", "cisco.ios.ios"),
            ("two words", '"two words"'),
            (["a", "b"], '["a", "b"]'),
        ],
    )
    def test_formatting(self, value, expected):
        assert ini_value(value) == expected


class TestInventoryManager:
    def test_ini_output(self, snapshot):
        text = InventoryManager(make_config(output_format="ini")).render_text(snapshot)

        assert text.splitlines() == [
            "# Generated from NetBox, do not edit",
            "[manufacturers_cisco]",
            "R1 ansible_host=192.0.2.1 ansible_network_os=cisco.ios.ios",
            "SW1 ansible_network_os=cisco.ios.ios",
            "[manufacturers_vyos]",
            "VYOS1 ansible_network_os=vyos.vyos.vyos",
            "[manufacturers_vyos:vars]",
            "ansible_user=vyos",
        ]

    def test_ini_leaves_out_hosts_with_whitespace(self, scenario_records):
        scenario_records.append(
            {"name": "core sw 1", "manufacturer": "cisco", "platform": "ios"}
        )
        config = make_config(output_format="ini")
        snapshot = InventoryCache(config, FakeSource([scenario_records])).refresh()

        lines = InventoryManager(config).render_text(snapshot).splitlines()

        assert lines[1:4] == ["[manufacturers_cisco]", "R1", "SW1"]
        assert not any(line.startswith("core") for line in lines)
        assert "core sw 1" in render(snapshot)["groups"]["manufacturers_cisco"]["hosts"]

    @pytest.mark.parametrize("output_format", ["json", "yaml", "ini"])
    def test_write(self, tmp_path, snapshot, output_format):
        output_path = tmp_path / "inventory" / f"hosts.{output_format}"
        manager = InventoryManager(
            make_config(output_path=output_path, output_format=output_format)
        )

        assert manager.write(snapshot) == output_path
        assert output_path.read_text(encoding="utf-8") == manager.render_text(snapshot)
        assert [p.name for p in output_path.parent.iterdir()] == [output_path.name]

    def test_new_file_respects_umask(self, tmp_path, snapshot, umask_022):
        output_path = tmp_path / "inventory.json"

        InventoryManager(make_config(output_path=output_path)).write(snapshot)

        assert stat.S_IMODE(output_path.stat().st_mode) == 0o644

    def test_replaced_file_keeps_its_mode(self, tmp_path, snapshot, umask_022):
        output_path = tmp_path / "inventory.json"
        output_path.write_text("{}")
        output_path.chmod(0o640)

        InventoryManager(make_config(output_path=output_path)).write(snapshot)

        assert stat.S_IMODE(output_path.stat().st_mode) == 0o640
        assert json.loads(output_path.read_text())["hosts"]

    def test_write_without_output_path(self, snapshot, config):
        assert InventoryManager(config).write(snapshot) is None

    def test_unknown_format(self, snapshot, config):
        with pytest.raises(ValueError):
            InventoryManager(config).render_text(snapshot, output_format="toml")
