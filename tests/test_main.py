# SPDX-License-Identifier: Apache-2.0

"""Tests for the command line entry point."""

import json
from unittest.mock import patch

import pytest

from conftest import FakeSource, make_config
from inventory_sync import main
from inventory_sync.cache import InventoryCache
from inventory_sync.exceptions import AuthError, NetworkError
from inventory_sync.file_cache import SnapshotStore


@pytest.fixture
def run_main():
    """Run main() with a fixed configuration and cache."""

    def run(argv, config, cache):
        with patch.object(
            main.Config, "from_environment", return_value=config
        ), patch.object(main, "build_cache", return_value=cache), patch.object(
            main, "setup_logging"
        ):
            main.main(argv)

    return run


class TestParseArgs:
    def test_mode_is_required(self):
        with pytest.raises(SystemExit):
            main.parse_args([])

    def test_modes_are_exclusive(self):
        with pytest.raises(SystemExit):
            main.parse_args(["--list", "--host", "R1"])

    def test_host(self):
        args = main.parse_args(["--host", "R1", "--config", "settings.yaml"])

        assert args.host == "R1"
        assert args.config == "settings.yaml"


class TestObtainSnapshot:
    def test_falls_back_to_cached_snapshot(self, tmp_path, config, scenario_records):
        store = SnapshotStore(tmp_path / "snapshot.json")
        cached = InventoryCache(config, FakeSource([scenario_records]), store=store).refresh()
        cache = InventoryCache(config, FakeSource([NetworkError("down")]), store=store)

        assert main.obtain_snapshot(cache) == cached

    def test_without_cached_snapshot_the_error_propagates(self, tmp_path, config):
        store = SnapshotStore(tmp_path / "snapshot.json")
        cache = InventoryCache(config, FakeSource([AuthError("HTTP 401")]), store=store)

        with pytest.raises(AuthError):
            main.obtain_snapshot(cache)

    def test_use_cached_skips_refresh(self, tmp_path, config, scenario_records):
        store = SnapshotStore(tmp_path / "snapshot.json")
        InventoryCache(config, FakeSource([scenario_records]), store=store).refresh()
        source = FakeSource([scenario_records])
        cache = InventoryCache(config, source, store=store)

        main.obtain_snapshot(cache, use_cached=True)

        assert source.calls == []


class TestMain:
    def test_list(self, capsys, run_main, config, scenario_records):
        run_main(["--list"], config, InventoryCache(config, FakeSource([scenario_records])))

        document = json.loads(capsys.readouterr().out)
        assert document["manufacturers_cisco"]["hosts"] == ["R1", "SW1"]
        assert set(document["_meta"]["hostvars"]) == {"R1", "SW1", "VYOS1"}

    def test_host(self, capsys, run_main, config, scenario_records):
        run_main(
            ["--host", "VYOS1"], config, InventoryCache(config, FakeSource([scenario_records]))
        )

        assert json.loads(capsys.readouterr().out) == {
            "platform": "vyos",
            "manufacturer": "vyos",
        }

    def test_write(self, tmp_path, run_main, scenario_records):
        config = make_config(output_path=tmp_path / "hosts.ini", output_format="ini")

        run_main(["--write"], config, InventoryCache(config, FakeSource([scenario_records])))

        assert "[manufacturers_vyos]" in (tmp_path / "hosts.ini").read_text()

    def test_write_requires_output_path(self, run_main, config, scenario_records):
        with pytest.raises(SystemExit) as excinfo:
            run_main(
                ["--write"], config, InventoryCache(config, FakeSource([scenario_records]))
            )

        assert excinfo.value.code == 1

    def test_failure_exits_with_status_1(self, capsys, run_main, config):
        with pytest.raises(SystemExit) as excinfo:
            run_main(["--list"], config, InventoryCache(config, FakeSource([AuthError("HTTP 401")])))

        assert excinfo.value.code == 1
        assert capsys.readouterr().out == ""
