# SPDX-License-Identifier: Apache-2.0

"""Tests for group-by and compose rules."""

import random

import pytest

from inventory_sync.exceptions import ConfigError
from inventory_sync.models import UNGROUPED, Host
from inventory_sync.normalizer import normalize
from inventory_sync.rules import (
    ComposeRule,
    GroupByRule,
    RuleSet,
    compose,
    group,
    sanitize_group_name,
)


def groups_by_name(groups):
    return {g.name: g.hosts for g in groups}


class TestGroupByRule:
    @pytest.mark.parametrize("name", ["manufacturer", "manufacturers", " Manufacturers "])
    def test_singular_and_plural_names(self, name):
        rule = GroupByRule.from_name(name)

        assert rule.attribute == "manufacturer"
        assert rule.prefix == "manufacturers"

    def test_role_uses_device_roles_prefix(self):
        host = Host(name="R1", platform="ios", role="core-router")

        assert GroupByRule.from_name("device_role").group_names(host) == [
            "device_roles_core_router"
        ]

    def test_unknown_attribute_is_read_from_attrs(self):
        host = Host(name="R1", platform="ios", attrs={"os_family": "Linux"})

        assert GroupByRule.from_name("os_family").group_names(host) == ["os_family_linux"]

    def test_tags_give_one_group_per_tag(self):
        host = Host(name="R1", platform="ios", attrs={"tags": ["edge", "core", "core"]})

        assert GroupByRule.from_name("tags").group_names(host) == ["tags_core", "tags_edge"]

    def test_missing_attribute_gives_no_group(self):
        host = Host(name="R1", platform="ios")

        assert GroupByRule.from_name("site").group_names(host) == []


class TestSanitizeGroupName:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("cisco", "cisco"),
            ("Cisco Systems", "cisco_systems"),
            ("juniper-networks", "juniper_networks"),
            ("--A.B--", "a_b"),
        ],
    )
    def test_sanitize(self, name, expected):
        assert sanitize_group_name(name) == expected


class TestGroup:
    def test_tutorial_grouping(self, scenario_records):
        hosts = normalize(scenario_records).hosts

        groups = group(hosts, [GroupByRule.from_name("manufacturer")])

        assert groups_by_name(groups) == {
            "manufacturers_cisco": ("R1", "SW1"),
            "manufacturers_vyos": ("VYOS1",),
        }

    def test_every_host_lands_in_exactly_one_group_per_rule(self, scenario_records):
        scenario_records.append({"name": "FW1", "platform": "panos"})
        hosts = normalize(scenario_records).hosts

        groups = group(hosts, [GroupByRule.from_name("manufacturer")])

        for host in hosts:
            assert sum(host.name in g.hosts for g in groups) == 1
        assert groups_by_name(groups)[UNGROUPED] == ("FW1",)

    def test_multiple_rules(self, scenario_records):
        hosts = normalize(scenario_records).hosts
        rules = [GroupByRule.from_name("manufacturers"), GroupByRule.from_name("platforms")]

        names = [g.name for g in group(hosts, rules)]

        assert names == [
            "manufacturers_cisco",
            "manufacturers_vyos",
            "platforms_ios",
            "platforms_vyos",
        ]

    def test_without_rules_all_hosts_are_ungrouped(self, scenario_records):
        hosts = normalize(scenario_records).hosts

        groups = group(hosts, [])

        assert groups_by_name(groups) == {UNGROUPED: ("R1", "SW1", "VYOS1")}

    def test_group_vars_are_attached(self, scenario_records):
        hosts = normalize(scenario_records).hosts

        groups = group(
            hosts,
            [GroupByRule.from_name("manufacturer")],
            group_vars={"manufacturers_vyos": {"ansible_user": "vyos"}},
        )

        by_name = {g.name: g for g in groups}
        assert by_name["manufacturers_vyos"].vars == {"ansible_user": "vyos"}
        assert by_name["manufacturers_cisco"].vars == {}

    def test_input_order_does_not_matter(self, scenario_records):
        hosts = normalize(scenario_records).hosts
        shuffled = list(hosts)
        random.Random(7).shuffle(shuffled)
        rules = [GroupByRule.from_name("manufacturer")]

        assert group(shuffled, rules) == group(hosts, rules)


class TestComposeRule:
    def test_plain_source(self):
        rule = ComposeRule.from_config("ansible_network_os", "platform")

        assert rule.evaluate(Host(name="R1", platform="ios")) == (True, "ios")

    def test_mapping_and_default(self):
        rule = ComposeRule.from_config(
            "ansible_network_os",
            {"source": "platform", "map": {"ios": "cisco.ios.ios"}, "default": "unknown"},
        )

        assert rule.evaluate(Host(name="R1", platform="ios")) == (True, "cisco.ios.ios")
        assert rule.evaluate(Host(name="FW1", platform="panos")) == (True, "unknown")

    def test_unmapped_value_passes_through_without_default(self):
        rule = ComposeRule.from_config(
            "ansible_network_os", {"source": "platform", "map": {"ios": "cisco.ios.ios"}}
        )

        assert rule.evaluate(Host(name="V1", platform="vyos")) == (True, "vyos")

    def test_dotted_source(self):
        rule = ComposeRule.from_config("os_version", "custom_fields.os_version")
        host = Host(
            name="R1", platform="ios", attrs={"custom_fields": {"os_version": "17.3"}}
        )

        assert rule.evaluate(host) == (True, "17.3")

    def test_missing_source_without_default_is_undefined(self):
        rule = ComposeRule.from_config("site_name", "site")

        assert rule.evaluate(Host(name="R1", platform="ios")) == (False, None)

    def test_missing_source_with_default(self):
        rule = ComposeRule.from_config("site_name", {"source": "site", "default": "lab"})

        assert rule.evaluate(Host(name="R1", platform="ios")) == (True, "lab")

    @pytest.mark.parametrize(
        "spec", [42, None, {"map": {"a": "b"}}, {"source": "platform", "map": ["a"]}]
    )
    def test_invalid_spec(self, spec):
        with pytest.raises(ConfigError):
            ComposeRule.from_config("broken", spec)


class TestCompose:
    def test_compose_per_host(self, scenario_records):
        hosts = normalize(scenario_records).hosts
        rules = [
            ComposeRule.from_config(
                "ansible_network_os",
                {"source": "platform", "map": {"ios": "cisco.ios.ios", "vyos": "vyos.vyos.vyos"}},
            )
        ]

        assert compose(hosts, rules) == {
            "R1": {"ansible_network_os": "cisco.ios.ios"},
            "SW1": {"ansible_network_os": "cisco.ios.ios"},
            "VYOS1": {"ansible_network_os": "vyos.vyos.vyos"},
        }

    def test_hosts_without_variables_are_left_out(self, scenario_records):
        hosts = normalize(scenario_records).hosts

        assert compose(hosts, [ComposeRule.from_config("site_name", "site")]) == {}


class TestRuleSet:
    def test_from_config(self):
        rules = RuleSet.from_config(
            group_by=["sites", "tags"],
            compose={"ansible_network_os": "platform"},
            group_vars={"Sites Lab": {"ntp": "192.0.2.1"}},
        )

        assert [rule.prefix for rule in rules.group_by] == ["sites", "tags"]
        assert [rule.name for rule in rules.compose] == ["ansible_network_os"]
        assert rules.group_vars == {"sites_lab": {"ntp": "192.0.2.1"}}
