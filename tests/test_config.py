"""Tests for configuration loading and logging setup."""

import json
import logging

import pytest
from rich.logging import RichHandler

from operator_kernel.config.log import LOGGER_NAME, setup_logging
from operator_kernel.config.settings import (
    HostClusterSettings,
    InvalidConfigError,
    OperatorConfig,
    load_config,
)


class TestLoadConfig:
    def test_defaults_without_path(self):
        config = load_config(None)
        assert config == OperatorConfig()
        assert config.reconciler.heartbeat_interval_seconds == 60

    def test_defaults_for_missing_file(self, tmp_path):
        assert load_config(str(tmp_path / "absent.yaml")) == OperatorConfig()

    def test_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "host_cluster:\n"
            "  resource_group: host-rg\n"
            "  virtual_network_gateway: host-vpn-gateway\n"
            "reconciler:\n"
            "  heartbeat_interval_seconds: 15\n"
            "logging:\n"
            "  level: DEBUG\n"
        )
        config = load_config(str(path))
        assert config.host_cluster.resource_group == "host-rg"
        assert config.reconciler.heartbeat_interval_seconds == 15
        assert config.reconciler.stop_on_failure is True
        assert config.logging.level == "DEBUG"

    def test_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"history_db_path": "/var/lib/operator/history.db"}))
        assert load_config(str(path)).history_db_path == "/var/lib/operator/history.db"

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == OperatorConfig()

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("reconciler:\n  heartbeat_interval_seconds: soon\n")
        with pytest.raises(InvalidConfigError):
            load_config(str(path))

    def test_non_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(InvalidConfigError):
            load_config(str(path))

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("host_cluster: [unclosed\n")
        with pytest.raises(InvalidConfigError):
            load_config(str(path))


class TestHostClusterSettings:
    def test_complete_settings_validate(self):
        HostClusterSettings(
            resource_group="host-rg",
            virtual_network_gateway="gw",
            dns_zone="example.com",
            dns_zone_resource_group="dns-rg",
        ).validate_required()

    def test_names_first_missing_field(self):
        settings = HostClusterSettings(resource_group="host-rg")
        with pytest.raises(InvalidConfigError, match="virtual_network_gateway"):
            settings.validate_required()


class TestSetupLogging:
    def test_installs_single_rich_handler(self):
        setup_logging("DEBUG")
        logger = setup_logging("INFO")

        assert logger.name == LOGGER_NAME
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0], RichHandler)

    def test_unknown_level_falls_back_to_info(self):
        logger = setup_logging("chatty")
        assert logger.level == logging.INFO
