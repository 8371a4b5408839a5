"""
Operator configuration.

Loaded once at startup from a YAML or JSON file. A missing file yields the
defaults, so a local run needs no configuration at all. Required settings are
checked where they are used: constructing a component with missing required
configuration raises InvalidConfigError, nothing is silently defaulted.
"""

import json
import os
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel

from operator_kernel.models.reconciler import ReconcilerConfig


class InvalidConfigError(Exception):
    """Raised when required configuration is missing or malformed."""
    pass


class HostClusterSettings(BaseModel):
    """Where the operator's own (host) cluster lives."""

    resource_group: str = ""
    virtual_network_gateway: str = ""
    dns_zone: str = ""
    dns_zone_resource_group: str = ""
    location: str = "westeurope"

    def validate_required(self) -> None:
        for field in ("resource_group", "virtual_network_gateway", "dns_zone",
                      "dns_zone_resource_group"):
            if not getattr(self, field):
                raise InvalidConfigError(f"host_cluster.{field} must not be empty")


class LoggingSettings(BaseModel):
    level: str = "INFO"
    rich_tracebacks: bool = True


class OperatorConfig(BaseModel):
    """Top-level operator configuration."""

    host_cluster: HostClusterSettings = HostClusterSettings()
    reconciler: ReconcilerConfig = ReconcilerConfig()
    logging: LoggingSettings = LoggingSettings()
    history_db_path: str = ":memory:"


def _read(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        if path.endswith(".json"):
            data = json.load(f)
        else:
            data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidConfigError(f"{path}: top level must be a mapping")
    return data


def load_config(path: Optional[str] = None) -> OperatorConfig:
    """Load configuration from `path`; defaults when no file is given or found."""
    if not path:
        return OperatorConfig()

    path = os.path.expanduser(path)
    if not os.path.exists(path):
        return OperatorConfig()

    try:
        data = _read(path)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise InvalidConfigError(f"{path}: {e}") from e

    try:
        return OperatorConfig.model_validate(data)
    except ValueError as e:
        raise InvalidConfigError(f"{path}: {e}") from e
