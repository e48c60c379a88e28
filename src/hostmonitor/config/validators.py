"""
Configuration validation utilities.

This module turns raw configuration data into validated model instances:
agent settings, the bootstrap configuration and the probe database options.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional

from ..models.config import AgentSettings, BootstrapConfig, CategoryConfig, ProbeDbConfig
from ..models.messages import ProbeCategory
from ..validation import (
    ValidationError,
    validate_enum_choice,
    validate_non_empty_string,
    validate_positive_integer,
)

logger = logging.getLogger(__name__)

# Polled categories: (category, PROBES_PERIOD element, probe directory).
CATEGORY_LAYOUT = (
    (ProbeCategory.SYSTEM_HOST, "SYSTEM_HOST", "host/system"),
    (ProbeCategory.MONITOR_HOST, "MONITOR_HOST", "host/monitor"),
    (ProbeCategory.STATE_VM, "STATUS_VM", "vm/status"),
    (ProbeCategory.MONITOR_VM, "MONITOR_VM", "vm/monitor"),
)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
PROBE_DB_KEYS = {"times_missing", "obsolete", "db_path", "missing_state"}


def validate_agent_settings(agent_data: Dict[str, Any], base_dir: Optional[Path] = None) -> AgentSettings:
    """
    Validate and create AgentSettings from the `[agent]` table.

    Args:
        agent_data: Raw agent settings from TOML
        base_dir: Directory relative paths are resolved against

    Returns:
        Validated AgentSettings instance

    Raises:
        ValidationError: If validation fails
    """
    defaults = AgentSettings()

    probes_dir = _resolve_path(agent_data.get("probes_dir"), base_dir, defaults.probes_dir)
    etc_dir = _resolve_path(agent_data.get("etc_dir"), base_dir, defaults.etc_dir)

    log_level = validate_enum_choice(
        agent_data.get("log_level", defaults.log_level),
        valid_choices=LOG_LEVELS,
        field_name="agent.log_level",
        case_sensitive=False,
    )

    thread_name_prefix = validate_non_empty_string(
        agent_data.get("thread_name_prefix", defaults.thread_name_prefix),
        field_name="agent.thread_name_prefix",
    )

    shutdown_timeout = agent_data.get("shutdown_timeout", defaults.shutdown_timeout)
    if isinstance(shutdown_timeout, bool) or not isinstance(shutdown_timeout, (int, float)) \
            or shutdown_timeout <= 0:
        raise ValidationError(
            "agent.shutdown_timeout must be a positive number",
            field_name="agent.shutdown_timeout",
            value=shutdown_timeout,
        )

    return AgentSettings(
        probes_dir=probes_dir,
        etc_dir=etc_dir,
        log_level=log_level,
        thread_name_prefix=thread_name_prefix,
        shutdown_timeout=float(shutdown_timeout),
    )


def validate_bootstrap_config(data: Dict[str, Any], hypervisor: str, document: str) -> BootstrapConfig:
    """
    Validate raw bootstrap values and build the immutable BootstrapConfig.

    Args:
        data: Output of parse_bootstrap_document
        hypervisor: Hypervisor tag selecting the probe tree
        document: Raw bootstrap document

    Returns:
        Validated BootstrapConfig instance

    Raises:
        ValidationError: If a required value is missing or not a number
    """
    monitor_address = validate_non_empty_string(
        data.get("monitor_address"), field_name="UDP_LISTENER/MONITOR_ADDRESS"
    )
    port = validate_positive_integer(
        data.get("port"), min_value=1, max_value=65535, field_name="UDP_LISTENER/PORT"
    )
    host_id = validate_non_empty_string(data.get("host_id"), field_name="HOST_ID")
    # Sent as one word of the ASCII message header.
    if not host_id.isascii() or any(c.isspace() for c in host_id):
        raise ValidationError(
            "HOST_ID must be ASCII without whitespace",
            field_name="HOST_ID",
            value=host_id,
        )
    hypervisor = validate_non_empty_string(hypervisor, field_name="hypervisor")

    periods = data.get("periods", {})
    probes = []
    for category, period_tag, path in CATEGORY_LAYOUT:
        field_name = f"PROBES_PERIOD/{period_tag}"
        if period_tag not in periods:
            raise ValidationError(f"Missing {field_name} in bootstrap document", field_name=field_name)
        period = validate_positive_integer(periods[period_tag], min_value=1, field_name=field_name)
        probes.append(CategoryConfig(category=category, path=path, period=period))

    return BootstrapConfig(
        monitor_address=monitor_address,
        port=port,
        pubkey=data.get("pubkey", "") or "",
        host_id=host_id,
        hypervisor=hypervisor,
        probes=tuple(probes),
        document=document,
    )


def validate_probe_db_config(
    data: Optional[Dict[str, Any]],
    base: Optional[ProbeDbConfig] = None,
    source: str = "probe_db",
) -> ProbeDbConfig:
    """
    Merge probe database options over a base configuration.

    Args:
        data: Raw options (sidecar file or explicit overrides), may be None
        base: Configuration to merge over, defaults when omitted
        source: Label used in error messages

    Returns:
        Validated ProbeDbConfig instance

    Raises:
        ValidationError: If an option is unknown or has an invalid value
    """
    config = base or ProbeDbConfig()
    if not data:
        return config

    unknown = set(data) - PROBE_DB_KEYS
    if unknown:
        raise ValidationError(
            f"Unknown {source} option(s): {', '.join(sorted(unknown))}",
            field_name=source,
            value=sorted(unknown),
        )

    changes: Dict[str, Any] = {}
    if "times_missing" in data:
        changes["times_missing"] = validate_positive_integer(
            data["times_missing"], min_value=0, field_name=f"{source}.times_missing"
        )
    if "obsolete" in data:
        changes["obsolete"] = validate_positive_integer(
            data["obsolete"], min_value=0, field_name=f"{source}.obsolete"
        )
    if "db_path" in data:
        changes["db_path"] = Path(
            validate_non_empty_string(str(data["db_path"]), field_name=f"{source}.db_path")
        )
    if "missing_state" in data:
        changes["missing_state"] = validate_non_empty_string(
            data["missing_state"], field_name=f"{source}.missing_state"
        )

    return replace(config, **changes)


def _resolve_path(value: Any, base_dir: Optional[Path], default: Path) -> Path:
    if value is None:
        return default
    path = Path(validate_non_empty_string(str(value), field_name="agent path"))
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    return path
