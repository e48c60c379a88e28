"""
Configuration management and singleton pattern.

This module provides the agent settings loading interface, implementing a
singleton so `conf/agent.toml` is read only once, and the one-shot parsing
of the bootstrap document.

The bootstrap configuration is deliberately not cached here: it is built once
by the CLI and handed explicitly to the orchestrator and its schedulers.
"""

import logging
from pathlib import Path
from typing import Optional

from ..models.config import AgentSettings, BootstrapConfig, INSTALL_ROOT
from ..validation import handle_config_error, ErrorSeverity
from .loader import load_agent_settings_file, parse_bootstrap_document
from .validators import validate_agent_settings, validate_bootstrap_config

logger = logging.getLogger(__name__)

# --- Global Singleton for Agent Settings ---

_CONFIG: Optional[AgentSettings] = None

_DEFAULT_CONFIG_FILE_PATH = INSTALL_ROOT / "conf" / "agent.toml"
_CONFIG_FILE_PATH = _DEFAULT_CONFIG_FILE_PATH


def set_config_path(config_path: Path) -> None:
    """
    Set a custom agent settings file path.

    Args:
        config_path: Path to an agent.toml file

    Note:
        The cached settings are dropped so the next get_config() call
        reads the new file.
    """
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = Path(config_path)
    _CONFIG = None
    logger.info(f"Configuration path set to: {config_path}")


def clear_config_cache() -> None:
    """
    Clear the cached settings, forcing a reload on next access.
    """
    global _CONFIG
    _CONFIG = None
    logger.debug("Configuration cache cleared")


def reset_config_path() -> None:
    """Restore the default settings location and drop the cache."""
    global _CONFIG_FILE_PATH, _CONFIG
    _CONFIG_FILE_PATH = _DEFAULT_CONFIG_FILE_PATH
    _CONFIG = None


def _load_config(config_path: Path) -> AgentSettings:
    """
    Load and validate the agent settings.

    The packaged default location may be absent (e.g. a wheel install); in
    that case built-in defaults are used. A path set explicitly must exist.

    Raises:
        FileNotFoundError: If an explicitly configured file is missing
        ValidationError: If a setting is invalid
        tomllib.TOMLDecodeError: If the file is malformed
    """
    if config_path == _DEFAULT_CONFIG_FILE_PATH and not config_path.exists():
        logger.info(f"No agent settings at {config_path}, using built-in defaults")
        return AgentSettings()

    try:
        agent_data = load_agent_settings_file(config_path)
        settings = validate_agent_settings(agent_data, base_dir=config_path.parent)
        logger.info(f"Loaded agent settings, probes directory: {settings.probes_dir}")
        return settings
    except Exception as e:
        handle_config_error(
            error=e,
            context="loading agent settings",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def get_config() -> AgentSettings:
    """
    Get the agent settings, loading them if necessary.

    Returns:
        The singleton AgentSettings instance
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = _load_config(_CONFIG_FILE_PATH)
    return _CONFIG


def is_config_loaded() -> bool:
    """Check if settings have been loaded and cached."""
    return _CONFIG is not None


def load_bootstrap(document: str, hypervisor: str) -> BootstrapConfig:
    """
    Parse and validate the bootstrap document.

    Args:
        document: XML text received on standard input
        hypervisor: Hypervisor tag selecting the probe tree

    Returns:
        Immutable BootstrapConfig

    Raises:
        ValidationError: If the document is malformed or incomplete
    """
    data = parse_bootstrap_document(document)
    bootstrap = validate_bootstrap_config(data, hypervisor=hypervisor, document=document)
    logger.info(
        f"Bootstrap configuration for host {bootstrap.host_id}: collector "
        f"{bootstrap.monitor_address}:{bootstrap.port}, encryption "
        f"{'enabled' if bootstrap.pubkey else 'disabled'}"
    )
    return bootstrap
