"""
Configuration management for the hostmonitor package.

This module provides loading and validation of the agent settings (TOML,
singleton), the bootstrap document (XML, parsed once) and the probe database
sidecar (TOML).
"""

# Main configuration interface
from .manager import (
    clear_config_cache,
    get_config,
    is_config_loaded,
    load_bootstrap,
    reset_config_path,
    set_config_path,
)

# For advanced usage - direct access to loaders and validators
from .loader import (
    get_probe_db_conf_path,
    load_agent_settings_file,
    load_probe_db_file,
    load_toml_file,
    parse_bootstrap_document,
)
from .validators import (
    CATEGORY_LAYOUT,
    validate_agent_settings,
    validate_bootstrap_config,
    validate_probe_db_config,
)

__all__ = [
    # Main interface
    "get_config",
    "set_config_path",
    "reset_config_path",
    "clear_config_cache",
    "is_config_loaded",
    "load_bootstrap",
    # Advanced interface
    "get_probe_db_conf_path",
    "load_agent_settings_file",
    "load_probe_db_file",
    "load_toml_file",
    "parse_bootstrap_document",
    "CATEGORY_LAYOUT",
    "validate_agent_settings",
    "validate_bootstrap_config",
    "validate_probe_db_config",
]
