"""
Configuration file loading utilities.

This module handles the low-level loading and parsing of configuration
sources: TOML files (agent settings and the probe database sidecar) and the
XML bootstrap document received on standard input.
"""

import logging
import tomllib
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Optional

from ..validation import ValidationError, handle_config_error, ErrorSeverity

logger = logging.getLogger(__name__)

# Bootstrap elements, relative to the document root.
BOOTSTRAP_FIELDS = {
    "monitor_address": "UDP_LISTENER/MONITOR_ADDRESS",
    "port": "UDP_LISTENER/PORT",
    "pubkey": "UDP_LISTENER/PUBKEY",
    "host_id": "HOST_ID",
}
OPTIONAL_BOOTSTRAP_FIELDS = {"pubkey"}
PERIODS_ELEMENT = "PROBES_PERIOD"


def load_toml_file(file_path: Path, description: str = "configuration file") -> Dict[str, Any]:
    """
    Load and parse a TOML file with error handling.

    Args:
        file_path: Path to the TOML file to load
        description: Human-readable description for error messages

    Returns:
        Parsed TOML data as a dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is malformed
    """
    logger.info(f"Loading {description} from: {file_path}")

    if not file_path.exists():
        logger.error(f"{description} not found: {file_path}")
        raise FileNotFoundError(f"{description} not found: {file_path}")

    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        handle_config_error(
            error=e,
            context=f"parsing {description}",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def load_agent_settings_file(config_path: Path) -> Dict[str, Any]:
    """
    Load the agent settings file (agent.toml).

    Returns:
        The `[agent]` table, or an empty dict when the section is absent
    """
    return load_toml_file(config_path, "agent settings file").get("agent", {})


def load_probe_db_file(conf_path: Path) -> Optional[Dict[str, Any]]:
    """
    Load the optional probe database sidecar file.

    A missing file is not an error: the database runs on its defaults.

    Returns:
        Parsed options, or None if the file does not exist

    Raises:
        ValidationError: If the file is not valid TOML
    """
    if not conf_path.exists():
        logger.debug(f"No probe database configuration at {conf_path}, using defaults")
        return None
    try:
        return load_toml_file(conf_path, "probe database configuration")
    except tomllib.TOMLDecodeError as e:
        raise ValidationError(
            f"Malformed probe database configuration {conf_path}: {e}",
            field_name=str(conf_path),
        ) from e


def get_probe_db_conf_path(etc_dir: Path, hypervisor: str) -> Path:
    """Location of the sidecar file for a hypervisor."""
    return etc_dir / f"{hypervisor}-probes.d" / "probe_db.conf"


def parse_bootstrap_document(document: str) -> Dict[str, Any]:
    """
    Extract the raw bootstrap values from the XML document.

    Args:
        document: XML text as received on standard input

    Returns:
        Dictionary with the text of every bootstrap field and a `periods`
        mapping of PROBES_PERIOD child tag to text

    Raises:
        ValidationError: If the document is not well formed or a required
            element is missing
    """
    try:
        root = ET.fromstring(document)
    except ET.ParseError as e:
        raise ValidationError(f"Malformed bootstrap document: {e}", value=document) from e

    data: Dict[str, Any] = {}
    for field_name, element_path in BOOTSTRAP_FIELDS.items():
        element = root.find(element_path)
        if element is None:
            if field_name in OPTIONAL_BOOTSTRAP_FIELDS:
                data[field_name] = ""
                continue
            raise ValidationError(
                f"Missing {element_path} in bootstrap document",
                field_name=element_path,
            )
        data[field_name] = (element.text or "").strip()

    periods = root.find(PERIODS_ELEMENT)
    if periods is None:
        raise ValidationError(
            f"Missing {PERIODS_ELEMENT} in bootstrap document",
            field_name=PERIODS_ELEMENT,
        )
    data["periods"] = {child.tag: (child.text or "").strip() for child in periods}

    return data
