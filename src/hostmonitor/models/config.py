"""
Configuration data models.

This module contains the configuration structures of the agent: the local
settings file, the immutable bootstrap configuration received from the
collector, and the probe database options.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

from .messages import ProbeCategory

# Root of the agent installation (the directory holding conf/ and probes/).
INSTALL_ROOT = Path(__file__).resolve().parent.parent.parent.parent


@dataclass
class AgentSettings:
    """
    Local agent behaviour, loaded from `conf/agent.toml`.
    """

    # Directory holding one `<hypervisor>-probes.d` tree per hypervisor.
    probes_dir: Path = INSTALL_ROOT / "probes"
    # Directory holding per-hypervisor sidecar files (probe_db.conf).
    etc_dir: Path = INSTALL_ROOT / "conf"
    log_level: str = "INFO"
    thread_name_prefix: str = "ProbeWorker"
    # Seconds to wait for category workers when a shutdown is requested.
    shutdown_timeout: float = 10.0


@dataclass(frozen=True)
class CategoryConfig:
    """
    Polling setup for a single telemetry category.
    """

    category: ProbeCategory
    # Probe directory relative to `<probes_dir>/<hypervisor>-probes.d`.
    path: str
    # Polling period in seconds.
    period: int


@dataclass(frozen=True)
class BootstrapConfig:
    """
    Process-wide configuration parsed once from the bootstrap document.

    Instances are immutable and handed explicitly to each component.
    """

    monitor_address: str
    port: int
    pubkey: str
    host_id: str
    hypervisor: str
    probes: Tuple[CategoryConfig, ...]
    # Raw document, fed on stdin to every probe.
    document: str

    def probe(self, category: ProbeCategory) -> Optional[CategoryConfig]:
        """Return the configuration of a category, if it is polled."""
        for probe in self.probes:
            if probe.category is category:
                return probe
        return None


DEFAULT_DB_PATH = INSTALL_ROOT / "status.db"


@dataclass
class ProbeDbConfig:
    """
    Options of the VM state database, from defaults, the sidecar
    `probe_db.conf` file and explicit overrides (in that order).
    """

    # Absences tolerated before a VM is reported in missing_state.
    times_missing: int = 3
    # Minutes after which an untouched record is purged.
    obsolete: int = 720
    db_path: Path = DEFAULT_DB_PATH
    missing_state: str = "POWEROFF"

    def to_dict(self) -> Dict[str, object]:
        return {
            "times_missing": self.times_missing,
            "obsolete": self.obsolete,
            "db_path": str(self.db_path),
            "missing_state": self.missing_state,
        }
