"""
VM state tracking for the hostmonitor package.

This module provides the SQLite state database that turns VM snapshots into
state-change and missing-VM reports, and the status probe entry point built
on it.
"""

from .probe_db import VirtualMachineDB, format_status_line
from .status import run_status_probe

__all__ = [
    "VirtualMachineDB",
    "format_status_line",
    "run_status_probe",
]
