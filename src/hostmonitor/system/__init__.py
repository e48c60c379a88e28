"""
System interaction utilities.

This module provides probe discovery and execution: listing the executables
of a category directory in a stable order and running them with captured
output.
"""

from .commands import (
    is_probe_executable,
    list_probes,
    run_probe,
    terminate_running_probes,
)

__all__ = [
    "is_probe_executable",
    "list_probes",
    "run_probe",
    "terminate_running_probes",
]
