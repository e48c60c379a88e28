"""
Body of the VM status probe.

Hypervisor-specific status probes call run_status_probe with their own
snapshot provider; the returned value is the probe's exit status.
"""

import logging
import sqlite3
import sys
from typing import Optional, TextIO

from ..validation import ValidationError, handle_error, ErrorSeverity
from .probe_db import SnapshotProvider, VirtualMachineDB

logger = logging.getLogger(__name__)


def run_status_probe(
    hypervisor: str,
    snapshot_provider: SnapshotProvider,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
    **options,
) -> int:
    """
    Purge obsolete records and print the VM status report.

    Database and configuration errors are written to `err` and turned into a
    non-zero exit status, so the agent reports the STATE_VM tick as a
    failure instead of crashing.

    Args:
        hypervisor: Hypervisor tag of the probe tree
        snapshot_provider: Returns the live VMs, keyed by record id
        out: Stream for the report (stdout by default)
        err: Stream for failures (stderr by default)
        **options: Passed to VirtualMachineDB (conf_path, clock, overrides)

    Returns:
        0 on success, 1 on failure
    """
    out = out or sys.stdout
    err = err or sys.stderr

    try:
        with VirtualMachineDB(hypervisor, snapshot_provider, **options) as vmdb:
            vmdb.purge()
            out.write(vmdb.to_status())
    except (sqlite3.Error, ValidationError, OSError) as e:
        handle_error(
            error=e,
            context=f"{hypervisor} VM status probe",
            severity=ErrorSeverity.ERROR,
            reraise=False,
            logger=logger,
        )
        err.write(f"{e}\n")
        return 1

    return 0
