"""
Probe execution utilities.

This module provides functions for discovering probe executables in a
category directory and running them with the bootstrap document on
standard input.
"""

import logging
import os
import signal
import subprocess
import threading
from pathlib import Path
from typing import List, Set, Tuple

from ..validation import ErrorSeverity, handle_subprocess_error

logger = logging.getLogger(__name__)

# Probes currently running, across every category worker.
_RUNNING: Set[subprocess.Popen] = set()
_RUNNING_LOCK = threading.Lock()


def is_probe_executable(path: Path) -> bool:
    """Whether a directory entry is a runnable probe (regular, executable file)."""
    return path.is_file() and os.access(path, os.X_OK)


def list_probes(probe_dir: Path) -> List[Path]:
    """List the executable probes of a directory, sorted by file name.

    Args:
        probe_dir: Category probe directory.

    Returns:
        Executable entries in lexicographic order of their names.

    Raises:
        OSError: If the directory cannot be listed.
    """
    return [entry for entry in sorted(probe_dir.iterdir(), key=lambda p: p.name)
            if is_probe_executable(entry)]


def run_probe(probe_path: Path, stdin_data: str = "") -> Tuple[int, str, str]:
    """Execute a probe and capture its output.

    The probe is run directly (no shell) in its own process group and waited
    for, so the child is always reaped, whatever its exit path. While it runs
    it can be killed by terminate_running_probes().

    Args:
        probe_path: Path of the executable.
        stdin_data: Text fed on the probe's standard input.

    Returns:
        Tuple of (return_code, stdout_string, stderr_string).
        return_code is -1 when the probe could not be started.

    Note:
        Uses UTF-8 encoding with error replacement for robust text handling.
        There is no timeout: a probe that never exits blocks the caller.
    """
    logger.debug(f"Executing probe: '{probe_path}'")
    try:
        process = subprocess.Popen(
            [str(probe_path)],
            cwd=probe_path.parent,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
    except FileNotFoundError as e:
        logger.error(f"Probe not found: {probe_path}: {type(e).__name__}: {e}")
        return -1, "", f"Error: Probe not found '{probe_path.name}'"
    except OSError as e:
        handle_subprocess_error(
            error=e,
            command=str(probe_path),
            severity=ErrorSeverity.ERROR,
            reraise=False,
            logger=logger,
        )
        return -1, "", f"Cannot start probe: {e}"

    with _RUNNING_LOCK:
        _RUNNING.add(process)
    try:
        with process:
            stdout, stderr = process.communicate(stdin_data)
    finally:
        with _RUNNING_LOCK:
            _RUNNING.discard(process)

    return process.returncode, stdout, stderr


def terminate_running_probes() -> int:
    """
    Kill every probe started by run_probe that has not exited yet.

    The whole process group of each probe is sent SIGKILL, so children
    spawned by probe scripts go too. Callers blocked in run_probe then
    return with a negative exit code.

    Returns:
        Number of probes signalled
    """
    with _RUNNING_LOCK:
        running = list(_RUNNING)

    killed = 0
    for process in running:
        if process.poll() is not None:
            continue
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            continue
        logger.warning(f"Killed probe {process.args[0]} (pid {process.pid})")
        killed += 1
    return killed
