"""
Periodic execution of category probe directories.

A ProbeRunner executes every probe of one category directory, aggregates
their output and, in its forever loop, reports each tick to a callback and
sleeps for what is left of the polling period.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Union

from ..models.config import CategoryConfig
from ..models.messages import ProbeResult
from ..system.commands import list_probes, run_probe
from ..validation import ErrorSeverity, handle_error

logger = logging.getLogger(__name__)

TickCallback = Callable[[int, str], None]


def probe_tree(probes_dir: Path, hypervisor: str) -> Path:
    """Root of the probe directories of a hypervisor."""
    return Path(probes_dir) / f"{hypervisor}-probes.d"


class ProbeRunner:
    """
    Runs the probes of one category directory.

    Probes run in file name order with the same input on stdin; the first
    failing probe stops the tick.
    """

    def __init__(self, path: Union[str, Path], stdin: str = ""):
        """
        Initialize the runner.

        Args:
            path: Category probe directory
            stdin: Text fed to every probe (the bootstrap document)
        """
        self.path = Path(path)
        self.stdin = stdin
        self._lock = threading.Lock()
        self.stats = {
            "ticks": 0,
            "failures": 0,
        }

    @classmethod
    def for_category(cls, probes_dir: Path, hypervisor: str,
                     category: CategoryConfig, stdin: str = "") -> "ProbeRunner":
        """Build the runner of a category from the probe tree layout."""
        return cls(probe_tree(probes_dir, hypervisor) / category.path, stdin)

    def run_once(self, stop_event: Optional[threading.Event] = None) -> ProbeResult:
        """
        Run every executable probe of the directory once.

        Args:
            stop_event: When set, no further probe of the pass is started

        Returns:
            ProbeResult with the concatenated stdout on success, or
            exit code -1 and "Error executing <name>: <stderr>" for the
            first probe that fails
        """
        try:
            probes = list_probes(self.path)
        except OSError as e:
            handle_error(
                error=e,
                context=f"listing probes in {self.path}",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
            return self._record(ProbeResult(-1, f"Error executing {self.path.name}: {e}"))

        data = []
        for probe in probes:
            if stop_event is not None and stop_event.is_set():
                return self._record(ProbeResult(-1, f"Error executing {probe.name}: interrupted"))

            rc, stdout, stderr = run_probe(probe, self.stdin)
            data.append(stdout)

            if rc != 0:
                logger.warning(f"Probe {probe} exited with status {rc}")
                return self._record(ProbeResult(-1, f"Error executing {probe.name}: {stderr}"))

        return self._record(ProbeResult(0, "".join(data)))

    def run_forever(self, period: int, on_tick: TickCallback,
                    stop_event: Optional[threading.Event] = None) -> None:
        """
        Run the directory every `period` seconds.

        The probe run time, in whole seconds, is subtracted from the sleep so
        ticks start `period` seconds apart; a run that takes longer than the
        period is followed immediately by the next one. Callback errors are
        logged and do not stop the loop. A run interrupted by the stop event
        is not reported.

        Args:
            period: Polling period in seconds
            on_tick: Called with (exit_code, output) after every run
            stop_event: Ends the loop once set; never set by default
        """
        stop_event = stop_event or threading.Event()
        logger.info(f"Polling {self.path} every {period}s")

        while not stop_event.is_set():
            started = time.monotonic()

            result = self.run_once(stop_event)
            if stop_event.is_set():
                break

            try:
                on_tick(result.exit_code, result.output)
            except Exception as e:
                handle_error(
                    error=e,
                    context=f"reporting probes of {self.path}",
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger,
                )

            run_time = int(time.monotonic() - started)

            if period > run_time:
                stop_event.wait(period - run_time)

        logger.info(f"Stopped polling {self.path}")

    def get_stats(self):
        with self._lock:
            return self.stats.copy()

    def _record(self, result: ProbeResult) -> ProbeResult:
        with self._lock:
            self.stats["ticks"] += 1
            if not result.success:
                self.stats["failures"] += 1
        return result
