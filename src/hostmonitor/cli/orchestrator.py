"""
Agent orchestration.

This module wires the collector client to one probe runner per category:
the SYSTEM_HOST probes run once up front so a broken host fails fast, then
every category is polled forever on its own worker thread.
"""

import logging
import sys
import threading
from concurrent.futures import Future, wait
from typing import Callable, Dict, List, Optional, TextIO

from ..models.config import AgentSettings, BootstrapConfig
from ..models.messages import ProbeCategory
from ..executor.probe_runner import ProbeRunner
from ..executor.thread_pool import ManagedThreadPoolExecutor, ThreadPoolConfig
from ..system.commands import terminate_running_probes
from ..transport.client import MonitorClient

logger = logging.getLogger(__name__)


class AgentOrchestrator:
    """
    Runs the monitoring agent for one host.

    The orchestrator owns the shared MonitorClient, the category runners and
    the worker pool. Workers share nothing but the client.
    """

    def __init__(
        self,
        settings: AgentSettings,
        bootstrap: BootstrapConfig,
        client: Optional[MonitorClient] = None,
        out: Optional[TextIO] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            settings: Local agent settings
            bootstrap: Bootstrap configuration received from the collector
            client: Collector client; built from bootstrap when omitted
            out: Stream receiving the initial SYSTEM_HOST output

        Raises:
            CodecError: If the bootstrap public key is unusable
        """
        self.settings = settings
        self.bootstrap = bootstrap
        self.client = client or MonitorClient(
            bootstrap.monitor_address,
            bootstrap.port,
            bootstrap.host_id,
            pubkey=bootstrap.pubkey,
        )
        self.out = out or sys.stdout

        self.runners: Dict[ProbeCategory, ProbeRunner] = {
            probe.category: ProbeRunner.for_category(
                settings.probes_dir, bootstrap.hypervisor, probe, bootstrap.document
            )
            for probe in bootstrap.probes
        }

        self.stop_event = threading.Event()
        self.pool: Optional[ManagedThreadPoolExecutor] = None
        self.futures: List[Future] = []

    def run_bootstrap_probe(self) -> bool:
        """
        Run the SYSTEM_HOST probes once and print their output.

        Returns:
            True if every probe succeeded
        """
        runner = self.runners.get(ProbeCategory.SYSTEM_HOST)
        if runner is None:
            logger.warning("No SYSTEM_HOST probes configured, skipping initial check")
            return True

        result = runner.run_once()

        self.out.write(result.output + "\n")
        self.out.flush()

        if not result.success:
            logger.error(f"Initial host probes failed: {result.output}")
        return result.success

    def start(self) -> List[Future]:
        """
        Start one polling worker per configured category.

        Returns:
            Futures of the workers; they only complete after a shutdown request
        """
        if self.pool is not None:
            raise RuntimeError("Agent already started")

        self.pool = ManagedThreadPoolExecutor(ThreadPoolConfig(
            max_workers=max(1, len(self.runners)),
            thread_name_prefix=self.settings.thread_name_prefix,
            shutdown_timeout=self.settings.shutdown_timeout,
        ))
        self.pool.start()

        for probe in self.bootstrap.probes:
            runner = self.runners[probe.category]
            self.futures.append(self.pool.submit(
                runner.run_forever, probe.period, self._reporter(probe.category), self.stop_event
            ))
            logger.info(f"Started {probe.category.value} worker, period {probe.period}s")

        return self.futures

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for the workers to end.

        Returns:
            True if every worker has ended
        """
        _, not_done = wait(self.futures, timeout=timeout)
        return not not_done

    def run(self) -> int:
        """
        Run the agent: initial probe, then poll until shutdown.

        Returns:
            Process exit status, 1 if the initial SYSTEM_HOST probe failed
        """
        if not self.run_bootstrap_probe():
            return 1

        self.start()
        self.stop_event.wait()
        return 0

    def request_shutdown(self) -> None:
        """Ask every worker to stop after its current tick."""
        logger.info("Shutdown requested, stopping category workers")
        self.stop_event.set()

    def shutdown(self) -> None:
        """
        Stop the workers and release the collector socket.

        Workers get `shutdown_timeout` seconds to finish their current probe
        run. Probes still running after that are killed.
        """
        self.stop_event.set()
        if self.pool is not None:
            if not self.wait(timeout=self.settings.shutdown_timeout):
                killed = terminate_running_probes()
                logger.warning(f"Category workers still busy after "
                               f"{self.settings.shutdown_timeout}s, killed {killed} probe(s)")
                if not self.wait(timeout=self.settings.shutdown_timeout):
                    logger.error("Category workers did not stop")
            self.pool.shutdown(wait=False)
            self.pool = None
            for category, runner in self.runners.items():
                logger.info(f"{category.value} probe statistics: {runner.get_stats()}")
        logger.info(f"Collector client statistics: {self.client.get_stats()}")
        self.client.close()

    def _reporter(self, category: ProbeCategory) -> Callable[[int, str], None]:
        def on_tick(exit_code: int, output: str) -> None:
            self.client.send(category, exit_code == 0, output)
        return on_tick
