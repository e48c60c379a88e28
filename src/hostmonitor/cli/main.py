"""
Command-line interface for the hostmonitor agent.

The agent is started by the collector with the hypervisor name as argument
and the bootstrap document on standard input. Standard output carries the
initial SYSTEM_HOST probe data; logs go to standard error.
"""

import argparse
import logging
import signal
import sys
import tomllib
from pathlib import Path
from typing import List, Optional

from ..config import get_config, load_bootstrap, set_config_path
from ..validation import CodecError, ValidationError, handle_cli_error, validate_path_exists
from .orchestrator import AgentOrchestrator

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface for the monitoring agent.

    Loads the agent settings, parses the bootstrap document from stdin, runs
    the SYSTEM_HOST probes once and then polls every category until SIGINT
    or SIGTERM.

    Raises:
        SystemExit: 1 on configuration or bootstrap errors and when the
            initial SYSTEM_HOST probe fails, 0 after a signal shutdown
    """
    parser = argparse.ArgumentParser(
        description="Poll host and VM probes and push the results to the monitoring collector."
    )
    parser.add_argument(
        "hypervisor",
        type=str,
        help="Hypervisor name selecting the <hypervisor>-probes.d tree (e.g. 'kvm').",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="Agent settings file. Defaults to conf/agent.toml in the installation.",
    )
    args = parser.parse_args(argv)

    # The collector may pass extra words in the same argument.
    hypervisor = args.hypervisor.split(" ")[0]

    try:
        if args.config:
            set_config_path(Path(validate_path_exists(args.config, field_name="--config")))
        settings = get_config()
    except (FileNotFoundError, ValidationError, tomllib.TOMLDecodeError) as e:
        handle_cli_error(
            error=e,
            context="agent settings loading",
            exit_code=1,
            logger=logger,
        )

    logging.getLogger().setLevel(settings.log_level)

    document = sys.stdin.read()

    try:
        bootstrap = load_bootstrap(document, hypervisor)
    except ValidationError as e:
        handle_cli_error(
            error=e,
            context="bootstrap document parsing",
            exit_code=1,
            logger=logger,
        )

    try:
        orchestrator = AgentOrchestrator(settings, bootstrap)
    except CodecError as e:
        handle_cli_error(
            error=e,
            context="collector client setup",
            exit_code=1,
            logger=logger,
        )

    def signal_handler(signum, frame):
        logger.info(f"Signal {signal.strsignal(signum)} received")
        orchestrator.request_shutdown()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        exit_code = orchestrator.run()
    finally:
        orchestrator.shutdown()

    sys.exit(exit_code)


if __name__ == "__main__":
    main_cli()
