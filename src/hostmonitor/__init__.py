"""
HostMonitor: host and virtual machine monitoring agent.

This package runs on a hypervisor host, periodically executes the probe
scripts of each telemetry category and pushes the results to a monitoring
collector over UDP. A SQLite database tracks VM states between ticks so that
only state changes and long-missing VMs are reported.

The package is organized into specialized modules:
- config: Agent settings and bootstrap document loading
- models: Data structures and type definitions
- validation: Input validation and error handling
- system: Probe discovery and execution
- executor: Periodic probe runners and the worker pool
- transport: Payload codec and UDP collector client
- state: VM state database and status probe
- cli: Command-line interface and orchestration

Usage:
    From command line:
        hostmonitor kvm < bootstrap.xml

    Programmatically:
        from hostmonitor import AgentOrchestrator, get_config, load_bootstrap
        bootstrap = load_bootstrap(document, "kvm")
        AgentOrchestrator(get_config(), bootstrap).run()
"""

# Main interfaces
from .config import get_config, clear_config_cache, set_config_path, load_bootstrap
from .cli.orchestrator import AgentOrchestrator
from .cli import main_cli

# Model classes for external use
from .models import (
    AgentSettings,
    BootstrapConfig,
    CategoryConfig,
    MessageStatus,
    ProbeCategory,
    ProbeDbConfig,
    ProbeResult,
    TelemetryMessage,
    VmInfo,
    VmStateRecord,
)

# Validation utilities
from .validation import CodecError, ValidationError

# Core components
from .executor import ProbeRunner
from .state import VirtualMachineDB, run_status_probe
from .transport import MonitorClient, PayloadCodec

__version__ = "1.0.0"

__all__ = [
    # Main interfaces
    "get_config",
    "clear_config_cache",
    "set_config_path",
    "load_bootstrap",
    "AgentOrchestrator",
    "main_cli",
    # Models
    "AgentSettings",
    "BootstrapConfig",
    "CategoryConfig",
    "MessageStatus",
    "ProbeCategory",
    "ProbeDbConfig",
    "ProbeResult",
    "TelemetryMessage",
    "VmInfo",
    "VmStateRecord",
    # Validation
    "CodecError",
    "ValidationError",
    # Core components
    "ProbeRunner",
    "VirtualMachineDB",
    "run_status_probe",
    "MonitorClient",
    "PayloadCodec",
]
