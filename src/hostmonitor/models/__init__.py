"""
Data models and structures for the monitoring agent.

Configuration Models:
- Local agent settings
- Bootstrap configuration and per-category polling setup
- VM state database options

Message Models:
- Telemetry categories and status flags
- Wire messages and probe results

State Models:
- Live snapshot entries and persisted VM state records
"""

from .config import (
    AgentSettings,
    BootstrapConfig,
    CategoryConfig,
    DEFAULT_DB_PATH,
    INSTALL_ROOT,
    ProbeDbConfig,
)
from .messages import MessageStatus, ProbeCategory, ProbeResult, TelemetryMessage
from .state import VmInfo, VmStateRecord

__all__ = [
    # Configuration
    "AgentSettings",
    "BootstrapConfig",
    "CategoryConfig",
    "DEFAULT_DB_PATH",
    "INSTALL_ROOT",
    "ProbeDbConfig",
    # Messages
    "MessageStatus",
    "ProbeCategory",
    "ProbeResult",
    "TelemetryMessage",
    # State
    "VmInfo",
    "VmStateRecord",
]
