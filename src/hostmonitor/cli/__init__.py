"""
Command-line interface for the hostmonitor package.

This module provides the agent entry point and its orchestrator.
"""

from .main import main_cli
from .orchestrator import AgentOrchestrator

__all__ = [
    "AgentOrchestrator",
    "main_cli",
]
