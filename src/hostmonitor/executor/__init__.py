"""
Probe scheduling for the hostmonitor package.

This module provides the per-category probe runner and the thread pool the
category workers run on.
"""

from .probe_runner import ProbeRunner, probe_tree
from .thread_pool import ManagedThreadPoolExecutor, ThreadPoolConfig

__all__ = [
    "ProbeRunner",
    "probe_tree",
    "ManagedThreadPoolExecutor",
    "ThreadPoolConfig",
]
