"""
Collector transport for the hostmonitor package.

This module provides payload packing (compression, base64 and optional RSA
encryption) and the UDP client that ships telemetry messages.
"""

from .client import MonitorClient
from .codec import PayloadCodec, load_public_key

__all__ = [
    "MonitorClient",
    "PayloadCodec",
    "load_public_key",
]
