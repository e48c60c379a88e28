"""
UDP client for the monitoring collector.

The client owns one datagram socket connected to the collector and exposes
one send operation per telemetry category. Delivery is best effort: transport
faults are logged and dropped so a collector outage never disturbs polling.
"""

import logging
import socket
import threading
from typing import Any, Dict, Optional, Union

from ..models.messages import MessageStatus, ProbeCategory, TelemetryMessage
from ..validation import CodecError, ErrorSeverity, handle_transport_error
from .codec import PayloadCodec

logger = logging.getLogger(__name__)


class MonitorClient:
    """
    Sends telemetry messages to the collector over UDP.

    Each message is `"<CATEGORY> <SUCCESS|FAILURE> <host_id> <payload>"`
    where the payload is packed by PayloadCodec. Sends may be issued
    concurrently from several category workers.
    """

    def __init__(self, host: str, port: Union[int, str], host_id: str, pubkey: str = ""):
        """
        Initialize the client.

        Args:
            host: Collector address
            port: Collector UDP port
            host_id: Identifier of this host, sent in every header
            pubkey: Public key text; empty disables encryption

        Raises:
            CodecError: If pubkey is not a usable RSA public key
        """
        self.host = host
        self.port = port
        self.host_id = host_id
        self.codec = PayloadCodec.from_key_text(pubkey)
        self._socket: Optional[socket.socket] = None
        self._lock = threading.Lock()

        self.stats = {
            "messages_sent": 0,
            "messages_failed": 0,
            "bytes_sent": 0,
        }

        self._connect()

    def _connect(self) -> None:
        try:
            family, socktype, proto, _, address = socket.getaddrinfo(
                self.host, self.port, type=socket.SOCK_DGRAM
            )[0]
            sock = socket.socket(family, socktype, proto)
            try:
                sock.connect(address)
            except OSError:
                sock.close()
                raise
            self._socket = sock
            logger.debug(f"Collector socket connected to {address}")
        except (OSError, UnicodeError) as e:
            handle_transport_error(
                error=e,
                context=f"resolving collector {self.host}:{self.port}",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )

    @property
    def connected(self) -> bool:
        return self._socket is not None

    def send(self, category: ProbeCategory, success: bool, payload: Union[str, bytes]) -> None:
        """
        Send one message. Never raises on transport or packing faults.

        Args:
            category: Telemetry category of the message
            success: Whether the probe cycle succeeded
            payload: Message body, text or bytes
        """
        if self._socket is None:
            with self._lock:
                self.stats["messages_failed"] += 1
            return

        if isinstance(payload, str):
            payload = payload.encode("utf-8")

        message = TelemetryMessage(
            category=category,
            status=MessageStatus.from_bool(success),
            host_id=self.host_id,
            payload=payload,
        )

        try:
            wire = message.to_wire(self.codec)
            self._socket.send(wire)
        except (OSError, CodecError, UnicodeEncodeError) as e:
            with self._lock:
                self.stats["messages_failed"] += 1
            handle_transport_error(
                error=e,
                context=f"sending {category.value} message",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger,
            )
            return

        with self._lock:
            self.stats["messages_sent"] += 1
            self.stats["bytes_sent"] += len(wire)

    def monitor_vm(self, success: bool, payload: Union[str, bytes]) -> None:
        self.send(ProbeCategory.MONITOR_VM, success, payload)

    def monitor_host(self, success: bool, payload: Union[str, bytes]) -> None:
        self.send(ProbeCategory.MONITOR_HOST, success, payload)

    def system_host(self, success: bool, payload: Union[str, bytes]) -> None:
        self.send(ProbeCategory.SYSTEM_HOST, success, payload)

    def state_vm(self, success: bool, payload: Union[str, bytes]) -> None:
        self.send(ProbeCategory.STATE_VM, success, payload)

    def start_monitor(self, success: bool, payload: Union[str, bytes]) -> None:
        self.send(ProbeCategory.START_MONITOR, success, payload)

    def stop_monitor(self, success: bool, payload: Union[str, bytes]) -> None:
        self.send(ProbeCategory.STOP_MONITOR, success, payload)

    def get_stats(self) -> Dict[str, Any]:
        """
        Get send counters.

        Returns:
            Dictionary containing counters and connection state
        """
        with self._lock:
            stats = self.stats.copy()
        stats["connected"] = self.connected
        stats["encrypted"] = self.codec.encrypts
        return stats

    def close(self) -> None:
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
