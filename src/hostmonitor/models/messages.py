"""
Telemetry message and probe result models.

This module contains the wire-level data structures: the fixed set of
telemetry categories, the success flag carried by every message, the
ephemeral message itself and the aggregated output of one probe tick.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..transport.codec import PayloadCodec


class ProbeCategory(Enum):
    """Telemetry kinds understood by the collector. The value is the wire token."""

    MONITOR_VM = "MONITOR_VM"
    MONITOR_HOST = "MONITOR_HOST"
    SYSTEM_HOST = "SYSTEM_HOST"
    STATE_VM = "STATE_VM"
    START_MONITOR = "START_MONITOR"
    STOP_MONITOR = "STOP_MONITOR"


class MessageStatus(Enum):
    """Outcome flag sent in the message header."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"

    @classmethod
    def from_bool(cls, ok: bool) -> "MessageStatus":
        return cls.SUCCESS if ok else cls.FAILURE


@dataclass(frozen=True)
class TelemetryMessage:
    """
    A single message for the collector, built per send and discarded after
    the socket write.
    """

    category: ProbeCategory
    status: MessageStatus
    host_id: str
    payload: bytes

    def header(self) -> bytes:
        """Space-delimited ASCII header, including the trailing separator."""
        return f"{self.category.value} {self.status.value} {self.host_id} ".encode("ascii")

    def to_wire(self, codec: "PayloadCodec") -> bytes:
        """Render header plus packed payload as one datagram body."""
        return self.header() + codec.encode(self.payload)


@dataclass(frozen=True)
class ProbeResult:
    """
    Aggregated result of running every probe in a category directory once.
    """

    # 0 when every probe exited cleanly, -1 otherwise.
    exit_code: int
    # Concatenated stdout, or the failure reason.
    output: str

    @property
    def success(self) -> bool:
        return self.exit_code == 0
