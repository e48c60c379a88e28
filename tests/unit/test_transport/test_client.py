"""
Unit tests for the collector UDP client.

Tests the wire format, per-category send methods, statistics and the
best-effort handling of transport faults.
"""

import base64
import socket
import zlib
from unittest.mock import Mock, patch

import pytest

from hostmonitor.models import ProbeCategory
from hostmonitor.transport import MonitorClient
from hostmonitor.validation import CodecError


def packed(raw: bytes) -> bytes:
    return base64.b64encode(zlib.compress(raw, 9))


@pytest.fixture
def client(udp_receiver):
    port = udp_receiver.getsockname()[1]
    with MonitorClient("127.0.0.1", port, "host-7") as client:
        yield client


@pytest.mark.unit
class TestWireFormat:
    """Test cases for datagrams received by the collector."""

    def test_state_vm_success_datagram(self, client, udp_receiver):
        client.state_vm(True, "VM_STATE_CHANGED")

        data = udp_receiver.recv(65535)

        assert data == b"STATE_VM SUCCESS host-7 " + packed(b"VM_STATE_CHANGED")

    def test_failure_status(self, client, udp_receiver):
        client.monitor_host(False, "Error executing cpu.sh: boom")

        data = udp_receiver.recv(65535)

        assert data.startswith(b"MONITOR_HOST FAILURE host-7 ")
        payload = data[len(b"MONITOR_HOST FAILURE host-7 "):]
        assert zlib.decompress(base64.b64decode(payload)) == b"Error executing cpu.sh: boom"

    @pytest.mark.parametrize(
        "method, token",
        [
            ("monitor_vm", b"MONITOR_VM"),
            ("monitor_host", b"MONITOR_HOST"),
            ("system_host", b"SYSTEM_HOST"),
            ("state_vm", b"STATE_VM"),
            ("start_monitor", b"START_MONITOR"),
            ("stop_monitor", b"STOP_MONITOR"),
        ],
    )
    def test_named_methods_use_category_token(self, client, udp_receiver, method, token):
        getattr(client, method)(True, "x")

        assert udp_receiver.recv(65535).split(b" ", 1)[0] == token

    def test_bytes_payload(self, client, udp_receiver):
        client.send(ProbeCategory.MONITOR_VM, True, b"\x00\x01binary")

        assert udp_receiver.recv(65535) == b"MONITOR_VM SUCCESS host-7 " + packed(b"\x00\x01binary")

    def test_encrypted_datagram_keeps_plain_header(self, udp_receiver, rsa_public_pem):
        port = udp_receiver.getsockname()[1]
        with MonitorClient("127.0.0.1", port, "host-7", pubkey=rsa_public_pem) as client:
            client.system_host(True, "ARCH=x86_64")
            data = udp_receiver.recv(65535)

            assert client.get_stats()["encrypted"] is True

        header = b"SYSTEM_HOST SUCCESS host-7 "
        assert data.startswith(header)
        assert len(data) - len(header) == 256


@pytest.mark.unit
class TestClientStats:
    """Test cases for send accounting."""

    def test_successful_send_counts_bytes(self, client, udp_receiver):
        client.monitor_vm(True, "payload")
        data = udp_receiver.recv(65535)

        stats = client.get_stats()
        assert stats["messages_sent"] == 1
        assert stats["messages_failed"] == 0
        assert stats["bytes_sent"] == len(data)
        assert stats["connected"] is True
        assert stats["encrypted"] is False


@pytest.mark.unit
class TestTransportFaults:
    """Test cases for faults that must never reach the caller."""

    def test_unresolvable_collector(self):
        with patch(
            "hostmonitor.transport.client.socket.getaddrinfo",
            side_effect=socket.gaierror("Name or service not known"),
        ):
            client = MonitorClient("collector.invalid", 4124, "host-7")

        assert client.connected is False
        client.state_vm(True, "VM_STATE_CHANGED")
        assert client.get_stats()["messages_failed"] == 1

    def test_socket_send_error_is_swallowed(self, client):
        client.close()
        client._socket = Mock(send=Mock(side_effect=OSError("Connection refused")))

        client.monitor_host(True, "payload")

        stats = client.get_stats()
        assert stats["messages_sent"] == 0
        assert stats["messages_failed"] == 1

    def test_codec_error_is_swallowed(self, client):
        client.codec = Mock(encode=Mock(side_effect=CodecError("Cannot encrypt payload")))

        client.monitor_vm(True, "payload")

        assert client.get_stats()["messages_failed"] == 1

    @pytest.mark.parametrize("host", ["collector..example", "x" * 64 + ".example"])
    def test_invalid_hostname_is_swallowed(self, host):
        client = MonitorClient(host, 4124, "host-7")

        assert client.connected is False
        client.monitor_host(True, "payload")
        assert client.get_stats()["messages_failed"] == 1

    def test_invalid_public_key_is_fatal(self):
        with pytest.raises(CodecError):
            MonitorClient("127.0.0.1", 4124, "host-7", pubkey="not a key")

    def test_close_is_idempotent(self, client):
        client.close()
        client.close()

        assert client.connected is False
