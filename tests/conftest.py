"""
Pytest configuration and shared fixtures for the HostMonitor test suite.

This module provides common fixtures, test utilities, and configuration
for all test modules in the HostMonitor project.
"""

import os
import shutil
import socket
import stat
import sys
import tempfile
from pathlib import Path
from typing import Dict

import pytest

# Add src to Python path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


# ============================================================================
# Test Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Core Fixtures
# ============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


def write_probe(path: Path, body: str, executable: bool = True) -> Path:
    """Write a /bin/sh probe script."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"#!/bin/sh\n{body}\n")
    mode = stat.S_IRUSR | stat.S_IWUSR | stat.S_IRGRP | stat.S_IROTH
    if executable:
        mode |= stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
    os.chmod(path, mode)
    return path


@pytest.fixture
def probe_dir_factory(temp_dir):
    """
    Build probe directories from {file name: shell body} mappings.

    Bodies should use printf so the output carries no implicit newline.
    """

    def _make(relative: str, probes: Dict[str, str]) -> Path:
        directory = temp_dir / relative
        directory.mkdir(parents=True, exist_ok=True)
        for name, body in probes.items():
            write_probe(directory / name, body)
        return directory

    return _make


@pytest.fixture
def probe_writer():
    """Expose write_probe to tests that need non-executable entries."""
    return write_probe


@pytest.fixture
def bootstrap_xml_factory():
    """Render bootstrap documents with overridable fields."""

    def _make(
        address: str = "127.0.0.1",
        port="4124",
        pubkey: str = "",
        host_id: str = "host-7",
        periods: Dict[str, str] = None,
    ) -> str:
        periods = periods if periods is not None else {
            "SYSTEM_HOST": "600",
            "MONITOR_HOST": "120",
            "STATUS_VM": "10",
            "MONITOR_VM": "90",
        }
        period_xml = "".join(f"<{tag}>{value}</{tag}>" for tag, value in periods.items())
        return (
            "<MONITOR_CONF>"
            "<UDP_LISTENER>"
            f"<MONITOR_ADDRESS>{address}</MONITOR_ADDRESS>"
            f"<PORT>{port}</PORT>"
            f"<PUBKEY>{pubkey}</PUBKEY>"
            "</UDP_LISTENER>"
            f"<HOST_ID>{host_id}</HOST_ID>"
            f"<PROBES_PERIOD>{period_xml}</PROBES_PERIOD>"
            "</MONITOR_CONF>"
        )

    return _make


@pytest.fixture
def sample_bootstrap_xml(bootstrap_xml_factory):
    """A complete bootstrap document without encryption."""
    return bootstrap_xml_factory()


# ============================================================================
# Transport Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def rsa_private_key():
    """A 2048-bit RSA key pair, generated once per session."""
    from cryptography.hazmat.primitives.asymmetric import rsa

    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def rsa_public_pem(rsa_private_key):
    """PEM text of the session public key."""
    from cryptography.hazmat.primitives import serialization

    return rsa_private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")


@pytest.fixture
def udp_receiver():
    """A UDP socket on the loopback interface standing in for the collector."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(5.0)
    yield sock
    sock.close()


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def toml_file_factory(temp_dir):
    """Write TOML files below the temporary directory."""
    import toml

    def _make(relative: str, data: Dict) -> Path:
        path = temp_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            toml.dump(data, f)
        return path

    return _make


@pytest.fixture
def agent_config_file(toml_file_factory):
    """An agent.toml pointing at probe and etc directories of the temp dir."""
    return toml_file_factory(
        "conf/agent.toml",
        {
            "agent": {
                "probes_dir": "../probes",
                "etc_dir": ".",
                "log_level": "DEBUG",
                "thread_name_prefix": "TestWorker",
                "shutdown_timeout": 2.0,
            }
        },
    )


@pytest.fixture(autouse=True)
def clear_config_after_test():
    """Automatically restore the default settings location after each test."""
    yield  # Run the test

    from hostmonitor.config import reset_config_path

    reset_config_path()


@pytest.fixture(autouse=True)
def restore_signal_handlers():
    """Undo SIGINT/SIGTERM handlers installed by the CLI under test."""
    import signal

    saved = {signum: signal.getsignal(signum) for signum in (signal.SIGINT, signal.SIGTERM)}
    yield
    for signum, handler in saved.items():
        signal.signal(signum, handler)
