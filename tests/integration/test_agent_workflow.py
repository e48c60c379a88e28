"""
Integration tests for the complete agent workflow.

Runs main_cli against a probe tree and a loopback collector: the initial
SYSTEM_HOST output on stdout, one datagram per category, a VM status probe
backed by the state database, and a clean shutdown on SIGTERM.
"""

import base64
import io
import os
import signal
import subprocess
import sys
import threading
import time
import zlib
from pathlib import Path
from unittest.mock import patch

import pytest

from hostmonitor.cli import main_cli

SRC_DIR = Path(__file__).resolve().parent.parent.parent / "src"

STATUS_PROBE = """#!{python}
import sys
sys.path.insert(0, {src!r})

from hostmonitor.models import VmInfo
from hostmonitor.state import run_status_probe

state = open({state_file!r}).read().strip()
sys.exit(run_status_probe(
    "kvm",
    lambda: {{"uuid-1": VmInfo("1", "one-1", state)}},
    conf_path={conf!r},
    db_path={db!r},
))
"""


@pytest.fixture
def agent_tree(temp_dir, agent_config_file, probe_dir_factory):
    """A probe tree with shell probes and a Python VM status probe."""
    probe_dir_factory("probes/kvm-probes.d/host/system", {"arch.sh": "printf 'ARCH=x86_64'"})
    probe_dir_factory("probes/kvm-probes.d/host/monitor", {"load.sh": "printf 'LOAD=0.5'"})
    probe_dir_factory("probes/kvm-probes.d/vm/monitor", {"usage.sh": "printf 'VM=1'"})
    status_dir = probe_dir_factory("probes/kvm-probes.d/vm/status", {})

    state_file = temp_dir / "vm-state"
    state_file.write_text("a")

    status_probe = status_dir / "status.py"
    status_probe.write_text(STATUS_PROBE.format(
        python=sys.executable,
        src=str(SRC_DIR),
        state_file=str(state_file),
        conf=str(temp_dir / "conf" / "kvm-probes.d" / "probe_db.conf"),
        db=str(temp_dir / "status.db"),
    ))
    os.chmod(status_probe, 0o755)

    return {"config": agent_config_file, "state_file": state_file}


def make_collector(until):
    """
    Build a signal.signal stand-in and a collector thread target.

    The collector calls `until(datagram)` for every datagram and delivers
    SIGTERM to the captured handler once it returns True.
    """
    handlers = {}
    ready = threading.Event()

    def fake_signal(signum, handler):
        handlers[signum] = handler
        if signal.SIGTERM in handlers:
            ready.set()

    def collector(sock):
        try:
            while True:
                data = sock.recv(65535)
                if until(data):
                    break
        finally:
            ready.wait(10)
            handlers[signal.SIGTERM](signal.SIGTERM, None)

    return fake_signal, collector


def unpack(datagram):
    category, status, host_id, payload = datagram.split(b" ", 3)
    return category, status, host_id, zlib.decompress(base64.b64decode(payload))


@pytest.mark.integration
@pytest.mark.slow
class TestAgentWorkflow:
    """End-to-end agent runs."""

    def test_all_categories_reach_collector(self, agent_tree, bootstrap_xml_factory,
                                            udp_receiver, monkeypatch, capsys):
        port = udp_receiver.getsockname()[1]
        document = bootstrap_xml_factory(port=port, periods={
            "SYSTEM_HOST": "1", "MONITOR_HOST": "1", "STATUS_VM": "1", "MONITOR_VM": "1",
        })
        monkeypatch.setattr("sys.stdin", io.StringIO(document))

        seen = {}

        def until(datagram):
            category, status, host_id, payload = unpack(datagram)
            seen.setdefault(category, (status, host_id, payload))
            return len(seen) == 4

        fake_signal, collector = make_collector(until)
        thread = threading.Thread(target=collector, args=(udp_receiver,), daemon=True)
        thread.start()

        with patch("hostmonitor.cli.main.signal.signal", side_effect=fake_signal):
            with pytest.raises(SystemExit) as excinfo:
                main_cli(["kvm", "--config", str(agent_tree["config"])])

        thread.join(timeout=10)

        assert excinfo.value.code == 0
        assert capsys.readouterr().out == "ARCH=x86_64\n"
        assert seen[b"SYSTEM_HOST"] == (b"SUCCESS", b"host-7", b"ARCH=x86_64")
        assert seen[b"MONITOR_HOST"] == (b"SUCCESS", b"host-7", b"LOAD=0.5")
        assert seen[b"MONITOR_VM"] == (b"SUCCESS", b"host-7", b"VM=1")
        # First status poll only records the VM.
        assert seen[b"STATE_VM"] == (b"SUCCESS", b"host-7", b"")

    def test_vm_state_change_is_reported(self, agent_tree, bootstrap_xml_factory,
                                         udp_receiver, monkeypatch):
        port = udp_receiver.getsockname()[1]
        document = bootstrap_xml_factory(port=port, periods={
            "SYSTEM_HOST": "600", "MONITOR_HOST": "600", "STATUS_VM": "1", "MONITOR_VM": "600",
        })
        monkeypatch.setattr("sys.stdin", io.StringIO(document))
        state_file = agent_tree["state_file"]

        reports = []

        def until(datagram):
            category, status, _, payload = unpack(datagram)
            if category != b"STATE_VM":
                return False
            assert status == b"SUCCESS"
            if payload:
                reports.append(payload)
                return True
            # The VM changes state after the first, recording, poll.
            state_file.write_text("p")
            return False

        fake_signal, collector = make_collector(until)
        thread = threading.Thread(target=collector, args=(udp_receiver,), daemon=True)
        thread.start()

        with patch("hostmonitor.cli.main.signal.signal", side_effect=fake_signal):
            with pytest.raises(SystemExit) as excinfo:
                main_cli(["kvm", "--config", str(agent_tree["config"])])

        thread.join(timeout=10)

        assert excinfo.value.code == 0
        assert reports == [b'VM = [ ID="1", DEPLOY_ID="one-1", STATE="p" ]\n']


@pytest.mark.integration
@pytest.mark.slow
class TestAgentProcess:
    """The agent as a separate process receiving real signals."""

    def test_sigterm_while_script_hangs(self, temp_dir, agent_config_file, probe_dir_factory,
                                      bootstrap_xml_factory, udp_receiver):
        pid_file = temp_dir / "hang.pid"
        probe_dir_factory("probes/kvm-probes.d/host/system", {"arch.sh": "printf 'ARCH=x86_64'"})
        probe_dir_factory("probes/kvm-probes.d/host/monitor", {
            "hang.sh": f"echo $$ > {pid_file}; exec sleep 60",
        })
        probe_dir_factory("probes/kvm-probes.d/vm/status", {})
        probe_dir_factory("probes/kvm-probes.d/vm/monitor", {})
        document = bootstrap_xml_factory(port=udp_receiver.getsockname()[1], periods={
            "SYSTEM_HOST": "1", "MONITOR_HOST": "1", "STATUS_VM": "1", "MONITOR_VM": "1",
        })

        with open(temp_dir / "agent.log", "w") as log:
            proc = subprocess.Popen(
                [sys.executable, "-c", "from hostmonitor.cli import main_cli; main_cli()",
                 "kvm", "--config", str(agent_config_file)],
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=log,
                text=True,
                env={**os.environ, "PYTHONPATH": str(SRC_DIR)},
            )
            try:
                proc.stdin.write(document)
                proc.stdin.close()
                assert proc.stdout.readline() == "ARCH=x86_64\n"

                deadline = time.monotonic() + 10
                while not (pid_file.exists() and pid_file.read_text().strip()):
                    assert time.monotonic() < deadline, "hang.sh never started"
                    time.sleep(0.1)
                probe_pid = int(pid_file.read_text())

                proc.send_signal(signal.SIGTERM)
                assert proc.wait(timeout=15) == 0
            finally:
                if proc.poll() is None:
                    proc.kill()
                    proc.wait()
                proc.stdout.close()

        with pytest.raises(ProcessLookupError):
            os.kill(probe_pid, 0)
