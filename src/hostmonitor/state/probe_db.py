"""
SQLite-backed VM state tracking for the status probe.

The database stores the last known state of every VM together with the
number of consecutive polls it has been missing from the hypervisor. From
that it derives the status report sent to the collector: VMs whose state
changed, and VMs missing for long enough to be declared in `missing_state`.

Threshold semantics: the missing counter is compared *before* it is
incremented for the current poll, and a VM is reported once the number of
previous consecutive absences has reached `times_missing`. With the default
of 3 a VM is first reported on its 4th consecutive absent poll, then on every
following poll while it stays absent.
"""

import fcntl
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Mapping, Optional

from ..config import (
    get_config,
    get_probe_db_conf_path,
    load_probe_db_file,
    validate_probe_db_config,
)
from ..models.state import VmInfo, VmStateRecord

logger = logging.getLogger(__name__)

SnapshotProvider = Callable[[], Mapping[str, VmInfo]]

STATES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS states (
    id TEXT PRIMARY KEY,
    timestamp INTEGER,
    missing INTEGER,
    state TEXT,
    hypervisor TEXT,
    vm_id TEXT,
    name TEXT
)
"""

# Columns added after the original five; migrated into older databases.
_ADDED_COLUMNS = {"vm_id": "TEXT", "name": "TEXT"}

_RECORD_COLUMNS = "id, timestamp, missing, state, hypervisor, vm_id, name"

# One lock per database file, shared by every instance in the process.
_PATH_LOCKS: Dict[str, threading.Lock] = {}
_PATH_LOCKS_GUARD = threading.Lock()


def _path_lock(db_path: Path) -> threading.Lock:
    key = str(db_path.resolve())
    with _PATH_LOCKS_GUARD:
        return _PATH_LOCKS.setdefault(key, threading.Lock())


def format_status_line(vm_id: str, name: str, state: str) -> str:
    """Render one entry of the status report."""
    return f'VM = [ ID="{vm_id}", DEPLOY_ID="{name}", STATE="{state}" ]\n'


class VirtualMachineDB:
    """
    Persistent last-known state of the VMs of a hypervisor.

    Every purge() and to_status() call is a single transaction with exclusive
    use of the database file, across threads and processes.
    """

    def __init__(
        self,
        hypervisor: str,
        snapshot_provider: SnapshotProvider,
        conf_path: Optional[Path] = None,
        clock: Callable[[], float] = time.time,
        **overrides,
    ):
        """
        Open (and create if needed) the state database.

        Args:
            hypervisor: Hypervisor tag stored with every record
            snapshot_provider: Returns the live VMs, keyed by record id
            conf_path: Sidecar configuration file; defaults to
                `<etc_dir>/<hypervisor>-probes.d/probe_db.conf`
            clock: Source of the current unix time
            **overrides: times_missing, obsolete, db_path, missing_state

        Raises:
            ValidationError: If the sidecar or an override is invalid
            sqlite3.Error: If the database cannot be opened
        """
        if conf_path is None:
            conf_path = get_probe_db_conf_path(get_config().etc_dir, hypervisor)
        conf_path = Path(conf_path)

        config = validate_probe_db_config(load_probe_db_file(conf_path), source=str(conf_path))
        if not config.db_path.is_absolute():
            config.db_path = conf_path.parent / config.db_path
        self.config = validate_probe_db_config(overrides, base=config, source="overrides")

        self.hypervisor = hypervisor
        self._snapshot_provider = snapshot_provider
        self._clock = clock

        self.db_path = Path(self.config.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_path = self.db_path.with_name(self.db_path.name + ".lock")

        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        try:
            self._bootstrap()
        except Exception:
            self._conn.close()
            raise
        logger.debug(f"State database configuration: {self.config.to_dict()}")

    def _bootstrap(self) -> None:
        with self._exclusive() as conn:
            conn.execute(STATES_TABLE_SQL)
            columns = {row["name"] for row in conn.execute("PRAGMA table_info(states)")}
            for column, column_type in _ADDED_COLUMNS.items():
                if column not in columns:
                    logger.info(f"Adding column '{column}' to states table in {self.db_path}")
                    conn.execute(f"ALTER TABLE states ADD COLUMN {column} {column_type}")

    @contextmanager
    def _exclusive(self) -> Iterator[sqlite3.Connection]:
        with _path_lock(self.db_path):
            with open(self._lock_path, "a") as lock_file:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                try:
                    with self._conn:
                        yield self._conn
                finally:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def purge(self) -> int:
        """
        Delete records not updated within the last `obsolete` minutes.

        Returns:
            Number of records deleted
        """
        limit = int(self._clock()) - self.config.obsolete * 60

        with self._exclusive() as conn:
            deleted = conn.execute("DELETE FROM states WHERE timestamp < ?", (limit,)).rowcount

        if deleted:
            logger.info(f"Purged {deleted} obsolete VM record(s) from {self.db_path}")
        return deleted

    def to_status(self) -> str:
        """
        Update the database from a fresh snapshot and build the status report.

        Returns:
            One line per VM whose state changed or that is reported missing,
            or an empty string when nothing changed
        """
        vms = self._snapshot_provider()
        now = int(self._clock())
        report: List[str] = []

        with self._exclusive() as conn:
            for uuid, vm in vms.items():
                record = self._fetch(conn, uuid)

                if record is None:
                    conn.execute(
                        f"INSERT INTO states ({_RECORD_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                        (uuid, now, 0, vm.state, self.hypervisor, vm.id, vm.name),
                    )
                    continue

                if record.state != vm.state:
                    report.append(format_status_line(vm.id, vm.name, vm.state))

                conn.execute(
                    "UPDATE states SET state = ?, timestamp = ?, missing = 0, vm_id = ?, name = ? "
                    "WHERE id = ?",
                    (vm.state, now, vm.id, vm.name, uuid),
                )

            stored_ids = [row["id"] for row in conn.execute("SELECT id FROM states ORDER BY id")]

            for uuid in stored_ids:
                if uuid in vms:
                    continue

                record = self._fetch(conn, uuid)
                if record is None:
                    continue

                if record.missing >= self.config.times_missing:
                    report.append(format_status_line(
                        record.vm_id or record.id, record.name, self.config.missing_state
                    ))

                conn.execute(
                    "UPDATE states SET timestamp = ?, missing = ? WHERE id = ?",
                    (now, record.missing + 1, uuid),
                )

        return "".join(report)

    def get(self, uuid: str) -> Optional[VmStateRecord]:
        """Return the stored record of a VM, if any."""
        with self._exclusive() as conn:
            return self._fetch(conn, uuid)

    def records(self) -> List[VmStateRecord]:
        """Return every stored record, ordered by id."""
        with self._exclusive() as conn:
            rows = conn.execute(f"SELECT {_RECORD_COLUMNS} FROM states ORDER BY id").fetchall()
        return [self._to_record(row) for row in rows]

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @classmethod
    def _fetch(cls, conn: sqlite3.Connection, uuid: str) -> Optional[VmStateRecord]:
        row = conn.execute(
            f"SELECT {_RECORD_COLUMNS} FROM states WHERE id = ?", (uuid,)
        ).fetchone()
        return cls._to_record(row) if row is not None else None

    @staticmethod
    def _to_record(row: sqlite3.Row) -> VmStateRecord:
        return VmStateRecord(
            id=row["id"],
            timestamp=row["timestamp"],
            missing=row["missing"] or 0,
            state=row["state"],
            hypervisor=row["hypervisor"],
            vm_id=row["vm_id"] or "",
            name=row["name"] or "",
        )
