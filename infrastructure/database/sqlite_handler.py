import logging
import shutil
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from flask import Flask

from infrastructure.database.ops.advisories import AdvisoryOperations
from infrastructure.database.ops.devices import DeviceOperations
from infrastructure.database.ops.readings import ReadingOperations

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


class SQLiteDatabaseHandler(
    ReadingOperations,
    AdvisoryOperations,
    DeviceOperations,
):
    """Thread-safe SQLite handler decoupled from Flask globals.

    Each thread gets its own connection to a file database. An in-memory
    database exists only inside the connection that created it, so all
    threads (Flask workers and the paho network thread) share one.
    """

    def __init__(self, database_path: str) -> None:
        self._database_path = database_path
        self._local = threading.local()
        self._memory_connection: Optional[sqlite3.Connection] = None
        self._memory_lock = threading.Lock()

        if database_path != MEMORY_DATABASE:
            db_path = Path(database_path)
            if not db_path.parent.exists():
                db_path.parent.mkdir(parents=True, exist_ok=True)
                logger.info("Created database directory: %s", db_path.parent)

    @property
    def database_path(self) -> str:
        return self._database_path

    @property
    def is_memory(self) -> bool:
        return self._database_path == MEMORY_DATABASE

    # --- Lifecycle ------------------------------------------------------------
    def init_app(self, app: Flask | None = None) -> None:
        # Per-request teardown would discard an in-memory database
        if app is not None and not self.is_memory:
            app.teardown_appcontext(self.close_db)
        self.create_tables()

    def get_db(self) -> sqlite3.Connection:
        if self.is_memory:
            with self._memory_lock:
                if self._memory_connection is None:
                    self._memory_connection = self._open_connection()
                return self._memory_connection

        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is None:
            try:
                connection = self._open_connection()
            except sqlite3.DatabaseError as exc:
                if self._is_corruption_error(exc):
                    logger.error("Database appears corrupt (%s). Recreating a fresh database.", exc)
                    self._quarantine_corrupt_db()
                    connection = self._open_connection()
                else:
                    raise
            self._local.connection = connection
        return connection

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._database_path, check_same_thread=False)
        try:
            connection.row_factory = sqlite3.Row
            self._configure_connection(connection)
            return connection
        except Exception:
            connection.close()
            raise

    def _is_corruption_error(self, exc: sqlite3.Error) -> bool:
        message = str(exc).lower()
        return "malformed" in message or "not a database" in message

    def _quarantine_corrupt_db(self) -> Optional[Path]:
        if self.is_memory:
            return None
        db_path = Path(self._database_path)
        if not db_path.exists():
            return None

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        quarantine_dir = db_path.parent / "corrupt"
        quarantine_dir.mkdir(parents=True, exist_ok=True)

        suffix = db_path.suffix or ".db"
        quarantined = quarantine_dir / f"{db_path.stem}_corrupt_{timestamp}{suffix}"
        try:
            shutil.move(str(db_path), str(quarantined))
            for sidecar_suffix in ("-wal", "-shm"):
                sidecar = Path(f"{db_path}{sidecar_suffix}")
                if sidecar.exists():
                    shutil.move(str(sidecar), str(quarantine_dir / f"{sidecar.name}_{timestamp}"))
            logger.warning("Quarantined corrupt database to %s", quarantined)
            return quarantined
        except OSError as exc:
            logger.error("Failed to quarantine corrupt database %s: %s", db_path, exc)
            return None

    def _configure_connection(self, connection: sqlite3.Connection) -> None:
        """WAL journal with relaxed sync; readers never block the MQTT writer."""
        connection.execute("PRAGMA journal_mode=WAL")
        connection.execute("PRAGMA synchronous=NORMAL")
        connection.execute("PRAGMA cache_size=-16000")  # 16MB cache (negative = KB)
        connection.execute("PRAGMA temp_store=MEMORY")
        connection.commit()

    def close_db(self, _e: Optional[BaseException] = None) -> None:
        if self.is_memory:
            with self._memory_lock:
                if self._memory_connection is not None:
                    self._memory_connection.close()
                    self._memory_connection = None
            return
        connection: Optional[sqlite3.Connection] = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            delattr(self._local, "connection")

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.get_db()
        try:
            yield conn
        finally:
            conn.commit()

    # --- Schema ----------------------------------------------------------------
    def create_tables(self) -> None:
        """Creates the necessary tables in the database if they do not already exist."""
        with self.connection() as db:
            # Sensor samples; ts is a fixed-width UTC ISO string so text order is time order
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Readings (
                    reading_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    device_id TEXT NOT NULL,
                    ts TEXT NOT NULL,
                    t_c REAL NOT NULL DEFAULT 0,
                    h_pct REAL NOT NULL DEFAULT 0,
                    soil_pct REAL NOT NULL DEFAULT 0
                )
                """
            )
            db.execute("CREATE INDEX IF NOT EXISTS idx_readings_device_ts ON Readings(device_id, ts)")

            # Published advisories (JSON payload as sent to the display)
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Advisories (
                    advisory_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    device_id TEXT NOT NULL,
                    ts TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            db.execute("CREATE INDEX IF NOT EXISTS idx_advisories_device_ts ON Advisories(device_id, ts)")

            # Device profiles
            db.execute(
                """
                CREATE TABLE IF NOT EXISTS Devices (
                    device_id TEXT PRIMARY KEY,
                    plant_name TEXT NOT NULL DEFAULT '',
                    notify_email TEXT NOT NULL DEFAULT '',
                    updated_at TEXT
                )
                """
            )
        logger.debug("Database tables ready at %s", self._database_path)
