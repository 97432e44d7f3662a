import re
import pathlib
import sqlite3
import threading
from typing import Dict, Generator, List, Optional, Tuple, Union

from geoiplookup.config import LOGGER
from geoiplookup.exceptions import MissingPartitionError, StoreError


PARTITION_NAME_PATTERN = re.compile(pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")


class SubnetStore:
    """
    Key-value store with named partitions, backed by a single SQLite file.

    Every partition is a table of ``key -> value`` strings. The database runs
    in WAL mode so readers on other threads see the last committed state while
    a write transaction is in progress. Each thread gets its own connection;
    writes are serialized through ``write_lock``.
    """

    def __init__(self, path: Union[str, pathlib.Path], timeout: float = 30.0) -> None:
        self.path = pathlib.Path(path)
        self.timeout = timeout
        self.write_lock = threading.Lock()
        self._local = threading.local()
        self._connections: Dict[threading.Thread, sqlite3.Connection] = {}
        self._connections_lock = threading.Lock()
        self._closed = False
        # Open eagerly so a bad path fails here and not on the first lookup.
        conn = self._connection()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.Error as e:
            self.close()
            raise StoreError(f"Failed to configure store {self.path}: {e}") from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._closed:
            raise StoreError(f"Store {self.path} is closed")
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            try:
                conn = sqlite3.connect(
                    str(self.path),
                    timeout=self.timeout,
                    isolation_level=None,
                    check_same_thread=False
                )
            except sqlite3.Error as e:
                raise StoreError(f"Failed to open store {self.path}: {e}") from e
            self._local.conn = conn
            with self._connections_lock:
                self._connections[threading.current_thread()] = conn
            self._prune()
        return conn

    def _prune(self) -> None:
        # Connections of threads that have exited are never used again.
        with self._connections_lock:
            dead = [x for x in self._connections if not x.is_alive()]
            connections = [self._connections.pop(x) for x in dead]
        for conn in connections:
            self._close_connection(conn)

    @staticmethod
    def _close_connection(conn: sqlite3.Connection) -> None:
        try:
            conn.close()
        except sqlite3.Error as e:
            LOGGER.warning(msg=f"Error while closing store connection: {e!r}")

    def release(self) -> None:
        """Close the calling thread's connection, if it has one."""
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            return
        self._local.conn = None
        with self._connections_lock:
            self._connections.pop(threading.current_thread(), None)
        self._close_connection(conn)

    @property
    def connection_count(self) -> int:
        self._prune()
        with self._connections_lock:
            return len(self._connections)

    @staticmethod
    def _table(partition: str) -> str:
        if not PARTITION_NAME_PATTERN.match(partition):
            raise StoreError(f"Invalid partition name: {partition!r}")
        return f'"{partition}"'

    def create_partition(self, partition: str) -> None:
        table = self._table(partition)
        with self.write_lock:
            try:
                self._connection().execute(
                    f"CREATE TABLE IF NOT EXISTS {table} (key TEXT PRIMARY KEY, value TEXT NOT NULL)"
                )
            except sqlite3.Error as e:
                raise StoreError(f"Failed to create partition {partition}: {e}") from e

    def partitions(self) -> List[str]:
        try:
            rows = self._connection().execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
            ).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to list partitions: {e}") from e
        return [row[0] for row in rows]

    def put(self, partition: str, key: str, value: str) -> None:
        table = self._table(partition)
        with self.write_lock:
            conn = self._connection()
            try:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    conn.execute(
                        f"INSERT INTO {table} (key, value) VALUES (?, ?) "
                        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                        (key, value)
                    )
                except sqlite3.Error:
                    conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                raise StoreError(f"Failed to put {key} into {partition}: {e}") from e

    def get(self, partition: str, key: str) -> Optional[str]:
        table = self._table(partition)
        try:
            row = self._connection().execute(
                f"SELECT value FROM {table} WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.OperationalError as e:
            if str(e).startswith("no such table"):
                raise MissingPartitionError(f"Partition {partition} does not exist") from e
            raise StoreError(f"Failed to get {key} from {partition}: {e}") from e
        except sqlite3.Error as e:
            raise StoreError(f"Failed to get {key} from {partition}: {e}") from e
        if row is None:
            return None
        return row[0]

    def items(self, partition: str) -> Generator[Tuple[str, str], None, None]:
        table = self._table(partition)
        try:
            cursor = self._connection().execute(f"SELECT key, value FROM {table} ORDER BY key")
            for row in cursor:
                yield row[0], row[1]
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read partition {partition}: {e}") from e

    def close(self) -> None:
        with self._connections_lock:
            connections, self._connections = list(self._connections.values()), {}
        for conn in connections:
            self._close_connection(conn)
        self._closed = True
