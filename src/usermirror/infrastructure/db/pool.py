import logging
import queue
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from usermirror.errors import ConnectionPoolExhausted

_logger = logging.getLogger(__name__)


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


class ConnectionPool:
    """Small pool of SQLite connections shared across worker threads.

    Connections are created lazily up to ``pool_size``.  ``connection()``
    commits on a clean exit and rolls back when the block raises.  Each
    connection gets a ``casefold()`` SQL function so filters are
    case-insensitive beyond ASCII.
    """

    def __init__(self, db_path: Path, pool_size: int = 5, timeout: float = 30.0, busy_timeout: float = 5.0):
        self._db_path = Path(db_path)
        self._pool_size = pool_size
        self._timeout = timeout
        self._busy_timeout = busy_timeout
        self._pool: queue.Queue = queue.Queue(maxsize=pool_size)
        self._created = 0
        self._lock = threading.Lock()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _create_connection(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._db_path, timeout=self._busy_timeout, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        _logger.debug("Opened SQLite connection %d/%d to %s", self._created, self._pool_size, self._db_path)
        return conn

    def _acquire(self) -> sqlite3.Connection:
        try:
            return self._pool.get_nowait()
        except queue.Empty:
            pass

        with self._lock:
            if self._created < self._pool_size:
                self._created += 1
                try:
                    return self._create_connection()
                except sqlite3.Error:
                    self._created -= 1
                    raise

        try:
            return self._pool.get(timeout=self._timeout)
        except queue.Empty:
            raise ConnectionPoolExhausted(
                f"No connections available within {self._timeout}s "
                f"(pool_size={self._pool_size})"
            )

    def _release(self, conn: sqlite3.Connection):
        try:
            self._pool.put_nowait(conn)
        except queue.Full:
            conn.close()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._acquire()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block inside ``BEGIN IMMEDIATE`` so it holds the write lock."""
        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            yield conn

    def close_all(self):
        while True:
            try:
                conn = self._pool.get_nowait()
            except queue.Empty:
                break
            conn.close()
        with self._lock:
            self._created = 0
