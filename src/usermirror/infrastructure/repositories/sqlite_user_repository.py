import logging
import sqlite3
import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from usermirror.domain.models import Address, Company, Geo, UserQuery, UserRecord, normalize_term
from usermirror.domain.repositories import IUserRepository, LiveQuery, UsersCallback
from usermirror.errors import StoreError
from usermirror.infrastructure.db.pool import ConnectionPool

_logger = logging.getLogger(__name__)

_COLUMNS = (
    "id", "name", "username", "email", "phone", "website",
    "street", "suite", "city", "zipcode", "lat", "lng",
    "company_name", "company_catch_phrase", "company_bs",
    "synced_at",
)

_INSERT_SQL = (
    f"INSERT INTO users ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _COLUMNS)})"
)


class SQLiteUserRepository(IUserRepository):
    """SQLite-backed user store with live filtered queries.

    Active ``observe_filtered`` subscriptions are kept in a registry keyed by
    their normalized filter term.  After each committed ``replace_all`` every
    distinct term is queried once and the result is pushed to all of its
    subscribers, so nobody observes the store between the clear and the
    insert.
    """

    def __init__(self, pool: ConnectionPool):
        self._pool = pool
        self._live: Dict[Optional[str], List[LiveQuery]] = defaultdict(list)
        self._live_lock = threading.Lock()
        self._write_version = 0
        _logger.info("[REPO-INIT] SQLiteUserRepository created, db_path=%s", pool.db_path)
        try:
            self._init_table()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to initialise user store at {pool.db_path}: {exc}") from exc

    def _init_table(self):
        with self._pool.connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL,
                    username TEXT NOT NULL,
                    email TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    website TEXT NOT NULL,
                    street TEXT NOT NULL,
                    suite TEXT NOT NULL,
                    city TEXT NOT NULL,
                    zipcode TEXT NOT NULL,
                    lat TEXT NOT NULL,
                    lng TEXT NOT NULL,
                    company_name TEXT NOT NULL,
                    company_catch_phrase TEXT NOT NULL,
                    company_bs TEXT NOT NULL,
                    synced_at TEXT
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_users_name ON users(name, id)")

    # -- writes -------------------------------------------------------------

    def replace_all(self, users: List[UserRecord]) -> None:
        rows = [self._map_user_to_row(user) for user in users]
        try:
            with self._pool.transaction() as conn:
                conn.execute("DELETE FROM users")
                conn.executemany(_INSERT_SQL, rows)
        except (sqlite3.Error, OverflowError) as exc:
            raise StoreError(f"Failed to replace users: {exc}") from exc
        _logger.info("[REPO-REPLACE] Stored %d users in %s", len(rows), self._pool.db_path)
        with self._live_lock:
            self._write_version += 1
        self._notify_live_queries()

    # -- reads --------------------------------------------------------------

    def observe_filtered(self, term: Optional[str], callback: UsersCallback) -> LiveQuery:
        key = normalize_term(term)
        live = LiveQuery(term=key, callback=callback, _on_cancel=self._remove_live_query)
        # Registered before the first read so a concurrent replace_all is
        # never missed; versions keep the initial read from landing late.
        with self._live_lock:
            self._live[key].append(live)
            version = self._write_version
        try:
            current = self.find(UserQuery(term=key))
        except StoreError:
            live.cancel()
            raise
        live.deliver(current, version)
        return live

    def find(self, query: UserQuery) -> List[UserRecord]:
        sql, params = self._build_sql(query)
        try:
            with self._pool.connection() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read users: {exc}") from exc
        return [self._map_row_to_user(row) for row in rows]

    def get_by_id(self, user_id: int) -> Optional[UserRecord]:
        try:
            with self._pool.connection() as conn:
                row = conn.execute("SELECT * FROM users WHERE id = ? LIMIT 1", (user_id,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read user {user_id}: {exc}") from exc
        return self._map_row_to_user(row) if row else None

    def count(self, query: UserQuery) -> int:
        sql, params = self._build_sql(query.unpaged(), count_only=True)
        try:
            with self._pool.connection() as conn:
                return conn.execute(sql, params).fetchone()[0]
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to count users: {exc}") from exc

    def last_synced_at(self) -> Optional[datetime]:
        try:
            with self._pool.connection() as conn:
                value = conn.execute("SELECT MAX(synced_at) FROM users").fetchone()[0]
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read sync time: {exc}") from exc
        return datetime.fromisoformat(value) if value else None

    @property
    def live_query_count(self) -> int:
        with self._live_lock:
            return sum(len(subs) for subs in self._live.values())

    # -- internal -----------------------------------------------------------

    def _remove_live_query(self, live: LiveQuery) -> None:
        with self._live_lock:
            subs = self._live.get(live.term)
            if subs and live in subs:
                subs.remove(live)
            if not subs:
                self._live.pop(live.term, None)

    def _notify_live_queries(self) -> None:
        with self._live_lock:
            snapshot = {term: list(subs) for term, subs in self._live.items() if subs}
            version = self._write_version

        for term, subs in snapshot.items():
            try:
                users = self.find(UserQuery(term=term))
            except StoreError as exc:
                _logger.error("[REPO-LIVE] Could not refresh live query %r: %s", term, exc)
                continue
            for live in subs:
                try:
                    live.deliver(users, version)
                except Exception as exc:
                    _logger.error("[REPO-LIVE] Subscriber %s failed: %s", live.id, exc)

    def _build_sql(self, query: UserQuery, count_only: bool = False) -> Tuple[str, List[Any]]:
        if count_only:
            sql = "SELECT COUNT(*) FROM users"
        else:
            sql = "SELECT * FROM users"

        params: List[Any] = []
        needle = query.folded_term
        if needle is not None:
            # instr() keeps % and _ literal, unlike LIKE
            sql += " WHERE (instr(casefold(name), ?) > 0 OR instr(casefold(email), ?) > 0)"
            params.extend([needle, needle])

        if not count_only:
            sql += " ORDER BY name ASC, id ASC"
            if query.limit is not None:
                sql += " LIMIT ? OFFSET ?"
                params.extend([query.limit, query.offset])
            elif query.offset:
                sql += " LIMIT -1 OFFSET ?"
                params.append(query.offset)

        return sql, params

    @staticmethod
    def _map_user_to_row(user: UserRecord) -> Tuple[Any, ...]:
        return (
            user.id,
            user.name,
            user.username,
            user.email,
            user.phone,
            user.website,
            user.address.street,
            user.address.suite,
            user.address.city,
            user.address.zipcode,
            user.address.geo.lat,
            user.address.geo.lng,
            user.company.name,
            user.company.catch_phrase,
            user.company.bs,
            user.last_synced_at.isoformat() if user.last_synced_at else None,
        )

    @staticmethod
    def _map_row_to_user(row: sqlite3.Row) -> UserRecord:
        synced_at = None
        if row["synced_at"]:
            try:
                synced_at = datetime.fromisoformat(row["synced_at"])
            except ValueError:
                _logger.warning("[REPO-GET] Unparseable synced_at %r for user %s", row["synced_at"], row["id"])

        return UserRecord(
            id=row["id"],
            name=row["name"],
            username=row["username"],
            email=row["email"],
            phone=row["phone"],
            website=row["website"],
            address=Address(
                street=row["street"],
                suite=row["suite"],
                city=row["city"],
                zipcode=row["zipcode"],
                geo=Geo(lat=row["lat"], lng=row["lng"]),
            ),
            company=Company(
                name=row["company_name"],
                catch_phrase=row["company_catch_phrase"],
                bs=row["company_bs"],
            ),
            last_synced_at=synced_at,
        )
