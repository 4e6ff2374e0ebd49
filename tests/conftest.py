import sys
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Callable, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from usermirror.domain.models import Address, Company, Geo, UserRecord  # noqa: E402
from usermirror.infrastructure.db.pool import ConnectionPool  # noqa: E402
from usermirror.infrastructure.repositories.sqlite_user_repository import SQLiteUserRepository  # noqa: E402


def make_user(user_id: int, name: Optional[str] = None, email: Optional[str] = None) -> UserRecord:
    name = name or f"User {user_id:02d}"
    return UserRecord(
        id=user_id,
        name=name,
        username=f"user{user_id}",
        email=email or f"user{user_id}@example.com",
        phone="1-770-736-8031",
        website="example.org",
        address=Address(
            street="Kulas Light",
            suite="Apt. 556",
            city="Gwenborough",
            zipcode="92998-3874",
            geo=Geo(lat="-37.3159", lng="81.1496"),
        ),
        company=Company(name="Romaguera-Crona", catch_phrase="Multi-layered client-server", bs="harness e-markets"),
    )


def api_user(user_id: int, name: str = "Leanne Graham", email: str = "Sincere@april.biz") -> dict:
    return {
        "id": user_id,
        "name": name,
        "username": "Bret",
        "email": email,
        "address": {
            "street": "Kulas Light",
            "suite": "Apt. 556",
            "city": "Gwenborough",
            "zipcode": "92998-3874",
            "geo": {"lat": "-37.3159", "lng": "81.1496"},
        },
        "phone": "1-770-736-8031 x56442",
        "website": "hildegard.org",
        "company": {
            "name": "Romaguera-Crona",
            "catchPhrase": "Multi-layered client-server neural-net",
            "bs": "harness real-time e-markets",
        },
    }


class InlineExecutor(Executor):
    """Runs every task immediately on the calling thread."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:
            future.set_exception(exc)
        return future


class DeferredExecutor(Executor):
    """Queues tasks until the test runs them explicitly."""

    def __init__(self) -> None:
        self.queue: List[tuple] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.queue.append((future, fn, args, kwargs))
        return future

    @property
    def pending(self) -> int:
        return len(self.queue)

    def run_next(self) -> None:
        future, fn, args, kwargs = self.queue.pop(0)
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:
            future.set_exception(exc)

    def run_all(self) -> None:
        while self.queue:
            self.run_next()


@pytest.fixture
def user_factory() -> Callable[..., UserRecord]:
    return make_user


@pytest.fixture
def pool(tmp_path):
    pool = ConnectionPool(tmp_path / "users.db", pool_size=3)
    yield pool
    pool.close_all()


@pytest.fixture
def repository(pool) -> SQLiteUserRepository:
    return SQLiteUserRepository(pool)
