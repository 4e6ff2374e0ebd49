import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from .models import UserQuery, UserRecord

UsersCallback = Callable[[List[UserRecord]], None]


@dataclass(eq=False)
class LiveQuery:
    """Handle for an active ``observe_filtered`` subscription.

    ``deliver`` drops results older than the last one handed to the
    callback, so a slow initial read can never land after a newer push.
    """
    term: Optional[str]
    callback: UsersCallback
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    active: bool = True
    _on_cancel: Optional[Callable[["LiveQuery"], None]] = field(default=None, repr=False)
    _version: int = field(default=-1, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def deliver(self, users: List[UserRecord], version: int) -> bool:
        with self._lock:
            if not self.active or version < self._version:
                return False
            self._version = version
            self.callback(users)
            return True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._on_cancel is not None:
            self._on_cancel(self)


class IUserRepository(ABC):
    """Durable keyed collection of user records.

    The only mutation is :meth:`replace_all`; every read uses the canonical
    filtered order (``name`` ascending, ties by ``id``).
    """

    @abstractmethod
    def replace_all(self, users: List[UserRecord]) -> None:
        """Atomically discard every stored user and insert *users*"""
        pass

    @abstractmethod
    def observe_filtered(self, term: Optional[str], callback: UsersCallback) -> LiveQuery:
        """Emit the matching users now and again after every replace_all"""
        pass

    @abstractmethod
    def find(self, query: UserQuery) -> List[UserRecord]:
        """One-shot read honouring the query's filter and window"""
        pass

    def page(self, term: Optional[str], limit: int, offset: int) -> List[UserRecord]:
        """Skip *offset* matches and return up to *limit* following ones"""
        return self.find(UserQuery(term=term).window(limit, offset))

    @abstractmethod
    def get_by_id(self, user_id: int) -> Optional[UserRecord]:
        pass

    @abstractmethod
    def count(self, query: UserQuery) -> int:
        """Count users matching query (window ignored)"""
        pass

    @abstractmethod
    def last_synced_at(self) -> Optional[datetime]:
        """Newest freshness stamp in the store, or None when empty"""
        pass


class IUserSource(ABC):
    @abstractmethod
    def fetch_all(self) -> List[UserRecord]:
        """Return the complete remote user set or raise RemoteFetchError"""
        pass
