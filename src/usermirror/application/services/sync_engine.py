"""Full-replace synchronisation of the local user mirror.

Each refresh fetches the complete remote set and swaps it in with a single
``replace_all``.  A refresh either replaces the whole local set or leaves it
exactly as it was; there is no merge step.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from usermirror.domain.repositories import IUserRepository, IUserSource
from usermirror.errors import RemoteFetchError, StoreError, SyncError
from usermirror.events.bus import EventBus
from usermirror.events.sync_events import SyncFailedEvent, UsersSyncedEvent

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SyncResult:
    count: int
    synced_at: datetime


class SyncEngine:
    """Fetch the remote directory and replace the local store with it.

    The engine is the store's only writer; concurrent ``refresh`` calls are
    serialised so two replacements never interleave.
    """

    def __init__(
        self,
        source: IUserSource,
        repository: IUserRepository,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self._repository = repository
        self._event_bus = event_bus
        self._clock = clock
        self._lock = threading.Lock()

    def refresh(self) -> SyncResult:
        """Run one fetch-then-replace cycle.

        Raises :class:`SyncError` wrapping the :class:`RemoteFetchError` or
        :class:`StoreError` that stopped it; the store is untouched then.
        """
        with self._lock:
            try:
                remote = self._source.fetch_all()
                synced_at = self._clock()
                stamped = [user.stamped(synced_at) for user in remote]
                self._repository.replace_all(stamped)
            except (RemoteFetchError, StoreError) as exc:
                LOGGER.warning("Refresh failed (%s): %s", type(exc).__name__, exc)
                self._publish(SyncFailedEvent(reason=str(exc), cause_type=type(exc).__name__))
                raise SyncError(exc) from exc

        LOGGER.info("Refresh stored %d users at %s", len(stamped), synced_at.isoformat())
        self._publish(UsersSyncedEvent(count=len(stamped), synced_at=synced_at))
        return SyncResult(count=len(stamped), synced_at=synced_at)

    def _publish(self, event) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)
