"""Detail ViewModel for a single cached user."""

from __future__ import annotations

import logging
from typing import Optional

from usermirror.domain.models import UserRecord
from usermirror.domain.repositories import IUserRepository
from usermirror.errors import StoreError
from usermirror.events.bus import EventBus
from usermirror.events.sync_events import UsersSyncedEvent
from usermirror.viewmodels.base import BaseViewModel
from usermirror.viewmodels.signal import ObservableProperty, Signal


class UserDetailViewModel(BaseViewModel):
    """Reads one user from the local store.

    When an ``event_bus`` is given, the shown user is re-read after every
    successful sync so the detail view follows the mirror.
    """

    def __init__(self, repository: IUserRepository, event_bus: Optional[EventBus] = None) -> None:
        super().__init__()
        self._repository = repository
        self._logger = logging.getLogger(__name__)
        self._user_id: Optional[int] = None

        self.user: ObservableProperty[Optional[UserRecord]] = ObservableProperty(None)
        self.error_occurred = Signal()

        if event_bus is not None:
            self.subscribe_event(event_bus, UsersSyncedEvent, self._on_users_synced)

    @property
    def user_id(self) -> Optional[int]:
        return self._user_id

    def load(self, user_id: int) -> Optional[UserRecord]:
        self._user_id = user_id
        try:
            found = self._repository.get_by_id(user_id)
        except StoreError as exc:
            self._logger.error("Failed to load user %s: %s", user_id, exc)
            self.error_occurred.emit(str(exc))
            return None
        self.user.value = found
        return found

    def _on_users_synced(self, event: UsersSyncedEvent) -> None:
        if self._user_id is not None:
            self.load(self._user_id)
