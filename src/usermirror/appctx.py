"""Application context: builds the store, source and sync engine from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .application.services.sync_engine import SyncEngine
from .config import DB_BUSY_TIMEOUT_SEC, DB_POOL_SIZE
from .domain.repositories import IUserRepository, IUserSource
from .errors.handler import ErrorHandler
from .events.bus import EventBus
from .infrastructure.db.pool import ConnectionPool
from .infrastructure.remote.http_user_source import HttpUserSource
from .infrastructure.repositories.sqlite_user_repository import SQLiteUserRepository
from .settings.manager import SettingsManager
from .viewmodels.user_detail_viewmodel import UserDetailViewModel
from .viewmodels.user_list_viewmodel import UserListViewModel


def _create_settings_manager() -> SettingsManager:
    manager = SettingsManager()
    manager.load()
    return manager


@dataclass
class AppContext:
    """Container object shared by the CLI commands.

    Collaborators left as ``None`` are built from :attr:`settings` in
    ``__post_init__``; pass them in to override (tests do).
    """

    settings: SettingsManager = field(default_factory=_create_settings_manager)
    event_bus: EventBus = field(default_factory=EventBus)
    db_path: Optional[Path] = None
    pool: Optional[ConnectionPool] = None
    repository: Optional[IUserRepository] = None
    source: Optional[IUserSource] = None
    sync_engine: Optional[SyncEngine] = None
    error_handler: Optional[ErrorHandler] = None

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = self.settings.db_path()
        if self.repository is None:
            if self.pool is None:
                self.pool = ConnectionPool(self.db_path, pool_size=DB_POOL_SIZE, busy_timeout=DB_BUSY_TIMEOUT_SEC)
            self.repository = SQLiteUserRepository(self.pool)
        if self.source is None:
            self.source = HttpUserSource(
                base_url=self.settings.get("api.base_url"),
                timeout=float(self.settings.get("api.timeout_sec")),
            )
        if self.sync_engine is None:
            self.sync_engine = SyncEngine(self.source, self.repository, event_bus=self.event_bus)
        if self.error_handler is None:
            self.error_handler = ErrorHandler(logging.getLogger("usermirror.errors"), self.event_bus)

    @property
    def page_size(self) -> int:
        return int(self.settings.get("paging.page_size"))

    def create_list_viewmodel(self, **kwargs: Any) -> UserListViewModel:
        kwargs.setdefault("page_size", self.page_size)
        kwargs.setdefault("error_handler", self.error_handler)
        return UserListViewModel(self.repository, self.sync_engine, **kwargs)

    def create_detail_viewmodel(self) -> UserDetailViewModel:
        return UserDetailViewModel(self.repository, event_bus=self.event_bus)

    def close(self) -> None:
        if isinstance(self.source, HttpUserSource):
            self.source.close()
        if self.pool is not None:
            self.pool.close_all()
