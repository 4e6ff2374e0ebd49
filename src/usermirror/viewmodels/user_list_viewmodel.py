"""User list ViewModel - cached, searchable, paginated user directory.

Composes the live store query, the pagination controller and the sync engine
into one observable :class:`ViewState`.  Work for each axis (query
subscription, refresh, pagination) runs on an executor; every task checks a
generation counter before committing so superseded work never reaches the
state.

Refresh failures are classified by whether any users are on screen: with
nothing to show the cause becomes ``fatal_error``; with cached users the
fixed :data:`SYNC_FAILED_MESSAGE` becomes ``degraded_error`` and the list stays
usable.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, replace
from typing import Any, Callable, List, Optional, Tuple

from usermirror.application.services.paginated_loader import PageTicket, PaginatedUserLoader
from usermirror.application.services.sync_engine import SyncEngine
from usermirror.config import PAGE_SIZE, SYNC_FAILED_MESSAGE, VIEWMODEL_WORKERS
from usermirror.domain.models import UserRecord, normalize_term
from usermirror.domain.repositories import IUserRepository, LiveQuery
from usermirror.errors import StoreError, SyncError
from usermirror.errors.handler import ErrorHandler, ErrorSeverity
from usermirror.viewmodels.base import BaseViewModel
from usermirror.viewmodels.signal import ObservableProperty

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewState:
    is_loading: bool = False
    is_loading_more: bool = False
    query: Optional[str] = None
    users: Tuple[UserRecord, ...] = ()
    end_reached: bool = False
    fatal_error: Optional[str] = None
    degraded_error: Optional[str] = None


class UserListViewModel(BaseViewModel):
    """Presentation-facing controller for the user list.

    Commands: :meth:`set_query`, :meth:`load_more`, :meth:`refresh` and
    :meth:`get_detail`.  State: :attr:`state` (an ``ObservableProperty``
    holding a :class:`ViewState`).

    On construction the unfiltered subscription and one refresh are started
    together, so cached users show up while fresh data is being fetched.
    Pass ``autostart=False`` to skip that.
    """

    def __init__(
        self,
        repository: IUserRepository,
        sync_engine: SyncEngine,
        *,
        page_size: int = PAGE_SIZE,
        executor: Optional[Executor] = None,
        error_handler: Optional[ErrorHandler] = None,
        autostart: bool = True,
    ) -> None:
        super().__init__()
        self._repository = repository
        self._sync_engine = sync_engine
        self._loader = PaginatedUserLoader(repository, page_size=page_size)
        self._error_handler = error_handler

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=VIEWMODEL_WORKERS, thread_name_prefix="usermirror-vm"
        )

        self._lock = threading.RLock()
        self._live: Optional[LiveQuery] = None
        self._query_generation = 0
        self._refresh_generation = 0
        self._pending: set[Future] = set()
        self._pending_lock = threading.Lock()
        self._disposed = False

        self.state: ObservableProperty[ViewState] = ObservableProperty(ViewState())
        self.state_changed = self.state.changed

        if autostart:
            self.set_query(None)
            self.refresh()

    # -- commands -------------------------------------------------------------

    def set_query(self, text: Optional[str]) -> Optional[Future]:
        """Switch the filter, discarding pagination progress for the old one."""
        term = normalize_term(text)
        with self._lock:
            self._query_generation += 1
            generation = self._query_generation
            # The old subscription is gone before the new one starts, so its
            # emissions can never land after the new filter is visible.
            previous, self._live = self._live, None
            if previous is not None:
                previous.cancel()
            self._loader.reset(term)
            self._set(
                query=term,
                end_reached=False,
                is_loading_more=False,
                fatal_error=None,
                degraded_error=None,
            )
        LOGGER.debug("Query set to %r (generation %d)", term, generation)
        return self._submit(self._subscribe, term, generation)

    def load_more(self) -> Optional[Future]:
        """Fetch the next page; dropped while a load is in flight or at the end."""
        with self._lock:
            ticket = self._loader.begin_load()
            if ticket is None:
                return None
            self._set(is_loading_more=True)
        return self._submit(self._run_load_more, ticket)

    def refresh(self) -> Optional[Future]:
        """Sync with the remote directory; no retry happens automatically."""
        with self._lock:
            self._refresh_generation += 1
            generation = self._refresh_generation
            self._loader.clear_end()
            self._set(is_loading=True, end_reached=False, fatal_error=None, degraded_error=None)
        return self._submit(self._run_refresh, generation)

    def get_detail(self, user_id: int) -> Optional[UserRecord]:
        try:
            return self._repository.get_by_id(user_id)
        except StoreError as exc:
            self._report(exc, ErrorSeverity.WARNING, {"user_id": user_id})
            return None

    # -- lifecycle ------------------------------------------------------------

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until all submitted work is done; ``False`` on timeout."""
        while True:
            with self._pending_lock:
                pending = set(self._pending)
            if not pending:
                return True
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                return False

    def dispose(self) -> None:
        with self._lock:
            self._disposed = True
            self._query_generation += 1
            self._refresh_generation += 1
            if self._live is not None:
                self._live.cancel()
                self._live = None
        super().dispose()
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # -- axis tasks -----------------------------------------------------------

    def _subscribe(self, term: Optional[str], generation: int) -> None:
        def _on_users(users: List[UserRecord]) -> None:
            self._apply_emission(generation, users)

        try:
            live = self._repository.observe_filtered(term, _on_users)
        except StoreError as exc:
            self._report(exc, ErrorSeverity.WARNING, {"query": term})
            return

        with self._lock:
            if generation != self._query_generation:
                live.cancel()
                return
            self._live = live

    def _apply_emission(self, generation: int, users: List[UserRecord]) -> None:
        with self._lock:
            if generation != self._query_generation:
                return
            window = self._loader.offset
            visible = tuple(users if window == 0 else users[:window])

            def _change(state: ViewState) -> ViewState:
                if visible and state.fatal_error is not None:
                    # Cached data turned up after a failed refresh: downgrade.
                    return replace(state, users=visible, fatal_error=None, degraded_error=SYNC_FAILED_MESSAGE)
                return replace(state, users=visible)

            self.state.update(_change)

    def _run_refresh(self, generation: int) -> None:
        try:
            result = self._sync_engine.refresh()
        except SyncError as exc:
            with self._lock:
                if generation != self._refresh_generation:
                    return

                def _fail(state: ViewState) -> ViewState:
                    if state.users:
                        return replace(state, is_loading=False, fatal_error=None, degraded_error=SYNC_FAILED_MESSAGE)
                    return replace(state, is_loading=False, fatal_error=str(exc), degraded_error=None)

                self.state.update(_fail)
            self._report(exc, ErrorSeverity.WARNING, {"axis": "refresh"})
            return
        except Exception as exc:
            with self._lock:
                if generation == self._refresh_generation:
                    self._set(is_loading=False)
            self._report(exc, ErrorSeverity.CRITICAL, {"axis": "refresh"})
            raise

        with self._lock:
            if generation != self._refresh_generation:
                return
            self._set(is_loading=False, fatal_error=None, degraded_error=None)
        LOGGER.info("Refresh finished with %d users", result.count)

    def _run_load_more(self, ticket: PageTicket) -> None:
        try:
            items = self._loader.fetch(ticket)
        except StoreError as exc:
            with self._lock:
                if self._loader.abort(ticket):
                    self._set(is_loading_more=False)
            self._report(exc, ErrorSeverity.WARNING, {"axis": "load_more", "offset": ticket.offset})
            return
        except Exception as exc:
            with self._lock:
                if self._loader.abort(ticket):
                    self._set(is_loading_more=False)
            self._report(exc, ErrorSeverity.CRITICAL, {"axis": "load_more", "offset": ticket.offset})
            raise

        with self._lock:
            result = self._loader.commit(ticket, items)
            if result is None:
                return

            def _apply(state: ViewState) -> ViewState:
                if result.end_reached:
                    return replace(state, is_loading_more=False, end_reached=True)
                users = state.users[: result.offset] + tuple(result.items)
                return replace(state, is_loading_more=False, users=users)

            self.state.update(_apply)

    # -- helpers --------------------------------------------------------------

    def _set(self, **changes: Any) -> None:
        self.state.update(lambda state: replace(state, **changes))

    def _submit(self, fn: Callable[..., None], *args: Any) -> Optional[Future]:
        if self._disposed:
            LOGGER.debug("Ignoring %s after dispose()", fn.__name__)
            return None
        future = self._executor.submit(fn, *args)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _report(self, error: Exception, severity: ErrorSeverity, context: dict) -> None:
        if self._error_handler is not None:
            self._error_handler.handle(error, severity, context)
        else:
            LOGGER.warning("%s: %s (%s)", type(error).__name__, error, context)
