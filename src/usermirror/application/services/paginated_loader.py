"""Query and pagination state for the user list.

Pages are windows into the canonical filtered order, so changing the filter
discards all progress.  Every reset bumps a generation counter; a page
fetched for an older generation is ignored when it completes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from usermirror.config import PAGE_SIZE
from usermirror.domain.models import UserRecord, normalize_term

LOGGER = logging.getLogger(__name__)


class PageFinder(Protocol):
    """Minimal protocol for the windowed-read side of a user repository."""

    def page(self, term: Optional[str], limit: int, offset: int) -> List[UserRecord]: ...


@dataclass(frozen=True)
class PageTicket:
    """Identifies one in-flight page load."""

    generation: int
    term: Optional[str]
    limit: int
    offset: int


@dataclass
class PageResult:
    """Outcome of a committed page load."""

    items: List[UserRecord] = field(default_factory=list)
    offset: int = 0
    next_offset: int = 0
    end_reached: bool = False


class PaginatedUserLoader:
    """Stateful query/pagination controller.

    A load is split into :meth:`begin_load` (guard and reserve),
    :meth:`fetch` (the store read, safe to run off-thread) and
    :meth:`commit`/:meth:`abort`.  At most one load is in flight per
    generation; extra ``begin_load`` calls return ``None``.
    """

    def __init__(self, finder: PageFinder, page_size: int = PAGE_SIZE) -> None:
        if page_size <= 0:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._finder = finder
        self._page_size = page_size
        self._lock = threading.Lock()

        # State
        self._term: Optional[str] = None
        self._offset: int = 0
        self._generation: int = 0
        self._end_reached: bool = False
        self._in_flight: Optional[PageTicket] = None

    # -- properties --------------------------------------------------------

    @property
    def term(self) -> Optional[str]:
        return self._term

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def end_reached(self) -> bool:
        return self._end_reached

    @property
    def is_loading(self) -> bool:
        return self._in_flight is not None

    # -- public API --------------------------------------------------------

    def reset(self, term: Optional[str]) -> int:
        """Switch to *term*, dropping the window and any in-flight load."""
        with self._lock:
            self._term = normalize_term(term)
            self._offset = 0
            self._end_reached = False
            self._in_flight = None
            self._generation += 1
            LOGGER.debug("Pagination reset to %r (generation %d)", self._term, self._generation)
            return self._generation

    def clear_end(self) -> None:
        """Allow further loads after the store content changed."""
        with self._lock:
            self._end_reached = False

    def begin_load(self) -> Optional[PageTicket]:
        with self._lock:
            if self._in_flight is not None or self._end_reached:
                return None
            ticket = PageTicket(
                generation=self._generation,
                term=self._term,
                limit=self._page_size,
                offset=self._offset,
            )
            self._in_flight = ticket
            return ticket

    def fetch(self, ticket: PageTicket) -> List[UserRecord]:
        return self._finder.page(ticket.term, ticket.limit, ticket.offset)

    def commit(self, ticket: PageTicket, items: List[UserRecord]) -> Optional[PageResult]:
        """Apply a fetched page; returns ``None`` when *ticket* is stale."""
        with self._lock:
            if self._in_flight is not ticket or ticket.generation != self._generation:
                LOGGER.debug("Dropping stale page for %r at offset %d", ticket.term, ticket.offset)
                return None
            self._in_flight = None
            if not items:
                self._end_reached = True
            else:
                # Advances by the page size, not by len(items)
                self._offset += self._page_size
            return PageResult(
                items=list(items),
                offset=ticket.offset,
                next_offset=self._offset,
                end_reached=self._end_reached,
            )

    def abort(self, ticket: PageTicket) -> bool:
        """Release *ticket* after a failed fetch; ``False`` when stale."""
        with self._lock:
            if self._in_flight is not ticket:
                return False
            self._in_flight = None
            return True
