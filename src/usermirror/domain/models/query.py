from dataclasses import dataclass
from typing import Optional


def normalize_term(term: Optional[str]) -> Optional[str]:
    """Map the empty string to ``None`` ("no filter").

    Whitespace is kept: ``" "`` matches names containing a space.
    """
    return term or None


@dataclass
class UserQuery:
    """User query object - filter term plus an optional read window.

    The filter is a case-insensitive substring match against ``name`` or
    ``email``.  Results are always ordered by ``name`` (ties broken by ``id``)
    so that a windowed read is a slice of the full filtered read.
    """

    term: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0

    def __post_init__(self):
        self.term = normalize_term(self.term)
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"limit must be >= 0, got {self.limit}")
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")

    @property
    def folded_term(self) -> Optional[str]:
        return self.term.casefold() if self.term is not None else None

    def window(self, limit: int, offset: int = 0) -> "UserQuery":
        """Fluent API: return a copy restricted to ``[offset, offset+limit)``."""
        return UserQuery(term=self.term, limit=limit, offset=offset)

    def unpaged(self) -> "UserQuery":
        """Clone the query with the window stripped, for COUNT(*)."""
        return UserQuery(term=self.term)
