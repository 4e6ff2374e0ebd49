from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .bus import Event


@dataclass(kw_only=True)
class UsersSyncedEvent(Event):
    """The local mirror was replaced with a fresh remote snapshot."""
    count: int
    synced_at: datetime


@dataclass(kw_only=True)
class SyncFailedEvent(Event):
    """A refresh failed and the local mirror was left untouched."""
    reason: str
    cause_type: Optional[str] = None
