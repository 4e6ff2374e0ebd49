from .bus import Event, EventBus, Subscription
from .sync_events import SyncFailedEvent, UsersSyncedEvent

__all__ = [
    "Event",
    "EventBus",
    "Subscription",
    "SyncFailedEvent",
    "UsersSyncedEvent",
]
