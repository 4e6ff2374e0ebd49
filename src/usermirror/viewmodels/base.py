"""BaseViewModel - event subscription lifecycle shared by the viewmodels.

Tracks ``EventBus`` subscriptions so that ``dispose()`` removes all of them
from their bus.
"""

from __future__ import annotations

from typing import Callable, Type

from usermirror.events.bus import EventBus, Subscription


class BaseViewModel:
    """ViewModel base class."""

    def __init__(self) -> None:
        self._subscriptions: list[tuple[EventBus, Subscription]] = []

    def subscribe_event(
        self,
        event_bus: EventBus,
        event_type: Type,
        handler: Callable,
    ) -> Subscription:
        """Subscribe to an event type and track the subscription."""
        sub = event_bus.subscribe(event_type, handler)
        self._subscriptions.append((event_bus, sub))
        return sub

    def dispose(self) -> None:
        """Unsubscribe everything tracked so far."""
        for event_bus, sub in self._subscriptions:
            event_bus.unsubscribe(sub)
        self._subscriptions.clear()
