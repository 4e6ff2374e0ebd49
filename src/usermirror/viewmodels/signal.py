"""Observer primitives for the presentation-facing state.

``Signal`` fans a call out to connected handlers; ``ObservableProperty``
wraps a value and emits ``changed(new, old)`` whenever it is replaced with an
unequal value.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Generic, TypeVar

_logger = logging.getLogger(__name__)

T = TypeVar("T")

class Signal:
    """Thread-safe signal.

    Handler exceptions are logged so one failing handler does not prevent
    the rest from running (same semantics as ``EventBus``).
    """

    def __init__(self) -> None:
        self._handlers: list[Callable] = []
        self._lock = threading.Lock()

    def connect(self, handler: Callable) -> Callable[[], None]:
        """Connect *handler*; returns a callable that disconnects it."""
        with self._lock:
            if handler not in self._handlers:
                self._handlers.append(handler)

        def _disconnect() -> None:
            with self._lock:
                if handler in self._handlers:
                    self._handlers.remove(handler)

        return _disconnect

    def emit(self, *args: Any, **kwargs: Any) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler(*args, **kwargs)
            except Exception as exc:
                _logger.error("Signal handler %r failed: %s", handler, exc)


class ObservableProperty(Generic[T]):
    """Observable value with an atomic read-modify-write helper."""

    def __init__(self, initial_value: T) -> None:
        self._value = initial_value
        self._lock = threading.RLock()
        self.changed = Signal()

    @property
    def value(self) -> T:
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        self.update(lambda _old: new_value)

    def update(self, fn: Callable[[T], T]) -> T:
        """Replace the value with ``fn(current)`` and emit on change.

        Handlers run while the (re-entrant) lock is held, so they observe
        changes in order and may update the property again from the same
        thread.
        """
        with self._lock:
            old_value = self._value
            new_value = fn(old_value)
            if new_value == old_value:
                return old_value
            self._value = new_value
            self.changed.emit(new_value, old_value)
            return new_value
