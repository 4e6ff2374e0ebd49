"""Tests for Signal, ObservableProperty and BaseViewModel."""

import threading

from usermirror.events import EventBus, UsersSyncedEvent
from usermirror.viewmodels.base import BaseViewModel
from usermirror.viewmodels.signal import ObservableProperty, Signal


class TestSignal:
    def test_emit_reaches_every_handler(self):
        sig = Signal()
        a, b = [], []
        sig.connect(a.append)
        sig.connect(b.append)

        sig.emit("users")

        assert a == ["users"]
        assert b == ["users"]

    def test_connect_returns_disconnect(self):
        sig = Signal()
        received = []
        disconnect = sig.connect(received.append)

        sig.emit(1)
        disconnect()
        disconnect()
        sig.emit(2)

        assert received == [1]

    def test_duplicate_connect_ignored(self):
        sig = Signal()
        received = []
        sig.connect(received.append)
        sig.connect(received.append)

        sig.emit("once")

        assert received == ["once"]

    def test_failing_handler_does_not_stop_others(self):
        sig = Signal()
        received = []

        def bad_handler(value):
            raise RuntimeError("boom")

        sig.connect(bad_handler)
        sig.connect(received.append)

        sig.emit(7)

        assert received == [7]


class TestObservableProperty:
    def test_emits_new_and_old(self):
        prop = ObservableProperty(0)
        changes = []
        prop.changed.connect(lambda new, old: changes.append((new, old)))

        prop.value = 1
        prop.value = 1
        prop.value = 2

        assert changes == [(1, 0), (2, 1)]

    def test_update_applies_function(self):
        prop = ObservableProperty((1, 2))

        result = prop.update(lambda users: users + (3,))

        assert result == (1, 2, 3)
        assert prop.value == (1, 2, 3)

    def test_update_without_change_is_silent(self):
        prop = ObservableProperty("x")
        changes = []
        prop.changed.connect(lambda new, old: changes.append(new))

        prop.update(lambda value: value)

        assert changes == []

    def test_concurrent_updates_are_not_lost(self):
        prop = ObservableProperty(0)

        def _bump():
            for _ in range(500):
                prop.update(lambda n: n + 1)

        threads = [threading.Thread(target=_bump) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert prop.value == 2000


class TestBaseViewModel:
    def test_dispose_cancels_event_subscriptions(self):
        bus = EventBus()
        received = []
        vm = BaseViewModel()
        vm.subscribe_event(bus, UsersSyncedEvent, received.append)

        vm.dispose()
        bus.publish(UsersSyncedEvent(count=1, synced_at=None))

        assert received == []

    def test_dispose_removes_subscription_from_bus(self):
        bus = EventBus()
        vm = BaseViewModel()
        sub = vm.subscribe_event(bus, UsersSyncedEvent, lambda event: None)

        vm.dispose()
        vm.dispose()

        assert sub.active is False
        assert sub not in bus._handlers[UsersSyncedEvent]
