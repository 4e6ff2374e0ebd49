import logging
from unittest.mock import Mock

from usermirror.errors import SyncError, RemoteFetchError
from usermirror.errors.handler import ErrorHandler, ErrorOccurredEvent, ErrorSeverity
from usermirror.events.bus import EventBus


def test_handle_error_logs_and_publishes():
    logger = Mock(spec=logging.Logger)
    event_bus = Mock(spec=EventBus)
    handler = ErrorHandler(logger, event_bus)

    error = ValueError("test error")
    handler.handle(error, ErrorSeverity.ERROR, {"axis": "refresh"})

    logger.error.assert_called()
    event = event_bus.publish.call_args[0][0]
    assert isinstance(event, ErrorOccurredEvent)
    assert event.error is error
    assert event.severity == ErrorSeverity.ERROR
    assert event.context == {"axis": "refresh"}


def test_warning_uses_warning_level():
    logger = Mock(spec=logging.Logger)
    handler = ErrorHandler(logger, Mock(spec=EventBus))

    handler.handle(SyncError(RemoteFetchError("offline")), ErrorSeverity.WARNING)

    logger.warning.assert_called()
    logger.error.assert_not_called()


def test_ui_callback():
    handler = ErrorHandler(Mock(spec=logging.Logger), Mock(spec=EventBus))
    callback = Mock()
    handler.register_ui_callback(callback)

    handler.handle(RuntimeError("ui error"), ErrorSeverity.CRITICAL)

    callback.assert_called_with("ui error", ErrorSeverity.CRITICAL)


def test_ignore_info_and_warning_in_ui():
    handler = ErrorHandler(Mock(spec=logging.Logger), Mock(spec=EventBus))
    callback = Mock()
    handler.register_ui_callback(callback)

    handler.handle(Exception("info"), ErrorSeverity.INFO)
    handler.handle(Exception("warn"), ErrorSeverity.WARNING)

    callback.assert_not_called()


def test_works_with_real_logger_and_bus(caplog):
    bus = EventBus()
    received = []
    bus.subscribe(ErrorOccurredEvent, received.append)
    handler = ErrorHandler(logging.getLogger("usermirror.test"), bus)

    with caplog.at_level(logging.ERROR, logger="usermirror.test"):
        handler.handle(KeyError("k"), ErrorSeverity.ERROR, {"user_id": 3})

    assert "KeyError" in caplog.text
    assert received[0].context == {"user_id": 3}
