import logging

from usermirror.utils.logging import ensure_console_logger


def test_handler_installed_once():
    logger = logging.getLogger("usermirror.tests.console")

    ensure_console_logger(logger, "usermirror-test-console", level=logging.DEBUG)
    ensure_console_logger(logger, "usermirror-test-console", level=logging.WARNING)

    named = [h for h in logger.handlers if h.name == "usermirror-test-console"]
    assert len(named) == 1
    assert logger.level == logging.WARNING
    logger.removeHandler(named[0])
