"""Tests logging functions in lbfgs_style_transfer."""
import logging

import lbfgs_style_transfer.logging_utils as lst_logging_utils


class TestLoggingUtils:
    def test_logger_singleton_behavior(self) -> None:
        """Test that logger instances are singleton per name."""
        logger1 = lst_logging_utils.setup_logger("test_logger")
        logger2 = lst_logging_utils.setup_logger("test_logger")
        assert logger1 is logger2
        assert len(logger1.handlers) == 1

    def test_logger_custom_formatter_and_handler(self) -> None:
        """Test custom formatter and handler are applied."""
        formatter = logging.Formatter("[CUSTOM] %(message)s")
        handler = logging.StreamHandler()
        logger = lst_logging_utils.setup_logger(
            "custom_logger",
            formatter=formatter,
            handler=handler
        )
        assert logger.name == "custom_logger"
        assert len(logger.handlers) == 1
        assert logger.handlers[0].formatter._fmt.startswith("[CUSTOM]")

    def test_set_verbosity_toggles_debug(self) -> None:
        """Verbose mode lowers the shared logger to DEBUG and back."""
        shared = lst_logging_utils.logger
        try:
            lst_logging_utils.set_verbosity(verbose=True)
            assert shared.level == logging.DEBUG
            lst_logging_utils.set_verbosity(verbose=False)
            assert shared.level == logging.INFO
        finally:
            shared.setLevel(logging.INFO)

    def test_shared_logger_name(self) -> None:
        assert lst_logging_utils.logger.name == (
            "lbfgs_style_transfer"
        )
