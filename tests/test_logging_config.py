import unittest
import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from lead_relay.config.logging_config import configure_logging

class TestLoggingConfig(unittest.TestCase):
    def test_configure_logging(self):
        # Test that the function returns a logger
        logger = configure_logging("INFO")
        self.assertIsInstance(logger, logging.Logger)

        # Test that the logger has the correct name
        self.assertEqual(logger.name, "lead_relay")

        # Test that the logger has the correct level
        self.assertEqual(logger.level, logging.INFO)
        self.assertFalse(logger.propagate)

        # Test that the logger has the correct handlers and format
        self.assertGreaterEqual(len(logger.handlers), 1)  # At least one handler (console)
        handler = logger.handlers[0]  # Check first handler (should be console handler)
        self.assertIsInstance(handler, logging.StreamHandler)
        formatter = handler.formatter
        self.assertEqual(formatter._fmt, "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def test_reconfigure_replaces_handlers(self):
        configure_logging("INFO")
        logger = configure_logging("DEBUG")
        self.assertEqual(logger.level, logging.DEBUG)
        console_handlers = [
            h for h in logger.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
        ]
        self.assertEqual(len(console_handlers), 1)


    def test_console_only_when_log_file_unavailable(self):
        with patch("lead_relay.config.logging_config._rotating_file_handler", return_value=None):
            logger = configure_logging("WARNING")
        self.assertEqual(logger.level, logging.WARNING)
        self.assertEqual(len(logger.handlers), 1)
        self.assertNotIsInstance(logger.handlers[0], RotatingFileHandler)

    def test_unknown_level_falls_back_to_info(self):
        logger = configure_logging("chatty")
        self.assertEqual(logger.level, logging.INFO)

if __name__ == "__main__":
    unittest.main()
