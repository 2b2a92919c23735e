import logging
import os
import tempfile
import unittest
from logging.handlers import RotatingFileHandler
from unittest.mock import patch

from voice_bridge.config.logging_config import configure_logging, resolve_level


class TestLoggingConfig(unittest.TestCase):
    def tearDown(self):
        # Leave a console-only logger behind for the other tests
        with patch.dict(os.environ, {"LOG_FILE": ""}):
            configure_logging("INFO")

    def test_configure_logging(self):
        # Test that the function returns a logger
        logger = configure_logging("INFO")
        self.assertIsInstance(logger, logging.Logger)

        # Test that the logger has the correct name
        self.assertEqual(logger.name, "voice_bridge")

        # Test that the logger has the correct level
        self.assertEqual(logger.level, logging.INFO)

        # Test that the logger has the correct handlers and format
        self.assertGreaterEqual(len(logger.handlers), 1)  # At least one handler (console)
        handler = logger.handlers[0]  # Check first handler (should be console handler)
        self.assertIsInstance(handler, logging.StreamHandler)
        formatter = handler.formatter
        self.assertEqual(formatter._fmt, "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        self.assertFalse(logger.propagate)

    def test_level_override(self):
        logger = configure_logging("debug")
        self.assertEqual(logger.level, logging.DEBUG)

    def test_level_from_environment(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "warning"}):
            logger = configure_logging()
        self.assertEqual(logger.level, logging.WARNING)

    def test_unknown_level_falls_back_to_info(self):
        self.assertEqual(resolve_level("chatty"), logging.INFO)
        self.assertEqual(resolve_level(None), logging.INFO)
        self.assertEqual(resolve_level(" error "), logging.ERROR)

    def test_reconfiguring_does_not_duplicate_handlers(self):
        configure_logging()
        logger = configure_logging()
        stream_handlers = [
            h for h in logger.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
        ]
        self.assertEqual(len(stream_handlers), 1)

    def test_console_only_without_log_file(self):
        with patch.dict(os.environ, {"LOG_FILE": ""}):
            logger = configure_logging("INFO")
        self.assertFalse(any(isinstance(h, RotatingFileHandler) for h in logger.handlers))

    def test_log_file_adds_rotating_handler(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "nested", "bridge.log")
            with patch.dict(os.environ, {"LOG_FILE": path}):
                logger = configure_logging("INFO")

            file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
            self.assertEqual(len(file_handlers), 1)
            logger.info("written to file")
            file_handlers[0].flush()
            with open(path) as f:
                self.assertIn("written to file", f.read())

            # Release the file before the directory is removed
            with patch.dict(os.environ, {"LOG_FILE": ""}):
                configure_logging("INFO")


if __name__ == "__main__":
    unittest.main()
