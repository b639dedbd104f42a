import io
import json
import logging
import os
import unittest
from unittest.mock import patch

from expiry_guard.config import Settings
from expiry_guard.core.logging import JsonFormatter, setup_logging


class SettingsTest(unittest.TestCase):
    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.DATABASE_URL, "sqlite:///./tu_inventario.db")
        self.assertEqual(settings.DEFAULT_UNIT, "unidades")
        self.assertFalse(settings.LOG_JSON)

    def test_environment_overrides(self):
        env = {
            "DATABASE_URL": "sqlite:///:memory:",
            "LOG_LEVEL": "DEBUG",
            "LOG_JSON": "true",
        }
        with patch.dict(os.environ, env):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.DATABASE_URL, "sqlite:///:memory:")
        self.assertEqual(settings.LOG_LEVEL, "DEBUG")
        self.assertTrue(settings.LOG_JSON)


class LoggingTest(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        self._handlers = list(root.handlers)
        self._level = root.level

    def tearDown(self):
        root = logging.getLogger()
        root.handlers[:] = self._handlers
        root.setLevel(self._level)

    def test_setup_installs_single_handler_at_level(self):
        setup_logging(Settings(_env_file=None, LOG_LEVEL="warning"))
        root = logging.getLogger()
        self.assertEqual(root.level, logging.WARNING)
        self.assertEqual(len(root.handlers), 1)

    def test_json_lines(self):
        setup_logging(Settings(_env_file=None, LOG_JSON=True, ENVIRONMENT="test"))
        handler = logging.getLogger().handlers[0]
        self.assertIsInstance(handler.formatter, JsonFormatter)

        stream = io.StringIO()
        handler.setStream(stream)
        logging.getLogger("expiry_guard.test").info("Added %s", "Leche")

        payload = json.loads(stream.getvalue().strip())
        self.assertEqual(payload["level"], "INFO")
        self.assertEqual(payload["logger"], "expiry_guard.test")
        self.assertEqual(payload["message"], "Added Leche")
        self.assertEqual(payload["app"], "Expiry Guard")
        self.assertEqual(payload["environment"], "test")


if __name__ == "__main__":
    unittest.main()
