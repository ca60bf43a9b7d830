"""Test logger utilities."""

import unittest
from unittest.mock import MagicMock, patch

from xml_validator.helpers.logger import LOG, log_debug_json


class TestLogging(unittest.TestCase):
    """Test logger utilities."""

    def test_logger_name(self) -> None:
        """Test the package logger name."""
        self.assertEqual(LOG.name, "xml_validator")

    @patch("xml_validator.helpers.logger.LOG")
    def test_log_debug_json(self, mock_log: MagicMock) -> None:
        """Test log_debug_json."""

        log_debug_json({"message": "Title must not be empty", "line": 5})

        mock_log.debug.assert_called_once()
        args, _ = mock_log.debug.call_args
        logged_output = args[0]
        expected_output = "{\n" '    "message": "Title must not be empty",\n' '    "line": 5\n' "}"
        self.assertEqual(logged_output, expected_output)

    @patch("xml_validator.helpers.logger.LOG")
    def test_log_debug_json_slashes(self, mock_log: MagicMock) -> None:
        """Test log_debug_json does not escape forward slashes."""

        log_debug_json({"node": "/article/title"})

        args, _ = mock_log.debug.call_args
        self.assertIn('"/article/title"', args[0])
