"""
Tests for the Result types and user-facing error formatting.
"""

import unittest

from intrig.core.errors import ERROR_SUGGESTIONS, format_error
from intrig.core.result import DiscoveryError, Err, ErrorCode, Ok, discovery_error


class TestResult(unittest.TestCase):

    def test_match_on_ok_and_err(self):
        def describe(result):
            match result:
                case Ok(value):
                    return f"ok:{value}"
                case Err(error):
                    return f"err:{error.code.value}"

        self.assertEqual(describe(Ok(3)), "ok:3")
        self.assertEqual(
            describe(discovery_error(ErrorCode.PROJECT_NOT_FOUND, "nope")),
            "err:PROJECT_NOT_FOUND",
        )

    def test_discovery_error_carries_cause(self):
        cause = OSError("disk full")
        result = discovery_error(ErrorCode.REGISTRY_ERROR, "write failed", cause)
        self.assertIsInstance(result, Err)
        self.assertIs(result.error.cause, cause)
        self.assertIsNone(result.error.status_code)


class TestFormatError(unittest.TestCase):

    def test_every_code_has_a_suggestion(self):
        for code in ErrorCode:
            self.assertIn(code, ERROR_SUGGESTIONS)

    def test_format_error_includes_message_and_remediation(self):
        text = format_error(DiscoveryError(ErrorCode.DAEMON_START_FAILED, "not ready"))
        self.assertTrue(text.startswith("Error: not ready"))
        self.assertIn("intrig daemon up", text)


if __name__ == "__main__":
    unittest.main()
