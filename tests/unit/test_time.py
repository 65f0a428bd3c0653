# PATH: tests/unit/test_time.py
"""
Unit tests for time utilities.
"""

import time
import unittest

from core.time import age_ms, now_ms


class TestNowMs(unittest.TestCase):

    def test_now_ms(self):
        """now_ms is integer milliseconds."""
        ms = now_ms()
        self.assertIsInstance(ms, int)
        self.assertAlmostEqual(ms / 1000, time.time(), delta=5)


class TestAge(unittest.TestCase):

    def test_age_with_explicit_now(self):
        self.assertEqual(age_ms(1_000, current_ms=31_000), 30_000)

    def test_age_defaults_to_now(self):
        self.assertLess(age_ms(now_ms()), 1_000)

    def test_future_timestamp_is_negative(self):
        self.assertEqual(age_ms(5_000, current_ms=4_000), -1_000)


if __name__ == "__main__":
    unittest.main()
