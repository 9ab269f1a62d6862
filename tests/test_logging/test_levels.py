"""
Unit tests for levels.py

Tests the level table including:
- Rank ordering
- Lookups by name and dispatch key
- Clamping
- Environment driven defaults
"""

import unittest
from tidelog.levels import (
    LEVELS,
    LEVEL_NAMES,
    MAX_RANK,
    MIN_RANK,
    default_level_name,
    find_by_key,
    find_level,
    level_for_rank,
)


class TestLevelTable(unittest.TestCase):
    """Test the fixed level table"""

    def test_syslog_order(self):
        """Test that levels are listed from most to least severe"""
        self.assertEqual(
            LEVEL_NAMES, ("emergency", "alert", "critical", "error", "warning", "notice", "info", "debug")
        )

    def test_ranks_are_consecutive(self):
        """Test that ranks start at 0 and follow table order"""
        self.assertEqual([level.rank for level in LEVELS], list(range(8)))
        self.assertEqual(MIN_RANK, 0)
        self.assertEqual(MAX_RANK, 7)

    def test_dispatch_keys(self):
        """Test that shortened syslog keys are used for dispatch"""
        self.assertEqual(find_level("emergency").dispatch_key, "emerg")
        self.assertEqual(find_level("critical").dispatch_key, "crit")
        self.assertEqual(find_level("warning").dispatch_key, "warning")

    def test_descriptors_are_immutable(self):
        """Test that descriptors cannot be modified"""
        with self.assertRaises(Exception):
            LEVELS[0].rank = 3


class TestLookups(unittest.TestCase):
    """Test lookup helpers"""

    def test_find_level(self):
        """Test lookup by public name"""
        self.assertEqual(find_level("notice").rank, 5)
        self.assertEqual(find_level("WARNING").rank, 4)

    def test_find_level_unknown(self):
        """Test unknown and non-string names"""
        self.assertIsNone(find_level("bogus-level"))
        self.assertIsNone(find_level(None))
        self.assertIsNone(find_level(3))

    def test_find_by_key(self):
        """Test lookup by dispatch key"""
        self.assertEqual(find_by_key("crit").name, "critical")
        self.assertIsNone(find_by_key("critical"))

    def test_level_for_rank_clamps(self):
        """Test that out of range ranks clamp to the table bounds"""
        self.assertEqual(level_for_rank(-5).name, "emergency")
        self.assertEqual(level_for_rank(42).name, "debug")
        self.assertEqual(level_for_rank(4).name, "warning")


class TestDefaultLevel(unittest.TestCase):
    """Test environment based default level"""

    def test_production(self):
        self.assertEqual(default_level_name("production"), "notice")
        self.assertEqual(default_level_name("Production"), "notice")

    def test_other_environments(self):
        self.assertEqual(default_level_name("development"), "debug")
        self.assertEqual(default_level_name(None), "debug")


if __name__ == "__main__":
    unittest.main()
