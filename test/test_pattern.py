import unittest

from nrivalidator.common import pattern


class TestMatch(unittest.TestCase):
    """Tests for pattern.match."""

    def test_wildcard_matches_everything(self):
        self.assertTrue(pattern.match("*", "anything"))
        self.assertTrue(pattern.match("*", ""))

    def test_prefix(self):
        self.assertTrue(pattern.match("dev-*", "dev-test"))
        self.assertTrue(pattern.match("dev-*", "dev-"))
        self.assertFalse(pattern.match("dev-*", "prod-test"))

    def test_suffix(self):
        self.assertTrue(pattern.match("*-test", "dev-test"))
        self.assertFalse(pattern.match("*-test", "dev-prod"))

    def test_exact(self):
        self.assertTrue(pattern.match("exact", "exact"))
        self.assertFalse(pattern.match("exact", "different"))
        self.assertFalse(pattern.match("exact", "exactly"))

    def test_embedded_wildcard_is_literal(self):
        """A "*" in the middle of a pattern is not a wildcard."""
        self.assertFalse(pattern.match("a*b", "axxb"))
        self.assertTrue(pattern.match("a*b", "a*b"))

    def test_trailing_wildcard_wins_over_leading(self):
        """A pattern with a "*" at both ends is a prefix pattern keeping the leading "*"."""
        self.assertTrue(pattern.match("*dev*", "*dev-test"))
        self.assertFalse(pattern.match("*dev*", "my-dev-test"))


class TestMatchAny(unittest.TestCase):
    def test_any(self):
        self.assertTrue(pattern.match_any(["prod", "dev-*"], "dev-1"))
        self.assertFalse(pattern.match_any(["prod", "dev-*"], "staging"))

    def test_empty(self):
        self.assertFalse(pattern.match_any([], "dev-1"))


if __name__ == "__main__":
    unittest.main()
