"""Wildcard matching shared by the policy and restrictions layers.

Only three forms are recognised: a lone "*" (matches everything), a trailing
"*" (prefix match) and a leading "*" (suffix match). Anything else, including
a "*" in the middle of the pattern, is compared literally.
"""

from typing import Iterable


def match(pattern: str, value: str) -> bool:
    """Check whether value matches pattern."""
    if pattern == "*":
        return True

    if "*" in pattern:
        if pattern.endswith("*"):
            return value.startswith(pattern[:-1])
        if pattern.startswith("*"):
            return value.endswith(pattern[1:])

    return pattern == value


def match_any(patterns: Iterable[str], value: str) -> bool:
    """Check whether value matches at least one of patterns."""
    return any(match(pattern, value) for pattern in patterns)
