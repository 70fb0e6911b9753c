"""Glob-based include/exclude matching for project files."""

import fnmatch
from typing import Iterable, List, Tuple


class PathMatcher:
    """
    Decides whether a path belongs to the indexing work list.

    A path matching any whitelist pattern is always accepted. Otherwise a path
    matching a blacklist pattern is rejected. Everything else is accepted.
    """

    def __init__(self, whitelist: Iterable[str] = (), blacklist: Iterable[str] = ()):
        self.whitelist: List[str] = list(whitelist)
        self.blacklist: List[str] = list(blacklist)

    @staticmethod
    def _first_match(path: str, patterns: List[str]):
        for pattern in patterns:
            if fnmatch.fnmatchcase(path, pattern):
                return pattern
        return None

    def is_match(self, path: str) -> Tuple[bool, str]:
        """
        Returns:
            (accepted, reason) where reason explains a rejection and is empty
            for accepted paths
        """
        if self._first_match(path, self.whitelist) is not None:
            return (True, "")

        pattern = self._first_match(path, self.blacklist)
        if pattern is not None:
            return (False, f"blacklist pattern '{pattern}'")

        return (True, "")
