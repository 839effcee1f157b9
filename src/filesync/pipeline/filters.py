"""Whitelist/blacklist filtering for monitored paths.

This module provides:
- PathFilter: Glob-style inclusion and exclusion patterns
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable


def _matches(rel_str: str, pattern: str) -> bool:
    """Match a relative path (``/``-separated) against one pattern."""
    pattern = pattern.replace("\\", "/")
    name = rel_str.rsplit("/", 1)[-1]

    # Directory patterns ("build/") match the directory and everything below it
    if pattern.endswith("/"):
        pattern = pattern.rstrip("/")
        parts = rel_str.split("/")
        return any(fnmatch.fnmatch(part, pattern) for part in parts)

    if "/" in pattern or "**" in pattern:
        return fnmatch.fnmatch(rel_str, pattern)

    return fnmatch.fnmatch(rel_str, pattern) or fnmatch.fnmatch(name, pattern)


class PathFilter:
    """Decides which objects under a monitored root produce events.

    A path is accepted when the whitelist is empty or one of its patterns
    matches (files only), and none of the blacklist patterns match.
    """

    def __init__(
        self,
        whitelist: Iterable[str] = (),
        blacklist: Iterable[str] = (),
    ) -> None:
        """Initialize with patterns.

        Args:
            whitelist: Patterns a path must match (empty = everything).
            blacklist: Patterns excluded even when whitelisted.
        """
        self._whitelist = [p for p in whitelist if p]
        self._blacklist = [p for p in blacklist if p]

    @property
    def whitelist(self) -> list[str]:
        """Get the inclusion patterns."""
        return list(self._whitelist)

    @property
    def blacklist(self) -> list[str]:
        """Get the exclusion patterns."""
        return list(self._blacklist)

    def accepts(self, rel_path: str, is_directory: bool = False) -> bool:
        """Check if a path relative to the monitored root should be synced.

        The whitelist only applies to files, so that the directories holding
        whitelisted files still exist remotely.

        Args:
            rel_path: Relative path, with either separator.
            is_directory: Whether the path is a directory.

        Returns:
            True if the path passes both lists.
        """
        rel_str = rel_path.replace("\\", "/").strip("/")
        if not rel_str:
            return False

        if (
            self._whitelist
            and not is_directory
            and not any(_matches(rel_str, p) for p in self._whitelist)
        ):
            return False

        return not any(_matches(rel_str, p) for p in self._blacklist)
