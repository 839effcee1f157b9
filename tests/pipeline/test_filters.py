"""Tests for whitelist/blacklist filtering."""

from __future__ import annotations

from filesync.pipeline.filters import PathFilter


class TestPathFilter:
    """Tests for PathFilter class."""

    def test_empty_lists_accept_everything(self) -> None:
        """No patterns means every path is synced."""
        path_filter = PathFilter()
        assert path_filter.accepts("a.txt")
        assert path_filter.accepts("deep\\nested\\dir", is_directory=True)

    def test_empty_path_is_rejected(self) -> None:
        """The root itself is never an object."""
        assert not PathFilter().accepts("")
        assert not PathFilter().accepts("\\")

    def test_blacklist_by_name(self) -> None:
        """Name patterns match at any depth."""
        path_filter = PathFilter(blacklist=["*.tmp"])
        assert not path_filter.accepts("a.tmp")
        assert not path_filter.accepts("sub\\b.tmp")
        assert path_filter.accepts("a.txt")

    def test_blacklist_directory_pattern(self) -> None:
        """Directory patterns exclude the directory and its content."""
        path_filter = PathFilter(blacklist=["node_modules/"])
        assert not path_filter.accepts("node_modules", is_directory=True)
        assert not path_filter.accepts("web\\node_modules\\lib\\index.js")
        assert path_filter.accepts("web\\src\\index.js")

    def test_blacklist_path_pattern(self) -> None:
        """Patterns with a separator match the whole relative path."""
        path_filter = PathFilter(blacklist=["build/*.o"])
        assert not path_filter.accepts("build\\main.o")
        assert path_filter.accepts("main.o")

    def test_whitelist_only_applies_to_files(self) -> None:
        """Directories pass the whitelist so whitelisted files can land in them."""
        path_filter = PathFilter(whitelist=["*.c", "*.h"])
        assert path_filter.accepts("src\\main.c")
        assert path_filter.accepts("include\\api.h")
        assert not path_filter.accepts("README.md")
        assert path_filter.accepts("src", is_directory=True)

    def test_blacklist_wins_over_whitelist(self) -> None:
        """A path on both lists is excluded."""
        path_filter = PathFilter(whitelist=["*.c"], blacklist=["generated_*"])
        assert not path_filter.accepts("generated_parser.c")
        assert path_filter.accepts("parser.c")

    def test_blank_patterns_are_ignored(self) -> None:
        """Empty strings in the lists have no effect."""
        path_filter = PathFilter(whitelist=[""], blacklist=[""])
        assert path_filter.whitelist == []
        assert path_filter.blacklist == []
        assert path_filter.accepts("anything")
