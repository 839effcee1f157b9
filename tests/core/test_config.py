"""Tests for configuration loading and validation."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

import pytest

from filesync.core.config import (
    DEFAULT_POOL_CAPACITY,
    MonitoredPath,
    SessionConfig,
    load_config,
    normalize_local_root,
    normalize_remote_root,
    parse_config,
)
from filesync.core.errors import ConfigError

BASE_DOC: dict[str, Any] = {
    "log": {"name": "filesync.log", "level": "info", "cycle": "day", "backup": 7},
    "ssh": [
        {
            "addr": "10.0.0.5",
            "port": 22,
            "user": "root",
            "pass": "secret",
            "cmd": [{"cmd": "cd /srv", "sleep": 200}],
        }
    ],
    "monitor": [
        {
            "ssh": 0,
            "localpath": "C:\\proj",
            "remotepath": "/srv/proj",
            "whitelist": ["*.c"],
            "blacklist": ["*.o"],
        }
    ],
}


@pytest.fixture
def doc() -> dict[str, Any]:
    """A fresh copy of a valid configuration document."""
    return copy.deepcopy(BASE_DOC)


class TestParseConfig:
    """Tests for parse_config function."""

    def test_valid_document(self, doc: dict[str, Any]) -> None:
        """Should build runtime objects from a valid document."""
        config = parse_config(doc, base_dir=Path("/etc/filesync"))

        assert config.log.filename == "filesync.log"
        assert config.log.level == "info"
        assert config.log.clean_log is False
        assert config.base_dir == Path("/etc/filesync")

        session = config.sessions[0]
        assert session.password == "secret"
        assert session.address == "root@10.0.0.5:22"
        assert session.commands[0].cmd == "cd /srv"
        assert session.commands[0].sleep_ms == 200

        monitor = config.monitors[0]
        assert monitor.id == 0
        assert monitor.session_index == 0
        assert monitor.whitelist == ("*.c",)
        assert monitor.blacklist == ("*.o",)

    def test_roots_get_trailing_separators(self, doc: dict[str, Any]) -> None:
        """Local roots end with a backslash, remote roots with a slash."""
        monitor = parse_config(doc).monitors[0]
        assert monitor.local_root == "C:\\proj\\"
        assert monitor.remote_root == "/srv/proj/"

    def test_existing_separators_are_kept(self, doc: dict[str, Any]) -> None:
        """Roots already ending with a separator are not doubled."""
        doc["monitor"][0]["localpath"] = "C:\\proj\\"
        doc["monitor"][0]["remotepath"] = "/srv/proj/"
        monitor = parse_config(doc).monitors[0]
        assert monitor.local_root == "C:\\proj\\"
        assert monitor.remote_root == "/srv/proj/"

    def test_pipeline_defaults(self, doc: dict[str, Any]) -> None:
        """Optional sections fall back to defaults."""
        config = parse_config(doc)
        assert config.pipeline.pool_capacity == DEFAULT_POOL_CAPACITY
        assert config.pipeline.retry.max_retries == 0

    def test_pipeline_overrides(self, doc: dict[str, Any]) -> None:
        """The pipeline section tunes pool and retries."""
        doc["pipeline"] = {"pool_capacity": 32, "retry": {"max_retries": 2}}
        config = parse_config(doc)
        assert config.pipeline.pool_capacity == 32
        assert config.pipeline.retry.max_retries == 2

    @pytest.mark.parametrize("section", ["log", "ssh", "monitor"])
    def test_missing_section(self, doc: dict[str, Any], section: str) -> None:
        """Should reject a document without a required section."""
        del doc[section]
        with pytest.raises(ConfigError, match=section):
            parse_config(doc)

    def test_missing_field(self, doc: dict[str, Any]) -> None:
        """Should name the missing field."""
        del doc["ssh"][0]["pass"]
        with pytest.raises(ConfigError, match="pass"):
            parse_config(doc)

    def test_invalid_level(self, doc: dict[str, Any]) -> None:
        """Should reject unknown log levels."""
        doc["log"]["level"] = "verbose"
        with pytest.raises(ConfigError):
            parse_config(doc)

    def test_session_index_out_of_range(self, doc: dict[str, Any]) -> None:
        """Should reject a monitor bound to a session that does not exist."""
        doc["monitor"][0]["ssh"] = 1
        with pytest.raises(ConfigError, match="out of range"):
            parse_config(doc)

    def test_too_many_sessions(self, doc: dict[str, Any]) -> None:
        """Should enforce the session limit."""
        doc["ssh"] = doc["ssh"] * 9
        with pytest.raises(ConfigError, match="ssh count 9 > 8"):
            parse_config(doc)

    def test_custom_limits(self, doc: dict[str, Any]) -> None:
        """Limits can be raised in the configuration."""
        doc["ssh"] = doc["ssh"] * 9
        doc["limits"] = {"max_sessions": 16}
        assert len(parse_config(doc).sessions) == 9

    def test_too_many_blacklist_entries(self, doc: dict[str, Any]) -> None:
        """Should enforce the blacklist limit."""
        doc["monitor"][0]["blacklist"] = [f"*.{i}" for i in range(17)]
        with pytest.raises(ConfigError, match="blacklist"):
            parse_config(doc)

    def test_empty_monitor_list(self, doc: dict[str, Any]) -> None:
        """At least one monitored path is required."""
        doc["monitor"] = []
        with pytest.raises(ConfigError):
            parse_config(doc)


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_file(self, tmp_path: Path, doc: dict[str, Any]) -> None:
        """Should load a file and resolve paths against its directory."""
        path = tmp_path / "filesync.json"
        path.write_text(json.dumps(doc), encoding="utf-8")

        config = load_config(path)

        assert config.base_dir == tmp_path.resolve()
        assert len(config.monitors) == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        """Should raise ConfigError for an unreadable file."""
        with pytest.raises(ConfigError, match="Cannot read"):
            load_config(tmp_path / "absent.json")

    def test_malformed_json(self, tmp_path: Path) -> None:
        """Should raise ConfigError for invalid JSON."""
        path = tmp_path / "filesync.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigError, match="Cannot parse"):
            load_config(path)


class TestRuntimeTypes:
    """Tests for runtime configuration objects."""

    def test_password_not_in_repr(self) -> None:
        """Passwords never show up in logs."""
        session = SessionConfig(addr="host", port=22, user="root", password="hunter2")
        assert "hunter2" not in repr(session)

    def test_local_dir(self) -> None:
        """The configured root converts to a native path."""
        monitor = MonitoredPath(
            id=0, local_root="/home/me/proj\\", remote_root="/srv/", session_index=0
        )
        assert monitor.local_dir == Path("/home/me/proj")

    def test_normalize_roots(self) -> None:
        """Separators are appended only when missing."""
        assert normalize_local_root("D:\\data") == "D:\\data\\"
        assert normalize_local_root("D:\\data\\") == "D:\\data\\"
        assert normalize_remote_root("/data") == "/data/"
        assert normalize_remote_root("/data/") == "/data/"
