"""Unit tests for the listening mode lookup."""

import json
from pathlib import Path

import pytest

from cli_supervisor.settings import (
    expand_home,
    host_for_mode,
    resolve_config_path,
    resolve_listening_host,
    resolve_listening_mode,
)


@pytest.fixture
def settings_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "config.json"
    monkeypatch.setenv("CLI_CONFIG", str(path))
    return path


def write_mode(path: Path, mode) -> None:
    path.write_text(json.dumps({"preferences": {"listeningMode": mode}}))


class TestConfigPath:
    def test_expand_home(self) -> None:
        assert expand_home("~/x/config.json") == Path.home() / "x" / "config.json"

    def test_absolute_path_untouched(self) -> None:
        assert expand_home("/etc/config.json") == Path("/etc/config.json")

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLI_CONFIG", "/tmp/other.json")
        assert resolve_config_path() == Path("/tmp/other.json")

    def test_blank_env_uses_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CLI_CONFIG", "   ")
        assert resolve_config_path() == Path.home() / ".config" / "codenomad" / "config.json"


class TestListeningMode:
    """Tests for reading preferences.listeningMode."""

    def test_missing_file(self, settings_file: Path) -> None:
        assert resolve_listening_mode() == "local"

    def test_all(self, settings_file: Path) -> None:
        write_mode(settings_file, "all")
        assert resolve_listening_mode() == "all"
        assert resolve_listening_host() == "0.0.0.0"

    def test_local(self, settings_file: Path) -> None:
        write_mode(settings_file, "local")
        assert resolve_listening_host() == "127.0.0.1"

    @pytest.mark.parametrize("mode", ["remote", "ALL", 1, None])
    def test_unknown_value(self, settings_file: Path, mode) -> None:
        write_mode(settings_file, mode)
        assert resolve_listening_mode() == "local"

    def test_malformed_json(self, settings_file: Path) -> None:
        settings_file.write_text("{not json")
        assert resolve_listening_mode() == "local"

    @pytest.mark.parametrize("content", ["[]", '{"preferences": []}', "{}"])
    def test_unexpected_shape(self, settings_file: Path, content: str) -> None:
        settings_file.write_text(content)
        assert resolve_listening_mode() == "local"


def test_host_for_mode() -> None:
    assert host_for_mode("local") == "127.0.0.1"
    assert host_for_mode("all") == "0.0.0.0"
