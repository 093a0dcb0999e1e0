"""
Unit tests for support helpers: environment, paths and ports.
"""

import socket
import tempfile
from pathlib import Path

from embedded_rabbitmq.core.models import OperatingSystem
from embedded_rabbitmq.support.env import build_process_env
from embedded_rabbitmq.support.paths import (
    get_default_download_folder,
    get_default_extraction_folder,
    get_script_path,
)
from embedded_rabbitmq.support.ports import find_available_port, is_port_available


class TestBuildProcessEnv:
    """Test environment construction."""

    def test_overrides_win(self):
        env = build_process_env(
            {"RABBITMQ_NODE_PORT": 5673},
            base={"RABBITMQ_NODE_PORT": "5672", "HOME": "/root"},
        )

        assert env == {"RABBITMQ_NODE_PORT": "5673", "HOME": "/root"}

    def test_inherits_os_environ(self, monkeypatch):
        monkeypatch.setenv("EMBEDDED_RABBITMQ_TEST", "1")
        assert build_process_env()["EMBEDDED_RABBITMQ_TEST"] == "1"

    def test_base_not_mutated(self):
        base = {"A": "1"}
        build_process_env({"B": "2"}, base=base)
        assert base == {"A": "1"}


class TestPaths:
    """Test default locations and script paths."""

    def test_default_folders(self):
        assert get_default_download_folder() == Path.home() / ".embeddedrabbitmq"
        assert get_default_extraction_folder() == Path(tempfile.gettempdir())

    def test_unix_script(self, tmp_path):
        path = get_script_path(tmp_path, "rabbitmqctl", OperatingSystem.UNIX)
        assert path == tmp_path.resolve() / "sbin" / "rabbitmqctl"

    def test_windows_script(self, tmp_path):
        path = get_script_path(tmp_path, "rabbitmqctl", OperatingSystem.WINDOWS)
        assert path.name == "rabbitmqctl.bat"


class TestPorts:
    """Test port helpers."""

    def test_find_available_port(self):
        port = find_available_port()
        assert 0 < port < 65536
        assert is_port_available(port)

    def test_port_in_use(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen(1)
            port = sock.getsockname()[1]

            assert not is_port_available(port)
