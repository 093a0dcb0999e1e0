"""
Shared fixtures for the embedded_rabbitmq test suite.

FakeExecutor stands in for the subprocess executor: it simulates the broker
scripts (rabbitmq-server, rabbitmqctl, rabbitmq-plugins) and the Erlang
runtime so lifecycle behaviour can be tested without a real broker.
"""

import io
import os
import tarfile
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

from embedded_rabbitmq.config import ConfigBuilder
from embedded_rabbitmq.core.exceptions import CommandFailedError
from embedded_rabbitmq.core.models import CommandResult, OperatingSystem, Version

PLUGINS_LIST_OUTPUT = """\
 Configured: E = explicitly enabled; e = implicitly enabled
 | Status: * = running on rabbit@localhost
 |/
[E*] rabbitmq_management       3.8.9
[e*] rabbitmq_management_agent 3.8.9
[  ] rabbitmq_mqtt             3.8.9
[E ] rabbitmq_shovel           3.8.9
"""


class FakeHandle:
    """In-memory ProcessHandle."""

    def __init__(self, command: List[str], pid: int = 4242):
        self.command = command
        self.pid = pid
        self.exit_code: Optional[int] = None
        self.exit_on_terminate = True
        self.terminated = False
        self.killed = False
        self.stdout = "Starting broker...\n"
        self.stderr = ""

    def poll(self) -> Optional[int]:
        return self.exit_code

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        return self.exit_code

    def terminate(self) -> None:
        self.terminated = True
        if self.exit_on_terminate:
            self.exit_code = -15

    def kill(self) -> None:
        self.killed = True
        self.exit_code = -9

    def output(self):
        return self.stdout, self.stderr


class FakeExecutor:
    """
    In-memory ProcessExecutor simulating the broker scripts.

    Attributes:
        runs: Every one-shot call as a dict (command, env, cwd, timeout, check).
        started: Every launched FakeHandle.
        failing_status_polls: Status calls that fail before the node is ready.
        stop_exits_process: Whether `rabbitmqctl stop` ends the server process.
        erlang_output: What the Erlang runtime prints.
        overrides: (script, first arg) -> callable(command) returning a
            CommandResult or raising.
    """

    def __init__(self):
        self.runs: List[Dict] = []
        self.started: List[FakeHandle] = []
        self.failing_status_polls = 0
        self.stop_exits_process = True
        self.erlang_output = '"26"\n'
        self.overrides: Dict[tuple, Callable] = {}

    @property
    def server(self) -> Optional[FakeHandle]:
        return self.started[-1] if self.started else None

    def calls_to(self, script: str, arg: Optional[str] = None) -> List[Dict]:
        return [
            call
            for call in self.runs
            if Path(call["command"][0]).name == script
            and (arg is None or call["command"][1:2] == [arg])
        ]

    def run(
        self,
        command,
        env_overrides=None,
        cwd=None,
        timeout=None,
        check=True,
        stream_output=False,
    ) -> CommandResult:
        command = [str(part) for part in command]
        self.runs.append(
            {
                "command": command,
                "env": dict(env_overrides or {}),
                "cwd": cwd,
                "timeout": timeout,
                "check": check,
            }
        )
        script = Path(command[0]).name
        first_arg = command[1] if len(command) > 1 else ""

        override = self.overrides.get((script, first_arg))
        if override:
            result = override(command)
        else:
            result = self._simulate(command, script, first_arg)

        if check and not result.ok:
            raise CommandFailedError(command, result.exit_code, result.stdout, result.stderr)
        return result

    def start(self, command, env_overrides=None, cwd=None, stream_output=True) -> FakeHandle:
        handle = FakeHandle([str(part) for part in command], pid=4242 + len(self.started))
        handle.env = dict(env_overrides or {})
        handle.cwd = cwd
        self.started.append(handle)
        return handle

    def _simulate(self, command, script, first_arg) -> CommandResult:
        if script.startswith("erl"):
            return CommandResult(command, 0, self.erlang_output)

        if script.startswith("rabbitmqctl"):
            alive = self.server is not None and self.server.poll() is None
            if first_arg == "status":
                if alive and self.failing_status_polls <= 0:
                    return CommandResult(command, 0, "Status of node rabbit@localhost ...\n")
                self.failing_status_polls -= 1
                return CommandResult(command, 69, "", "Error: unable to perform an operation on node\n")
            if first_arg == "stop":
                if not alive:
                    return CommandResult(command, 69, "", "Error: node is not running\n")
                if self.stop_exits_process:
                    self.server.exit_code = 0
                return CommandResult(command, 0, "Stopping and halting node rabbit@localhost ...\n")

        if script.startswith("rabbitmq-plugins"):
            if first_arg == "list":
                return CommandResult(command, 0, PLUGINS_LIST_OUTPUT)
            return CommandResult(command, 0, f"{first_arg}d plugin\n")

        return CommandResult(command, 127, "", f"{script}: command not found\n")


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def installed_layout(tmp_path):
    """A cached artifact and an already extracted 3.8.9 installation."""
    download_folder = tmp_path / "cache"
    download_folder.mkdir()
    archive = download_folder / "rabbitmq-server-generic-unix-3.8.9.tar.xz"
    archive.write_bytes(b"cached artifact")

    extraction_folder = tmp_path / "extracted"
    sbin = extraction_folder / "rabbitmq_server-3.8.9" / "sbin"
    sbin.mkdir(parents=True)
    for script in ("rabbitmq-server", "rabbitmqctl", "rabbitmq-plugins"):
        (sbin / script).write_text("#!/bin/sh\n")

    return {
        "download_folder": download_folder,
        "archive": archive,
        "extraction_folder": extraction_folder,
        "app_folder": extraction_folder / "rabbitmq_server-3.8.9",
    }


@pytest.fixture
def config_builder(installed_layout, fake_executor):
    """Builder for a 3.8.9 unix config wired to the fake executor."""
    return (
        ConfigBuilder()
        .version(Version.predefined("3.8.9"))
        .operating_system(OperatingSystem.UNIX)
        .download_folder(installed_layout["download_folder"])
        .extraction_folder(installed_layout["extraction_folder"])
        .process_executor_factory(lambda: fake_executor)
        .server_init_timeout(5)
        .readiness_poll_interval(0.01)
        .stop_grace_timeout(0.1)
    )


@pytest.fixture
def broker_config(config_builder):
    return config_builder.build()


@pytest.fixture
def write_corrupt_tar_xz():
    """Factory writing a valid xz tarball with bytes flipped mid-stream."""

    def _write(path: Path, app_folder_name: str = "rabbitmq_server-3.8.9") -> Path:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:xz") as tar:
            for index in range(50):
                content = os.urandom(4096)
                info = tarfile.TarInfo(f"{app_folder_name}/lib/file-{index}.bin")
                info.size = len(content)
                tar.addfile(info, io.BytesIO(content))

        data = bytearray(buffer.getvalue())
        middle = len(data) // 2
        for offset in range(middle, middle + 64):
            data[offset] ^= 0xFF
        path.write_bytes(bytes(data))
        return path

    return _write
