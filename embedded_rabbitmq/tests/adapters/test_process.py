"""
Tests for the subprocess executor, using the running Python interpreter as
the child process.
"""

import os
import signal
import sys
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from embedded_rabbitmq.core.exceptions import CommandFailedError, CommandTimeoutError
from embedded_rabbitmq.adapters.process import SubprocessExecutor


def python(code):
    return [sys.executable, "-c", code]


# Child that starts a sleeping grandchild, prints its pid and optionally waits for it
SPAWN_GRANDCHILD = (
    "import subprocess, sys\n"
    "child = subprocess.Popen(\n"
    "    [sys.executable, '-c', 'import time; time.sleep(60)'],\n"
    "    stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,\n"
    ")\n"
    "print(child.pid, flush=True)\n"
)


def wait_for_pid(handle, timeout=10.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        stdout, _ = handle.output()
        if stdout.strip():
            return int(stdout.split()[0])
        time.sleep(0.05)
    raise AssertionError("child did not report the grandchild pid")


def is_gone(pid):
    """True when pid no longer exists or is a zombie waiting to be reaped."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return True
    try:
        stat = Path(f"/proc/{pid}/stat").read_text()
    except FileNotFoundError:
        return True
    except OSError:
        return False
    return stat.rsplit(")", 1)[-1].split()[0] == "Z"


def wait_until_gone(pid, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if is_gone(pid):
            return True
        time.sleep(0.05)
    return False


@pytest.fixture
def executor():
    return SubprocessExecutor()


class TestRun:
    """Test one-shot commands."""

    def test_captures_output(self, executor):
        result = executor.run(
            python("import sys; print('out'); print('err', file=sys.stderr)")
        )

        assert result.ok
        assert result.stdout == "out\n"
        assert result.stderr == "err\n"
        assert result.command[0] == sys.executable

    def test_non_zero_exit_raises(self, executor):
        with pytest.raises(CommandFailedError) as exc_info:
            executor.run(python("import sys; print('boom', file=sys.stderr); sys.exit(3)"))

        assert exc_info.value.exit_code == 3
        assert "boom" in exc_info.value.stderr
        assert "boom" in str(exc_info.value)

    def test_non_zero_exit_without_check(self, executor):
        result = executor.run(python("import sys; sys.exit(69)"), check=False)

        assert result.exit_code == 69
        assert not result.ok

    def test_timeout_kills_process(self, executor):
        """Test that an overrunning command is killed and reported."""
        with pytest.raises(CommandTimeoutError) as exc_info:
            executor.run(
                python("import sys, time; print('partial', flush=True); time.sleep(30)"),
                timeout=0.5,
            )

        assert exc_info.value.timeout == 0.5
        assert exc_info.value.stdout == "partial\n"

    def test_env_overrides(self, executor, monkeypatch):
        """Test that overrides are laid over the inherited environment."""
        monkeypatch.setenv("INHERITED_VAR", "parent")
        result = executor.run(
            python(
                "import os; print(os.environ['INHERITED_VAR'], os.environ['RABBITMQ_NODE_PORT'])"
            ),
            env_overrides={"RABBITMQ_NODE_PORT": "5673"},
        )

        assert result.stdout.split() == ["parent", "5673"]

    def test_cwd(self, executor, tmp_path):
        result = executor.run(python("import os; print(os.getcwd())"), cwd=str(tmp_path))
        assert result.stdout.strip() == str(tmp_path.resolve())

    def test_missing_executable(self, executor, tmp_path):
        with pytest.raises(CommandFailedError) as exc_info:
            executor.run([str(tmp_path / "no-such-script")])

        assert exc_info.value.exit_code == -1

    def test_chatty_process_does_not_block(self, executor):
        """Test that output larger than a pipe buffer is drained."""
        result = executor.run(
            python("import sys; sys.stdout.write('x' * 1000000); sys.stderr.write('y' * 1000000)"),
            timeout=30,
        )

        assert len(result.stdout) == 1000000
        assert len(result.stderr) == 1000000


class TestStart:
    """Test long-running launches."""

    def test_start_and_terminate(self, executor):
        handle = executor.start(
            python("import time; print('ready', flush=True); time.sleep(30)"),
            stream_output=False,
        )

        assert handle.pid > 0
        assert handle.poll() is None
        assert handle.wait(timeout=0.1) is None

        handle.terminate()
        assert handle.wait(timeout=10) is not None
        assert handle.poll() is not None

    def test_output_after_exit(self, executor):
        handle = executor.start(python("print('started')"), stream_output=True)

        assert handle.wait(timeout=10) == 0
        stdout, stderr = handle.output()
        assert stdout == "started\n"
        assert stderr == ""

    def test_output_bounded(self):
        """Test that only the most recent lines are kept."""
        executor = SubprocessExecutor(max_output_lines=10)
        handle = executor.start(
            python("for i in range(100): print(i)"), stream_output=False
        )

        assert handle.wait(timeout=10) == 0
        stdout, _ = handle.output()
        assert stdout.splitlines() == [str(i) for i in range(90, 100)]

    def test_kill_after_exit_is_noop(self, executor):
        handle = executor.start(python("pass"), stream_output=False)
        handle.wait(timeout=10)

        handle.kill()
        handle.terminate()

        assert handle.poll() == 0

    def test_start_missing_executable(self, executor, tmp_path):
        with pytest.raises(CommandFailedError):
            executor.start([str(tmp_path / "no-such-script")])


@pytest.mark.skipif(os.name == "nt", reason="process groups are POSIX only")
class TestProcessGroup:
    """Test that signals reach the processes a launched script spawns."""

    def test_kill_reaches_grandchild(self, executor):
        handle = executor.start(
            python(SPAWN_GRANDCHILD + "child.wait()\n"), stream_output=False
        )
        grandchild = wait_for_pid(handle)

        handle.kill()

        assert handle.wait(timeout=10) is not None
        assert wait_until_gone(grandchild)

    def test_kill_after_leader_exit_reaches_grandchild(self, executor):
        """Test that kill() still clears the group once the direct child is gone."""
        handle = executor.start(python(SPAWN_GRANDCHILD), stream_output=False)
        grandchild = wait_for_pid(handle)
        assert handle.wait(timeout=10) == 0
        assert not is_gone(grandchild)

        handle.kill()

        assert wait_until_gone(grandchild)

    def test_terminate_signals_group(self, executor):
        handle = executor.start(
            python("import time; time.sleep(30)"), stream_output=False
        )

        try:
            with patch("embedded_rabbitmq.adapters.process.os.killpg") as mock_killpg:
                handle.terminate()
            mock_killpg.assert_called_once_with(handle.pid, signal.SIGTERM)
        finally:
            handle.kill()
            handle.wait(timeout=10)

    def test_own_process_group(self, executor):
        handle = executor.start(
            python("import time; time.sleep(30)"), stream_output=False
        )

        try:
            assert os.getpgid(handle.pid) == handle.pid
            assert os.getpgid(handle.pid) != os.getpgrp()
        finally:
            handle.kill()
            handle.wait(timeout=10)

    def test_timeout_kills_grandchild(self, executor):
        with pytest.raises(CommandTimeoutError) as exc_info:
            executor.run(python(SPAWN_GRANDCHILD + "child.wait()\n"), timeout=3)

        grandchild = int(exc_info.value.stdout.split()[0])
        assert wait_until_gone(grandchild)
