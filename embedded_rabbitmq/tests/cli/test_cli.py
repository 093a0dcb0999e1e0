"""
Tests for the embedded-rabbitmq command line interface.
"""

from unittest.mock import MagicMock, patch

import pytest

from embedded_rabbitmq.cli import build_parser, main
from embedded_rabbitmq.cli.options import build_config
from embedded_rabbitmq.core.exceptions import ConfigurationError, StartupTimeoutError
from embedded_rabbitmq.core.models import Plugin


def layout_args(installed_layout):
    return [
        "--rabbitmq-version",
        "3.8.9",
        "--download-folder",
        str(installed_layout["download_folder"]),
        "--extraction-folder",
        str(installed_layout["extraction_folder"]),
    ]


class TestParser:
    """Test argument parsing."""

    def test_no_command(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_plugins_action_choices(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["plugins", "upgrade"])

    def test_plugins_enable_requires_name(self, capsys):
        assert main(["plugins", "enable"]) == 1
        assert "requires a plugin name" in capsys.readouterr().err


class TestBuildConfig:
    """Test config assembly from arguments."""

    def test_overrides(self, tmp_path):
        args = build_parser().parse_args(
            [
                "run",
                "--rabbitmq-version",
                "3.8.9",
                "--port",
                "5680",
                "--extraction-folder",
                str(tmp_path),
                "--server-init-timeout",
                "12",
                "--no-cache",
                "--skip-erlang-check",
            ]
        )

        config = build_config(args)

        assert str(config.version) == "3.8.9"
        assert config.port == 5680
        assert config.extraction_folder == tmp_path
        assert config.server_init_timeout == 12
        assert config.use_cached_download is False
        assert config.check_erlang is False

    def test_config_file_with_overrides(self, tmp_path):
        """Test that command-line options win over the config file."""
        config_file = tmp_path / "rabbit.yaml"
        config_file.write_text(
            "version: 3.7.18\n"
            "port: 5690\n"
            "timeouts:\n"
            "  server_init: 30\n"
            "  ctl: 4\n"
        )
        args = build_parser().parse_args(
            ["run", "--config", str(config_file), "--server-init-timeout", "9"]
        )

        config = build_config(args)

        assert str(config.version) == "3.7.18"
        assert config.port == 5690
        assert config.server_init_timeout == 9
        assert config.default_ctl_timeout == 4

    def test_invalid_port(self):
        args = build_parser().parse_args(["run", "--port", "amqp"])
        with pytest.raises(ConfigurationError):
            build_config(args)


class TestDownloadCommand:
    """Test the download command."""

    def test_uses_cache_and_existing_install(self, installed_layout, capsys):
        assert main(["download", *layout_args(installed_layout)]) == 0

        out = capsys.readouterr().out
        assert str(installed_layout["archive"]) in out
        assert "rabbitmq_server-3.8.9" in out

    def test_configuration_error(self, capsys):
        assert main(["download", "--rabbitmq-version", "not-a-version"]) == 1
        assert "Error:" in capsys.readouterr().err


class TestRunCommand:
    """Test the run command."""

    def test_stops_on_interrupt(self, installed_layout, capsys):
        rabbit = MagicMock(is_running=True)

        with patch("embedded_rabbitmq.cli.cmd_run.EmbeddedRabbitMq", return_value=rabbit):
            with patch("embedded_rabbitmq.cli.cmd_run.time.sleep", side_effect=KeyboardInterrupt):
                exit_code = main(["run", *layout_args(installed_layout)])

        assert exit_code == 0
        rabbit.start.assert_called_once()
        rabbit.stop.assert_called_once()
        assert "Stopping RabbitMQ" in capsys.readouterr().out

    def test_unexpected_exit(self, installed_layout, capsys):
        rabbit = MagicMock(is_running=False)

        with patch("embedded_rabbitmq.cli.cmd_run.EmbeddedRabbitMq", return_value=rabbit):
            exit_code = main(["run", *layout_args(installed_layout)])

        assert exit_code == 1
        rabbit.stop.assert_called_once()
        assert "exited unexpectedly" in capsys.readouterr().err

    def test_start_failure(self, installed_layout, capsys):
        rabbit = MagicMock()
        rabbit.start.side_effect = StartupTimeoutError(["rabbitmq-server"], 3)

        with patch("embedded_rabbitmq.cli.cmd_run.EmbeddedRabbitMq", return_value=rabbit):
            exit_code = main(["run", *layout_args(installed_layout)])

        assert exit_code == 1
        assert "not ready after 3s" in capsys.readouterr().err


class TestPluginsCommand:
    """Test the plugins command."""

    def test_list(self, installed_layout, capsys):
        plugins = MagicMock()
        plugins.list_plugins.return_value = {
            "rabbitmq_management": Plugin.from_line("[E*] rabbitmq_management 3.8.9"),
            "rabbitmq_mqtt": Plugin.from_line("[  ] rabbitmq_mqtt 3.8.9"),
        }

        with patch("embedded_rabbitmq.cli.cmd_plugins.RabbitMqPlugins", return_value=plugins):
            exit_code = main(["plugins", "list", *layout_args(installed_layout)])

        assert exit_code == 0
        out = capsys.readouterr().out.splitlines()
        assert out == ["[E*] rabbitmq_management 3.8.9", "[  ] rabbitmq_mqtt 3.8.9"]

    def test_enable(self, installed_layout, capsys):
        plugins = MagicMock()

        with patch("embedded_rabbitmq.cli.cmd_plugins.RabbitMqPlugins", return_value=plugins):
            exit_code = main(
                ["plugins", "enable", "rabbitmq_management", *layout_args(installed_layout)]
            )

        assert exit_code == 0
        plugins.enable.assert_called_once_with("rabbitmq_management")
        assert "Enabled rabbitmq_management" in capsys.readouterr().out

    def test_disable(self, installed_layout):
        plugins = MagicMock()

        with patch("embedded_rabbitmq.cli.cmd_plugins.RabbitMqPlugins", return_value=plugins):
            exit_code = main(
                ["plugins", "disable", "rabbitmq_shovel", *layout_args(installed_layout)]
            )

        assert exit_code == 0
        plugins.disable.assert_called_once_with("rabbitmq_shovel")
