"""Tests for the CLI entry point."""

import logging

from gba import __version__
from gba.cli.main import cli


def test_version():
    assert __version__ == "0.1.0"


def test_help_lists_commands(cli_runner):
    result = cli_runner.invoke(cli, ['--help'])

    assert result.exit_code == 0
    for command in ("init", "run", "status", "list-prompts", "prompt"):
        assert command in result.output


def test_run_help(cli_runner):
    result = cli_runner.invoke(cli, ['run', '--help'])

    assert result.exit_code == 0
    assert "--resume" in result.output
    assert "planning|implementation|verification" in result.output


def test_verbose_enables_debug_logging(cli_runner, project_dir):
    result = cli_runner.invoke(cli, ['--path', str(project_dir), '--verbose', 'status'])

    assert result.exit_code == 0
    assert logging.getLogger('gba').level == logging.DEBUG


def test_config_logging_level_applied(cli_runner, project_dir):
    result = cli_runner.invoke(cli, ['--path', str(project_dir), 'status'])

    assert result.exit_code == 0
    assert logging.getLogger('gba').level == logging.INFO
