"""Tests for the module-runtime CLI."""

from typer.testing import CliRunner

from module_runtime.cli.app import app

runner = CliRunner()


def test_modules_list_in_dependency_order():
    result = runner.invoke(app, ["modules", "list"])

    assert result.exit_code == 0
    assert result.output.index("auth") < result.output.index("weekly-report")
    assert "dashboard" in result.output


def test_modules_render():
    result = runner.invoke(app, ["modules", "render", "dashboard", "team-chat"])

    assert result.exit_code == 0
    assert "Dashboard" in result.output
    assert "Team Chat" in result.output


def test_modules_check_without_health():
    result = runner.invoke(app, ["modules", "check", "weekly-report", "--skip-health"])

    assert result.exit_code == 0
    assert "loaded and initialized" in result.output


def test_unknown_module_is_rejected():
    result = runner.invoke(app, ["modules", "render", "ghost"])

    assert result.exit_code == 1
    assert "unknown module" in result.output


def test_modules_diagnose():
    result = runner.invoke(app, ["modules", "diagnose"])

    assert result.exit_code == 0
    assert "failed: 0" in result.output
