"""
Unit tests for main CLI interface.

Tests listing, report regeneration, cleanup and one-shot runs through the
argument parser.
"""

from datetime import datetime
from unittest.mock import patch, MagicMock, AsyncMock

import pytest

from runreport import __version__
from runreport.cli import ConsoleChannel, create_main_parser, main
from runreport.execution.models import RunOutcome


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep CLI invocations from reconfiguring the root logger."""
    with patch("runreport.cli.setup_logging"):
        yield


def run_cli(project_dir, *argv):
    return main([argv[0], "--project-root", str(project_dir), *argv[1:]])


class TestParser:
    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out

    def test_cleanup_modes_are_exclusive(self):
        parser = create_main_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(["cleanup", "--data", "--all"])

    def test_run_requires_tests(self):
        with pytest.raises(SystemExit):
            create_main_parser().parse_args(["run"])


class TestListCommand:
    def test_lists_files(self, project_dir, capsys):
        assert run_cli(project_dir, "list") == 0

        out = capsys.readouterr().out.splitlines()
        assert out == ["tests/api/users.test.js", "tests/login.test.js"]

    def test_lists_cases(self, project_dir, capsys):
        assert run_cli(project_dir, "list", "--cases") == 0

        out = capsys.readouterr().out
        assert "  tests/login.test.js::rejects (bad) password" in out

    def test_empty_project(self, tmp_path, capsys):
        assert run_cli(tmp_path, "list") == 0
        assert "No test files found" in capsys.readouterr().out


class TestReportCommand:
    def test_rebuilds_from_store(self, project_dir, config, write_artifact, vitest_artifact, capsys):
        write_artifact(
            "tests/login.test.js",
            vitest_artifact("tests/login.test.js", [{"title": "login works"}]),
        )

        assert run_cli(project_dir, "report") == 0

        out = capsys.readouterr().out
        assert "Total Tests: 1 | Passed: 1 | Failed: 0 | Skipped: 0" in out
        assert config.report_path.exists()
        assert not config.history_path.exists()


class TestCleanupCommand:
    def test_removes_reports(self, project_dir, config, capsys):
        config.report_path.write_text("<html></html>")
        config.data_path.write_text("[]")

        assert run_cli(project_dir, "cleanup") == 0

        out = capsys.readouterr().out
        assert "Removed: automationTestReport.html" in out
        assert "Files removed: 1" in out
        assert config.data_path.exists()

    def test_all_removes_data(self, project_dir, config):
        config.data_path.write_text("[]")

        assert run_cli(project_dir, "cleanup", "--all") == 0
        assert not config.data_path.exists()

    @patch("runreport.cli.ReportCleaner")
    def test_errors_exit_non_zero(self, mock_cleaner_class, project_dir, capsys):
        mock_cleaner = MagicMock()
        mock_cleaner.cleanup.return_value = MagicMock(
            removed=[], errors=["report.html: locked"], success=False
        )
        mock_cleaner_class.return_value = mock_cleaner

        assert run_cli(project_dir, "cleanup", "--screenshots") == 1
        mock_cleaner.cleanup.assert_called_once_with(
            include_data=False, all_files=False, screenshots_only=True
        )
        assert "Errors: 1" in capsys.readouterr().out


class TestRunCommand:
    @patch("runreport.cli.RunOrchestrator")
    def test_failed_tests_exit_non_zero(self, mock_orchestrator_class, project_dir, capsys):
        now = datetime.now()
        outcome = RunOutcome(
            run_id="run_cli",
            started_at=now,
            completed_at=now,
            counts={"total": 2, "passed": 1, "failed": 1},
            report_path="automationTestReport.html",
        )
        mock_orchestrator = MagicMock()
        mock_orchestrator.execute = AsyncMock(return_value=outcome)
        mock_orchestrator_class.return_value = mock_orchestrator

        result = run_cli(project_dir, "run", "tests/login.test.js::login works")

        assert result == 1
        selection = mock_orchestrator.execute.call_args[0][0]
        assert [e.to_key() for e in selection.entries] == ["tests/login.test.js::login works"]
        assert isinstance(mock_orchestrator_class.call_args[1]["channel"], ConsoleChannel)
        assert "Report: automationTestReport.html" in capsys.readouterr().out

    def test_malformed_selection(self, project_dir, capsys):
        assert run_cli(project_dir, "run", "no-separator") == 1
        assert "❌" in capsys.readouterr().out


class TestVersionCommand:
    def test_version(self, capsys):
        assert main(["version"]) == 0
        assert f"runreport {__version__}" in capsys.readouterr().out

    def test_version_verbose(self, capsys):
        assert main(["version", "--verbose"]) == 0
        assert "System Information:" in capsys.readouterr().out


class TestConsoleChannel:
    def test_echoes_and_forwards(self, capsys):
        channel = ConsoleChannel()

        assert channel.publish("hello\n") == 0
        assert capsys.readouterr().out == "hello\n"
