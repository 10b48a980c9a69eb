"""
Main CLI interface for runreport.

Provides the live runner server, one-shot runs, test listing, report
regeneration and cleanup of generated files.
"""

import argparse
import asyncio
import os
import sys
import uuid
from pathlib import Path
from typing import Optional, List

from . import __version__
from .core.config import Config
from .core.exceptions import RunReportError
from .core.logging_config import setup_logging
from .execution.discovery import discover_test_files, extract_test_cases
from .execution.models import Selection
from .execution.orchestrator import RunOrchestrator
from .execution.store import ResultStore
from .reporting.cleanup import ReportCleaner
from .reporting.pipeline import ReportPipeline
from .server.broadcast import BroadcastChannel


class ConsoleChannel(BroadcastChannel):
    """Broadcast channel that also echoes every line to stdout."""

    def publish(self, message: str) -> int:
        sys.stdout.write(message)
        sys.stdout.flush()
        return super().publish(message)


def load_config(args: argparse.Namespace) -> Config:
    """Build configuration from ``--config``/``--project-root`` and validate it."""
    if getattr(args, "config", None):
        config = Config.from_file(Path(args.config))
    else:
        root = Path(args.project_root) if getattr(args, "project_root", None) else None
        config = Config.load(root)

    if getattr(args, "verbose", False):
        config.log_level = "DEBUG"

    config.validate()
    setup_logging(config, f"cli_{uuid.uuid4().hex[:8]}")
    return config


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the live runner server."""
    from .server.app import run_server

    try:
        config = load_config(args)
        if args.host:
            config.host = args.host
        if args.port:
            config.port = args.port
        print(f"🚀 Test runner UI available at http://{config.host}:{config.port}")
        run_server(config)
        return 0
    except RunReportError as e:
        print(f"❌ {e.message}")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Run selected tests and build the report."""
    try:
        config = load_config(args)
        selection = Selection.from_strings(args.tests)
        store = ResultStore(config)
        orchestrator = RunOrchestrator(config, store, channel=ConsoleChannel())

        outcome = asyncio.run(orchestrator.execute(selection))
    except RunReportError as e:
        print(f"❌ {e.message}")
        return 1

    if outcome.report_path:
        print(f"📊 Report: {outcome.report_path}")
    return 1 if outcome.counts.get("failed", 0) else 0


def cmd_list(args: argparse.Namespace) -> int:
    """List test files, optionally with their test cases."""
    try:
        config = load_config(args)
    except RunReportError as e:
        print(f"❌ {e.message}")
        return 1

    files = discover_test_files(
        config.project_root, config.test_file_pattern, exclude=[config.store_root]
    )
    if not files:
        print("No test files found")
        return 0

    for file_path in files:
        print(file_path)
        if args.cases:
            for title in extract_test_cases(config.project_root / file_path):
                print(f"  {file_path}::{title}")
    return 0


def cmd_report(args: argparse.Namespace) -> int:
    """Rebuild the report from the artifacts currently in the store."""
    try:
        config = load_config(args)
        result = ReportPipeline(config, ResultStore(config)).run(record_history=False)
    except RunReportError as e:
        print(f"❌ {e.message}")
        return 1

    summary = result.summary
    print(
        f"Total Tests: {summary.total} | Passed: {summary.passed} | "
        f"Failed: {summary.failed} | Skipped: {summary.skipped}"
    )
    print(f"📊 Report: {result.report_path}")
    return 1 if result.degraded else 0


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Remove generated reports, data exports and screenshots."""
    try:
        config = load_config(args)
    except RunReportError as e:
        print(f"❌ {e.message}")
        return 1

    print("🧹 Cleaning up report files...")
    result = ReportCleaner(config).cleanup(
        include_data=args.data or args.all,
        all_files=args.all,
        screenshots_only=args.screenshots,
    )

    for path in result.removed:
        print(f"  ✅ Removed: {path}")
    for error in result.errors:
        print(f"  ❌ Error removing {error}")

    print("📊 Cleanup Summary:")
    print(f"  ✅ Files removed: {len(result.removed)}")
    print(f"  ❌ Errors: {len(result.errors)}")
    return 0 if result.success else 1


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print(f"runreport {__version__}")
    if args.verbose:
        print()
        print("System Information:")
        print(f"  Python: {sys.version}")
        print(f"  Platform: {sys.platform}")
        print(f"  Working Directory: {os.getcwd()}")
    return 0


def create_main_parser() -> argparse.ArgumentParser:
    """Create main CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="runreport",
        description="runreport - sequential test runner with offline HTML reports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  runreport serve --port 3000
  runreport run "tests/login.test.js::login works"
  runreport list --cases
  runreport report
  runreport cleanup --all
        """,
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to a YAML or JSON configuration file")
    common.add_argument("--project-root", help="Project directory (default: current directory)")
    common.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Start the live runner server")
    serve_parser.add_argument("--host", help="Interface to bind")
    serve_parser.add_argument("--port", type=int, help="Port to listen on")
    serve_parser.set_defaults(func=cmd_serve)

    run_parser = subparsers.add_parser("run", parents=[common], help="Run selected tests")
    run_parser.add_argument(
        "tests",
        nargs="+",
        metavar="TEST",
        help='Test to run as "filePath::testName"',
    )
    run_parser.set_defaults(func=cmd_run)

    list_parser = subparsers.add_parser("list", parents=[common], help="List discovered test files")
    list_parser.add_argument(
        "--cases",
        action="store_true",
        help="Also list the test cases declared in each file",
    )
    list_parser.set_defaults(func=cmd_list)

    report_parser = subparsers.add_parser(
        "report", parents=[common], help="Rebuild the report from stored results"
    )
    report_parser.set_defaults(func=cmd_report)

    cleanup_parser = subparsers.add_parser(
        "cleanup", parents=[common], help="Remove generated report files"
    )
    mode = cleanup_parser.add_mutually_exclusive_group()
    mode.add_argument("--screenshots", action="store_true", help="Remove only screenshot files")
    mode.add_argument("--data", action="store_true", help="Also remove JSON data files")
    mode.add_argument(
        "--all",
        action="store_true",
        help="Remove reports, data files and stored results",
    )
    cleanup_parser.set_defaults(func=cmd_cleanup)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show detailed version information",
    )
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_main_parser()

    if args is None:
        args = sys.argv[1:]

    parsed_args = parser.parse_args(args)

    if not hasattr(parsed_args, "func"):
        parser.print_help()
        return 1

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
