"""
Removal of generated reports, data exports and screenshots.
"""

import logging
import shutil
from pathlib import Path
from typing import List

from ..core.config import Config
from .models import CleanupResult

logger = logging.getLogger(__name__)

REPORT_PATTERNS = [
    "automationTestReport.html",
    "test-report.html",
    "*TestReport.html",
    "*-report.html",
    "report-*.html",
]

DATA_PATTERNS = [
    "automationTestData.json",
    "*TestData.json",
    "test-data-*.json",
]

SCREENSHOT_EXTENSIONS = (".png", ".jpg", ".jpeg")


class ReportCleaner:
    """
    Removes report-related files from the project root and the result store.

    Modes:
        default: HTML reports and screenshots
        include_data: also JSON data exports
        all_files: also data exports and the result store's results tree
        screenshots_only: only screenshots
    """

    def __init__(self, config: Config):
        self.config = config
        self.root = Path(config.project_root)

    def collect_targets(
        self,
        include_data: bool = False,
        all_files: bool = False,
        screenshots_only: bool = False,
    ) -> List[Path]:
        """Paths that a cleanup with these options would remove."""
        targets: List[Path] = []

        if not screenshots_only:
            targets.extend(self._match(self.root, REPORT_PATTERNS))
            if self.config.report_path.exists():
                targets.append(self.config.report_path)

        targets.extend(self._screenshots())

        if (include_data or all_files) and not screenshots_only:
            targets.extend(self._match(self.root, DATA_PATTERNS))
            if self.config.data_path.exists():
                targets.append(self.config.data_path)

        if all_files and not screenshots_only and self.config.results_dir.exists():
            targets.append(self.config.results_dir)

        # Preserve discovery order, drop duplicates
        unique = []
        seen = set()
        for path in targets:
            key = path.resolve()
            if key not in seen:
                seen.add(key)
                unique.append(path)
        return unique

    def cleanup(
        self,
        include_data: bool = False,
        all_files: bool = False,
        screenshots_only: bool = False,
    ) -> CleanupResult:
        """
        Remove matching files.

        Returns:
            Removed paths and one error message per failed removal
        """
        result = CleanupResult()
        targets = self.collect_targets(include_data, all_files, screenshots_only)

        if not targets:
            logger.info("No files to remove")
            return result

        logger.info(f"Removing {len(targets)} files")
        for path in targets:
            display = self._display(path)
            try:
                if path.is_dir():
                    shutil.rmtree(path)
                elif path.exists():
                    path.unlink()
                else:
                    continue
                result.removed.append(display)
                logger.debug(f"Removed: {display}")
            except OSError as e:
                result.errors.append(f"{display}: {e}")
                logger.error(f"Error removing {display}: {e}")

        logger.info(
            f"Cleanup finished: {len(result.removed)} removed, {len(result.errors)} errors"
        )
        return result

    def _screenshots(self) -> List[Path]:
        found = []
        for directory in (self.config.screenshots_dir, self.root / "screenshots", self.root):
            if not directory.is_dir():
                continue
            for path in sorted(directory.iterdir()):
                if path.is_file() and path.suffix.lower() in SCREENSHOT_EXTENSIONS:
                    found.append(path)
        return found

    @staticmethod
    def _match(directory: Path, patterns: List[str]) -> List[Path]:
        if not directory.is_dir():
            return []
        found = []
        for pattern in patterns:
            found.extend(p for p in sorted(directory.glob(pattern)) if p.is_file())
        return found

    def _display(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)
