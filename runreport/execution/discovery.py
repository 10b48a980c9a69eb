"""
Test file discovery and test-case listing.

Listing is a lightweight pattern scan over the source text for test
declaration call sites, not a parse.
"""

import re
from pathlib import Path
from typing import List, Optional

from ..core.logging_config import get_logger

logger = get_logger(__name__)

TEST_DECLARATION_RE = re.compile(r"""\b(?:it|test)\s*\(\s*(['"`])(.+?)\1\s*,""")

EXCLUDED_DIRS = {"node_modules", ".git"}


def discover_test_files(
    project_root: Path,
    pattern: str = "**/*.test.js",
    exclude: Optional[List[Path]] = None,
) -> List[str]:
    """
    List test files under ``project_root`` matching ``pattern``.

    Args:
        project_root: Directory to search
        pattern: Glob pattern relative to the root
        exclude: Extra directories to skip, typically the store root

    Returns:
        Sorted POSIX paths relative to ``project_root``
    """
    root = Path(project_root).resolve()
    excluded = [Path(p).resolve() for p in (exclude or [])]

    files = []
    for path in root.glob(pattern):
        if not path.is_file():
            continue
        relative = path.relative_to(root)
        if any(part in EXCLUDED_DIRS for part in relative.parts):
            continue
        resolved = path.resolve()
        if any(_is_within(resolved, ex) for ex in excluded):
            continue
        files.append(relative.as_posix())

    files.sort()
    logger.debug(f"Discovered {len(files)} test files under {root}")
    return files


def extract_test_cases(file_path: Path) -> List[str]:
    """
    Return the test titles declared in ``file_path`` in source order.

    Unreadable files and directories yield an empty list.
    """
    path = Path(file_path)
    if path.is_dir():
        return []
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Error reading {path}: {e}")
        return []

    return [match.group(2) for match in TEST_DECLARATION_RE.finditer(content)]


def _is_within(path: Path, parent: Path) -> bool:
    try:
        path.relative_to(parent)
        return True
    except ValueError:
        return False
