"""
Directory-tree backed result store.

One JSON artifact per executed test file lives at
``<store-root>/results/<file-group>/<file-stem>/results.json``. The store is
reset at the start of every run and purged per file before that file runs.
"""

import json
import os
import shutil
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Iterator, Optional

from ..core.config import Config
from ..core.exceptions import StoreError, FileOperationError
from ..core.logging_config import get_logger


ARTIFACT_FILE_NAME = "results.json"
ARTIFACT_EXTENSION = ".json"


def iter_artifact_paths(root: Path) -> Iterator[Path]:
    """
    Walk ``root`` and yield every artifact file in a stable order.

    The walk is iterative and only yields paths; parsing is left to callers.
    Directories are visited in sorted order so repeated walks agree.
    """
    root = Path(root)
    if not root.is_dir():
        return

    pending = [root]
    while pending:
        current = pending.pop()
        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError:
            continue

        subdirs = []
        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                subdirs.append(Path(entry.path))
            elif entry.is_file() and entry.name.endswith(ARTIFACT_EXTENSION):
                yield Path(entry.path)

        # Reversed so the stack pops them in sorted order
        pending.extend(reversed(subdirs))


class ResultStore:
    """
    Manages the per-run tree of result artifacts.

    Passed explicitly to the orchestrator and the collector; it holds no
    result data in memory.
    """

    def __init__(self, config: Config):
        self.config = config
        self.root = Path(config.store_root)
        self.results_dir = config.results_dir
        self.test_file_suffix = config.test_file_suffix
        self.logger = get_logger(__name__)

    @property
    def history_path(self) -> Path:
        return self.config.history_path

    def reset(self) -> None:
        """
        Remove every artifact from the previous run.

        Raises:
            StoreError: If the results tree cannot be removed or recreated
        """
        try:
            if self.results_dir.exists():
                shutil.rmtree(self.results_dir)
            self.results_dir.mkdir(parents=True, exist_ok=True)
            self.config.screenshots_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(
                f"Result store is not writable: {e}",
                store_root=str(self.root),
                operation="reset",
            )

        if not os.access(self.results_dir, os.W_OK):
            raise StoreError(
                f"Result store is not writable: {self.results_dir}",
                store_root=str(self.root),
                operation="reset",
            )

        self.logger.debug(f"Reset result store: {self.results_dir}")

    def file_dir(self, file_path: str) -> Path:
        """Directory that holds the artifact for ``file_path``."""
        posix = PurePosixPath(str(file_path).replace("\\", "/"))
        parent = str(posix.parent)
        group = "_" if parent in ("", ".") else parent.strip("/").replace("/", "_")
        name = posix.name
        if self.test_file_suffix and name.endswith(self.test_file_suffix):
            stem = name[: -len(self.test_file_suffix)]
        else:
            stem = posix.stem
        return self.results_dir / group / (stem or name)

    def artifact_path(self, file_path: str) -> Path:
        """Expected artifact location for ``file_path``."""
        return self.file_dir(file_path) / ARTIFACT_FILE_NAME

    def prepare_file(self, file_path: str) -> Path:
        """
        Purge only this file's artifact directory and recreate it.

        Returns:
            Path at which the engine should write its artifact
        """
        target = self.file_dir(file_path)
        try:
            if target.exists():
                shutil.rmtree(target)
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileOperationError(
                f"Failed to prepare artifact directory: {e}",
                file_path=str(target),
                operation="prepare",
            )

        self.logger.debug(f"Prepared artifact directory: {target}")
        return target / ARTIFACT_FILE_NAME

    def write_artifact(self, path: Path, data: Dict[str, Any]) -> Path:
        """Write an artifact document as JSON."""
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise FileOperationError(
                f"Failed to write artifact: {e}",
                file_path=str(path),
                operation="write",
            )
        return path

    def read_artifact(self, path: Path) -> Optional[Dict[str, Any]]:
        """Read an artifact, returning None when it is missing or not JSON."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Could not read artifact {path}: {e}")
            return None

    def iter_artifacts(self) -> Iterator[Path]:
        """Yield every artifact currently in the results tree."""
        return iter_artifact_paths(self.results_dir)

    def get_storage_stats(self) -> Dict[str, Any]:
        """Get storage statistics for the results tree."""
        count = 0
        size = 0
        for path in self.iter_artifacts():
            count += 1
            try:
                size += path.stat().st_size
            except OSError:
                continue
        return {
            "results_dir": str(self.results_dir),
            "artifact_count": count,
            "total_size_bytes": size,
        }
