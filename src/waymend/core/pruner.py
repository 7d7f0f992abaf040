"""
Unreferenced asset pruning.

Files inside asset-bundle directories (saved-page folders named "<page>_files")
that no page or stylesheet references any more are deletion candidates. The
pass is a dry run unless deletion is explicitly requested.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .logger import ErrorTracker
from .references import ReferenceCollector
from ..utils.file_manager import FileManager


DEFAULT_BUNDLE_SUFFIX = "_files"
DEFAULT_SAMPLE_SIZE = 20


@dataclass
class PruneReport:
    bundle_files: int = 0
    candidates: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)
    applied: bool = False

    @property
    def referenced(self) -> int:
        return self.bundle_files - len(self.candidates)


class AssetPruner:
    def __init__(self, suffix: str = DEFAULT_BUNDLE_SUFFIX, sample_size: int = DEFAULT_SAMPLE_SIZE,
                 error_tracker: Optional[ErrorTracker] = None):
        self.suffix = suffix
        self.sample_size = sample_size
        self.logger = logging.getLogger(__name__)
        self.error_tracker = error_tracker or ErrorTracker(self.logger)
        self.collector = ReferenceCollector()

    def find_candidates(self, files: FileManager) -> Tuple[int, List[str]]:
        """
        Find unreferenced files under asset-bundle directories.

        Returns:
            Tuple of (number of bundle files, unreferenced bundle files)
        """
        bundle_files = files.asset_bundle_files(self.suffix)
        referenced = self.collector.collect(files)
        candidates = [path for path in bundle_files if path not in referenced]
        return len(bundle_files), candidates

    def run(self, files: FileManager, apply: bool = False) -> PruneReport:
        """
        Report, and with apply=True delete, unreferenced bundle files.

        Deletion failures are recorded as errors and do not stop the pass.
        """
        total, candidates = self.find_candidates(files)
        report = PruneReport(bundle_files=total, candidates=candidates, applied=apply)

        self.logger.info(f"Found {total} files under *{self.suffix} folders.")
        self.logger.info(f"Referenced: {report.referenced}. Unreferenced: {len(candidates)}.")
        if not candidates:
            return report

        if not apply:
            self.logger.info("Dry run (no deletions). Pass --apply to delete. Sample:")
            for path in candidates[:self.sample_size]:
                self.logger.info(f" - {files.relative_path(path)}")
            return report

        for path in candidates:
            error = files.delete_file(path)
            if error is None:
                report.deleted.append(path)
                continue
            report.failed.append((path, str(error)))
            self.error_tracker.log_error(error, context="prune", path=files.relative_path(path))

        self.logger.info(f"Deleted {len(report.deleted)} unreferenced files.")
        return report
