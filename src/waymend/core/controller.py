"""
Waymend Orchestrator: runs the clean, prune and verify passes over a mirror.

The clean pass builds the provenance mapping from every page first, then
sanitizes and rewrites each page against that finished mapping.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, List, Tuple
from concurrent.futures import ThreadPoolExecutor

from .html_cleaner import HTMLCleaner
from .link_rewriter import LinkRewriter, DEFAULT_ARCHIVE_HOST
from .link_checker import BrokenLink, LinkVerifier
from .logger import ErrorTracker
from .provenance import PathMapping, ProvenanceMapper
from .pruner import AssetPruner, PruneReport, DEFAULT_BUNDLE_SUFFIX, DEFAULT_SAMPLE_SIZE
from ..utils.file_manager import FileManager
from ..utils.manifest import Manifest, ManifestRecord


AUDITED_ELEMENTS = ('paragraphs', 'headings')


class NoPagesFoundError(RuntimeError):
    """Raised when the clean pass finds no HTML pages under the mirror root."""


@dataclass
class RunConfig:
    root: str
    site_host: str = ""
    archive_host: str = DEFAULT_ARCHIVE_HOST
    concurrency: int = 1
    audit: bool = False
    manifest_path: Optional[str] = None
    bundle_suffix: str = DEFAULT_BUNDLE_SUFFIX
    apply: bool = False
    sample_size: int = DEFAULT_SAMPLE_SIZE


@dataclass
class CleanReport:
    scanned: int = 0
    modified: int = 0
    links_rewritten: int = 0
    mapping_size: int = 0
    failed: int = 0


class WaymendController:
    def __init__(self, config: RunConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.files = FileManager(config.root)
        self.cleaner = HTMLCleaner()
        self.mapper = ProvenanceMapper(config.site_host)
        self.rewriter = LinkRewriter(config.site_host, config.archive_host)
        self.error_tracker = ErrorTracker(self.logger)
        self.manifest = Manifest(config.manifest_path) if config.manifest_path else None
        self._manifest_lock = threading.Lock()

    def _record(self, rec: ManifestRecord) -> None:
        if self.manifest is None:
            return
        with self._manifest_lock:
            self.manifest.append(rec)

    def transform_page(self, html: str, page: str, mapping: PathMapping) -> Tuple[str, int]:
        """
        Sanitize then rewrite one page's text.

        Args:
            html: Page text as read from disk
            page: Page path relative to the mirror root (posix form)
            mapping: Finished provenance mapping

        Returns:
            Tuple of (transformed text, links rewritten)
        """
        cleaned = self.cleaner.clean_html(html)
        return self.rewriter.rewrite_with_stats(cleaned, page, mapping)

    def _audit(self, original: str, updated: str, rel: str) -> None:
        result = self.cleaner.validate_cleaned_content(original, updated)
        dropped = [name for name in AUDITED_ELEMENTS if result['preservation_ratios'].get(name, 1.0) < 1.0]
        if not dropped:
            return
        counts = result['element_counts']
        detail = ", ".join(f"{name} {counts['original'][name]} -> {counts['cleaned'][name]}" for name in dropped)
        self.error_tracker.log_warning(f"Content lost while cleaning: {detail}", context="audit", path=rel)
        self._record(ManifestRecord(pass_name='clean', path=rel, status='audit_warning', detail=detail))

    def process_page(self, page: str, mapping: PathMapping) -> Tuple[bool, int]:
        """Transform one page on disk; returns (modified, links rewritten)."""
        rel = self.files.relative_path(page)
        original = self.files.read_text(page)
        updated, rewritten = self.transform_page(original, rel, mapping)

        if self.config.audit and updated != original:
            self._audit(original, updated, rel)

        changed = self.files.write_if_changed(page, original, updated)
        self._record(ManifestRecord(pass_name='clean', path=rel, status='rewritten' if changed else 'unchanged',
                                    links_rewritten=rewritten))
        return changed, rewritten

    def _process_or_record(self, page: str, mapping: PathMapping) -> Tuple[bool, int, bool]:
        try:
            changed, rewritten = self.process_page(page, mapping)
        except OSError as e:
            rel = self.files.relative_path(page)
            self.error_tracker.log_error(e, context="clean", path=rel)
            self._record(ManifestRecord(pass_name='clean', path=rel, status='failed', detail=str(e)))
            return False, 0, True
        return changed, rewritten, False

    def run_clean(self) -> CleanReport:
        """
        Build the mapping from all pages, then sanitize and rewrite each page.

        Raises:
            NoPagesFoundError: If the mirror contains no HTML pages
        """
        pages = self.files.html_files()
        if not pages:
            raise NoPagesFoundError(f"No HTML files found under {self.files.root}")

        # The mapping must be complete before any page is rewritten
        mapping = self.mapper.build_mapping(self.files, pages)
        if len(mapping) == 0:
            self.logger.warning("No mapping could be built from saved-from comments.")

        report = CleanReport(scanned=len(pages), mapping_size=len(mapping))

        if self.config.concurrency and self.config.concurrency > 1:
            with ThreadPoolExecutor(max_workers=self.config.concurrency) as ex:
                results: List[Tuple[bool, int, bool]] = list(
                    ex.map(lambda p: self._process_or_record(p, mapping), pages))
        else:
            results = [self._process_or_record(page, mapping) for page in pages]

        for changed, rewritten, failed in results:
            report.modified += int(changed)
            report.links_rewritten += rewritten
            report.failed += int(failed)

        self.logger.info(f"Processed {report.scanned} HTML files. Modified {report.modified}.")
        if report.failed:
            self.logger.warning(f"{report.failed} pages could not be processed.")
        self.logger.debug(f"Rewrote {report.links_rewritten} links using {report.mapping_size} mapped paths")
        return report

    def run_prune(self) -> PruneReport:
        pruner = AssetPruner(self.config.bundle_suffix, self.config.sample_size, self.error_tracker)
        report = pruner.run(self.files, apply=self.config.apply)

        for path in report.deleted:
            self._record(ManifestRecord(pass_name='prune', path=self.files.relative_path(path), status='deleted'))
        for path, reason in report.failed:
            self._record(ManifestRecord(pass_name='prune', path=self.files.relative_path(path),
                                        status='delete_failed', detail=reason))
        if not report.applied:
            for path in report.candidates:
                self._record(ManifestRecord(pass_name='prune', path=self.files.relative_path(path),
                                            status='candidate'))
        return report

    def run_verify(self) -> List[BrokenLink]:
        broken = LinkVerifier().find_broken_links(self.files)
        for link in broken:
            self._record(ManifestRecord(pass_name='verify', path=self.files.relative_path(link.page),
                                        status='broken', detail=link.reference))
        return broken
