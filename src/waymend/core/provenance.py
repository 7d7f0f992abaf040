"""
Provenance Mapping Module

Pages saved from a browser carry a ``<!-- saved from url=(N) URL -->`` comment
recording where they came from. This module reads those comments and builds
the lookup table from original site paths to mirrored files that the link
rewriter uses.
"""

from __future__ import annotations

import re
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional, Tuple
from urllib.parse import urlsplit

from ..utils.file_manager import FileManager
from ..utils.paths import canonical_site_path, normalize_site_path


PROVENANCE_COMMENT_TEMPLATE = r'<!--\s*saved from url=\(\d+\).*?(https?://{host}/[^\^\s>]*?)\s*-->'


@dataclass(frozen=True)
class ProvenanceRecord:
    page: str           # Page path relative to the mirror root (posix form)
    original_url: str   # URL the page was saved from
    site_path: str      # Normalized mapping key


class PathMapping:
    """
    Read-only lookup from normalized original site path to mirrored file.

    Keys are lower-cased and carry no trailing slash except for the root.
    Values are paths relative to the mirror root in forward-slash form.
    """

    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self._entries: Dict[str, str] = dict(entries or {})

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[Tuple[str, str]]:
        return iter(self._entries.items())

    def __repr__(self) -> str:
        return f"PathMapping({len(self._entries)} entries)"


class ProvenanceMapper:
    """
    Extracts provenance records from pages and builds a PathMapping.
    """

    def __init__(self, site_host: str):
        """
        Args:
            site_host: Host name of the archived site, e.g. "help.example.app"
        """
        self.site_host = site_host
        self.logger = logging.getLogger(__name__)
        self.comment_pattern = re.compile(
            PROVENANCE_COMMENT_TEMPLATE.format(host=re.escape(site_host)),
            re.IGNORECASE,
        )

    def extract_original_url(self, html: str) -> Optional[str]:
        """Return the site URL recorded in the page's provenance comment, if any."""
        match = self.comment_pattern.search(html)
        return match.group(1) if match else None

    def extract_record(self, html: str, page: str) -> Optional[ProvenanceRecord]:
        """
        Build the provenance record for one page.

        Args:
            html: Page content before any sanitization
            page: Page path relative to the mirror root (posix form)

        Returns:
            ProvenanceRecord, or None when the page has no usable comment
        """
        original_url = self.extract_original_url(html)
        if original_url is None:
            return None
        try:
            path = urlsplit(original_url).path
        except ValueError as e:
            self.logger.debug(f"Unparseable provenance URL in {page}: {original_url} ({e})")
            return None
        site_path = normalize_site_path(canonical_site_path(path))
        return ProvenanceRecord(page=page, original_url=original_url, site_path=site_path)

    def iter_records(self, files: FileManager, pages: Iterable[str]) -> Iterator[ProvenanceRecord]:
        for page in pages:
            rel = files.relative_path(page)
            record = self.extract_record(files.read_text(page), rel)
            if record is None:
                self.logger.debug(f"No provenance comment: {rel}")
                continue
            yield record

    def build_mapping(self, files: FileManager, pages: Iterable[str]) -> PathMapping:
        """
        Build the mapping from every page's provenance comment.

        Args:
            files: File manager for the mirror root
            pages: Absolute paths of the pages to scan

        Returns:
            PathMapping; later pages win when two share a site path
        """
        entries: Dict[str, str] = {}
        for record in self.iter_records(files, pages):
            previous = entries.get(record.site_path)
            if previous is not None and previous != record.page:
                self.logger.debug(f"{record.site_path} remapped from {previous} to {record.page}")
            entries[record.site_path] = record.page

        self.logger.info(f"Built mapping with {len(entries)} site paths")
        return PathMapping(entries)
