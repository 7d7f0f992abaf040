"""
Reference collection for mirrored pages and stylesheets.

Discovers every href/src value in pages and every url(...) value in
stylesheets, and resolves the local ones to absolute file paths.
"""

from __future__ import annotations

import re
import logging
from dataclasses import dataclass
from typing import Iterator, List, Set

from ..utils.file_manager import FileManager
from ..utils.paths import is_local_reference, resolve_reference


ATTRIBUTE_PATTERN = re.compile(r'(href|src)=("|\')([^"\']+)\2', re.IGNORECASE)
CSS_URL_PATTERN = re.compile(r'url\(([^)]+)\)', re.IGNORECASE)


@dataclass(frozen=True)
class Reference:
    source: str   # Absolute path of the document containing the reference
    target: str   # Reference exactly as written


def extract_attribute_urls(html: str) -> List[str]:
    return [m.group(3) for m in ATTRIBUTE_PATTERN.finditer(html)]


def extract_css_urls(css_text: str) -> List[str]:
    urls = []
    for match in CSS_URL_PATTERN.finditer(css_text):
        raw = match.group(1).strip()
        raw = re.sub(r'^[\'"]|[\'"]$', '', raw)
        urls.append(raw)
    return urls


class ReferenceCollector:
    """
    Collects the set of local files the mirror actually references.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def iter_references(self, files: FileManager) -> Iterator[Reference]:
        for page in files.html_files():
            for url in extract_attribute_urls(files.read_text(page)):
                yield Reference(source=page, target=url)
        for stylesheet in files.css_files():
            for url in extract_css_urls(files.read_text(stylesheet)):
                yield Reference(source=stylesheet, target=url)

    def collect(self, files: FileManager) -> Set[str]:
        """
        Resolve every local reference in the mirror.

        Args:
            files: File manager for the mirror root

        Returns:
            Set of absolute paths that some page or stylesheet references
        """
        referenced: Set[str] = set()
        external = 0
        for ref in self.iter_references(files):
            if not is_local_reference(ref.target):
                external += 1
                continue
            # "site.css?v=2" names the file site.css
            target = ref.target.split('?', 1)[0]
            referenced.add(resolve_reference(ref.source, target, root=files.root))

        self.logger.debug(f"Collected {len(referenced)} local references ({external} external skipped)")
        return referenced


def collect_references(root: str) -> Set[str]:
    """
    Convenience wrapper used by the pruning pass and tests.
    Returns the absolute paths referenced anywhere under root.
    """
    return ReferenceCollector().collect(FileManager(root))
