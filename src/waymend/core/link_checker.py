"""
Local link verification.

Checks that every relative link from a mirrored page to another page points
at a file that exists.
"""

from __future__ import annotations

import os
import re
import logging
from dataclasses import dataclass
from typing import List, Optional

from .references import extract_attribute_urls
from ..utils.file_manager import FileManager
from ..utils.paths import is_local_reference, resolve_reference


PAGE_TARGET_PATTERN = re.compile(r'\.html$', re.IGNORECASE)


@dataclass(frozen=True)
class BrokenLink:
    page: str        # Absolute path of the referring page
    reference: str   # Link exactly as written
    resolved: str    # Absolute path the link resolves to


def checked_target(url: str) -> Optional[str]:
    """
    Return the part of a link to verify, or None when the link is not checked.

    Only local links to pages are verified; fragment and query are dropped.
    """
    if not is_local_reference(url) or url.startswith('#'):
        return None
    clean = url.split('#', 1)[0].split('?', 1)[0]
    if not clean or not PAGE_TARGET_PATTERN.search(clean):
        return None
    return clean


class LinkVerifier:
    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def check_page(self, files: FileManager, page: str) -> List[BrokenLink]:
        broken = []
        for url in extract_attribute_urls(files.read_text(page)):
            target = checked_target(url)
            if target is None:
                continue
            resolved = resolve_reference(page, target, root=files.root)
            if not os.path.exists(resolved):
                broken.append(BrokenLink(page=page, reference=url, resolved=resolved))
        return broken

    def find_broken_links(self, files: FileManager) -> List[BrokenLink]:
        """
        Verify local page links across the mirror.

        Returns:
            One BrokenLink per failing link occurrence, in page order
        """
        broken: List[BrokenLink] = []
        for page in files.html_files():
            broken.extend(self.check_page(files, page))

        if broken:
            self.logger.warning(f"Broken local links found: {len(broken)}")
            for link in broken:
                self.logger.warning(
                    f" - {files.relative_path(link.page)} -> {link.reference} "
                    f"(resolved: {files.relative_path(link.resolved)})"
                )
        else:
            self.logger.info("No broken local links detected.")
        return broken
