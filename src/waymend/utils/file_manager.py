"""
Mirror File Management Utilities

This module provides the filesystem side of every pass: walking the mirror
tree for pages and stylesheets, reading and writing page text, locating files
under asset-bundle directories, and deleting pruned files.
"""

import os
from pathlib import Path
from typing import Callable, List, Optional, Dict, Any
import logging

from .paths import to_posix


PAGE_EXTENSION = '.html'
STYLESHEET_EXTENSION = '.css'
TEXT_ENCODING = 'utf-8'
# Round-trips bytes that are not valid UTF-8 unchanged
TEXT_ERRORS = 'surrogateescape'


class FileManager:
    """
    Manages access to a mirrored site tree.

    All paths handed out are absolute. Pages are written back only when their
    content actually changed, so untouched files keep their timestamps.
    """

    def __init__(self, root: str):
        """
        Initialize the file manager.

        Args:
            root: Mirror root directory
        """
        self.root = os.path.abspath(root)
        self.logger = logging.getLogger(__name__)

    def exists(self) -> bool:
        return os.path.isdir(self.root)

    def walk(self, accept: Callable[[str], bool] = lambda path: True) -> List[str]:
        """
        Collect every file under the root accepted by a predicate.

        Args:
            accept: Predicate receiving the absolute file path

        Returns:
            Sorted list of absolute file paths
        """
        found = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames.sort()
            for name in sorted(filenames):
                path = os.path.join(dirpath, name)
                if accept(path):
                    found.append(path)
        return found

    def html_files(self) -> List[str]:
        return self.walk(lambda path: path.lower().endswith(PAGE_EXTENSION))

    def css_files(self) -> List[str]:
        return self.walk(lambda path: path.lower().endswith(STYLESHEET_EXTENSION))

    def asset_bundle_files(self, suffix: str = '_files') -> List[str]:
        """
        Find files that live under an asset-bundle directory.

        A file qualifies when any directory between the root and the file has
        a name ending in the suffix.
        """
        def in_bundle(path: str) -> bool:
            parents = Path(os.path.relpath(path, self.root)).parts[:-1]
            return any(part.endswith(suffix) for part in parents)

        return self.walk(in_bundle)

    def relative_path(self, path: str) -> str:
        """Return a path relative to the root in forward-slash form."""
        return to_posix(os.path.relpath(path, self.root))

    def read_text(self, path: str) -> str:
        with open(path, 'r', encoding=TEXT_ENCODING, errors=TEXT_ERRORS, newline='') as f:
            return f.read()

    def write_if_changed(self, path: str, original: str, updated: str) -> bool:
        """
        Write updated page content, but only when it differs from the original.

        Returns:
            True if the file was written
        """
        if updated == original:
            return False
        with open(path, 'w', encoding=TEXT_ENCODING, errors=TEXT_ERRORS, newline='') as f:
            f.write(updated)
        self.logger.debug(f"Wrote {self.relative_path(path)} ({len(updated)} chars)")
        return True

    def delete_file(self, path: str) -> Optional[OSError]:
        """
        Delete a single file.

        Returns:
            None on success, or the OSError that prevented deletion
        """
        try:
            os.remove(path)
        except OSError as e:
            return e
        self.logger.debug(f"Deleted {self.relative_path(path)}")
        return None

    def get_mirror_stats(self) -> Dict[str, Any]:
        """
        Get statistics about the mirror tree.

        Returns:
            Dictionary with page and stylesheet counts and sizes
        """
        pages = self.html_files()
        stylesheets = self.css_files()
        return {
            'root': self.root,
            'html_files': len(pages),
            'css_files': len(stylesheets),
            'total_html_size': sum(os.path.getsize(p) for p in pages),
            'total_css_size': sum(os.path.getsize(p) for p in stylesheets),
        }
