"""
Link Rewriting Module

Turns links that point at the archived site (directly, or through a Wayback
replay URL) into relative links between mirrored files, using the mapping
built from provenance comments. Links the mapping cannot place are left as
they are, apart from having leftover replay prefixes stripped.
"""

from __future__ import annotations

import re
import logging
from typing import Optional, Tuple
from urllib.parse import urlsplit

from .provenance import PathMapping
from ..utils.paths import canonical_site_path, decode_component, normalize_site_path, relative_href


DEFAULT_ARCHIVE_HOST = "web.archive.org"


class LinkRewriter:
    """
    Rewrites href/src attribute values of mirrored pages.

    A rewriter is bound to one archived site and one archive host; the
    mapping is passed per call so one rewriter serves a whole run.
    """

    def __init__(self, site_host: str, archive_host: str = DEFAULT_ARCHIVE_HOST):
        self.site_host = site_host
        self.archive_host = archive_host
        self.logger = logging.getLogger(__name__)

        site = re.escape(site_host)
        archive = re.escape(archive_host)
        self.site_link_pattern = re.compile(
            rf'(href|src)=("|\')(?:(?:https?://{archive}/web/\d+(?:im_)?/)?https?://{site})?(/[^"\'>]*)\2',
            re.IGNORECASE,
        )
        self.replay_link_pattern = re.compile(
            rf'(href|src)=("|\')https?://{archive}/web/\d+/(https?://[^"\'>]+)\2',
            re.IGNORECASE,
        )
        self.asset_replay_pattern = re.compile(
            rf'https?://{archive}/web/\d+im_/(https?://[^"\')\s>]+)',
            re.IGNORECASE,
        )

    def rewrite(self, html: str, from_document: str, mapping: PathMapping) -> str:
        """
        Rewrite every site link in a page.

        Args:
            html: Page text
            from_document: Page path relative to the mirror root (posix form)
            mapping: Site path to mirrored file lookup

        Returns:
            Rewritten page text
        """
        return self.rewrite_with_stats(html, from_document, mapping)[0]

    def rewrite_with_stats(self, html: str, from_document: str, mapping: PathMapping) -> Tuple[str, int]:
        """Rewrite a page and also report how many links were mapped to local files."""
        rewritten = 0

        def repl(match):
            nonlocal rewritten
            attr, quote, path_part = match.groups()
            href = self.local_href_for(path_part, from_document, mapping)
            if href is None:
                return match.group(0)
            rewritten += 1
            return f"{attr}={quote}{href}{quote}"

        html = self.site_link_pattern.sub(repl, html)
        html = self.strip_replay_prefixes(html)
        html = self.strip_asset_replay_prefixes(html)

        if rewritten:
            self.logger.debug(f"Rewrote {rewritten} links in {from_document}")
        return html, rewritten

    def lookup(self, path_part: str, mapping: PathMapping) -> Optional[str]:
        """
        Find the mirrored file for an absolute site path.

        Args:
            path_part: Absolute path as written in the link, possibly with
                query or fragment
            mapping: Site path to mirrored file lookup

        Returns:
            Mirror-relative file path, or None when the path is not mapped
        """
        if path_part.startswith('#'):
            return None
        try:
            path = urlsplit(f"https://{self.site_host}{path_part}").path
        except ValueError:
            path = path_part
        key = normalize_site_path(canonical_site_path(path))

        target = mapping.get(key)
        if target is not None:
            return target

        decoded = decode_component(key)
        if decoded is None:
            return None
        return mapping.get(decoded.lower())

    def local_href_for(self, path_part: str, from_document: str, mapping: PathMapping) -> Optional[str]:
        """Return the relative href replacing a site path, or None to leave it."""
        target = self.lookup(path_part, mapping)
        if target is None:
            return None
        href = relative_href(from_document, target)
        fragment = path_part.partition('#')[2]
        if fragment:
            href = f"{href}#{fragment}"
        return href

    def strip_replay_prefixes(self, html: str) -> str:
        """Reduce attribute values that replay an external URL to the bare URL."""
        return self.replay_link_pattern.sub(lambda m: f"{m.group(1)}={m.group(2)}{m.group(3)}{m.group(2)}", html)

    def strip_asset_replay_prefixes(self, html: str) -> str:
        """Strip image/asset replay prefixes anywhere in the text, CSS included."""
        return self.asset_replay_pattern.sub(lambda m: m.group(1), html)
