"""
HTML Content Cleaning Module

This module removes the markup the Wayback Machine injects into archived
pages (loader scripts, toolbar, playback assets, provenance comment) while
leaving the original page content byte-for-byte intact.

Cleaning works on the page text with targeted patterns rather than by
re-serializing a parsed document, so anything that is not archive markup
survives exactly as it was mirrored.
"""

import re
import logging
from typing import Dict

from bs4 import BeautifulSoup


HEAD_INJECTION_PATTERN = re.compile(
    r'<script[^>]+athena\.js[^>]*>[\s\S]*?<!--\s*End Wayback Rewrite JS Include\s*-->\s*',
    re.IGNORECASE,
)

INJECTED_ASSET_PATTERNS = [
    re.compile(r'<link[^>]+banner-styles\.css[^>]*>\s*', re.IGNORECASE),
    re.compile(r'<link[^>]+iconochive\.css[^>]*>\s*', re.IGNORECASE),
    re.compile(r'<script[^>]+bundle-playback\.js[^>]*></script>\s*', re.IGNORECASE),
    re.compile(r'<script[^>]+wombat\.js[^>]*></script>\s*', re.IGNORECASE),
    re.compile(r'<script[^>]+ruffle\.js[^>]*></script>\s*', re.IGNORECASE),
    re.compile(r'<script[^>]+athena\.js[^>]*></script>\s*', re.IGNORECASE),
]

# A single <script> block whose body touches the __wm runtime
RUNTIME_SCRIPT_PATTERN = re.compile(
    r'<script\b[^>]*>(?:(?!</script>)[\s\S])*?__wm\.(?:(?!</script>)[\s\S])*</script>\s*',
    re.IGNORECASE,
)

PROVENANCE_COMMENT_PATTERN = re.compile(r'<!--\s*saved from url=\(\d+\).*?-->\s*', re.IGNORECASE)

HTML_STYLE_PATTERN = re.compile(
    r'(<html\b[^>]*?\sstyle=)(["\'])((?:(?!\2).)*?--wm-toolbar-height:(?:(?!\2).)*)\2',
    re.IGNORECASE | re.DOTALL,
)
TOOLBAR_HEIGHT_DECLARATION_PATTERN = re.compile(r'--wm-toolbar-height:[^;]*;?\s*', re.IGNORECASE)

TOOLBAR_COMMENT_BLOCK_PATTERN = re.compile(
    r'<!--\s*BEGIN WAYBACK TOOLBAR INSERT\s*-->[\s\S]*?<!--\s*END WAYBACK TOOLBAR INSERT\s*-->\s*',
    re.IGNORECASE,
)
TOOLBAR_BASE_MARKER = 'id="wm-ipp-base"'
TOOLBAR_PRINT_MARKER = 'id="wm-ipp-print"'


class HTMLCleaner:
    """
    Cleans archived HTML by removing Wayback Machine injections.

    Each removal is a separate method and each is a no-op when its target is
    absent, so pages saved without some of the injections clean just as well.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def clean_html(self, html_content: str) -> str:
        """
        Remove every known archive injection from a page.

        Args:
            html_content: Page text as mirrored

        Returns:
            Page text without archive markup
        """
        html = html_content
        html = self.remove_head_injection(html)
        html = self.remove_injected_assets(html)
        html = self.remove_runtime_scripts(html)
        html = self.remove_provenance_comment(html)
        html = self.remove_toolbar_height_style(html)
        html = self.remove_toolbar(html)

        if html != html_content:
            self.logger.debug(f"Removed {len(html_content) - len(html)} chars of archive markup")
        return html

    def remove_head_injection(self, html: str) -> str:
        """Remove the loader block from athena.js through the end-of-include comment."""
        return HEAD_INJECTION_PATTERN.sub('', html)

    def remove_injected_assets(self, html: str) -> str:
        """Remove toolbar stylesheets and playback scripts wherever they appear."""
        for pattern in INJECTED_ASSET_PATTERNS:
            html = pattern.sub('', html)
        return html

    def remove_runtime_scripts(self, html: str) -> str:
        """Remove inline scripts that initialize or call the archive runtime."""
        return RUNTIME_SCRIPT_PATTERN.sub('', html)

    def remove_provenance_comment(self, html: str) -> str:
        """Remove the "saved from url" comment."""
        return PROVENANCE_COMMENT_PATTERN.sub('', html)

    def remove_toolbar_height_style(self, html: str) -> str:
        """
        Remove the toolbar height variable from the <html> element's style.

        Other declarations in the attribute are kept; the attribute itself is
        dropped only when nothing else is left in it.
        """
        def repl(match):
            prefix, quote, style = match.groups()
            remaining = TOOLBAR_HEIGHT_DECLARATION_PATTERN.sub('', style).strip()
            if not remaining:
                # Drop the attribute together with its leading whitespace
                return re.sub(r'\s+style=$', '', prefix, flags=re.IGNORECASE)
            return f"{prefix}{quote}{remaining}{quote}"

        return HTML_STYLE_PATTERN.sub(repl, html)

    def remove_toolbar(self, html: str) -> str:
        """
        Remove the archive toolbar.

        The comment-delimited insert is preferred. A toolbar container left
        outside any such insert is located by its base id and cut through the
        first closing </div> after the print marker. Divs nested after the
        print marker are not balanced, so such markup is cut short rather than
        over-consumed.
        """
        html = TOOLBAR_COMMENT_BLOCK_PATTERN.sub('', html)
        while True:
            cleaned = self._remove_toolbar_container(html)
            if cleaned == html:
                return html
            html = cleaned

    def _remove_toolbar_container(self, html: str) -> str:
        base_idx = html.find(TOOLBAR_BASE_MARKER)
        if base_idx == -1:
            return html
        open_tag_start = html.rfind('<div', 0, base_idx)
        if open_tag_start == -1:
            return html
        print_idx = html.find(TOOLBAR_PRINT_MARKER, base_idx)
        if print_idx == -1:
            return html
        close_idx = html.find('</div>', print_idx)
        if close_idx == -1:
            return html
        end = close_idx + len('</div>')
        self.logger.debug(f"Removed toolbar container ({end - open_tag_start} chars)")
        return html[:open_tag_start] + html[end:]

    def validate_cleaned_content(self, original_html: str, cleaned_html: str) -> Dict:
        """
        Check that cleaning preserved the page's own content.

        Args:
            original_html: Page before cleaning
            cleaned_html: Page after cleaning

        Returns:
            Dictionary with sizes, element counts and preservation ratios
        """
        original_counts = self._count_elements(BeautifulSoup(original_html, 'lxml'))
        cleaned_counts = self._count_elements(BeautifulSoup(cleaned_html, 'lxml'))

        preservation_ratios = {}
        for element_type, original_count in original_counts.items():
            if original_count > 0:
                preservation_ratios[element_type] = cleaned_counts.get(element_type, 0) / original_count
            else:
                preservation_ratios[element_type] = 1.0

        return {
            'original_size': len(original_html),
            'cleaned_size': len(cleaned_html),
            'size_reduction': 1 - (len(cleaned_html) / len(original_html)) if original_html else 0.0,
            'element_counts': {
                'original': original_counts,
                'cleaned': cleaned_counts
            },
            'preservation_ratios': preservation_ratios
        }

    def _count_elements(self, soup: BeautifulSoup) -> Dict[str, int]:
        """Count important HTML elements in the soup."""
        return {
            'paragraphs': len(soup.find_all('p')),
            'headings': len(soup.find_all(['h1', 'h2', 'h3', 'h4', 'h5', 'h6'])),
            'images': len(soup.find_all('img')),
            'links': len(soup.find_all('a')),
            'divs': len(soup.find_all('div')),
            'scripts': len(soup.find_all('script')),
            'styles': len(soup.find_all('style'))
        }
