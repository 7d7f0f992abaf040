"""
Path and URL Utilities

This module provides the path arithmetic shared by every pass: resolving a
reference found in a mirrored page to a local file, normalizing original site
paths for mapping lookups, and building relative hrefs between mirrored files.
"""

import os
import posixpath
import re
from typing import Optional
from urllib.parse import quote, unquote


EXTERNAL_URL_PATTERN = re.compile(r'^(https?:)?//', re.IGNORECASE)
NON_FILESYSTEM_SCHEME_PATTERN = re.compile(r'^(mailto:|tel:|javascript:|data:)', re.IGNORECASE)
ENCODED_SLASH_PATTERN = re.compile(r'%2F', re.IGNORECASE)
MALFORMED_ESCAPE_PATTERN = re.compile(r'%(?![0-9A-Fa-f]{2})')

# Characters encodeURIComponent-style encoding leaves alone, minus the quote
# characters that would break out of an attribute value.
HREF_SAFE_CHARS = "!*()"

# Printable ASCII a URL path keeps as-is; '%' stays so existing escapes survive
URL_PATH_SAFE_CHARS = "/%!$&'()*+,;=:@[]\\^|"


def decode_component(text: str) -> Optional[str]:
    """
    Percent-decode a single URL component once.

    Args:
        text: Component text, possibly containing %XX escapes

    Returns:
        Decoded text, or None if the escapes are malformed or not valid UTF-8
    """
    if MALFORMED_ESCAPE_PATTERN.search(text):
        return None
    try:
        return unquote(text, errors='strict')
    except UnicodeDecodeError:
        return None


def _decode_segment(segment: str) -> str:
    # %2F must come out as the literal text "%2F", never as a separator
    preserved = ENCODED_SLASH_PATTERN.sub('%252F', segment)
    decoded = decode_component(preserved)
    return segment if decoded is None else decoded


def resolve_reference(from_document: str, reference: str, root: Optional[str] = None) -> str:
    """
    Resolve a reference found in a mirrored document to an absolute local path.

    Args:
        from_document: Path of the document containing the reference
        reference: Raw href/src/url() value
        root: Mirror root; root-relative references resolve against it when given

    Returns:
        Absolute, normalized local path of the referenced file
    """
    clean = reference.split('#', 1)[0]
    relative = os.sep.join(_decode_segment(segment) for segment in clean.split('/'))

    if root is not None and clean.startswith('/'):
        base_dir = root
    else:
        base_dir = os.path.dirname(from_document)

    # Concatenate rather than let a leading separator discard the base
    joined = os.path.join(base_dir, relative.lstrip(os.sep))
    return os.path.abspath(os.path.normpath(joined))


def is_local_reference(url: str) -> bool:
    """Return True unless the URL is a network URL or a non-filesystem scheme."""
    return not EXTERNAL_URL_PATTERN.match(url) and not NON_FILESYSTEM_SCHEME_PATTERN.match(url)


def canonical_site_path(path: str) -> str:
    """
    Put an absolute site path into the form a browser resolves it to.

    "." and ".." segments are removed, a trailing slash is kept, and
    characters a URL path cannot carry literally (spaces, non-ASCII) are
    percent-encoded as UTF-8. Existing escapes are left alone.

    Args:
        path: Path component of a site URL

    Returns:
        Canonical path, always starting with "/"
    """
    if not path:
        return '/'
    trailing = path.endswith(('/', '/.', '/..'))
    # normpath keeps a leading "//" and leaves relative input relative
    canonical = '/' + posixpath.normpath(path).lstrip('/')
    if trailing and not canonical.endswith('/'):
        canonical += '/'
    return quote(canonical, safe=URL_PATH_SAFE_CHARS, errors='surrogateescape')


def normalize_site_path(path: str) -> str:
    """
    Normalize an original site path into a mapping key.

    Empty paths become "/", a single trailing slash is removed (except for the
    root itself) and the result is lower-cased.
    """
    key = path or '/'
    if len(key) > 1 and key.endswith('/'):
        key = key[:-1]
    return key.lower()


def to_posix(path: str) -> str:
    """Convert a platform path to forward-slash form."""
    return path.replace(os.sep, '/')


def encode_path_for_href(path: str) -> str:
    """Percent-encode each segment of a posix path, keeping the slashes."""
    return '/'.join(quote(segment, safe=HREF_SAFE_CHARS) for segment in path.split('/'))


def relative_href(from_document: str, target: str) -> str:
    """
    Compute an encoded href from one mirrored file to another.

    Args:
        from_document: Referring page, relative to the mirror root (posix form)
        target: Referenced file, relative to the mirror root (posix form)

    Returns:
        Relative, percent-encoded href
    """
    from_dir = posixpath.dirname(from_document) or '.'
    rel = posixpath.relpath(target, from_dir)
    return encode_path_for_href(rel)
