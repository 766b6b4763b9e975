"""
Filename extraction and storage key construction.

All functions here are pure so they can be tested without network access.

Key policy: every path segment of a storage key is accent-folded, stripped
of characters outside ``[\\w\\s\\-.]`` and percent-encoded. ASCII-safe names
pass through unchanged, so ``webhooks/IPDO/<id>_file.pdf`` stays as-is.
"""
import re
import unicodedata
from email.header import decode_header, make_header
from email.errors import HeaderParseError
from typing import Optional
from urllib.parse import quote, unquote

KEY_PREFIX = "webhooks"

# Upstream appends this to filenames published under contingency operation
CONTINGENCY_SUFFIX = "_2° nível de contingência"

_FILENAME_PATTERN = re.compile(r"""filename[^;=\n]*=((['"]).*?\2|[^;\n]*)""", re.IGNORECASE)
_DISALLOWED_KEY_CHARS = re.compile(r"[^\w\s\-.]")


def decode_mime_words(value: str) -> str:
    """
    Decode RFC 2047 encoded words (``=?utf-8?B?...?=``).

    Returns the input unchanged when it is not encoded or cannot be decoded.
    """
    if "=?" not in value:
        return value
    try:
        return str(make_header(decode_header(value)))
    except (HeaderParseError, LookupError, UnicodeDecodeError):
        return value


def filename_from_content_disposition(header: Optional[str]) -> Optional[str]:
    """Extract the filename from a Content-Disposition header value."""
    if not header:
        return None

    match = _FILENAME_PATTERN.search(header)
    if not match or not match.group(1):
        return None

    file_name = match.group(1).replace('"', "").replace("'", "").strip()
    if not file_name:
        return None

    if file_name.startswith("=?") and file_name.endswith("?="):
        file_name = decode_mime_words(file_name)

    return file_name


def clean_filename(file_name: str) -> str:
    """Remove the contingency-level suffix token from an upstream filename."""
    return file_name.replace(CONTINGENCY_SUFFIX, "")


def sanitize_key_segment(segment: str) -> str:
    """Fold accents, drop unsafe characters and percent-encode one key segment."""
    folded = unicodedata.normalize("NFKD", segment)
    folded = "".join(char for char in folded if not unicodedata.combining(char))
    cleaned = _DISALLOWED_KEY_CHARS.sub("", folded).strip()
    return quote(cleaned, safe="")


def build_storage_key(nome: str, webhook_id: str, file_name: str) -> str:
    """Build ``webhooks/<nome>/<webhook_id>_<file_name>`` under the key policy."""
    object_name = f"{webhook_id}_{clean_filename(file_name)}"
    return "/".join([
        KEY_PREFIX,
        sanitize_key_segment(nome),
        sanitize_key_segment(object_name),
    ])


def filename_from_key(key: str, webhook_id: str) -> str:
    """Recover the decoded file name that follows ``<webhook_id>_`` in a key."""
    object_name = unquote(key.rsplit("/", 1)[-1])
    marker = f"{webhook_id}_"
    if marker in object_name:
        return object_name[object_name.index(marker) + len(marker):]
    return object_name
