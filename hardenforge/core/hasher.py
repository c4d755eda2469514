"""Canonical hashing and digest-syntax helpers.

Used to fingerprint rendered build files so later stages can tell whether
the file they are about to consume is the one Prepare produced, and to
validate content-hash strings returned by the registry.
"""

from __future__ import annotations

import hashlib
import re

# OCI digest grammar: algorithm ":" encoded
DIGEST_PATTERN = re.compile(
    r"^[a-z0-9]+(?:[+._-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$"
)


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def text_digest(text: str) -> str:
    """Content-address a text document (UTF-8) as ``sha256:<hex>``."""
    return f"sha256:{sha256_hex(text.encode('utf-8'))}"


def is_content_digest(value: str) -> bool:
    """Whether *value* is a syntactically valid content digest."""
    return bool(value) and DIGEST_PATTERN.match(value) is not None
