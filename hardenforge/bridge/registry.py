"""Digest source backed by ``docker buildx imagetools inspect``.

Resolves the manifest-list (image index) digest of ``repository:tag`` and
enumerates every platform entry of that index.  Pure query, no state.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from hardenforge.bridge.commands import CommandRunner, run_command
from hardenforge.core.errors import (
    CommandFailedError,
    HardenForgeError,
    NetworkUnreachableError,
    NotFoundError,
    ParseError,
)
from hardenforge.core.hasher import is_content_digest
from hardenforge.models.manifest import ManifestInspection, PlatformDigest

logger = logging.getLogger(__name__)

_NOT_FOUND_PATTERNS = re.compile(
    r"not found|manifest unknown|no such manifest|name unknown|repository does not exist",
    re.IGNORECASE,
)
_NETWORK_PATTERNS = re.compile(
    r"dial tcp|no such host|connection refused|network is unreachable|"
    r"i/o timeout|tls handshake timeout|temporary failure in name resolution|"
    r"could not resolve host",
    re.IGNORECASE,
)


def classify_registry_failure(image_ref: str, output: str, returncode: int) -> HardenForgeError:
    """Map a failed registry query onto the error taxonomy."""
    # Network failures first: their messages often also contain "not found".
    if _NETWORK_PATTERNS.search(output):
        return NetworkUnreachableError(f"registry unreachable while resolving {image_ref}: {output}")
    if _NOT_FOUND_PATTERNS.search(output):
        return NotFoundError(f"{image_ref} does not resolve: {output}")
    return CommandFailedError(
        f"inspecting {image_ref} failed (exit {returncode}): {output or 'no output'}",
        returncode=returncode,
        output=output,
    )


def parse_manifest_index(image_ref: str, payload: str) -> ManifestInspection:
    """Parse the JSON image index printed for *image_ref*.

    Raises ``ParseError`` for anything that is not a multi-architecture index
    with a valid top-level digest and well-formed platform entries.
    """
    try:
        data: Any = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ParseError(f"manifest for {image_ref} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ParseError(f"manifest for {image_ref} is not a JSON object")

    list_digest = data.get("digest", "")
    if not isinstance(list_digest, str) or not is_content_digest(list_digest):
        raise ParseError(f"manifest for {image_ref} has no valid digest: {list_digest!r}")

    entries = data.get("manifests")
    if not isinstance(entries, list):
        raise ParseError(f"{image_ref} is not a multi-architecture image index")

    platforms: list[PlatformDigest] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ParseError(f"manifest entry {index} for {image_ref} is not an object")
        digest = entry.get("digest", "")
        platform = entry.get("platform") or {}
        if not isinstance(digest, str) or not is_content_digest(digest):
            raise ParseError(f"manifest entry {index} for {image_ref} has an invalid digest")
        if not isinstance(platform, dict):
            raise ParseError(f"manifest entry {index} for {image_ref} has a malformed platform")
        platforms.append(
            PlatformDigest(
                architecture=str(platform.get("architecture", "")).strip().lower(),
                os=str(platform.get("os", "")).strip().lower(),
                variant=str(platform.get("variant", "")).strip(),
                digest=digest,
            )
        )

    return ManifestInspection(
        reference=image_ref,
        manifest_list_digest=list_digest,
        platforms=platforms,
    )


class DockerDigestSource:
    """``DigestSource`` that queries the registry through docker buildx."""

    def __init__(self, runner: CommandRunner = run_command, *, timeout: float | None = None) -> None:
        self._run = runner
        self._timeout = timeout

    def inspect(self, image_ref: str) -> ManifestInspection:
        result = self._run(
            [
                "docker", "buildx", "imagetools", "inspect", image_ref,
                "--format", "{{json .Manifest}}",
            ],
            timeout=self._timeout,
        )
        if not result.ok:
            raise classify_registry_failure(image_ref, result.output, result.returncode)

        inspection = parse_manifest_index(image_ref, result.stdout)
        logger.debug(
            "%s -> %s (%d platforms)",
            image_ref,
            inspection.manifest_list_digest,
            len(inspection.platforms),
        )
        return inspection
