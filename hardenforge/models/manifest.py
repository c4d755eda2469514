"""Registry manifest inspection results."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from hardenforge.models.baseline import normalize_architecture


class PlatformDigest(BaseModel):
    """One platform entry of a multi-architecture image index."""

    model_config = ConfigDict(frozen=True)

    architecture: str
    os: str = ""
    variant: str = ""
    digest: str


class ManifestInspection(BaseModel):
    """Manifest-list digest and every platform entry for a reference."""

    model_config = ConfigDict(frozen=True)

    reference: str
    manifest_list_digest: str
    platforms: list[PlatformDigest] = []

    @property
    def architectures(self) -> list[str]:
        return [p.architecture for p in self.platforms]

    def digest_for(self, arch: str) -> str | None:
        """Digest for *arch*, preferring a linux entry when several match."""
        wanted = normalize_architecture(arch)
        matches = [
            p for p in self.platforms
            if normalize_architecture(p.architecture) == wanted
        ]
        if not matches:
            return None
        for entry in matches:
            if entry.os.lower() == "linux":
                return entry.digest
        return matches[0].digest
