"""Durable digest baseline for one upstream ``repository:tag``.

The record is the single source of truth for which upstream content the
hardened image is built from.  It is always replaced wholesale: callers build
a complete new record in memory and hand it to the store.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from hardenforge.core.hasher import is_content_digest

# Immutable architecture allow-list.  Anything else upstream is never stored.
SUPPORTED_ARCHITECTURES: frozenset[str] = frozenset({"amd64", "arm64"})

_ARCH_ALIASES: dict[str, str] = {
    "x86_64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64v8": "arm64",
}


def normalize_architecture(arch: str) -> str:
    """Map machine / platform names onto container-engine architecture names."""
    value = arch.strip().lower()
    return _ARCH_ALIASES.get(value, value)


def is_supported_architecture(arch: str) -> bool:
    return normalize_architecture(arch) in SUPPORTED_ARCHITECTURES


def split_reference(reference: str) -> tuple[str, str]:
    """Split ``repo[:tag][@digest]`` into (repository, tag-or-digest)."""
    if "@" in reference:
        repo, digest = reference.split("@", 1)
        return repo, digest
    slash = reference.rfind("/")
    colon = reference.rfind(":")
    if colon > slash:
        return reference[:colon], reference[colon + 1:]
    return reference, ""


class BaselineRecord(BaseModel):
    """Per-architecture upstream digests plus the manifest-list digest.

    Serialized field names are stable (``manifest_list`` on disk);
    unknown fields in stored files are ignored so newer writers stay
    readable.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    repository: str
    tag: str
    manifest_list_digest: str = Field(default="", alias="manifest_list")
    digests: dict[str, str] = Field(default_factory=dict)
    updated_at: datetime | None = None

    @field_validator("repository")
    @classmethod
    def _repository_has_no_suffix(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("repository must not be empty")
        repo, suffix = split_reference(value)
        if suffix:
            raise ValueError(
                f"repository must not carry a tag or digest: {value!r}"
            )
        return repo

    @field_validator("tag")
    @classmethod
    def _tag_not_empty(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("tag must not be empty")
        return value

    @field_validator("manifest_list_digest")
    @classmethod
    def _manifest_list_is_digest(cls, value: str) -> str:
        if value and not is_content_digest(value):
            raise ValueError(f"invalid manifest list digest: {value!r}")
        return value

    @field_validator("digests")
    @classmethod
    def _digests_allow_listed(cls, value: dict[str, str]) -> dict[str, str]:
        cleaned: dict[str, str] = {}
        for arch, digest in value.items():
            key = normalize_architecture(arch)
            if key not in SUPPORTED_ARCHITECTURES:
                raise ValueError(f"architecture {arch!r} is not in the allow-list")
            if not is_content_digest(digest):
                raise ValueError(f"invalid digest for {key}: {digest!r}")
            cleaned[key] = digest
        return cleaned

    @field_validator("updated_at")
    @classmethod
    def _utc_seconds(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(microsecond=0)

    @model_validator(mode="after")
    def _digests_need_manifest_list(self) -> BaselineRecord:
        if self.digests and not self.manifest_list_digest:
            raise ValueError(
                "a baseline with architecture digests needs a manifest list digest"
            )
        return self

    @field_serializer("updated_at")
    def _serialize_updated_at(self, value: datetime | None) -> str | None:
        if value is None:
            return None
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")

    @property
    def image_ref(self) -> str:
        """The tracked upstream reference, ``repository:tag``."""
        return f"{self.repository}:{self.tag}"

    def digest_for(self, arch: str) -> str | None:
        return self.digests.get(normalize_architecture(arch))

    def pinned_reference(self, arch: str) -> str | None:
        """``repository@digest`` for *arch*, or None without an entry."""
        digest = self.digest_for(arch)
        if digest is None:
            return None
        return f"{self.repository}@{digest}"

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2) + "\n"
