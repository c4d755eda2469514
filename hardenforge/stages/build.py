"""Build: construct the hardened image from the pinned build file."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from hardenforge.bridge.capabilities import ImageBuilder
from hardenforge.core.metadata_store import MetadataStore
from hardenforge.stages.base import BaseStage


class BuildStage(BaseStage):
    """Builds every configured platform, then loads the local variant.

    With ``local_only`` (set here or by the test variant through
    ``run_context``) only the local platform is built and loaded.  Nothing
    is ever pushed from this stage.
    """

    def __init__(
        self,
        *,
        builder: ImageBuilder,
        metadata_store: MetadataStore,
        rendered_path: Path,
        platforms: list[str],
        local_only: bool = False,
    ) -> None:
        self.builder = builder
        self.metadata_store = metadata_store
        self.rendered_path = Path(rendered_path)
        self.platforms = list(platforms)
        self.local_only = local_only

    @property
    def stage_id(self) -> str:
        return "build"

    @property
    def display_name(self) -> str:
        return "Build"

    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        metadata = self.metadata_store.load(run_context["run_id"])
        self.metadata_store.verify_rendered(metadata, self.rendered_path)

        local_only = run_context.get("local_only", self.local_only)
        build_args = {"BASE_IMAGE_DIGEST": metadata.base_digest}
        local_platform = f"linux/{metadata.architecture}"
        built: list[str] = []

        if not local_only:
            self.builder.build(
                self.rendered_path,
                metadata.target_tag,
                platforms=self.platforms,
                build_args=build_args,
            )
            built.extend(self.platforms)

        self.builder.build(
            self.rendered_path,
            metadata.target_tag,
            platforms=[local_platform],
            build_args=build_args,
            load=True,
        )
        if local_platform not in built:
            built.append(local_platform)

        return {
            "image": metadata.target_tag,
            "platforms": built,
            "loaded": local_platform,
            "local_only": local_only,
        }
