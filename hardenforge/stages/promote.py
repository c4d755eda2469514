"""Promote: publish the verified image for every configured platform."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from hardenforge.bridge.capabilities import ImageBuilder
from hardenforge.core.metadata_store import MetadataStore
from hardenforge.stages.base import BaseStage

logger = logging.getLogger(__name__)


class PromoteStage(BaseStage):
    def __init__(
        self,
        *,
        builder: ImageBuilder,
        metadata_store: MetadataStore,
        rendered_path: Path,
        platforms: list[str],
    ) -> None:
        self.builder = builder
        self.metadata_store = metadata_store
        self.rendered_path = Path(rendered_path)
        self.platforms = list(platforms)

    @property
    def stage_id(self) -> str:
        return "promote"

    @property
    def display_name(self) -> str:
        return "Promote"

    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        metadata = self.metadata_store.load(run_context["run_id"])
        self.metadata_store.verify_rendered(metadata, self.rendered_path)

        self.builder.build(
            self.rendered_path,
            metadata.target_tag,
            platforms=self.platforms,
            build_args={"BASE_IMAGE_DIGEST": metadata.base_digest},
            push=True,
        )
        logger.info("Image promoted: %s", metadata.target_tag)
        return {"pushed": metadata.target_tag, "platforms": list(self.platforms)}
