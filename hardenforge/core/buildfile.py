"""A small structured view of a Dockerfile.

The file is split into a preamble (parser directives, global ``ARG``s,
comments) and an ordered list of stages, each starting at a ``FROM`` line.
Pinning and stage insertion are structural edits on this document; bodies
are kept verbatim so rendering an unmodified document reproduces the input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

_FROM_RE = re.compile(
    r"^(?P<indent>\s*)FROM\s+"
    r"(?P<flags>(?:--\S+\s+)*)"
    r"(?P<base>\S+)"
    r"(?:\s+AS\s+(?P<alias>\S+))?\s*$",
    re.IGNORECASE,
)


@dataclass
class DockerfileStage:
    base: str
    alias: str = ""
    flags: str = ""
    body: list[str] = field(default_factory=list)
    # Lines emitted before the FROM line (inserted stages only).
    header: list[str] = field(default_factory=list)
    # Verbatim FROM line; dropped once the stage is edited.
    source_line: str | None = None

    def rebase(self, reference: str, *, default_alias: str = "") -> None:
        self.base = reference
        if not self.alias:
            self.alias = default_alias
        self.source_line = None

    def uses_stage(self, alias: str) -> bool:
        """Whether any body line copies or mounts from stage *alias*."""
        pattern = re.compile(rf"--from={re.escape(alias)}(?:\s|,|$)", re.IGNORECASE)
        return any(pattern.search(line) for line in self.body)

    def from_line(self) -> str:
        if self.source_line is not None:
            return self.source_line
        parts = ["FROM"]
        if self.flags:
            parts.append(self.flags.strip())
        parts.append(self.base)
        if self.alias:
            parts += ["AS", self.alias]
        return " ".join(parts)


@dataclass
class BuildFile:
    preamble: list[str] = field(default_factory=list)
    stages: list[DockerfileStage] = field(default_factory=list)
    trailing_newline: bool = True

    @classmethod
    def parse(cls, text: str) -> BuildFile:
        document = cls(trailing_newline=text.endswith("\n"))
        lines = text.splitlines()
        current: DockerfileStage | None = None
        for line in lines:
            match = _FROM_RE.match(line)
            if match:
                current = DockerfileStage(
                    base=match.group("base"),
                    alias=match.group("alias") or "",
                    flags=match.group("flags").strip(),
                    source_line=line,
                )
                document.stages.append(current)
            elif current is None:
                document.preamble.append(line)
            else:
                current.body.append(line)
        return document

    def render(self) -> str:
        lines = list(self.preamble)
        for stage in self.stages:
            lines.extend(stage.header)
            lines.append(stage.from_line())
            lines.extend(stage.body)
        text = "\n".join(lines)
        if self.trailing_newline:
            text += "\n"
        return text

    def stage_named(self, alias: str) -> DockerfileStage | None:
        for stage in self.stages:
            if stage.alias.lower() == alias.lower():
                return stage
        return None

    def first_user_of(self, alias: str) -> int | None:
        """Index of the first stage that references stage *alias*."""
        for index, stage in enumerate(self.stages):
            if stage.uses_stage(alias):
                return index
        return None

    def insert_stage(self, index: int, stage: DockerfileStage) -> None:
        self.stages.insert(index, stage)
