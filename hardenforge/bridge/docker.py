"""Docker-backed build, inspection, smoke-test and version-probe capabilities."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from hardenforge.bridge.commands import CommandRunner, run_command
from hardenforge.core.errors import CommandFailedError, ParseError, PolicyViolationError

logger = logging.getLogger(__name__)


def parse_version_output(output: str) -> str:
    """Return the version from a ``Version: X.Y.Z ...`` line."""
    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith("Version:"):
            fields = stripped.split()
            if len(fields) >= 2:
                return fields[1].strip()
    raise ParseError(f"version not found in output: {output.strip()!r}")


class BuildxImageBuilder:
    """``ImageBuilder`` using ``docker buildx build``."""

    def __init__(self, context: Path = Path("."), runner: CommandRunner = run_command) -> None:
        self._context = Path(context)
        self._run = runner

    def build(
        self,
        dockerfile: Path,
        tag: str,
        *,
        platforms: Sequence[str],
        build_args: dict[str, str] | None = None,
        load: bool = False,
        push: bool = False,
    ) -> None:
        if load and push:
            raise ValueError("a build either loads locally or pushes, not both")
        if load and len(platforms) != 1:
            raise ValueError("--load supports exactly one platform")

        args = [
            "docker", "buildx", "build",
            "--file", str(dockerfile),
            "--platform", ",".join(platforms),
            "--tag", tag,
        ]
        for key, value in sorted((build_args or {}).items()):
            args += ["--build-arg", f"{key}={value}"]
        if load:
            args.append("--load")
        if push:
            args.append("--push")
        args.append(str(self._context))

        logger.info("Building %s for %s", tag, ",".join(platforms))
        self._run(args, stream=True).check(f"build of {tag}")


class DockerImageInspector:
    """``ImageInspector`` reading the configured user of a local image."""

    def __init__(self, runner: CommandRunner = run_command) -> None:
        self._run = runner

    def configured_user(self, image_ref: str) -> str:
        result = self._run(
            ["docker", "image", "inspect", "--format", "{{.Config.User}}", image_ref]
        ).check(f"inspecting image user of {image_ref}")
        return result.stdout.strip()


class DockerSmokeTester:
    """``RuntimeSmokeTester`` starting the image under a read-only root filesystem."""

    def __init__(
        self,
        *,
        tmpfs: Sequence[str] = ("/tmp:rw",),
        volumes: Sequence[str] = (),
        args: Sequence[str] = ("--version",),
        runner: CommandRunner = run_command,
    ) -> None:
        self._tmpfs = list(tmpfs)
        self._volumes = list(volumes)
        self._args = list(args)
        self._run = runner

    def run_read_only(self, image_ref: str) -> None:
        argv = ["docker", "run", "--rm", "--read-only"]
        for mount in self._tmpfs:
            argv += ["--tmpfs", mount]
        for volume in self._volumes:
            argv += ["-v", volume]
        argv.append(image_ref)
        argv += self._args

        result = self._run(argv, stream=True)
        if not result.ok:
            raise PolicyViolationError(
                f"container failed to start with a read-only root filesystem (exit {result.returncode})",
                check="read_only_runtime",
            )


class DockerVersionProbe:
    """``VersionProbe`` running the image's binary with ``--version``.

    The call is bounded by *timeout*; exceeding it raises ``ToolTimeoutError``
    from the command runner rather than hanging.
    """

    def __init__(
        self,
        entrypoint: str,
        *,
        args: Sequence[str] = ("--version",),
        timeout: float = 30.0,
        runner: CommandRunner = run_command,
    ) -> None:
        self._entrypoint = entrypoint
        self._args = list(args)
        self._timeout = timeout
        self._run = runner

    def probe(self, image_ref: str) -> str:
        result = self._run(
            ["docker", "run", "--rm", "--entrypoint", self._entrypoint, image_ref, *self._args],
            timeout=self._timeout,
        )
        if not result.ok:
            raise CommandFailedError(
                f"version probe of {image_ref} failed (exit {result.returncode}): {result.output}",
                returncode=result.returncode,
                output=result.output,
            )
        return parse_version_output(result.output)
