"""Digest reconciler: detects upstream drift and resyncs the baseline.

Compare never writes.  Sync always rebuilds the full record in memory
(carrying forward architectures the upstream manifest did not mention) and
persists it in one atomic write under the baseline lock.  Reconcile composes
the two: it initialises a missing baseline, leaves an up-to-date one alone,
and resyncs on any drift.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from hardenforge.bridge.capabilities import DigestSource
from hardenforge.bridge.commands import CommandRunner, run_command
from hardenforge.bridge.registry import DockerDigestSource
from hardenforge.config import HardenConfig
from hardenforge.core.baseline_store import BaselineStore
from hardenforge.core.errors import (
    DigestDriftError,
    HardenForgeError,
    MissingArchEntryError,
    NetworkUnreachableError,
    NoBaselineError,
    NotFoundError,
    ParseError,
)
from hardenforge.models.baseline import (
    SUPPORTED_ARCHITECTURES,
    BaselineRecord,
    normalize_architecture,
)
from hardenforge.models.verdicts import (
    DriftLevel,
    ReconcileOutcome,
    StatusReport,
    Verdict,
    VerdictKind,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DigestReconciler:
    """Keeps the baseline for ``repository:tag`` in step with the registry.

    Parameters
    ----------
    store:
        Where the baseline record lives.
    source:
        Registry query capability.
    repository, tag:
        The tracked upstream image.
    clock:
        Source of "now"; injectable for tests.
    """

    def __init__(
        self,
        store: BaselineStore,
        source: DigestSource,
        *,
        repository: str,
        tag: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.source = source
        self.repository = repository
        self.tag = tag
        self._clock = clock

    @property
    def image_ref(self) -> str:
        return f"{self.repository}:{self.tag}"

    # ------------------------------------------------------------------
    # Read-only operations
    # ------------------------------------------------------------------

    def show(self, local_arch: str) -> BaselineRecord | None:
        """Return the stored baseline and log the entry for *local_arch*."""
        arch = normalize_architecture(local_arch)
        record = self.store.load_or_none()
        if record is None:
            logger.info("No baseline found at %s", self.store.path)
            return None
        logger.info("Manifest list digest: %s", record.manifest_list_digest)
        digest = record.digest_for(arch)
        if digest:
            logger.info("Stored digest for %s: %s", arch, digest)
        else:
            logger.info("No digest found for %s in baseline", arch)
        return record

    def compare(self, local_arch: str) -> Verdict:
        """Classify the upstream state against the stored baseline.

        Manifest-list drift is reported first and short-circuits the
        per-architecture comparison.
        """
        arch = normalize_architecture(local_arch)
        if arch not in SUPPORTED_ARCHITECTURES:
            raise MissingArchEntryError(
                f"architecture {arch!r} is not supported "
                f"(allowed: {', '.join(sorted(SUPPORTED_ARCHITECTURES))})",
                operation="compare",
            )

        try:
            baseline = self.store.load()
        except NoBaselineError:
            logger.info("No baseline recorded for %s", self.image_ref)
            return Verdict.no_baseline(arch)
        except HardenForgeError as exc:
            raise exc.in_operation("compare")

        try:
            upstream = self.source.inspect(self.image_ref)
        except HardenForgeError as exc:
            raise exc.in_operation("compare")

        if baseline.manifest_list_digest != upstream.manifest_list_digest:
            verdict = Verdict.drifted(
                arch,
                DriftLevel.MANIFEST_LIST,
                baseline.manifest_list_digest,
                upstream.manifest_list_digest,
            )
            logger.info("Change detected: %s", verdict.describe())
            return verdict

        current = upstream.digest_for(arch)
        stored = baseline.digest_for(arch)
        if stored is None:
            verdict = Verdict.missing_arch_entry(arch, current or "")
            logger.info("Change detected: %s", verdict.describe())
            return verdict
        if current is None:
            raise NotFoundError(
                f"upstream {self.image_ref} has no {arch} variant", operation="compare"
            )
        if stored != current:
            verdict = Verdict.drifted(arch, DriftLevel.ARCHITECTURE, stored, current)
            logger.info("Change detected: %s", verdict.describe())
            return verdict

        logger.info("Baseline is up to date for %s", arch)
        return Verdict.up_to_date(arch, current)

    def require_current(self, local_arch: str) -> Verdict:
        """Compare, raising ``DigestDriftError`` unless the baseline is current."""
        verdict = self.compare(local_arch)
        if verdict.requires_sync:
            raise DigestDriftError(verdict.describe(), operation="compare")
        return verdict

    def status(self, local_arch: str) -> StatusReport:
        """Informational status; an unreachable registry becomes a warning."""
        arch = normalize_architecture(local_arch)
        record = self.store.load_or_none()
        try:
            verdict = self.compare(arch)
        except NetworkUnreachableError as exc:
            logger.warning("Skipping upstream check, registry unreachable: %s", exc)
            return StatusReport(
                architecture=arch,
                record=record,
                upstream_checked=False,
                warning=str(exc),
            )
        return StatusReport(
            architecture=arch, record=record, verdict=verdict, upstream_checked=True
        )

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    def sync(self) -> BaselineRecord:
        """Fetch the full upstream manifest and rewrite the baseline."""
        with self.store.lock():
            try:
                upstream = self.source.inspect(self.image_ref)
            except HardenForgeError as exc:
                raise exc.in_operation("sync")

            previous = self._previous_record()
            digests: dict[str, str] = dict(previous.digests) if previous else {}

            for entry in upstream.platforms:
                arch = normalize_architecture(entry.architecture)
                if arch not in SUPPORTED_ARCHITECTURES:
                    logger.warning(
                        "Skipping unsupported arch %r (%s)", entry.architecture, entry.digest
                    )
                    continue
                digests[arch] = upstream.digest_for(arch) or entry.digest

            record = BaselineRecord(
                repository=self.repository,
                tag=self.tag,
                manifest_list_digest=upstream.manifest_list_digest,
                digests=digests,
                updated_at=self._next_timestamp(previous),
            )
            try:
                self.store.save(record)
            except HardenForgeError as exc:
                raise exc.in_operation("sync")

        logger.info(
            "Baseline updated for %s with manifest list %s and %d architectures",
            self.image_ref,
            record.manifest_list_digest,
            len(record.digests),
        )
        for arch, digest in sorted(record.digests.items()):
            logger.info("  %s: %s", arch, digest)
        return record

    def reconcile(self, local_arch: str) -> ReconcileOutcome:
        """Compare, then sync only when the baseline is missing, stale or unreadable."""
        try:
            verdict = self.compare(local_arch)
        except ParseError:
            if not self._baseline_is_corrupt():
                raise
            logger.warning(
                "Baseline at %s is unreadable. Resynchronizing from upstream...",
                self.store.path,
            )
            verdict = Verdict.no_baseline(normalize_architecture(local_arch))

        if verdict.kind == VerdictKind.UP_TO_DATE:
            logger.info("Baseline is already up to date. No sync required.")
            return ReconcileOutcome(verdict=verdict, synced=False, record=None)

        if verdict.kind == VerdictKind.NO_BASELINE:
            logger.info("Baseline missing. Performing initial sync...")
        else:
            logger.info("Synchronizing to target version (%s)...", verdict.describe())

        record = self.sync()
        return ReconcileOutcome(verdict=verdict, synced=True, record=record)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _baseline_is_corrupt(self) -> bool:
        try:
            self.store.load()
        except ParseError:
            return True
        except HardenForgeError:
            return False
        return False

    def _previous_record(self) -> BaselineRecord | None:
        """Existing baseline for carry-forward; absent or corrupt means start empty."""
        try:
            previous = self.store.load()
        except NoBaselineError:
            return None
        except ParseError as exc:
            logger.warning("Ignoring unreadable baseline, starting from empty: %s", exc)
            return None
        if previous.repository != self.repository or previous.tag != self.tag:
            logger.info(
                "Baseline tracked %s, now tracking %s; carrying forward digests",
                previous.image_ref,
                self.image_ref,
            )
        return previous

    def _next_timestamp(self, previous: BaselineRecord | None) -> datetime:
        now = self._clock().astimezone(timezone.utc).replace(microsecond=0)
        if previous is not None and previous.updated_at is not None and now <= previous.updated_at:
            return previous.updated_at + timedelta(seconds=1)
        return now


def reconciler_from_config(
    config: HardenConfig, *, runner: CommandRunner = run_command
) -> DigestReconciler:
    """Reconciler for the configured upstream image, backed by docker buildx."""
    return DigestReconciler(
        BaselineStore(config.baseline_path),
        DockerDigestSource(runner),
        repository=config.upstream_repository,
        tag=config.upstream_tag,
    )
