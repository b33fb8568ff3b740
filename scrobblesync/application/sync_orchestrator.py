"""Sync orchestration: fetch, deduplicate, submit, reconcile, persist.

One cycle of :meth:`SyncOrchestrator.sync_now`:

1. purge submitted ids older than the retention window
2. fetch recent plays from the provider (a failure ends the cycle, nothing
   else changes)
3. estimate missing timestamps
4. drop plays at or before the watermark and plays already submitted
5. merge the survivors into the local log as Pending
6. when authenticated, submit every Pending entry in the log
7. apply Last.fm's verdicts, record accepted ids, advance the watermark

Retry paths reuse steps 6 and 7 for records chosen by the user. All paths
share the ``is_syncing`` guard on the state container.
"""

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from attrs import define, field

from scrobblesync.application.sync_state import (
    SyncCompleted,
    SyncFailed,
    SyncStarted,
    SyncState,
)
from scrobblesync.config import get_logger, settings
from scrobblesync.domain.dedup import (
    filter_new_plays,
    identity_key,
    identity_keys,
    merge_into_log,
)
from scrobblesync.domain.entities import (
    PENDING,
    Failed,
    PlayRecord,
    SubmissionResult,
    SyncReport,
    utc_now,
)
from scrobblesync.domain.exceptions import ScrobbleSyncError
from scrobblesync.domain.reconciliation import apply_outcomes
from scrobblesync.domain.repositories import (
    AppStateStoreProtocol,
    DedupStoreProtocol,
    PlaybackHistoryProvider,
    ScrobbleClient,
    ScrobbleLogStoreProtocol,
)
from scrobblesync.domain.timestamps import build_play_records

logger = get_logger(__name__)


def _fingerprint_bucket() -> int | None:
    if settings.sync.fingerprint_unidentified_plays:
        return settings.sync.fingerprint_bucket_seconds
    return None


@define(frozen=True, slots=True)
class _Submission:
    """What happened when a set of records was handed to the client."""

    submitted: int = 0
    result: SubmissionResult = field(factory=SubmissionResult)
    error: str | None = None

    @property
    def failed(self) -> int:
        return self.submitted if self.error is not None else self.result.failed


@define(slots=True)
class SyncOrchestrator:
    """Coordinates a sync cycle between the provider, the log and Last.fm."""

    provider: PlaybackHistoryProvider
    client: ScrobbleClient
    dedup_store: DedupStoreProtocol
    log_store: ScrobbleLogStoreProtocol | None = None
    app_state_store: AppStateStoreProtocol | None = None
    state: SyncState = field(factory=SyncState)
    retention_days: int = field(factory=lambda: settings.sync.retention_days)
    default_duration: float = field(
        factory=lambda: settings.sync.default_track_duration
    )
    fingerprint_bucket: int | None = field(factory=_fingerprint_bucket)
    clock: Callable[[], datetime] = utc_now

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def load(self) -> None:
        """Restore the saved log and the last sync time into the state container."""
        if self.log_store is not None:
            self.state.replace_records(await self.log_store.load_log())
        self.state.last_sync_date = await self.dedup_store.get_watermark()
        logger.debug(
            f"Loaded {len(self.state.records)} scrobbles",
            last_sync=str(self.state.last_sync_date),
        )

    # -------------------------------------------------------------------------
    # Sync cycle
    # -------------------------------------------------------------------------

    async def sync_now(self) -> SyncReport:
        """Run one sync cycle.

        Returns immediately with ``skipped_reason="already_syncing"`` when a
        sync or retry is already running.
        """
        if self.state.is_syncing:
            logger.debug("Sync already in progress, ignoring request")
            return SyncReport(skipped_reason="already_syncing")

        self.state.is_syncing = True
        self.state.notify(SyncStarted())
        try:
            report = await self._run_cycle()
        except Exception as e:
            self.state.notify(SyncFailed(str(e)))
            raise
        finally:
            self.state.is_syncing = False

        self._publish(report)
        return report

    async def _run_cycle(self) -> SyncReport:
        now = self.clock()

        purged = await self.dedup_store.purge_older_than(
            now - timedelta(days=self.retention_days)
        )
        if purged:
            logger.debug(f"Purged {purged} expired submitted ids")

        try:
            fetched = await self.provider.fetch_recent()
        except Exception as e:
            # Provider failures of any kind end the cycle; state is left as is
            logger.error(f"Fetching recent plays failed: {e}")
            return SyncReport(skipped_reason="fetch_failed", error=str(e))

        records = build_play_records(fetched, now, self.default_duration)
        watermark = await self.dedup_store.get_watermark()
        submitted_ids = await self.dedup_store.find_submitted(
            identity_keys(records, self.fingerprint_bucket)
        )
        new_plays = filter_new_plays(
            records, watermark, submitted_ids, self.fingerprint_bucket
        )
        log, added = merge_into_log(self.state.records, new_plays)
        logger.info(
            f"Fetched {len(fetched)} plays, {len(added)} new",
            watermark=str(watermark),
        )

        backlog = [record for record in log if record.is_pending]
        submission = _Submission()
        skipped_reason = None

        if not backlog:
            skipped_reason = "nothing_new"
        elif not self.client.is_authenticated:
            logger.info(f"Not signed in to Last.fm; {len(backlog)} scrobbles pending")
            skipped_reason = "not_authenticated"
        else:
            log, submission = await self._submit(log, backlog, now)
            if submission.error is not None:
                skipped_reason = "submission_failed"

        await self.dedup_store.set_watermark(now)
        self.state.last_sync_date = now
        if added or submission.submitted:
            await self._commit_log(log)

        result = submission.result
        return SyncReport(
            fetched=len(fetched),
            new=len(added),
            submitted=submission.submitted,
            accepted=result.accepted,
            ignored=result.ignored,
            failed=submission.failed,
            skipped_reason=skipped_reason,
            error=submission.error,
        )

    # -------------------------------------------------------------------------
    # Retry paths
    # -------------------------------------------------------------------------

    async def retry_single(self, record_id: str) -> SyncReport:
        """Set one record back to Pending and submit it.

        Records Last.fm already accepted are never sent again.
        """
        existing = self.state.find(record_id)
        if existing is not None and existing.is_success:
            return SyncReport(error=f"Scrobble {record_id} was already submitted")
        return await self._retry(lambda record: record.id == record_id, record_id)

    async def retry_all_failed(self) -> SyncReport:
        """Submit every Failed record again as one submission."""
        return await self._retry(lambda record: record.is_failed, None)

    async def _retry(
        self, selector: Callable[[PlayRecord], bool], record_id: str | None
    ) -> SyncReport:
        if self.state.is_syncing:
            logger.debug("Sync already in progress, ignoring retry")
            return SyncReport(skipped_reason="already_syncing")

        targets = [record for record in self.state.records if selector(record)]
        if not targets:
            if record_id is not None:
                return SyncReport(error=f"No scrobble with id {record_id}")
            return SyncReport(skipped_reason="nothing_new")

        self.state.is_syncing = True
        self.state.notify(SyncStarted())
        try:
            report = await self._run_retry(targets)
        except Exception as e:
            self.state.notify(SyncFailed(str(e)))
            raise
        finally:
            self.state.is_syncing = False

        self._publish(report)
        return report

    async def _run_retry(self, targets: Sequence[PlayRecord]) -> SyncReport:
        submitted_ids = await self.dedup_store.find_submitted(
            identity_keys(targets, self.fingerprint_bucket)
        )
        if submitted_ids:
            logger.warning(f"Skipping {len(submitted_ids)} already submitted scrobbles")
            targets = [
                record
                for record in targets
                if identity_key(record, self.fingerprint_bucket) not in submitted_ids
            ]
            if not targets:
                return SyncReport(error="Scrobble was already submitted")

        target_ids = {record.id for record in targets}
        log = [
            record.with_status(PENDING) if record.id in target_ids else record
            for record in self.state.records
        ]
        pending = [record for record in log if record.id in target_ids]
        logger.info(f"Retrying {len(pending)} scrobbles")

        if not self.client.is_authenticated:
            await self._commit_log(log)
            return SyncReport(skipped_reason="not_authenticated")

        log, submission = await self._submit(log, pending, self.clock())
        await self._commit_log(log)

        result = submission.result
        return SyncReport(
            submitted=submission.submitted,
            accepted=result.accepted,
            ignored=result.ignored,
            failed=submission.failed,
            skipped_reason="submission_failed" if submission.error else None,
            error=submission.error,
        )

    # -------------------------------------------------------------------------
    # Shared steps
    # -------------------------------------------------------------------------

    async def _submit(
        self, log: list[PlayRecord], targets: Sequence[PlayRecord], now: datetime
    ) -> tuple[list[PlayRecord], _Submission]:
        """Submit ``targets`` and fold the verdicts back into ``log``."""
        try:
            result = await self.client.scrobble(targets)
        except ScrobbleSyncError as e:
            logger.warning(f"Submission of {len(targets)} scrobbles failed: {e}")
            failed = Failed(str(e))
            target_ids = {record.id for record in targets}
            log = [
                record.with_status(failed) if record.id in target_ids else record
                for record in log
            ]
            return log, _Submission(submitted=len(targets), error=str(e))

        log, accepted = apply_outcomes(log, result.outcomes)
        keys = identity_keys(accepted, self.fingerprint_bucket)
        if keys:
            await self.dedup_store.add_submitted(keys, now)
        return log, _Submission(submitted=len(targets), result=result)

    def _publish(self, report: SyncReport) -> None:
        """Announce the end of a cycle; fetch and submission failures as SyncFailed."""
        if report.skipped_reason in ("fetch_failed", "submission_failed"):
            self.state.notify(SyncFailed(report.error or "Sync failed"))
        else:
            self.state.notify(SyncCompleted(report))

    async def _commit_log(self, log: Sequence[PlayRecord]) -> None:
        self.state.replace_records(log)
        if self.log_store is not None:
            await self.log_store.save_log(self.state.records)

    # -------------------------------------------------------------------------
    # Onboarding
    # -------------------------------------------------------------------------

    async def is_onboarded(self) -> bool:
        if self.app_state_store is None:
            return False
        return await self.app_state_store.is_onboarded()

    async def complete_onboarding(self) -> SyncReport:
        """Mark onboarding done and pull the initial history."""
        if self.app_state_store is not None:
            await self.app_state_store.set_onboarded(True)
        return await self.sync_now()

    async def reset_onboarding(self) -> None:
        """Clear the onboarding flag, the local log and the watermark.

        Submitted ids are kept so a later sync cannot report a play twice.
        """
        if self.app_state_store is not None:
            await self.app_state_store.set_onboarded(False)
        await self.dedup_store.clear_watermark()
        self.state.last_sync_date = None
        await self._commit_log([])
        logger.info("Onboarding reset")
