"""End-to-end sync cycles against real SQL stores and fake remote services."""

import asyncio
from datetime import timedelta

import pytest

from scrobblesync.application import SyncOrchestrator
from scrobblesync.application.sync_state import (
    SyncCompleted,
    SyncFailed,
    SyncStarted,
)
from scrobblesync.domain.entities import SubmissionResult, TrackOutcome
from scrobblesync.domain.exceptions import (
    AuthError,
    AuthFailureReason,
    NotAuthorizedError,
    TransportError,
)
from scrobblesync.infrastructure.persistence import (
    SQLAppStateStore,
    SQLDedupStore,
    SQLScrobbleLogStore,
)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeProvider:
    """Playback history provider serving a fixed list of plays."""

    def __init__(self, plays=None, error=None):
        self.plays = plays or []
        self.error = error
        self.calls = 0
        self.gate = None

    @property
    def is_authorized(self):
        return self.error is None

    async def request_authorization(self):
        return self.is_authorized

    async def fetch_recent(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.plays)


class FakeScrobbleClient:
    """Scrobble client that accepts everything unless told otherwise."""

    def __init__(self, authenticated=True):
        self.authenticated = authenticated
        self.ignored_tracks = set()
        self.error = None
        self.submissions = []

    @property
    def is_authenticated(self):
        return self.authenticated

    @property
    def username(self):
        return "listener"

    async def scrobble(self, records):
        self.submissions.append(list(records))
        if self.error is not None:
            raise self.error
        outcomes = []
        for record in records:
            ignored = record.track_name in self.ignored_tracks
            outcomes.append(
                TrackOutcome(
                    track_name=record.track_name,
                    artist_name=record.artist_name,
                    accepted=not ignored,
                    ignored_code=2 if ignored else 0,
                    error_message="Track was ignored" if ignored else None,
                    source_id=record.source_id,
                    record_id=record.id,
                )
            )
        accepted = sum(1 for outcome in outcomes if outcome.accepted)
        return SubmissionResult(accepted, len(outcomes) - accepted, outcomes)


@pytest.fixture
def clock(now):
    return Clock(now)


@pytest.fixture
def plays(make_play, now):
    return [
        make_play("Three", last_played_at=now - timedelta(minutes=1), source_id="sp:3"),
        make_play("Two", last_played_at=now - timedelta(minutes=5), source_id="sp:2"),
        make_play("One", last_played_at=now - timedelta(minutes=10), source_id="sp:1"),
    ]


@pytest.fixture
def provider(plays):
    return FakeProvider(plays)


@pytest.fixture
def client():
    return FakeScrobbleClient()


@pytest.fixture
def stores(session_factory):
    return (
        SQLDedupStore(session_factory),
        SQLScrobbleLogStore(session_factory),
        SQLAppStateStore(session_factory),
    )


@pytest.fixture
def make_orchestrator(stores, clock):
    dedup_store, log_store, app_state_store = stores

    def _make(provider, client):
        return SyncOrchestrator(
            provider=provider,
            client=client,
            dedup_store=dedup_store,
            log_store=log_store,
            app_state_store=app_state_store,
            fingerprint_bucket=None,
            clock=clock,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator, provider, client):
    return make_orchestrator(provider, client)


class TestSyncCycle:
    """Fetch, filter, submit, reconcile and persist."""

    async def test_first_sync_submits_everything(self, orchestrator, client, stores, now):
        dedup_store, log_store, _ = stores

        report = await orchestrator.sync_now()

        assert (report.fetched, report.new, report.submitted, report.accepted) == (
            3,
            3,
            3,
            3,
        )
        assert report.succeeded
        assert len(client.submissions) == 1
        assert all(record.is_success for record in orchestrator.state.records)
        assert await dedup_store.find_submitted(["sp:1", "sp:2", "sp:3"]) == {
            "sp:1",
            "sp:2",
            "sp:3",
        }
        assert await dedup_store.get_watermark() == now
        assert await log_store.load_log() == orchestrator.state.records

    async def test_repeat_sync_is_idempotent(self, orchestrator, client, clock):
        await orchestrator.sync_now()
        clock.advance(minutes=1)

        report = await orchestrator.sync_now()

        assert report.new == 0
        assert report.submitted == 0
        assert report.skipped_reason == "nothing_new"
        assert len(client.submissions) == 1
        assert len(orchestrator.state.records) == 3

    async def test_only_plays_after_watermark_are_new(
        self, orchestrator, provider, client, clock, make_play
    ):
        await orchestrator.sync_now()
        clock.advance(minutes=4)
        provider.plays.insert(
            0, make_play("Four", last_played_at=clock.now, source_id="sp:4")
        )

        report = await orchestrator.sync_now()

        assert report.new == 1
        assert [r.track_name for r in client.submissions[-1]] == ["Four"]
        assert [r.track_name for r in orchestrator.state.records] == [
            "Four",
            "Three",
            "Two",
            "One",
        ]

    async def test_submitted_ids_block_replay_without_watermark(
        self, orchestrator, client, stores, clock
    ):
        dedup_store, _, _ = stores
        await orchestrator.sync_now()
        await dedup_store.clear_watermark()
        orchestrator.state.replace_records([])
        clock.advance(minutes=1)

        report = await orchestrator.sync_now()

        assert report.new == 0
        assert len(client.submissions) == 1

    async def test_events_are_published(self, orchestrator):
        events = []
        orchestrator.state.subscribe(events.append)

        report = await orchestrator.sync_now()

        assert events[0] == SyncStarted()
        assert events[-1] == SyncCompleted(report)

    async def test_concurrent_sync_is_rejected(self, orchestrator, provider):
        provider.gate = asyncio.Event()
        first = asyncio.create_task(orchestrator.sync_now())
        await asyncio.sleep(0)

        second = await orchestrator.sync_now()
        provider.gate.set()
        report = await first

        assert second.skipped_reason == "already_syncing"
        assert not second.succeeded
        assert provider.calls == 1
        assert report.new == 3
        assert orchestrator.state.is_syncing is False

    async def test_ignored_track_is_failed_and_not_recorded(
        self, orchestrator, client, stores
    ):
        dedup_store, _, _ = stores
        client.ignored_tracks = {"Two"}

        report = await orchestrator.sync_now()

        assert (report.accepted, report.ignored, report.failed) == (2, 1, 1)
        failed = [r for r in orchestrator.state.records if r.is_failed]
        assert [r.track_name for r in failed] == ["Two"]
        assert failed[0].error_message == "Track was ignored"
        assert await dedup_store.find_submitted(["sp:1", "sp:2", "sp:3"]) == {
            "sp:1",
            "sp:3",
        }

    async def test_undated_plays_are_estimated(
        self, make_orchestrator, client, make_play, now
    ):
        provider = FakeProvider(
            [
                make_play("Latest", last_played_at=None, duration_seconds=120.0),
                make_play("Earlier", last_played_at=None, duration_seconds=200.0),
            ]
        )
        orchestrator = make_orchestrator(provider, client)

        await orchestrator.sync_now()

        latest, earlier = orchestrator.state.records
        assert latest.timestamp == now - timedelta(seconds=120)
        assert earlier.timestamp == now - timedelta(seconds=240)
        assert latest.is_estimated and earlier.is_estimated


class TestSyncFailures:
    async def test_fetch_failure_changes_nothing(self, make_orchestrator, client, stores):
        dedup_store, log_store, _ = stores
        orchestrator = make_orchestrator(FakeProvider(error=NotAuthorizedError()), client)
        events = []
        orchestrator.state.subscribe(events.append)

        report = await orchestrator.sync_now()

        assert report.skipped_reason == "fetch_failed"
        assert report.error == "Playback history access not authorized"
        assert not report.succeeded
        assert events[-1] == SyncFailed(report.error)
        assert await dedup_store.get_watermark() is None
        assert await log_store.load_log() == []
        assert client.submissions == []

    async def test_unauthenticated_plays_stay_pending_then_flush(
        self, orchestrator, client, stores, clock
    ):
        dedup_store, log_store, _ = stores
        client.authenticated = False

        report = await orchestrator.sync_now()

        assert report.skipped_reason == "not_authenticated"
        assert report.succeeded
        assert orchestrator.state.pending_count == 3
        assert len(await log_store.load_log()) == 3
        assert await dedup_store.get_watermark() == clock.now

        client.authenticated = True
        clock.advance(minutes=1)
        report = await orchestrator.sync_now()

        assert report.new == 0
        assert report.submitted == 3
        assert report.accepted == 3
        assert orchestrator.state.pending_count == 0

    async def test_rejected_submission_marks_records_failed(
        self, orchestrator, client, stores, now
    ):
        dedup_store, _, _ = stores
        client.error = AuthError(AuthFailureReason.NOT_AUTHENTICATED)
        events = []
        orchestrator.state.subscribe(events.append)

        report = await orchestrator.sync_now()

        assert events[-1] == SyncFailed("Not authenticated with Last.fm")
        assert report.skipped_reason == "submission_failed"
        assert report.failed == 3
        assert report.error == "Not authenticated with Last.fm"
        assert orchestrator.state.failed_count == 3
        assert all(
            r.error_message == "Not authenticated with Last.fm"
            for r in orchestrator.state.records
        )
        assert await dedup_store.find_submitted(["sp:1", "sp:2", "sp:3"]) == set()
        assert await dedup_store.get_watermark() == now


class TestRetry:
    async def test_retry_single_recovers_failed_record(
        self, orchestrator, client, stores
    ):
        dedup_store, _, _ = stores
        client.ignored_tracks = {"Two"}
        await orchestrator.sync_now()
        failed = next(r for r in orchestrator.state.records if r.is_failed)
        client.ignored_tracks = set()

        report = await orchestrator.retry_single(failed.id)

        assert (report.submitted, report.accepted) == (1, 1)
        assert [r.track_name for r in client.submissions[-1]] == ["Two"]
        assert orchestrator.state.find(failed.id).is_success
        assert await dedup_store.find_submitted(["sp:2"]) == {"sp:2"}

    async def test_retry_of_accepted_record_is_refused(self, orchestrator, client):
        await orchestrator.sync_now()
        accepted = next(r for r in orchestrator.state.records if r.source_id == "sp:2")

        report = await orchestrator.retry_single(accepted.id)

        assert report.error == f"Scrobble {accepted.id} was already submitted"
        assert len(client.submissions) == 1
        assert orchestrator.state.find(accepted.id).is_success

    async def test_retry_skips_failed_record_already_in_store(
        self, orchestrator, client, stores, now
    ):
        dedup_store, _, _ = stores
        client.ignored_tracks = {"Two"}
        await orchestrator.sync_now()
        failed = next(r for r in orchestrator.state.records if r.is_failed)
        await dedup_store.add_submitted([failed.source_id], now)

        report = await orchestrator.retry_single(failed.id)

        assert report.error == "Scrobble was already submitted"
        assert len(client.submissions) == 1

    async def test_failed_retry_submission_publishes_failure(self, orchestrator, client):
        client.ignored_tracks = {"One"}
        await orchestrator.sync_now()
        client.error = TransportError("boom")
        events = []
        orchestrator.state.subscribe(events.append)

        report = await orchestrator.retry_all_failed()

        assert report.skipped_reason == "submission_failed"
        assert events[-1] == SyncFailed("boom")

    async def test_retry_unknown_id(self, orchestrator, client):
        report = await orchestrator.retry_single("missing")

        assert report.error == "No scrobble with id missing"
        assert client.submissions == []

    async def test_retry_all_failed_in_one_submission(self, orchestrator, client):
        client.error = AuthError(AuthFailureReason.NOT_AUTHENTICATED)
        await orchestrator.sync_now()
        client.error = None

        report = await orchestrator.retry_all_failed()

        assert report.accepted == 3
        assert len(client.submissions[-1]) == 3
        assert orchestrator.state.failed_count == 0

    async def test_retry_while_signed_out_leaves_records_pending(
        self, orchestrator, client, stores
    ):
        _, log_store, _ = stores
        client.ignored_tracks = {"One"}
        await orchestrator.sync_now()
        client.authenticated = False

        report = await orchestrator.retry_all_failed()

        assert report.skipped_reason == "not_authenticated"
        assert orchestrator.state.pending_count == 1
        assert sum(1 for r in await log_store.load_log() if r.is_pending) == 1

    async def test_retry_with_nothing_failed(self, orchestrator):
        await orchestrator.sync_now()

        report = await orchestrator.retry_all_failed()

        assert report.skipped_reason == "nothing_new"


class TestLifecycle:
    async def test_load_restores_log_and_last_sync(
        self, orchestrator, make_orchestrator, provider, client, now
    ):
        await orchestrator.sync_now()

        restored = make_orchestrator(provider, client)
        await restored.load()

        assert restored.state.records == orchestrator.state.records
        assert restored.state.last_sync_date == now

    async def test_complete_onboarding_sets_flag_and_syncs(self, orchestrator):
        assert await orchestrator.is_onboarded() is False

        report = await orchestrator.complete_onboarding()

        assert await orchestrator.is_onboarded() is True
        assert report.new == 3

    async def test_reset_onboarding_keeps_submitted_ids(
        self, orchestrator, stores, clock
    ):
        dedup_store, log_store, _ = stores
        await orchestrator.complete_onboarding()

        await orchestrator.reset_onboarding()

        assert await orchestrator.is_onboarded() is False
        assert await dedup_store.get_watermark() is None
        assert await log_store.load_log() == []
        assert orchestrator.state.last_sync_date is None
        assert await dedup_store.find_submitted(["sp:1"]) == {"sp:1"}

        clock.advance(minutes=1)
        report = await orchestrator.sync_now()
        assert report.new == 0
