# tests/unit/test_job_tracker_service.py
"""
Unit Tests for JobTrackerService
"""

import pytest
import pytest_asyncio

from commentflow.app.models import JobStatus, JobTracker
from commentflow.domain.exceptions import JobNotFoundError
from commentflow.services.job_tracker_service import JobTrackerService, item_progress


@pytest_asyncio.fixture
async def tracker_service(db_session, cache):
    return JobTrackerService(db_session, cache=cache)


@pytest_asyncio.fixture
async def running_job(tracker_service):
    """Job that imported 3 comments (total = 3 + import share)"""
    tracker = await tracker_service.create(metadata={"username": "alice"})
    await tracker_service.start(tracker.job_id)
    await tracker_service.set_total(tracker.job_id, 53, metadata={"comments_to_process": 3})
    await tracker_service.update_progress(tracker.job_id, 50)
    return tracker.job_id


class TestItemProgress:
    def test_linear_share_of_remaining(self):
        assert item_progress(1, 4, 104) == 63
        assert item_progress(4, 4, 104) == 104

    def test_capped_at_total(self):
        assert item_progress(9, 4, 104) == 104

    def test_no_items(self):
        assert item_progress(0, 0, 50) == 50


class TestJobTrackerModel:
    def test_percentage_without_total(self):
        assert JobTracker(progress=5, total=0).progress_percentage == 0.0

    def test_percentage_is_clamped(self):
        assert JobTracker(progress=150, total=100).progress_percentage == 100.0

    def test_update_progress_derives_status(self):
        tracker = JobTracker(progress=0, total=10, status=JobStatus.PENDING)

        tracker.update_progress(4)
        assert tracker.status == JobStatus.PROCESSING

        tracker.update_progress(10)
        assert tracker.status == JobStatus.COMPLETED

    def test_error_fails_without_touching_progress(self):
        tracker = JobTracker(progress=4, total=10, status=JobStatus.PROCESSING)

        tracker.update_progress(0, error="boom")

        assert tracker.status == JobStatus.FAILED
        assert tracker.progress == 4
        assert tracker.to_dict()["error"] == "boom"


class TestJobTrackerService:
    @pytest.mark.asyncio
    async def test_create_pending(self, tracker_service):
        tracker = await tracker_service.create(metadata={"username": "alice"})

        assert tracker.status == JobStatus.PENDING
        assert tracker.progress == 0
        assert tracker.job_metadata == {"username": "alice"}
        assert len(tracker.job_id) == 32

    @pytest.mark.asyncio
    async def test_unknown_job(self, tracker_service):
        with pytest.raises(JobNotFoundError):
            await tracker_service.get("missing")

    @pytest.mark.asyncio
    async def test_start_uses_provisional_scale(self, tracker_service):
        tracker = await tracker_service.create()

        started = await tracker_service.start(tracker.job_id)
        progressed = await tracker_service.update_progress(tracker.job_id, 10)

        assert started.total == 100
        assert started.status == JobStatus.PROCESSING
        assert progressed.progress_percentage == 10.0

    @pytest.mark.asyncio
    async def test_set_total_merges_metadata(self, tracker_service, running_job):
        tracker = await tracker_service.get(running_job)

        assert tracker.total == 53
        assert tracker.job_metadata == {"username": "alice", "comments_to_process": 3}

    @pytest.mark.asyncio
    async def test_advance_to_completion(self, tracker_service, running_job):
        tracker, finished = await tracker_service.advance(running_job)
        assert (tracker.progress, finished) == (51, False)

        await tracker_service.advance(running_job)
        tracker, finished = await tracker_service.advance(running_job)

        assert tracker.progress == 53
        assert tracker.status == JobStatus.COMPLETED
        assert tracker.progress_percentage == 100.0
        assert finished is True

    @pytest.mark.asyncio
    async def test_progress_never_moves_backwards(self, tracker_service, running_job):
        await tracker_service.update_progress(running_job, 52)

        tracker, _ = await tracker_service.advance(running_job)

        assert tracker.progress == 52
        assert tracker.completed_steps == 1

    @pytest.mark.asyncio
    async def test_failed_job_is_not_advanced(self, tracker_service, running_job):
        await tracker_service.mark_failed(running_job, "content source down")

        tracker, finished = await tracker_service.advance(running_job)

        assert tracker.status == JobStatus.FAILED
        assert tracker.progress == 50
        assert finished is False

    @pytest.mark.asyncio
    async def test_progress_snapshot_is_cached(self, tracker_service, running_job):
        snapshot = await tracker_service.get_progress(running_job)

        assert snapshot["status"] == "processing"
        assert snapshot["percentage"] == 94.34
        assert tracker_service.cached_progress(running_job) == snapshot

    @pytest.mark.asyncio
    async def test_cached_progress_without_cache(self, db_session):
        assert JobTrackerService(db_session).cached_progress("any") is None
