# tests/unit/test_analysis_service.py
"""
Unit Tests for AnalysisService
"""

import pytest

from commentflow.domain.exceptions import JobNotFoundError, PayloadError
from commentflow.services.analysis_service import AnalysisService
from commentflow.services.classification_service import ClassificationService
from commentflow.services.comment_lifecycle_service import CommentLifecycleService
from commentflow.services.job_tracker_service import JobTrackerService


@pytest.fixture
def tracker(db_session, cache):
    return JobTrackerService(db_session, cache=cache)


@pytest.fixture
def service(db_session, cache, tracker, publisher, classification_settings):
    classification = ClassificationService(
        db_session, cache, CommentLifecycleService(db_session), settings=classification_settings
    )
    return AnalysisService(tracker, publisher, classification=classification)


@pytest.mark.asyncio
async def test_start_analysis_creates_pending_job(service, publisher):
    job_id = await service.start_analysis("  alice ")

    progress = await service.get_progress(job_id)

    assert progress["status"] == "pending"
    assert progress["metadata"] == {"username": "alice"}
    assert publisher.published["import"] == [(job_id, "alice")]


@pytest.mark.asyncio
@pytest.mark.parametrize("username", ["", "   "])
async def test_blank_username_is_rejected(service, publisher, username):
    with pytest.raises(PayloadError):
        await service.start_analysis(username)

    assert publisher.published == {}


@pytest.mark.asyncio
async def test_each_start_gets_its_own_job(service):
    first = await service.start_analysis("alice")
    second = await service.start_analysis("alice")

    assert first != second


@pytest.mark.asyncio
async def test_unknown_job(service):
    with pytest.raises(JobNotFoundError):
        await service.get_progress("missing")


@pytest.mark.asyncio
async def test_classify_preview(service, keywords):
    preview = await service.classify_preview("bom e recomendo")

    assert preview["would_approve"] is True


@pytest.mark.asyncio
async def test_preview_requires_classification(tracker, publisher):
    service = AnalysisService(tracker, publisher)

    with pytest.raises(RuntimeError):
        await service.classify_preview("bom")
