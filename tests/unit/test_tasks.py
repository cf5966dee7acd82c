# tests/unit/test_tasks.py
"""
Unit Tests for Celery tasks and task publishers
Task bodies run directly with run_async patched; their coroutines run against
the test database
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, Mock, patch

import pytest

from commentflow.app.dependencies import ServiceContainer
from commentflow.app.models import JobStatus
from commentflow.domain.exceptions import (
    APIError,
    CommentNotFoundError,
    InvalidTransition,
    PayloadError,
    UserNotFoundError,
)
from commentflow.domain.interfaces import NullTaskPublisher
from commentflow.infrastructure.cache import CacheType
from commentflow.infrastructure.clients.content_source import (
    SourceComment,
    SourcePost,
    SourceUser,
)
from commentflow.infrastructure.tasks import (
    cache_tasks,
    comment_tasks,
    import_tasks,
    metrics_tasks,
)
from commentflow.infrastructure.tasks.celery_app import discarded, parse_payload
from commentflow.infrastructure.tasks.publisher import (
    BufferedTaskPublisher,
    CeleryTaskPublisher,
    metrics_marker,
)
from commentflow.services.job_tracker_service import JobTrackerService


def fake_run_async(result=None, error=None):
    """Stand-in for run_async that closes the coroutine unawaited"""

    def runner(coro):
        coro.close()
        if error is not None:
            raise error
        return result

    return Mock(side_effect=runner)


# ============================================================================
# Payloads
# ============================================================================


class TestPayloads:
    def test_parse_payload(self):
        payload = parse_payload(import_tasks.ImportUserPayload, job_id="j1", username="alice")

        assert payload.username == "alice"

    def test_invalid_payload(self):
        with pytest.raises(PayloadError) as exc_info:
            parse_payload(comment_tasks.ProcessCommentPayload, comment_id="abc")

        assert exc_info.value.details["payload"] == {"comment_id": "'abc'"}

    def test_scoped_trigger_requires_user(self):
        with pytest.raises(PayloadError):
            parse_payload(metrics_tasks.RecalculationPayload, trigger="user_specific")

        payload = parse_payload(metrics_tasks.RecalculationPayload, trigger="keyword_change")
        assert payload.user_id is None

    def test_discarded(self):
        result = discarded("tasks.x", PayloadError("bad"))

        assert result == {"status": "discarded", "error": "bad"}


# ============================================================================
# Publishers
# ============================================================================


class TestBufferedTaskPublisher:
    def test_flush_forwards_in_order(self):
        buffered = BufferedTaskPublisher()
        buffered.enqueue_comment_processing(1, "job")
        buffered.enqueue_comment_processing(2, "job")
        buffered.enqueue_metrics_recalculation("user_specific", user_id=7)

        target = NullTaskPublisher()
        assert buffered.flush(target) == 3

        assert target.published == {
            "comment_processing": [(1, "job"), (2, "job")],
            "metrics_recalculation": [("user_specific", 7)],
        }
        assert buffered.flush(target) == 0


class TestCeleryTaskPublisher:
    def test_metrics_marker(self):
        assert metrics_marker("user_specific", 3) == "pending:user_specific:3"
        assert metrics_marker("keyword_change", None) == "pending:keyword_change:all"

    def test_metrics_recalculation_is_debounced(self, cache):
        publisher = CeleryTaskPublisher(cache, debounce_seconds=2)

        with patch.object(metrics_tasks.recalculate_metrics, "apply_async") as apply_async:
            publisher.enqueue_metrics_recalculation("user_specific", user_id=3)
            publisher.enqueue_metrics_recalculation("user_specific", user_id=3)
            publisher.enqueue_metrics_recalculation("user_specific", user_id=4)

        assert apply_async.call_count == 2
        apply_async.assert_any_call(
            kwargs={"trigger": "user_specific", "user_id": 3, "marker": "pending:user_specific:3"},
            countdown=2,
        )

    def test_import_is_published(self, cache):
        publisher = CeleryTaskPublisher(cache)

        with patch.object(import_tasks.import_user, "apply_async") as apply_async:
            publisher.enqueue_import("job-1", "alice")

        apply_async.assert_called_once_with(kwargs={"job_id": "job-1", "username": "alice"})


# ============================================================================
# Tasks
# ============================================================================


class TestImportTask:
    def test_invalid_payload_is_discarded(self):
        result = import_tasks.import_user.run(job_id="", username="alice")

        assert result["status"] == "discarded"

    def test_success_flushes_publications(self):
        target = NullTaskPublisher()
        summary = {"status": "success", "job_id": "j1"}

        with patch.object(import_tasks, "run_async", fake_run_async(summary)), patch.object(
            import_tasks, "get_task_publisher", return_value=target
        ) as get_publisher:
            result = import_tasks.import_user.run(job_id="j1", username="alice")

        assert result == summary
        get_publisher.assert_called_once()

    def test_unknown_user_is_discarded(self):
        runner = fake_run_async(error=UserNotFoundError("User 'carol' not found"))

        with patch.object(import_tasks, "run_async", runner):
            result = import_tasks.import_user.run(job_id="j1", username="carol")

        assert result == {"status": "discarded", "error": "User 'carol' not found"}

    def test_source_errors_are_retried(self):
        runner = fake_run_async(error=APIError("source down", status_code=503))

        # Outside a worker Celery re-raises the original error instead of Retry
        with patch.object(import_tasks, "run_async", runner):
            with pytest.raises(APIError):
                import_tasks.import_user.run(job_id="j1", username="alice")


class TestCommentTasks:
    def test_invalid_comment_id(self):
        assert comment_tasks.process_comment.run(comment_id=0)["status"] == "discarded"

    def test_missing_comment_is_discarded(self):
        runner = fake_run_async(error=CommentNotFoundError("Comment 5 not found"))

        with patch.object(comment_tasks, "run_async", runner):
            result = comment_tasks.process_comment.run(comment_id=5, job_id="j1")

        assert result["status"] == "discarded"

    def test_concurrent_change_is_a_conflict(self):
        runner = fake_run_async(error=InvalidTransition("approve", "approved"))

        with patch.object(comment_tasks, "run_async", runner):
            result = comment_tasks.process_comment.run(comment_id=5, job_id="j1")

        assert result["status"] == "conflict"
        assert result["comment_id"] == 5

    def test_reclassify_schedules_metrics(self):
        target = NullTaskPublisher()
        summary = {"total_processed": 2, "successful": 2, "errors": 0}

        with patch.object(comment_tasks, "run_async", fake_run_async(summary)), patch.object(
            comment_tasks, "get_task_publisher", return_value=target
        ):
            result = comment_tasks.reclassify_all.run()

        assert result == summary
        assert target.published == {"metrics_recalculation": [("keyword_change", None)]}


class TestMetricsTask:
    def test_marker_is_released(self, cache):
        cache.write("pending:manual:all", True, CacheType.JOB_METRICS)
        summary = {"status": "success", "trigger": "manual", "users_recalculated": 0}

        with patch.object(metrics_tasks, "get_typed_cache", return_value=cache), patch.object(
            metrics_tasks, "run_async", fake_run_async(summary)
        ):
            result = metrics_tasks.recalculate_metrics.run(
                trigger="manual", marker="pending:manual:all"
            )

        assert result == summary
        assert cache.read("pending:manual:all", CacheType.JOB_METRICS) is None

    def test_unknown_trigger_is_discarded(self):
        assert metrics_tasks.recalculate_metrics.run(trigger="nightly")["status"] == "discarded"


class TestCacheTasks:
    def test_unknown_warming_type_is_discarded(self):
        assert cache_tasks.warm_cache.run(warming_type="everything")["status"] == "discarded"

    def test_warm_cache(self):
        summary = {"warming_type": "keywords", "warmed": {"keywords": 4}}

        with patch.object(cache_tasks, "run_async", fake_run_async(summary)):
            assert cache_tasks.warm_cache.run(warming_type="keywords") == summary


# ============================================================================
# Task coroutines against the test database
# ============================================================================


def source_client():
    """Content source with one user, two posts and three comments per post"""
    posts = [
        SourcePost(id=post_id, userId=1, title=f"Post {post_id}", body="...")
        for post_id in (11, 12)
    ]
    client = AsyncMock()
    client.get_users.return_value = [
        SourceUser(id=1, username="alice", name="Alice", email="alice@example.com")
    ]
    client.get_user_posts.return_value = posts
    client.get_post_comments.side_effect = lambda post_id: [
        SourceComment(
            id=post_id * 10 + i,
            postId=post_id,
            name=f"Reader {i}",
            email="reader@example.com",
            body="Muito bom e útil",
        )
        for i in range(3)
    ]
    return client


@pytest.fixture
def task_scope(db_session, cache):
    """Points the task coroutines at the test session and fake clients"""
    translation_client = AsyncMock()
    translation_client.detect.return_value = "pt"
    translation_client.translate.side_effect = lambda text, source, target: text
    content_client = source_client()

    @asynccontextmanager
    async def session_scope():
        yield db_session

    def container(session, publisher=None):
        return ServiceContainer(
            session,
            publisher=publisher,
            cache=cache,
            translation_client=translation_client,
            content_client=content_client,
        )

    with patch.object(import_tasks.db_manager, "session", session_scope), patch.object(
        import_tasks, "ServiceContainer", container
    ), patch.object(comment_tasks, "ServiceContainer", container):
        yield content_client


class TestTaskCoroutines:
    @pytest.mark.asyncio
    async def test_import_rebases_progress_and_fans_out(self, task_scope, db_session, cache):
        tracker = JobTrackerService(db_session, cache=cache)
        job = await tracker.create(metadata={"username": "alice"})
        publisher = BufferedTaskPublisher()

        result = await import_tasks._import_user(
            import_tasks.ImportUserPayload(job_id=job.job_id, username="alice"), publisher
        )

        progress = await tracker.get_progress(job.job_id)
        assert result["status"] == "success"
        assert result["comments_to_process"] == 6
        assert progress["progress"] == 50
        assert progress["total"] == 56
        assert progress["status"] == "processing"
        assert [method for method, _, _ in publisher.calls] == [
            "enqueue_comment_processing"
        ] * 6
        assert {args[1] for _, args, _ in publisher.calls} == {job.job_id}

    @pytest.mark.asyncio
    async def test_unknown_user_fails_the_job(self, task_scope, db_session, cache):
        tracker = JobTrackerService(db_session, cache=cache)
        job = await tracker.create(metadata={"username": "zed"})

        with pytest.raises(UserNotFoundError):
            await import_tasks._import_user(
                import_tasks.ImportUserPayload(job_id=job.job_id, username="zed"),
                BufferedTaskPublisher(),
            )

        failed = await tracker.get(job.job_id)
        assert failed.status == JobStatus.FAILED
        assert "not found" in failed.error_message

    @pytest.mark.asyncio
    async def test_processing_every_comment_completes_the_job(
        self, task_scope, db_session, cache
    ):
        tracker = JobTrackerService(db_session, cache=cache)
        job = await tracker.create(metadata={"username": "alice"})
        fan_out = BufferedTaskPublisher()
        imported = await import_tasks._import_user(
            import_tasks.ImportUserPayload(job_id=job.job_id, username="alice"), fan_out
        )

        publisher = BufferedTaskPublisher()
        for _, (comment_id, job_id), _ in fan_out.calls:
            outcome = await comment_tasks._process_comment(
                comment_tasks.ProcessCommentPayload(comment_id=comment_id, job_id=job_id),
                publisher,
            )
            assert outcome["outcome"] == "processed"

        done = await tracker.get(job.job_id)
        assert done.status == JobStatus.COMPLETED
        assert done.progress == 56
        assert publisher.calls[-1] == (
            "enqueue_metrics_recalculation",
            ("user_import_completed",),
            {"user_id": imported["user_id"]},
        )
