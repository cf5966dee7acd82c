# tests/unit/test_comment_lifecycle.py
"""
Unit Tests for the comment state machine and CommentLifecycleService
"""

from types import SimpleNamespace

import pytest
from sqlalchemy import select

from commentflow.app.models import Comment, CommentStatus
from commentflow.domain.comment_state_machine import CommentEvent, CommentStateMachine
from commentflow.domain.exceptions import InvalidTransition
from commentflow.infrastructure.repositories import CommentRepository
from commentflow.services.comment_lifecycle_service import CommentLifecycleService


def comment_stub(status=CommentStatus.NEW, **fields):
    data = {
        "id": 7,
        "status": status,
        "body": "Texto",
        "name": "Bob",
        "email": "bob@example.com",
        "translated_body": None,
    }
    data.update(fields)
    return SimpleNamespace(**data)


# ============================================================================
# State machine
# ============================================================================


class TestCommentStateMachine:
    def setup_method(self):
        self.machine = CommentStateMachine()

    def test_start_processing_from_new(self):
        transition = self.machine.fire(comment_stub(), CommentEvent.START_PROCESSING)

        assert transition.from_state == CommentStatus.NEW
        assert transition.to_state == CommentStatus.PROCESSING
        assert transition.events == []

    @pytest.mark.parametrize("missing", ["body", "name", "email"])
    def test_start_processing_requires_fields(self, missing):
        comment = comment_stub(**{missing: "   "})

        assert not self.machine.can_fire(comment, CommentEvent.START_PROCESSING)
        with pytest.raises(InvalidTransition) as exc_info:
            self.machine.fire(comment, CommentEvent.START_PROCESSING)
        assert "required" in exc_info.value.reason

    def test_approve_emits_metrics_event(self):
        comment = comment_stub(CommentStatus.PROCESSING)

        transition = self.machine.fire(comment, CommentEvent.APPROVE, user_id=3)

        assert transition.to_state == CommentStatus.APPROVED
        assert len(transition.events) == 1
        assert transition.events[0].user_id == 3
        assert transition.events[0].comment_id == 7

    def test_approve_needs_text(self):
        comment = comment_stub(CommentStatus.PROCESSING, body="", translated_body=None)

        with pytest.raises(InvalidTransition):
            self.machine.fire(comment, CommentEvent.APPROVE)

    def test_approve_accepts_translated_text_only(self):
        comment = comment_stub(CommentStatus.PROCESSING, body="", translated_body="Olá")

        assert self.machine.can_fire(comment, CommentEvent.APPROVE)

    def test_reject_has_no_guard(self):
        comment = comment_stub(CommentStatus.PROCESSING, body=None)

        transition = self.machine.fire(comment, CommentEvent.REJECT)

        assert transition.to_state == CommentStatus.REJECTED

    @pytest.mark.parametrize("status", [CommentStatus.APPROVED, CommentStatus.REJECTED])
    def test_terminal_states_only_allow_reprocess(self, status):
        comment = comment_stub(status)

        assert self.machine.available_events(comment) == [CommentEvent.REPROCESS]
        with pytest.raises(InvalidTransition):
            self.machine.fire(comment, CommentEvent.START_PROCESSING)

    def test_cannot_skip_processing(self):
        with pytest.raises(InvalidTransition) as exc_info:
            self.machine.fire(comment_stub(), CommentEvent.APPROVE)

        assert exc_info.value.from_state == "new"
        assert exc_info.value.event == "approve"

    def test_fire_does_not_mutate(self):
        comment = comment_stub()
        self.machine.fire(comment, CommentEvent.START_PROCESSING)

        assert comment.status == CommentStatus.NEW


# ============================================================================
# Repository compare-and-set
# ============================================================================


class TestTransitionStatus:
    @pytest.mark.asyncio
    async def test_applies_when_status_matches(self, db_session, make_comment):
        comment = await make_comment()
        repo = CommentRepository(db_session)

        applied = await repo.transition_status(
            comment.id, CommentStatus.NEW, CommentStatus.PROCESSING
        )

        assert applied is True
        status = await db_session.scalar(
            select(Comment.status).where(Comment.id == comment.id)
        )
        assert status == CommentStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_second_identical_transition_is_refused(self, db_session, make_comment):
        comment = await make_comment()
        repo = CommentRepository(db_session)

        first = await repo.transition_status(
            comment.id, CommentStatus.NEW, CommentStatus.PROCESSING
        )
        second = await repo.transition_status(
            comment.id, CommentStatus.NEW, CommentStatus.PROCESSING
        )

        assert (first, second) == (True, False)

    @pytest.mark.asyncio
    async def test_get_with_owner(self, db_session, make_comment, sample_user):
        comment = await make_comment()

        loaded, user_id = await CommentRepository(db_session).get_with_owner(comment.id)

        assert loaded.id == comment.id
        assert user_id == sample_user.id

    @pytest.mark.asyncio
    async def test_get_with_owner_missing(self, db_session):
        assert await CommentRepository(db_session).get_with_owner(999) == (None, None)


# ============================================================================
# Lifecycle service
# ============================================================================


class TestCommentLifecycleService:
    @pytest.mark.asyncio
    async def test_apply_updates_comment(self, db_session, make_comment, publisher):
        comment = await make_comment()
        lifecycle = CommentLifecycleService(db_session, publisher=publisher)

        await lifecycle.apply(comment, CommentEvent.START_PROCESSING, user_id=1)

        assert comment.status == CommentStatus.PROCESSING
        assert publisher.published == {}

    @pytest.mark.asyncio
    async def test_terminal_transition_requests_metrics(
        self, db_session, make_comment, publisher
    ):
        comment = await make_comment(status=CommentStatus.PROCESSING)
        lifecycle = CommentLifecycleService(db_session, publisher=publisher)

        await lifecycle.apply(comment, CommentEvent.APPROVE, user_id=5)

        assert publisher.published["metrics_recalculation"] == [("user_specific", 5)]

    @pytest.mark.asyncio
    async def test_publish_can_be_suppressed(self, db_session, make_comment, publisher):
        comment = await make_comment(status=CommentStatus.PROCESSING)
        lifecycle = CommentLifecycleService(db_session, publisher=publisher)

        await lifecycle.apply(comment, CommentEvent.REJECT, user_id=5, publish=False)

        assert publisher.published == {}

    @pytest.mark.asyncio
    async def test_concurrent_change_raises(self, db_session, make_comment):
        comment = await make_comment(status=CommentStatus.PROCESSING)
        repo = CommentRepository(db_session)
        lifecycle = CommentLifecycleService(db_session)

        # Another worker rejects first; our loaded copy is now stale
        await repo.transition_status(
            comment.id, CommentStatus.PROCESSING, CommentStatus.REJECTED
        )
        assert comment.status == CommentStatus.PROCESSING

        with pytest.raises(InvalidTransition) as exc_info:
            await lifecycle.apply(comment, CommentEvent.APPROVE)
        assert "concurrently" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_reject_safely(self, db_session, make_comment):
        processing = await make_comment(status=CommentStatus.PROCESSING)
        approved = await make_comment(status=CommentStatus.APPROVED)
        lifecycle = CommentLifecycleService(db_session)

        assert await lifecycle.reject_safely(processing) is True
        assert processing.status == CommentStatus.REJECTED
        assert await lifecycle.reject_safely(approved) is False
        assert approved.status == CommentStatus.APPROVED
