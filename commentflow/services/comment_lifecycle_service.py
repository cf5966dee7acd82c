# commentflow/services/comment_lifecycle_service.py
"""
Comment Lifecycle Service
Applies state machine transitions to stored comments and publishes their events
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from commentflow.app.models import Comment
from commentflow.domain.comment_state_machine import (
    CommentEvent,
    CommentStateMachine,
    Transition,
)
from commentflow.domain.exceptions import InvalidTransition
from commentflow.domain.interfaces import TaskPublisher
from commentflow.infrastructure.repositories import CommentRepository

logger = logging.getLogger(__name__)


class CommentLifecycleService:
    """
    The only writer of ``Comment.status``

    Each transition is validated by the state machine, then persisted as a
    compare-and-set on the current status. Terminal transitions request a
    metrics recalculation for the owning user.
    """

    def __init__(
        self,
        session: AsyncSession,
        publisher: Optional[TaskPublisher] = None,
        state_machine: Optional[CommentStateMachine] = None,
    ):
        self.comments = CommentRepository(session)
        self.publisher = publisher
        self.state_machine = state_machine or CommentStateMachine()

    def can_fire(self, comment: Comment, event: CommentEvent) -> bool:
        return self.state_machine.can_fire(comment, event)

    async def apply(
        self,
        comment: Comment,
        event: CommentEvent,
        user_id: Optional[int] = None,
        publish: bool = True,
    ) -> Transition:
        """
        Fire an event on a stored comment

        Args:
            comment: Loaded comment (its ``status`` is updated in place)
            event: Lifecycle event
            user_id: Owner, used for the metrics event
            publish: Publish emitted events (False when the caller batches them)

        Returns:
            Applied transition

        Raises:
            InvalidTransition: Illegal event, refused guard, or concurrent change
        """
        transition = self.state_machine.fire(comment, event, user_id=user_id)

        applied = await self.comments.transition_status(
            comment.id, transition.from_state, transition.to_state
        )
        if not applied:
            raise InvalidTransition(
                transition.event.value,
                transition.from_state.value,
                "comment was modified concurrently",
            )

        # Mirror the committed row without scheduling another UPDATE
        set_committed_value(comment, "status", transition.to_state)
        logger.debug(
            f"🔄 Comment {comment.id}: {transition.from_state.value} -> "
            f"{transition.to_state.value}"
        )

        if publish and self.publisher is not None:
            for emitted in transition.events:
                trigger = "user_specific" if emitted.user_id is not None else "manual"
                self.publisher.enqueue_metrics_recalculation(
                    trigger, user_id=emitted.user_id
                )

        return transition

    async def reject_safely(self, comment: Comment, user_id: Optional[int] = None) -> bool:
        """
        Fail-safe rejection used after classification errors

        Returns:
            True if the comment ended up rejected by this call
        """
        if not self.can_fire(comment, CommentEvent.REJECT):
            return False

        try:
            await self.apply(comment, CommentEvent.REJECT, user_id=user_id)
            return True
        except InvalidTransition as e:
            logger.warning(f"⚠️ Fail-safe rejection of comment {comment.id} skipped: {e}")
            return False
