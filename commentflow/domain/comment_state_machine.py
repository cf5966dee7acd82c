# commentflow/domain/comment_state_machine.py
"""
Comment State Machine
Legal lifecycle transitions of a comment, their guards and emitted events
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from commentflow.app.models.comment import CommentStatus
from commentflow.domain.exceptions import InvalidTransition


class CommentEvent(str, enum.Enum):
    """Lifecycle events"""

    START_PROCESSING = "start_processing"
    APPROVE = "approve"
    REJECT = "reject"
    REPROCESS = "reprocess"


@dataclass(frozen=True)
class MetricsRecalculationRequested:
    """Emitted when a comment reaches a terminal state"""

    user_id: Optional[int]
    comment_id: Optional[int]
    status: CommentStatus


@dataclass(frozen=True)
class Transition:
    """Outcome of a fired event"""

    event: CommentEvent
    from_state: CommentStatus
    to_state: CommentStatus
    events: List[MetricsRecalculationRequested] = field(default_factory=list)


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _can_start(comment: Any) -> bool:
    return all(_has_text(getattr(comment, attr, None)) for attr in ("body", "name", "email"))


def _can_approve(comment: Any) -> bool:
    return _has_text(getattr(comment, "translated_body", None)) or _has_text(
        getattr(comment, "body", None)
    )


@dataclass(frozen=True)
class _Rule:
    sources: FrozenSet[CommentStatus]
    target: CommentStatus
    guard: Optional[Callable[[Any], bool]] = None
    guard_reason: str = ""


TERMINAL_STATES = frozenset({CommentStatus.APPROVED, CommentStatus.REJECTED})

RULES: Dict[CommentEvent, _Rule] = {
    CommentEvent.START_PROCESSING: _Rule(
        frozenset({CommentStatus.NEW}),
        CommentStatus.PROCESSING,
        _can_start,
        "body, name and email are required",
    ),
    CommentEvent.APPROVE: _Rule(
        frozenset({CommentStatus.PROCESSING}),
        CommentStatus.APPROVED,
        _can_approve,
        "no text to justify approval",
    ),
    CommentEvent.REJECT: _Rule(
        frozenset({CommentStatus.PROCESSING}), CommentStatus.REJECTED
    ),
    # Used only by full reclassification after keyword changes
    CommentEvent.REPROCESS: _Rule(TERMINAL_STATES, CommentStatus.PROCESSING),
}


class CommentStateMachine:
    """
    Pure transition logic; persistence is done by the caller

    ``fire`` never mutates the comment. The caller persists the transition
    with a conditional update and publishes the returned events.
    """

    def __init__(self, rules: Optional[Dict[CommentEvent, _Rule]] = None):
        self.rules = rules or RULES

    def can_fire(self, comment: Any, event: CommentEvent) -> bool:
        """Whether ``event`` is legal for the comment's current state and data"""
        rule = self.rules[CommentEvent(event)]
        if CommentStatus(comment.status) not in rule.sources:
            return False
        return rule.guard is None or rule.guard(comment)

    def fire(
        self, comment: Any, event: CommentEvent, user_id: Optional[int] = None
    ) -> Transition:
        """
        Compute a transition

        Args:
            comment: Object exposing status, body, name, email, translated_body
            event: Lifecycle event
            user_id: Owner of the comment, carried by emitted events

        Returns:
            Transition with the events to publish

        Raises:
            InvalidTransition: Event illegal from the current state, or guard refused
        """
        event = CommentEvent(event)
        rule = self.rules[event]
        current = CommentStatus(comment.status)

        if current not in rule.sources:
            raise InvalidTransition(event.value, current.value)

        if rule.guard is not None and not rule.guard(comment):
            raise InvalidTransition(event.value, current.value, rule.guard_reason)

        events = []
        if rule.target in TERMINAL_STATES:
            events.append(
                MetricsRecalculationRequested(
                    user_id=user_id,
                    comment_id=getattr(comment, "id", None),
                    status=rule.target,
                )
            )

        return Transition(event, current, rule.target, events)

    def available_events(self, comment: Any) -> List[CommentEvent]:
        return [event for event in self.rules if self.can_fire(comment, event)]

