"""
Domain layer: comment lifecycle, errors and collaborator interfaces
"""

from commentflow.domain.comment_state_machine import (
    CommentEvent,
    CommentStateMachine,
    MetricsRecalculationRequested,
    Transition,
)
from commentflow.domain.interfaces import NullTaskPublisher, TaskPublisher, TranslationBackend

__all__ = [
    "CommentEvent",
    "CommentStateMachine",
    "MetricsRecalculationRequested",
    "Transition",
    "NullTaskPublisher",
    "TaskPublisher",
    "TranslationBackend",
]
