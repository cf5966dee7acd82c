# commentflow/domain/interfaces.py
"""
Domain-facing collaborator interfaces (Protocols)

Services depend on these; concrete implementations live in infrastructure.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class TaskPublisher(Protocol):
    """Enqueues background work"""

    def enqueue_import(self, job_id: str, username: str) -> Any: ...

    def enqueue_comment_processing(self, comment_id: int, job_id: Optional[str]) -> Any: ...

    def enqueue_metrics_recalculation(
        self, trigger: str, user_id: Optional[int] = None
    ) -> Any: ...

    def enqueue_reclassification(self) -> Any: ...


@runtime_checkable
class TranslationBackend(Protocol):
    """Raw translation collaborator (one HTTP attempt per call)"""

    async def translate(self, text: str, source: str, target: str) -> str: ...

    async def detect(self, text: str) -> str: ...

    async def languages(self) -> Any: ...


class NullTaskPublisher:
    """Publisher that drops everything (previews, scripts, tests)"""

    def __init__(self) -> None:
        self.published: Dict[str, list] = {}

    def _record(self, name: str, *args: Any) -> None:
        self.published.setdefault(name, []).append(args)

    def enqueue_import(self, job_id: str, username: str) -> None:
        self._record("import", job_id, username)

    def enqueue_comment_processing(self, comment_id: int, job_id: Optional[str]) -> None:
        self._record("comment_processing", comment_id, job_id)

    def enqueue_metrics_recalculation(
        self, trigger: str, user_id: Optional[int] = None
    ) -> None:
        self._record("metrics_recalculation", trigger, user_id)

    def enqueue_reclassification(self) -> None:
        self._record("reclassification")
