# commentflow/services/classification_service.py
"""
Classification Service
Keyword-based approve/reject decision for comments
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.config import ClassificationSettings, get_config
from commentflow.app.models import Comment, CommentStatus
from commentflow.domain.comment_state_machine import CommentEvent
from commentflow.domain.exceptions import ClassificationError, InvalidTransition
from commentflow.infrastructure.cache import CacheType, TypedCache
from commentflow.infrastructure.repositories import CommentRepository, KeywordRepository
from commentflow.services.comment_lifecycle_service import CommentLifecycleService

logger = logging.getLogger(__name__)

ACTIVE_KEYWORDS_KEY = "active"

# Used when the keyword store cannot be read
DEFAULT_KEYWORDS = [
    # Positive sentiment
    "bom", "boa", "excelente", "ótimo", "ótima", "perfeito", "perfeita",
    "maravilhoso", "maravilhosa", "fantástico", "fantástica", "incrível",
    "amor", "amei", "adorei", "gostei", "legal", "bacana", "show",
    # Quality
    "qualidade", "profissional", "eficiente", "rápido", "rápida",
    "confiável", "seguro", "segura", "recomendo", "recomendado",
    # Engagement
    "interessante", "útil", "importante", "necessário", "necessária",
    "valor", "benefício", "vantagem", "solução", "resultado",
    # Positive actions
    "funciona", "funcionou", "resolveu", "ajudou", "melhorou",
    "facilitou", "otimizou", "economizou", "ganhou", "conquistou",
]  # fmt: skip


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of scoring one text"""

    approved: bool
    keyword_count: int
    matched_keywords: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approved": self.approved,
            "keyword_count": self.keyword_count,
            "matched_keywords": self.matched_keywords,
        }


def match_keywords(text: str, keywords: Iterable[str]) -> List[str]:
    """
    Distinct keywords occurring in ``text`` as whole words (case-insensitive)

    Args:
        text: Text to scan
        keywords: Dictionary words

    Returns:
        Matched keywords, sorted
    """
    normalized = text.lower()
    matched = set()
    for keyword in {k.strip().lower() for k in keywords if k and k.strip()}:
        if re.search(rf"(?<!\w){re.escape(keyword)}(?!\w)", normalized):
            matched.add(keyword)
    return sorted(matched)


class ClassificationService:
    """Scores comments against the active keyword set"""

    def __init__(
        self,
        session: AsyncSession,
        cache: TypedCache,
        lifecycle: CommentLifecycleService,
        settings: Optional[ClassificationSettings] = None,
    ):
        self.cache = cache
        self.lifecycle = lifecycle
        self.keywords = KeywordRepository(session)
        self.comments = CommentRepository(session)
        self.settings = settings or get_config().classification

    @property
    def threshold(self) -> int:
        return self.settings.minimum_keywords

    # ========================================================================
    # Keyword Set
    # ========================================================================

    async def active_keywords(self) -> List[str]:
        """
        Active keyword set, cached for ``keyword_cache_minutes``

        Falls back to DEFAULT_KEYWORDS when the keyword store is unavailable.
        """
        cached = self.cache.read(ACTIVE_KEYWORDS_KEY, CacheType.KEYWORDS)
        if cached is not None:
            return cached

        try:
            words = await self.keywords.active_words()
        except SQLAlchemyError as e:
            logger.warning(f"⚠️ Keyword store unavailable, using defaults: {e}")
            return list(DEFAULT_KEYWORDS)

        self.cache.write(
            ACTIVE_KEYWORDS_KEY,
            words,
            CacheType.KEYWORDS,
            ttl_seconds=self.settings.keyword_cache_minutes * 60,
        )
        return words

    def score(self, text: str, keywords: Sequence[str]) -> ClassificationResult:
        matched = match_keywords(text, keywords)
        return ClassificationResult(
            approved=len(matched) >= self.threshold,
            keyword_count=len(matched),
            matched_keywords=matched,
        )

    # ========================================================================
    # Classification
    # ========================================================================

    async def classify(
        self, comment: Comment, user_id: Optional[int] = None
    ) -> ClassificationResult:
        """
        Classify a processing comment and move it to approved or rejected

        ``keyword_count`` is stored before the transition, so it survives a
        refused transition.

        Args:
            comment: Comment in ``processing``
            user_id: Owner, for the metrics event

        Returns:
            ClassificationResult

        Raises:
            ClassificationError: No text, or any failure; the comment is
                rejected first when possible
            InvalidTransition: Status does not allow the decision, or changed
                concurrently; the comment is left as stored
        """
        try:
            text = comment.classification_text
            if text is None:
                raise ClassificationError(
                    f"Comment {comment.id} has no text to classify",
                    details={"comment_id": comment.id},
                )

            result = self.score(text, await self.active_keywords())

            await self.comments.set_keyword_count(comment.id, result.keyword_count)
            comment.keyword_count = result.keyword_count

            event = CommentEvent.APPROVE if result.approved else CommentEvent.REJECT
            await self.lifecycle.apply(comment, event, user_id=user_id)

            logger.info(
                f"{'✅' if result.approved else '🚫'} Comment {comment.id} "
                f"{'approved' if result.approved else 'rejected'} "
                f"({result.keyword_count} keywords)"
            )
            return result

        except InvalidTransition as e:
            # Refused or lost to a concurrent change; the comment is not ours to reject
            logger.warning(f"⚠️ Comment {comment.id} not classified: {e.message}")
            raise

        except Exception as e:
            logger.error(f"❌ Classification failed for comment {comment.id}: {e}")
            await self.lifecycle.reject_safely(comment, user_id=user_id)
            if isinstance(e, ClassificationError):
                raise
            raise ClassificationError(
                f"Failed to classify comment {comment.id}: {e}",
                details={"comment_id": comment.id, "cause": type(e).__name__},
            ) from e

    async def classify_comments(
        self, comments: Iterable[Tuple[Comment, Optional[int]]]
    ) -> Dict[str, int]:
        """
        Classify several (comment, user_id) pairs

        Returns:
            Counts of processed, approved, rejected and errors
        """
        summary = {"processed": 0, "approved": 0, "rejected": 0, "errors": 0}
        for comment, user_id in comments:
            summary["processed"] += 1
            try:
                result = await self.classify(comment, user_id)
            except (ClassificationError, InvalidTransition):
                summary["errors"] += 1
                continue
            summary["approved" if result.approved else "rejected"] += 1
        return summary

    async def preview(self, text: Optional[str]) -> Dict[str, Any]:
        """
        Score text without touching any comment

        Returns:
            {keyword_count, would_approve, matched_keywords}
        """
        if not text or not text.strip():
            return {"keyword_count": 0, "would_approve": False, "matched_keywords": []}

        result = self.score(text, await self.active_keywords())
        return {
            "keyword_count": result.keyword_count,
            "would_approve": result.approved,
            "matched_keywords": result.matched_keywords,
        }

    async def reclassify_all(self) -> Dict[str, int]:
        """
        Re-run classification of every approved or rejected comment

        Each comment goes through ``reprocess`` before being classified again.
        Metrics events are not published per comment; the caller schedules
        one recalculation afterwards.

        Returns:
            {total_processed, successful, errors}
        """
        ids = await self.comments.find_ids_by_status(
            CommentStatus.APPROVED, CommentStatus.REJECTED
        )
        summary = {"total_processed": 0, "successful": 0, "errors": 0}
        logger.info(f"🔄 Reclassifying {len(ids)} comments")

        for comment_id in ids:
            summary["total_processed"] += 1
            comment, user_id = await self.comments.get_with_owner(comment_id)
            if comment is None or not comment.is_terminal:
                continue

            try:
                await self.lifecycle.apply(
                    comment, CommentEvent.REPROCESS, user_id=user_id, publish=False
                )
                await self._classify_unpublished(comment, user_id)
                summary["successful"] += 1
            except Exception as e:
                summary["errors"] += 1
                logger.error(f"❌ Reclassification failed for comment {comment_id}: {e}")

        logger.info(
            f"✅ Reclassification done: {summary['successful']}/"
            f"{summary['total_processed']} ({summary['errors']} errors)"
        )
        return summary

    async def _classify_unpublished(self, comment: Comment, user_id: Optional[int]) -> None:
        publisher = self.lifecycle.publisher
        self.lifecycle.publisher = None
        try:
            await self.classify(comment, user_id)
        finally:
            self.lifecycle.publisher = publisher
