# commentflow/app/dependencies.py
"""
Service Dependency Injection
Wires services for API requests and background tasks
"""

from typing import AsyncGenerator, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from commentflow.app.config import get_config
from commentflow.app.database import get_db
from commentflow.domain.interfaces import TaskPublisher, TranslationBackend
from commentflow.infrastructure.cache import CacheMonitor, TypedCache, get_typed_cache
from commentflow.infrastructure.clients import (
    ContentSourceClient,
    create_content_source_client,
    create_translation_client,
)
from commentflow.infrastructure.resilience import AlertSink, CircuitBreaker, LoggingAlertSink
from commentflow.services.analysis_service import AnalysisService
from commentflow.services.cache_warming_service import CacheWarmingService
from commentflow.services.classification_service import ClassificationService
from commentflow.services.comment_lifecycle_service import CommentLifecycleService
from commentflow.services.comment_processing_service import CommentProcessingService
from commentflow.services.import_service import ImportService
from commentflow.services.job_tracker_service import JobTrackerService
from commentflow.services.keyword_service import KeywordService
from commentflow.services.metrics_service import MetricsService
from commentflow.services.translation_service import TranslationService


# ============================================================================
# Process-wide Singletons
# ============================================================================


def get_task_publisher() -> TaskPublisher:
    """Celery-backed publisher (imported lazily to keep the API import light)"""
    from commentflow.infrastructure.tasks.publisher import CeleryTaskPublisher

    return CeleryTaskPublisher(get_typed_cache())


def get_cache_monitor() -> CacheMonitor:
    cache_config = get_config().cache
    return CacheMonitor(
        get_typed_cache(),
        warning_threshold=cache_config.hit_ratio_warning,
        critical_threshold=cache_config.hit_ratio_critical,
    )


# ============================================================================
# Service Container
# ============================================================================


class ServiceContainer:
    """
    Builds the services of one unit of work around a single session

    HTTP clients are created on first use and must be released with
    ``aclose()`` (they are bound to the running event loop).

    Usage:
        async with db_manager.session() as session:
            services = ServiceContainer(session, publisher)
            try:
                await services.comment_processing.process(comment_id, job_id)
            finally:
                await services.aclose()
    """

    def __init__(
        self,
        session: AsyncSession,
        publisher: Optional[TaskPublisher] = None,
        cache: Optional[TypedCache] = None,
        translation_client: Optional[TranslationBackend] = None,
        content_client: Optional[ContentSourceClient] = None,
        alert_sink: Optional[AlertSink] = None,
    ):
        self.session = session
        self.publisher = publisher
        self.cache = cache or get_typed_cache()
        self.alert_sink = alert_sink or LoggingAlertSink(self.cache)
        self._translation_client = translation_client
        self._content_client = content_client
        self._owned_clients = []

    def breaker(self, service_name: str) -> CircuitBreaker:
        return CircuitBreaker.for_service(service_name, self.cache, alert_sink=self.alert_sink)

    @property
    def translation_client(self) -> TranslationBackend:
        if self._translation_client is None:
            self._translation_client = create_translation_client()
            self._owned_clients.append(self._translation_client)
        return self._translation_client

    @property
    def content_client(self) -> ContentSourceClient:
        if self._content_client is None:
            self._content_client = create_content_source_client()
            self._owned_clients.append(self._content_client)
        return self._content_client

    async def aclose(self) -> None:
        for client in self._owned_clients:
            await client.aclose()
        self._owned_clients.clear()

    # ========================================================================
    # Services
    # ========================================================================

    @property
    def tracker(self) -> JobTrackerService:
        return JobTrackerService(self.session, cache=self.cache)

    @property
    def lifecycle(self) -> CommentLifecycleService:
        return CommentLifecycleService(self.session, publisher=self.publisher)

    @property
    def translation(self) -> TranslationService:
        return TranslationService(
            self.translation_client, self.cache, self.breaker("translation")
        )

    @property
    def classification(self) -> ClassificationService:
        return ClassificationService(self.session, self.cache, self.lifecycle)

    @property
    def comment_processing(self) -> CommentProcessingService:
        lifecycle = self.lifecycle
        return CommentProcessingService(
            self.session,
            lifecycle=lifecycle,
            translation=self.translation,
            classification=ClassificationService(self.session, self.cache, lifecycle),
            tracker=self.tracker,
            publisher=self.publisher,
            import_share=get_config().get("pipeline.import_share", 50),
        )

    @property
    def importer(self) -> ImportService:
        return ImportService(
            self.session,
            self.content_client,
            self.breaker("content_source"),
            cache=self.cache,
        )

    @property
    def metrics(self) -> MetricsService:
        return MetricsService(self.session, self.cache)

    @property
    def keywords(self) -> KeywordService:
        return KeywordService(self.session, self.cache, publisher=self.publisher)

    @property
    def cache_warming(self) -> CacheWarmingService:
        return CacheWarmingService(
            self.classification,
            self.metrics,
            self.translation,
            common_phrases=get_config().get("cache_warming.common_phrases"),
        )

    @property
    def analysis(self) -> AnalysisService:
        return AnalysisService(
            self.tracker,
            self.publisher,
            classification=self.classification,
        )


# ============================================================================
# FastAPI Providers
# ============================================================================


async def get_services(
    db: AsyncSession = Depends(get_db),
) -> AsyncGenerator[ServiceContainer, None]:
    """
    Dependency provider for request-scoped services

    Usage in FastAPI:
        @router.get("/analysis/{job_id}")
        async def progress(job_id: str, services: ServiceContainer = Depends(get_services)):
            return await services.analysis.get_progress(job_id)
    """
    services = ServiceContainer(db, publisher=get_task_publisher())
    try:
        yield services
    finally:
        await services.aclose()
