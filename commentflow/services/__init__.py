"""
Services Package
Business logic layer for the comment analysis pipeline
"""

from commentflow.domain.exceptions import (
    # Base
    ServiceError,
    # Resource Errors
    ResourceNotFoundError,
    UserNotFoundError,
    JobNotFoundError,
    CommentNotFoundError,
    # External Service Errors
    ExternalServiceError,
    APIError,
    TranslationAPIError,
    RateLimitError,
    ServiceUnavailableError,
    CircuitOpenError,
    # Processing Errors
    ClassificationError,
    InvalidTransition,
    PayloadError,
    # Utility Functions
    is_retryable_error,
    get_retry_delay,
    error_to_http_status,
)
from commentflow.services.analysis_service import AnalysisService
from commentflow.services.cache_warming_service import CacheWarmingService, WarmingType
from commentflow.services.classification_service import (
    DEFAULT_KEYWORDS,
    ClassificationResult,
    ClassificationService,
)
from commentflow.services.comment_lifecycle_service import CommentLifecycleService
from commentflow.services.comment_processing_service import CommentProcessingService
from commentflow.services.import_service import ImportResult, ImportService
from commentflow.services.job_tracker_service import IMPORT_SHARE, JobTrackerService
from commentflow.services.keyword_service import KeywordService
from commentflow.services.metrics_service import MetricsService, RecalculationTrigger
from commentflow.services.translation_service import TranslationService, text_hash

__all__ = [
    # Services
    "AnalysisService",
    "CacheWarmingService",
    "WarmingType",
    "ClassificationService",
    "ClassificationResult",
    "DEFAULT_KEYWORDS",
    "CommentLifecycleService",
    "CommentProcessingService",
    "ImportService",
    "ImportResult",
    "IMPORT_SHARE",
    "JobTrackerService",
    "KeywordService",
    "MetricsService",
    "RecalculationTrigger",
    "TranslationService",
    "text_hash",
    # Exceptions
    "ServiceError",
    "ResourceNotFoundError",
    "UserNotFoundError",
    "JobNotFoundError",
    "CommentNotFoundError",
    "ExternalServiceError",
    "APIError",
    "TranslationAPIError",
    "RateLimitError",
    "ServiceUnavailableError",
    "CircuitOpenError",
    "ClassificationError",
    "InvalidTransition",
    "PayloadError",
    # Utility Functions
    "is_retryable_error",
    "get_retry_delay",
    "error_to_http_status",
]
