# commentflow/infrastructure/cache/cache_types.py
"""
Cache Types and Policies
Closed set of logical cache partitions with their TTL and size ceilings
"""

import enum
from dataclasses import dataclass
from typing import Dict, Optional

MB = 1024 * 1024


class CacheType(str, enum.Enum):
    """Logical cache partition"""

    TRANSLATION = "translation"
    USER_METRICS = "user_metrics"
    GROUP_METRICS = "group_metrics"
    KEYWORDS = "keywords"
    JOB_PROGRESS = "job_progress"
    API_RESPONSE = "api_response"
    USER_DATA = "user_data"
    COMMENT_ANALYSIS = "comment_analysis"
    CIRCUIT_BREAKER = "circuit_breaker"
    JOB_METRICS = "job_metrics"
    ALERTS = "alerts"


class InvalidationTrigger(str, enum.Enum):
    """Business events that evict cache entries"""

    KEYWORD_CHANGE = "keyword_change"
    USER_DATA_CHANGE = "user_data_change"
    COMMENT_CHANGE = "comment_change"
    METRICS_RECALCULATION = "metrics_recalculation"
    TRANSLATION_UPDATE = "translation_update"


@dataclass(frozen=True)
class CachePolicy:
    """TTL (None = never expires) and byte ceiling for one cache type"""

    prefix: str
    ttl_seconds: Optional[int]
    max_size_bytes: int


CACHE_POLICIES: Dict[CacheType, CachePolicy] = {
    CacheType.TRANSLATION: CachePolicy("translation", None, 50 * MB),
    CacheType.USER_METRICS: CachePolicy("user_metrics", 3600, 10 * MB),
    CacheType.GROUP_METRICS: CachePolicy("group_metrics", 3600, 1 * MB),
    CacheType.KEYWORDS: CachePolicy("keywords", 30 * 60, 1 * MB),
    CacheType.JOB_PROGRESS: CachePolicy("job_progress", 24 * 3600, 5 * MB),
    CacheType.API_RESPONSE: CachePolicy("api_response", 5 * 60, 20 * MB),
    CacheType.USER_DATA: CachePolicy("user_data", 2 * 3600, 15 * MB),
    CacheType.COMMENT_ANALYSIS: CachePolicy("comment_analysis", 4 * 3600, 25 * MB),
    CacheType.CIRCUIT_BREAKER: CachePolicy("circuit_breaker", 3600, 1 * MB),
    CacheType.JOB_METRICS: CachePolicy("job_metrics", 24 * 3600, 10 * MB),
    CacheType.ALERTS: CachePolicy("alerts", 2 * 3600, 5 * MB),
}


def get_policy(cache_type: "CacheType | str") -> CachePolicy:
    """
    Resolve the policy for a cache type

    Raises:
        ValueError: Unknown cache type
    """
    return CACHE_POLICIES[CacheType(cache_type)]
