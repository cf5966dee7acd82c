# commentflow/infrastructure/resilience/alerts.py
"""
Alert Sink
Publish operational alerts with per-severity rate limiting
"""

import enum
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from commentflow.infrastructure.cache.cache_types import CacheType
from commentflow.infrastructure.cache.typed_cache import TypedCache

logger = logging.getLogger(__name__)


class Severity(str, enum.Enum):
    """Alert severity"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Minimum seconds between two alerts of the same kind and subject
RATE_LIMITS: Dict[Severity, int] = {
    Severity.CRITICAL: 60,
    Severity.HIGH: 5 * 60,
    Severity.MEDIUM: 15 * 60,
    Severity.LOW: 60 * 60,
}

_LOG_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.WARNING,
    Severity.HIGH: logging.ERROR,
    Severity.CRITICAL: logging.CRITICAL,
}


@runtime_checkable
class AlertSink(Protocol):
    """Anything that can publish an alert"""

    def notify(
        self, kind: str, payload: Dict[str, Any], severity: Severity = Severity.MEDIUM
    ) -> bool: ...


class LoggingAlertSink:
    """
    Alert sink that writes alerts to the log

    Repeated alerts for the same kind and subject are suppressed for the
    severity's rate-limit window; the window is kept in the ``alerts`` cache
    type so every worker honours it.
    """

    def __init__(self, cache: Optional[TypedCache] = None):
        self.cache = cache

    @staticmethod
    def _subject(kind: str, payload: Dict[str, Any]) -> str:
        subject = payload.get("service") or payload.get("subject") or "global"
        return f"{kind}:{subject}"

    def notify(
        self, kind: str, payload: Dict[str, Any], severity: Severity = Severity.MEDIUM
    ) -> bool:
        """
        Publish an alert unless an identical one was sent recently

        Args:
            kind: Alert kind (e.g. "circuit_breaker_open")
            payload: Alert details
            severity: Alert severity

        Returns:
            True if published, False if rate limited
        """
        severity = Severity(severity)
        subject = self._subject(kind, payload)

        if self.cache is not None:
            if self.cache.read(subject, CacheType.ALERTS) is not None:
                logger.debug(f"Alert suppressed (rate limited): {subject}")
                return False
            self.cache.write(
                subject,
                {"sent_at": datetime.now(timezone.utc).isoformat()},
                CacheType.ALERTS,
                ttl_seconds=RATE_LIMITS[severity],
            )

        logger.log(
            _LOG_LEVELS[severity],
            f"🚨 ALERT [{severity.value.upper()}] {kind}: {payload}",
        )
        return True


def notify_circuit_breaker_open(
    sink: AlertSink, service_name: str, failure_count: int
) -> bool:
    """Publish the standard alert for a circuit that just opened"""
    return sink.notify(
        "circuit_breaker_open",
        {
            "service": service_name,
            "failure_count": failure_count,
            "message": f"Circuit breaker opened for {service_name}",
        },
        Severity.HIGH,
    )
