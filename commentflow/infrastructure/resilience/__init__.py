"""
Resilience: circuit breaking and alerting
"""

from commentflow.infrastructure.resilience.alerts import (
    AlertSink,
    LoggingAlertSink,
    Severity,
    notify_circuit_breaker_open,
)
from commentflow.infrastructure.resilience.circuit_breaker import (
    SERVICE_CONFIGS,
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitState,
    is_transient_failure,
    is_translation_failure,
)

__all__ = [
    "AlertSink",
    "LoggingAlertSink",
    "Severity",
    "notify_circuit_breaker_open",
    "SERVICE_CONFIGS",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "is_transient_failure",
    "is_translation_failure",
]
