# commentflow/infrastructure/resilience/circuit_breaker.py
"""
Circuit Breaker
Fail-fast guard around external dependencies, with state shared through the typed cache
"""

import asyncio
import enum
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field

from commentflow.domain.exceptions import (
    CircuitOpenError,
    ExternalServiceError,
    RateLimitError,
    ServiceUnavailableError,
    TranslationAPIError,
)
from commentflow.infrastructure.cache.cache_types import CacheType
from commentflow.infrastructure.cache.typed_cache import TypedCache
from commentflow.infrastructure.resilience.alerts import (
    AlertSink,
    notify_circuit_breaker_open,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
ErrorClassifier = Callable[[BaseException], bool]


class CircuitState(str, enum.Enum):
    """Breaker state"""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerConfig(BaseModel):
    """Per-service breaker tuning"""

    model_config = ConfigDict(frozen=True)

    failure_threshold: int = Field(default=5, ge=1, description="Failures to open")
    recovery_timeout: float = Field(
        default=60.0, gt=0, description="Seconds open before probing"
    )
    success_threshold: int = Field(
        default=3, ge=1, description="Half-open successes to close"
    )
    call_timeout: float = Field(default=30.0, gt=0, description="Per-call deadline")


# ============================================================================
# Failure Classifiers
# ============================================================================


def is_transient_failure(error: BaseException) -> bool:
    """
    Default classifier: timeouts, connection errors and 5xx/429 responses

    Client errors (4xx) and an already-open downstream circuit do not count.
    """
    if isinstance(error, ServiceUnavailableError):
        return False
    if isinstance(error, (TimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, ExternalServiceError):
        return error.status_code is None or error.status_code >= 500 or (
            error.status_code == 429
        )
    return False


def is_translation_failure(error: BaseException) -> bool:
    """Translation breaker also counts every API-level translation failure"""
    if isinstance(error, (TranslationAPIError, RateLimitError)):
        return True
    return is_transient_failure(error)


SERVICE_CONFIGS: Dict[str, CircuitBreakerConfig] = {
    "content_source": CircuitBreakerConfig(
        failure_threshold=3, recovery_timeout=30, success_threshold=3, call_timeout=15
    ),
    "translation": CircuitBreakerConfig(
        failure_threshold=5, recovery_timeout=60, success_threshold=3, call_timeout=30
    ),
}

SERVICE_CLASSIFIERS: Dict[str, ErrorClassifier] = {
    "translation": is_translation_failure,
}


# ============================================================================
# Circuit Breaker
# ============================================================================


class CircuitBreaker:
    """
    Circuit breaker whose state lives in the typed cache

    Usage:
        breaker = CircuitBreaker.for_service("translation", cache)
        result = await breaker.call(client.translate, text, "auto", "pt")
    """

    def __init__(
        self,
        name: str,
        cache: TypedCache,
        config: Optional[CircuitBreakerConfig] = None,
        is_countable: ErrorClassifier = is_transient_failure,
        alert_sink: Optional[AlertSink] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.name = name
        self.cache = cache
        self.config = config or CircuitBreakerConfig()
        self.is_countable = is_countable
        self.alert_sink = alert_sink
        self.clock = clock

    @classmethod
    def for_service(
        cls,
        name: str,
        cache: TypedCache,
        alert_sink: Optional[AlertSink] = None,
        config: Optional[CircuitBreakerConfig] = None,
        **kwargs: Any,
    ) -> "CircuitBreaker":
        """
        Build a breaker with the registered tuning for a service

        Unregistered services use the configured defaults.
        """
        if config is None:
            config = SERVICE_CONFIGS.get(name)
        if config is None:
            from commentflow.app.config import get_config

            config = CircuitBreakerConfig(**get_config().circuit_breaker.model_dump())

        kwargs.setdefault("is_countable", SERVICE_CLASSIFIERS.get(name, is_transient_failure))
        return cls(name, cache, config=config, alert_sink=alert_sink, **kwargs)

    # ========================================================================
    # Storage
    # ========================================================================

    def _key(self, field: str) -> str:
        return f"{self.name}:{field}"

    @property
    def _counter_ttl(self) -> int:
        return int(self.config.recovery_timeout * 2)

    @property
    def _state_ttl(self) -> int:
        return int(self.config.recovery_timeout * 3)

    def _set_state(self, state: CircuitState) -> None:
        self.cache.write(
            self._key("state"), state.value, CacheType.CIRCUIT_BREAKER, self._state_ttl
        )

    def _stored_state(self) -> CircuitState:
        value = self.cache.read(self._key("state"), CacheType.CIRCUIT_BREAKER)
        return CircuitState(value) if value else CircuitState.CLOSED

    def _counter(self, field: str) -> int:
        return int(self.cache.read(self._key(field), CacheType.CIRCUIT_BREAKER) or 0)

    def _last_failure(self) -> Optional[Dict[str, Any]]:
        return self.cache.read(self._key("last_failure"), CacheType.CIRCUIT_BREAKER)

    def _clear_counters(self) -> None:
        for field in ("failures", "successes", "last_failure"):
            self.cache.delete(self._key(field), CacheType.CIRCUIT_BREAKER)

    # ========================================================================
    # State Machine
    # ========================================================================

    @property
    def state(self) -> CircuitState:
        """Current state, applying the open -> half-open recovery check"""
        state = self._stored_state()

        if state == CircuitState.OPEN and self._recovery_elapsed():
            self.cache.delete(self._key("successes"), CacheType.CIRCUIT_BREAKER)
            self._set_state(CircuitState.HALF_OPEN)
            logger.info(f"🔄 Circuit {self.name} half-open, probing recovery")
            return CircuitState.HALF_OPEN

        return state

    @property
    def failure_count(self) -> int:
        return self._counter("failures")

    @property
    def success_count(self) -> int:
        return self._counter("successes")

    def _recovery_elapsed(self) -> bool:
        last_failure = self._last_failure()
        if not last_failure:
            return True
        return self.clock() - last_failure["time"] >= self.config.recovery_timeout

    def _retry_after(self) -> Optional[float]:
        last_failure = self._last_failure()
        if not last_failure:
            return None
        remaining = self.config.recovery_timeout - (self.clock() - last_failure["time"])
        return round(max(remaining, 0.0), 2)

    async def call(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """
        Run ``func`` through the breaker

        Raises:
            CircuitOpenError: Circuit is open; ``func`` is not invoked
            TimeoutError: Call exceeded ``call_timeout`` (counted as a failure)
        """
        state = self.state

        if state == CircuitState.OPEN:
            raise CircuitOpenError(self.name, retry_after=self._retry_after())

        try:
            result = await asyncio.wait_for(
                func(*args, **kwargs), timeout=self.config.call_timeout
            )
        except Exception as e:
            if self.is_countable(e):
                self._record_failure(state, e)
            raise

        self._record_success(state)
        return result

    def _record_failure(self, state: CircuitState, error: BaseException) -> None:
        self.cache.write(
            self._key("last_failure"),
            {"time": self.clock(), "error": f"{type(error).__name__}: {error}"},
            CacheType.CIRCUIT_BREAKER,
            self._counter_ttl,
        )

        if state == CircuitState.HALF_OPEN:
            self.cache.delete(self._key("successes"), CacheType.CIRCUIT_BREAKER)
            self._open(self.failure_count)
            return

        failures = self.cache.increment(
            self._key("failures"), CacheType.CIRCUIT_BREAKER, ttl_seconds=self._counter_ttl
        )
        logger.warning(
            f"⚠️ Circuit {self.name} failure {failures}/{self.config.failure_threshold}: "
            f"{type(error).__name__}"
        )

        if failures >= self.config.failure_threshold:
            self._open(failures)

    def _record_success(self, state: CircuitState) -> None:
        if state == CircuitState.HALF_OPEN:
            successes = self.cache.increment(
                self._key("successes"),
                CacheType.CIRCUIT_BREAKER,
                ttl_seconds=self._counter_ttl,
            )
            if successes >= self.config.success_threshold:
                self._close()
            return

        # closed: only consecutive failures count
        if self.failure_count:
            self.cache.delete(self._key("failures"), CacheType.CIRCUIT_BREAKER)

    def _open(self, failure_count: int) -> None:
        self._set_state(CircuitState.OPEN)
        logger.error(
            f"❌ Circuit {self.name} opened after {failure_count} failures "
            f"(recovery in {self.config.recovery_timeout}s)"
        )
        if self.alert_sink is not None:
            notify_circuit_breaker_open(self.alert_sink, self.name, failure_count)

    def _close(self) -> None:
        self._clear_counters()
        self._set_state(CircuitState.CLOSED)
        logger.info(f"✅ Circuit {self.name} closed")

    # ========================================================================
    # Administration
    # ========================================================================

    def status(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._stored_state().value,
            "failure_count": self.failure_count,
            "success_count": self.success_count,
            "last_failure": self._last_failure(),
            "config": self.config.model_dump(),
        }

    def reset(self) -> None:
        """Forget all state (closed with no history)"""
        self._clear_counters()
        self.cache.delete(self._key("state"), CacheType.CIRCUIT_BREAKER)
        logger.info(f"🔄 Circuit {self.name} reset")

    def force_open(self) -> None:
        self.cache.write(
            self._key("last_failure"),
            {"time": self.clock(), "error": "forced open"},
            CacheType.CIRCUIT_BREAKER,
            self._counter_ttl,
        )
        self._set_state(CircuitState.OPEN)
        logger.warning(f"⚠️ Circuit {self.name} forced open")

    def force_close(self) -> None:
        self._close()
        logger.warning(f"⚠️ Circuit {self.name} forced closed")
