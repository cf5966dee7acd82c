# commentflow/app/config.py
"""
Configuration Management for the Comment Analysis Pipeline
Environment-driven settings with optional YAML overrides
"""

import logging
import logging.handlers
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


# ============================================================================
# Core Configuration Classes
# ============================================================================


class AppSettings(BaseSettings):
    """Application-wide settings"""

    model_config = SettingsConfigDict(env_prefix="APP_")

    name: str = Field(default="commentflow", description="Application name")
    env: str = Field(
        default="development", description="Environment (also the cache namespace)"
    )


class APIConfig(BaseSettings):
    """API Server Configuration"""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = Field(default="0.0.0.0", description="API host")
    port: int = Field(default=8000, description="API port")
    prefix: str = Field(default="/api/v1", description="API prefix")
    debug: bool = Field(default=False, description="Debug mode")


class DatabaseConfig(BaseSettings):
    """Database Configuration"""

    model_config = SettingsConfigDict(env_prefix="DB_")

    url: str = Field(
        default="sqlite+aiosqlite:///./commentflow.db",
        description="Async database URL",
    )
    echo: bool = Field(default=False, description="Echo SQL queries")
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Max overflow connections")


class CacheConfig(BaseSettings):
    """Cache Configuration"""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    backend: Literal["memory", "redis"] = Field(
        default="memory", description="Cache backend"
    )
    redis_url: str = Field(
        default="redis://localhost:6379/1", description="Redis URL for caching"
    )
    hit_ratio_warning: float = Field(
        default=70.0, description="Hit ratio (%) below which a warning is raised"
    )
    hit_ratio_critical: float = Field(
        default=50.0, description="Hit ratio (%) below which the cache is critical"
    )
    monitor_interval_minutes: int = Field(
        default=30, description="Interval for periodic cache statistics logging"
    )


class LoggingConfig(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file_path: Optional[str] = Field(
        default="./logs/commentflow.log", description="Log file path"
    )


class ContentSourceSettings(BaseSettings):
    """External content source (users / posts / comments)"""

    model_config = SettingsConfigDict(env_prefix="CONTENT_SOURCE_")

    base_url: str = Field(
        default="https://jsonplaceholder.typicode.com",
        description="Content source base URL",
    )
    max_retries: int = Field(default=3, description="Inline retry attempts")
    retry_delay: float = Field(
        default=1.0, description="First retry delay in seconds, doubled per attempt"
    )
    request_timeout: float = Field(default=15.0, description="HTTP timeout (s)")

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        """At least one attempt is always made"""
        if v < 1:
            raise ValueError("max_retries must be at least 1")
        return v


class TranslationSettings(BaseSettings):
    """External translation service"""

    model_config = SettingsConfigDict(env_prefix="TRANSLATION_")

    base_url: str = Field(
        default="http://localhost:5000", description="LibreTranslate base URL"
    )
    api_key: str = Field(default="", description="Optional API key")
    source_language: str = Field(default="auto", description="Default source")
    target_language: str = Field(default="pt", description="Default target")
    request_timeout: float = Field(default=30.0, description="HTTP timeout (s)")
    detect_language: bool = Field(
        default=True, description="Skip translation when text is already in target"
    )


class ClassificationSettings(BaseSettings):
    """Keyword classification"""

    model_config = SettingsConfigDict(env_prefix="CLASSIFICATION_")

    minimum_keywords: int = Field(
        default=2, description="Distinct keyword matches required for approval"
    )
    keyword_cache_minutes: int = Field(
        default=30, description="Active keyword set cache lifetime"
    )


class CircuitBreakerSettings(BaseSettings):
    """Default circuit breaker tuning"""

    model_config = SettingsConfigDict(env_prefix="BREAKER_")

    failure_threshold: int = Field(default=5, description="Failures before opening")
    recovery_timeout: float = Field(
        default=60.0, description="Seconds before an open circuit allows a trial call"
    )
    success_threshold: int = Field(
        default=3, description="Half-open successes needed to close"
    )
    call_timeout: float = Field(default=30.0, description="Per-call deadline (s)")


class TaskMonitorSettings(BaseSettings):
    """Background task duration, memory and failure-rate alerting"""

    model_config = SettingsConfigDict(env_prefix="TASK_MONITOR_")

    enabled: bool = Field(default=True, description="Record task performance")
    duration_thresholds: Dict[str, float] = Field(
        default={
            "tasks.import.import_user": 300.0,
            "tasks.comments.process_comment": 60.0,
            "tasks.metrics.recalculate": 120.0,
            "tasks.cache.warm": 30.0,
        },
        description="Seconds per task name before a slow_execution alert",
    )
    memory_thresholds_mb: Dict[str, float] = Field(
        default={
            "tasks.import.import_user": 500.0,
            "tasks.comments.process_comment": 100.0,
            "tasks.metrics.recalculate": 200.0,
            "tasks.cache.warm": 50.0,
        },
        description="Resident memory growth per task name before a high_memory_usage alert",
    )
    failure_alert_threshold: int = Field(
        default=5, description="Daily failures of one task tolerated before alerting"
    )


class CeleryConfig(BaseSettings):
    """Celery Task Queue Configuration"""

    model_config = SettingsConfigDict(env_prefix="CELERY_")

    # Broker Settings
    broker_url: str = Field(
        default="redis://localhost:6379/0",
        description="Celery message broker URL (Redis or RabbitMQ)",
    )
    result_backend: str = Field(
        default="redis://localhost:6379/0",
        description="Task result storage backend URL",
    )
    always_eager: bool = Field(
        default=False, description="Run tasks inline (tests / local debugging)"
    )

    # Task Serialization
    task_serializer: str = Field(
        default="json", description="Task serialization format"
    )
    result_serializer: str = Field(
        default="json", description="Result serialization format"
    )
    accept_content: List[str] = Field(
        default=["json"], description="Accepted content types"
    )

    # Worker Settings
    worker_concurrency: int = Field(
        default=4, description="Number of concurrent worker processes"
    )
    worker_prefetch_multiplier: int = Field(
        default=1, description="Tasks to prefetch per worker"
    )
    worker_max_tasks_per_child: int = Field(
        default=1000,
        description="Max tasks before worker restart",
    )

    # Task Execution Settings
    task_track_started: bool = Field(
        default=True, description="Track when tasks start executing"
    )
    task_time_limit: int = Field(
        default=3600, description="Hard task timeout in seconds"
    )
    task_soft_time_limit: int = Field(
        default=1800, description="Soft task timeout in seconds"
    )
    task_acks_late: bool = Field(
        default=True, description="Acknowledge tasks after completion"
    )
    task_reject_on_worker_lost: bool = Field(
        default=True, description="Reject tasks if worker dies"
    )

    # Retry Settings
    task_max_retries: int = Field(
        default=3, description="Maximum retry attempts for failed tasks"
    )
    task_default_retry_delay: int = Field(
        default=60, description="Default delay between retries (seconds)"
    )
    task_retry_backoff_max: int = Field(
        default=600, description="Maximum retry delay (seconds)"
    )

    # Queue Settings
    task_default_queue: str = Field(
        default="default", description="Default task queue name"
    )
    task_routes: dict = Field(
        default={
            "tasks.import.*": {"queue": "import"},
            "tasks.comments.*": {"queue": "comments"},
            "tasks.metrics.*": {"queue": "metrics"},
            "tasks.cache.*": {"queue": "default"},
        },
        description="Task routing configuration",
    )

    # Result Backend Settings
    result_expires: int = Field(
        default=86400, description="Task result expiration time (24 hours)"
    )

    # Logging
    worker_hijack_root_logger: bool = Field(
        default=False, description="Don't hijack root logger"
    )
    worker_log_format: str = Field(
        default="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
        description="Worker log format",
    )


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Main Application Configuration
    Aggregates all configuration modules with unified access
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize application configuration

        Args:
            config_path: Optional YAML config file path
        """
        self.config_path = config_path or "configs/app.yaml"
        self.yaml_config = self._load_yaml_config()

        self.app = AppSettings()
        self.api = APIConfig()
        self.database = DatabaseConfig()
        self.cache = CacheConfig()
        self.logging = LoggingConfig()
        self.celery = CeleryConfig()

        # Pipeline settings
        self.content_source = ContentSourceSettings()
        self.translation = TranslationSettings()
        self.classification = ClassificationSettings()
        self.circuit_breaker = CircuitBreakerSettings()
        self.task_monitor = TaskMonitorSettings()

    def _load_yaml_config(self) -> Dict[str, Any]:
        """Load YAML configuration file"""
        config_file = Path(self.config_path)

        if not config_file.exists():
            logger.warning(f"Config file not found: {config_file}, using defaults")
            return {}

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load config: {e}")
            return {}

    @property
    def environment(self) -> str:
        """Cache namespace / deployment environment"""
        return self.app.env

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot notation key"""
        keys = key.split(".")
        value = self.yaml_config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def to_dict(self) -> Dict[str, Any]:
        """Export full configuration as dictionary"""
        return {
            "app": self.app.model_dump(),
            "api": self.api.model_dump(),
            "database": self.database.model_dump(),
            "cache": self.cache.model_dump(),
            "logging": self.logging.model_dump(),
            "celery": self.celery.model_dump(),
            "content_source": self.content_source.model_dump(),
            "translation": self.translation.model_dump(exclude={"api_key"}),
            "classification": self.classification.model_dump(),
            "circuit_breaker": self.circuit_breaker.model_dump(),
            "task_monitor": self.task_monitor.model_dump(),
        }

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration summary"""
        return {
            "app": {"name": self.app.name, "env": self.app.env},
            "api": {
                "host": self.api.host,
                "port": self.api.port,
                "prefix": self.api.prefix,
            },
            "database": {"url": self.database.url},
            "cache": {"backend": self.cache.backend},
            "content_source": {"base_url": self.content_source.base_url},
            "translation": {
                "base_url": self.translation.base_url,
                "target": self.translation.target_language,
                "api_key_set": bool(self.translation.api_key),
            },
            "classification": {
                "minimum_keywords": self.classification.minimum_keywords,
            },
        }


# ============================================================================
# Global Configuration Instance (Singleton)
# ============================================================================

_config: Optional[Config] = None
_config_lock = threading.Lock()


@lru_cache()
def get_config(config_path: Optional[str] = None) -> Config:
    """
    Get or create global configuration instance (Thread-safe singleton)

    Args:
        config_path: Optional path to config file

    Returns:
        Config instance
    """
    global _config

    if _config is None:
        with _config_lock:
            if _config is None:
                _config = Config(config_path)
                logger.info("✅ Configuration initialized")

    return _config


def reload_config(config_path: Optional[str] = None) -> Config:
    """
    Force reload configuration

    Args:
        config_path: Optional new config path

    Returns:
        New Config instance
    """
    global _config

    with _config_lock:
        get_config.cache_clear()
        _config = Config(config_path)
        logger.info("🔄 Configuration reloaded")

    return _config


def reset_config() -> None:
    """Reset global configuration (mainly for testing)"""
    global _config

    with _config_lock:
        get_config.cache_clear()
        _config = None
        logger.info("🗑️ Configuration reset")


# ============================================================================
# Configuration Validation
# ============================================================================


def validate_config(config: Optional[Config] = None) -> Dict[str, Any]:
    """
    Validate configuration

    Args:
        config: Config instance (uses global if None)

    Returns:
        Validation result with errors and warnings
    """
    if config is None:
        config = get_config()

    errors = []
    warnings = []

    if config.logging.file_path:
        log_path = Path(config.logging.file_path)
        if not log_path.parent.exists():
            try:
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create log directory: {e}")

    if not config.database.url:
        errors.append("Database URL not configured")

    if config.cache.hit_ratio_critical > config.cache.hit_ratio_warning:
        errors.append("Cache critical hit ratio must not exceed the warning ratio")

    if config.cache.backend == "memory" and not config.celery.always_eager:
        warnings.append(
            "Memory cache backend is per-process: breaker state and statistics "
            "are not shared between workers"
        )

    if config.classification.minimum_keywords < 1:
        errors.append("Classification threshold must be at least 1")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
    }


# ============================================================================
# Logging
# ============================================================================


def setup_logging(config: Optional[Config] = None) -> None:
    """
    Setup logging based on configuration

    Args:
        config: Config instance (uses global if None)
    """
    if config is None:
        config = get_config()

    log_level = getattr(logging, config.logging.level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(config.logging.format))
    root_logger.addHandler(console_handler)

    # File handler (if specified)
    if config.logging.file_path:
        log_path = Path(config.logging.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(config.logging.format))
        root_logger.addHandler(file_handler)

    logger.info(f"📝 Logging configured: level={config.logging.level}")
