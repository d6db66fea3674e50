"""
Configuration for PlantCare
===========================
Runtime settings read from ``PLANTCARE_*`` environment variables, plus the
logging setup shared by the server and the command line entry points.

The storage backend is chosen here once per process; nothing downstream
switches backends at runtime.
"""

import logging
import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from plantcare.constants import CareDefaults, Timeouts
from plantcare.domain.exceptions import ConfigurationError
from plantcare.enums.common import StorageBackend


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number.") from None


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("PLANTCARE_ENV", "development"))
    secret_key: str = field(default_factory=lambda: os.getenv("PLANTCARE_SECRET_KEY", "PlantCareDevSecretKey"))

    # Storage
    storage_backend: str = field(default_factory=lambda: os.getenv("PLANTCARE_STORAGE_BACKEND", "offline"))
    data_dir: str = field(default_factory=lambda: os.getenv("PLANTCARE_DATA_DIR", "data"))
    remote_base_url: str = field(default_factory=lambda: os.getenv("PLANTCARE_REMOTE_BASE_URL", ""))
    remote_timeout: float = field(
        default_factory=lambda: _env_float("PLANTCARE_REMOTE_TIMEOUT", Timeouts.REMOTE_STORE_TIMEOUT)
    )
    remote_api_token: str = field(default_factory=lambda: os.getenv("PLANTCARE_REMOTE_API_TOKEN", ""))

    # Derived view cache
    cache_enabled: bool = field(default_factory=lambda: _env_bool("PLANTCARE_CACHE_ENABLED", True))
    cache_ttl_seconds: int = field(default_factory=lambda: _env_int("PLANTCARE_CACHE_TTL", 30))
    cache_maxsize: int = field(default_factory=lambda: _env_int("PLANTCARE_CACHE_MAXSIZE", 64))

    # Task list policy
    upcoming_horizon_days: int = field(
        default_factory=lambda: _env_int("PLANTCARE_UPCOMING_HORIZON_DAYS", CareDefaults.UPCOMING_HORIZON_DAYS)
    )
    feeding_staleness_days: int = field(
        default_factory=lambda: _env_int("PLANTCARE_FEEDING_STALENESS_DAYS", CareDefaults.FEEDING_STALENESS_DAYS)
    )

    DEBUG: bool = field(default_factory=lambda: _env_bool("PLANTCARE_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("PLANTCARE_LOG_LEVEL", "INFO"))
    log_path: str = field(default_factory=lambda: os.getenv("PLANTCARE_LOG_PATH", "logs/plantcare.log"))

    # Default insecure secret key - used only for detection
    _DEFAULT_SECRET_KEY: str = field(default="PlantCareDevSecretKey", init=False, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        try:
            self.storage_backend = StorageBackend(str(self.storage_backend).lower()).value
        except ValueError:
            raise ConfigurationError(
                f"Unknown storage backend {self.storage_backend!r}; expected 'offline' or 'remote'",
                detail={"storage_backend": self.storage_backend},
            ) from None

        if self.storage_backend == StorageBackend.REMOTE.value and not self.remote_base_url:
            raise ConfigurationError("PLANTCARE_REMOTE_BASE_URL is required when the remote backend is selected")
        if self.remote_timeout <= 0:
            raise ConfigurationError("PLANTCARE_REMOTE_TIMEOUT must be positive")
        if self.upcoming_horizon_days < 0:
            raise ConfigurationError("PLANTCARE_UPCOMING_HORIZON_DAYS must not be negative")
        if self.feeding_staleness_days <= 0:
            raise ConfigurationError("PLANTCARE_FEEDING_STALENESS_DAYS must be positive")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigurationError(f"PLANTCARE_LOG_LEVEL {self.log_level!r} is not a logging level")

        # SECURITY: Fail fast if using default secret key in production
        if self.environment == "production" and self.secret_key == self._DEFAULT_SECRET_KEY:
            raise ConfigurationError(
                "SECURITY ERROR: Cannot use default secret key in production!\n"
                "Set PLANTCARE_SECRET_KEY environment variable to a secure random value."
            )

    @property
    def backend(self) -> StorageBackend:
        return StorageBackend(self.storage_backend)

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "SECRET_KEY": self.secret_key,
            "DEBUG": self.DEBUG,
            "PLANTCARE_DATA_DIR": self.data_dir,
            "PLANTCARE_STORAGE_BACKEND": self.storage_backend,
        }


def setup_logging(debug: bool = False, *, log_path: str = "logs/plantcare.log", level: str = "INFO") -> None:
    """Install the console and rotating-file handlers on the root logger.

    ``debug`` forces DEBUG; otherwise ``level`` (a logging level name) applies.
    An empty ``log_path`` skips the file handler.
    """
    import sys
    from logging.handlers import RotatingFileHandler

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName(str(level).upper())
        if not isinstance(log_level, int):
            raise ConfigurationError(f"Unknown log level {level!r}", detail={"log_level": level})

    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "plantcare_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "plantcare_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "plantcare_console"
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file and log_path:
        log_dir = os.path.dirname(log_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.name = "plantcare_file"
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"plantcare_console", "plantcare_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("PLANTCARE_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    return AppConfig()
