from __future__ import annotations

import logging
from dataclasses import dataclass

from plantcare.config import AppConfig
from plantcare.enums.common import StorageBackend
from plantcare.services.care_log_service import CareLogService
from plantcare.services.plant_service import PlantService
from plantcare.services.storage_gateway import CollectionBackend, StorageGateway
from plantcare.utils.cache import TTLCache
from infrastructure.storage import LocalCollectionStore, RemoteCollectionStore

logger = logging.getLogger(__name__)


def build_backend(config: AppConfig, *, force_offline: bool = False) -> CollectionBackend:
    """Pick the persistence backend once, from configuration.

    ``force_offline`` is used by the HTTP server, which is itself the
    authoritative store and must never proxy to another remote.
    """
    if config.backend is StorageBackend.REMOTE and not force_offline:
        headers = {"Authorization": f"Bearer {config.remote_api_token}"} if config.remote_api_token else None
        logger.info("Using remote collection store at %s", config.remote_base_url)
        return RemoteCollectionStore(config.remote_base_url, timeout=config.remote_timeout, headers=headers)
    logger.info("Using offline collection store in %s", config.data_dir)
    return LocalCollectionStore(config.data_dir)


@dataclass
class ServiceContainer:
    """Aggregate the gateway and the services built on top of it."""

    config: AppConfig
    backend: CollectionBackend
    gateway: StorageGateway
    plant_service: PlantService
    care_log_service: CareLogService

    @classmethod
    def build(cls, config: AppConfig, *, force_offline: bool = False) -> "ServiceContainer":
        """Construct the service container with all dependencies."""
        backend = build_backend(config, force_offline=force_offline)
        cache = TTLCache(
            enabled=config.cache_enabled,
            ttl_seconds=config.cache_ttl_seconds,
            maxsize=config.cache_maxsize,
        )
        gateway = StorageGateway(backend, cache=cache)
        container = cls(
            config=config,
            backend=backend,
            gateway=gateway,
            plant_service=PlantService(
                gateway,
                upcoming_horizon_days=config.upcoming_horizon_days,
                feeding_staleness_days=config.feeding_staleness_days,
            ),
            care_log_service=CareLogService(gateway),
        )
        logger.info("ServiceContainer built (%s backend)", type(backend).__name__)
        return container

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        close = getattr(self.backend, "close", None)
        if close is not None:
            try:
                close()
            except Exception as e:
                logger.warning("Failed to close storage backend: %s", e)
        self.gateway.invalidate_views()
        logger.info("ServiceContainer shutdown complete.")
