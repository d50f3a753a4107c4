"""Dependency injection container for the bill insights service.

Wires together infrastructure adapters and application services,
exposing factory functions suitable for FastAPI's ``Depends()`` system.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from application.services.anomaly_service import AnomalyService
from application.services.simulation_service import SimulationService
from domain.services.anomaly_detector import AnomalyDetector
from domain.services.rating_engine import RatingEngine
from infrastructure.adapters import (
    InMemoryAnomalyRepository,
    InMemoryBillingStore,
    InMemoryCatalog,
    InMemorySubscriptionDirectory,
    InMemoryUsageStore,
)
from infrastructure.clients.billing_gateway import HttpBillingGateway
from infrastructure.clients.catalog_client import HttpCatalogClient
from infrastructure.settings import AppSettings, get_settings

if TYPE_CHECKING:
    from application.services.ports import (
        BillingStore,
        CatalogSource,
        SubscriptionDirectory,
        UsageStore,
    )

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Central DI container that owns all service instances."""

    def __init__(self, settings: AppSettings | None = None) -> None:
        self.settings = settings or get_settings()

        # Collaborators
        self.billing_store: BillingStore
        self.usage_store: UsageStore
        self.directory: SubscriptionDirectory
        self.catalog: CatalogSource
        if self.settings.billing_base_url:
            gateway = HttpBillingGateway(
                self.settings.billing_base_url,
                timeout=self.settings.http_timeout_seconds,
            )
            self.billing_store = self.usage_store = self.directory = gateway
        else:
            self.billing_store = InMemoryBillingStore()
            self.usage_store = InMemoryUsageStore()
            self.directory = InMemorySubscriptionDirectory()

        if self.settings.catalog_base_url:
            self.catalog = HttpCatalogClient(
                self.settings.catalog_base_url,
                timeout=self.settings.http_timeout_seconds,
            )
        else:
            self.catalog = InMemoryCatalog()

        self.anomaly_repo = InMemoryAnomalyRepository()

        # Domain services
        self.detector = AnomalyDetector(self.settings.detection_rules())
        self.rating_engine = RatingEngine()

        # Application services
        self.anomaly_service = AnomalyService(
            billing_store=self.billing_store,
            anomaly_repo=self.anomaly_repo,
            detector=self.detector,
        )

        self.simulation_service = SimulationService(
            billing_store=self.billing_store,
            usage_store=self.usage_store,
            catalog=self.catalog,
            directory=self.directory,
            engine=self.rating_engine,
            settings=self.settings.simulation_settings(),
        )

        logger.info(
            "ServiceContainer initialized (billing: %s, catalog: %s)",
            type(self.billing_store).__name__,
            type(self.catalog).__name__,
        )

    def close(self) -> None:
        """Release the HTTP connection pools of remote collaborators."""
        for client in (self.billing_store, self.catalog):
            if isinstance(client, (HttpBillingGateway, HttpCatalogClient)):
                client.close()


# Module-level singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Return the global container singleton."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def reset_container() -> None:
    """Reset the global container (for testing)."""
    global _container
    _container = None


# ---------------------------------------------------------------------------
# FastAPI dependency factories
# ---------------------------------------------------------------------------


def get_anomaly_service() -> AnomalyService:
    return get_container().anomaly_service


def get_simulation_service() -> SimulationService:
    return get_container().simulation_service
