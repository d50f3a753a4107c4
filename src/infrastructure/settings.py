"""Application settings loaded from environment variables via Pydantic."""

from __future__ import annotations

from decimal import Decimal

from pydantic_settings import BaseSettings

from application.services.simulation_service import SimulationSettings
from domain.models.billing import ItemCategory
from domain.services.anomaly_detector import DetectionRules


class AppSettings(BaseSettings):
    """Central configuration for the bill insights service."""

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    # Service
    service_name: str = "bill-insights"
    version: str = "1.0.0"

    # Collaborators (empty base URL = in-memory adapter)
    billing_base_url: str = ""
    catalog_base_url: str = ""
    http_timeout_seconds: float = 5.0

    # Celery
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # Anomaly detection
    spike_z_threshold: float = 2.0
    high_z_threshold: float = 3.0
    medium_percentage: float = 30.0
    high_percentage: float = 100.0
    increase_threshold_percentage: float = 50.0
    high_value_amount: Decimal = Decimal("50")
    min_history: int = 3
    history_window: int = 6
    excluded_categories: str = "TAX"

    # Simulation
    currency: str = "TRY"
    default_tax_rate: Decimal = Decimal("0.20")
    significant_saving_ratio: Decimal = Decimal("0.20")

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: str = "*"

    def detection_rules(self) -> DetectionRules:
        excluded = frozenset(
            ItemCategory(name.strip().upper())
            for name in self.excluded_categories.split(",")
            if name.strip()
        )
        return DetectionRules(
            spike_z_threshold=self.spike_z_threshold,
            high_z_threshold=self.high_z_threshold,
            medium_percentage=self.medium_percentage,
            high_percentage=self.high_percentage,
            increase_threshold_percentage=self.increase_threshold_percentage,
            high_value_amount=self.high_value_amount,
            min_history=self.min_history,
            history_window=self.history_window,
            excluded_categories=excluded,
        )

    def simulation_settings(self) -> SimulationSettings:
        return SimulationSettings(
            significant_saving_ratio=self.significant_saving_ratio,
            default_tax_rate=self.default_tax_rate,
            currency=self.currency,
        )


def get_settings() -> AppSettings:
    """Return the application settings singleton."""
    return AppSettings()
