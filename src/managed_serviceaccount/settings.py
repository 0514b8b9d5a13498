"""Centralized agent settings using pydantic-settings.

This module provides a single source of truth for all agent configuration
loaded from environment variables. Uses pydantic for automatic validation,
type coercion, and documentation.
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from managed_serviceaccount.constants import (
    DEFAULT_REFRESH_THRESHOLD_SECONDS,
    DEFAULT_REMOTE_CALL_TIMEOUT,
    DEFAULT_RESYNC_INTERVAL,
    DEFAULT_RETRY_DELAY,
)


class Settings(BaseSettings):
    """Agent configuration loaded from environment variables.

    All settings have sensible defaults for production use. Override via
    environment variables as documented per field.
    """

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cluster identification
    cluster_name: str = Field(
        default="",
        description="Name of the managed cluster; also the hub namespace to watch",
        validation_alias="CLUSTER_NAME",
    )
    spoke_namespace: str = Field(
        default="open-cluster-management-managed-serviceaccount",
        description="Namespace on the managed cluster that holds the ServiceAccounts",
        validation_alias="SPOKE_NAMESPACE",
    )

    # Cluster connectivity
    hub_kubeconfig: str = Field(
        default="",
        description="Path to the hub kubeconfig (empty = default kubeconfig)",
        validation_alias="HUB_KUBECONFIG",
    )
    spoke_kubeconfig: str = Field(
        default="",
        description="Path to the managed cluster kubeconfig (empty = in-cluster)",
        validation_alias="SPOKE_KUBECONFIG",
    )
    remote_call_timeout_seconds: float = Field(
        default=float(DEFAULT_REMOTE_CALL_TIMEOUT),
        gt=0,
        validation_alias="REMOTE_CALL_TIMEOUT_SECONDS",
        description="Timeout applied to every Kubernetes API call",
    )

    # Token rotation
    refresh_threshold_seconds: int = Field(
        default=DEFAULT_REFRESH_THRESHOLD_SECONDS,
        ge=0,
        validation_alias="REFRESH_THRESHOLD_SECONDS",
        description="Rotate tokens whose remaining lifetime is below this value",
    )
    resync_interval_seconds: float = Field(
        default=float(DEFAULT_RESYNC_INTERVAL),
        gt=0,
        validation_alias="RESYNC_INTERVAL_SECONDS",
        description="Interval between periodic reconciliations of every request",
    )
    retry_delay_seconds: int = Field(
        default=DEFAULT_RETRY_DELAY,
        ge=1,
        validation_alias="RETRY_DELAY_SECONDS",
        description="Delay before kopf retries a failed reconciliation",
    )

    # Logging configuration
    log_level: str = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    json_logs: bool = Field(
        default=True,
        validation_alias="JSON_LOGS",
        description="Enable JSON formatted logging for structured log aggregation",
    )
    correlation_ids: bool = Field(
        default=True,
        validation_alias="CORRELATION_IDS",
        description="Enable correlation IDs in logs for request tracing",
    )
    log_health_probes: bool = Field(
        default=False,
        validation_alias="LOG_HEALTH_PROBES",
        description="Keep access log lines for health probe and metrics endpoints",
    )
    handler_entry_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="DEBUG",
        validation_alias="HANDLER_ENTRY_LOG_LEVEL",
        description="Level of the line logged whenever a kopf handler fires",
    )

    # Metrics and observability
    metrics_port: int = Field(
        default=8081,
        validation_alias="METRICS_PORT",
        description="Port for Prometheus metrics endpoint",
    )
    metrics_host: str = Field(
        default="0.0.0.0",
        validation_alias="METRICS_HOST",
        description="Host address to bind metrics server",
    )
    liveness_port: int = Field(
        default=8080,
        validation_alias="LIVENESS_PORT",
        description="Port for the kopf liveness endpoint",
    )

    @field_validator("handler_entry_log_level", mode="before")
    @classmethod
    def upper_case_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @property
    def watched_namespaces(self) -> list[str]:
        """Hub namespaces to watch for ManagedServiceAccount resources.

        Returns:
            Single-item list with the managed cluster namespace
        """
        return [self.cluster_name] if self.cluster_name else []


# Global settings instance - initialized once at module import
settings = Settings()
