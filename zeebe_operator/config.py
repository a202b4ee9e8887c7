"""
Configuration module — all settings from env vars with sensible defaults.
Follows 12-factor app methodology.
"""
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    # Kubernetes
    KUBECONFIG: str = os.environ.get("KUBECONFIG", "")
    IN_CLUSTER: bool = os.environ.get("IN_CLUSTER", "false").lower() == "true"
    WATCH_NAMESPACE: str = os.environ.get("WATCH_NAMESPACE", "")

    # CRD
    CRD_GROUP: str = "zeebe.io.zeebe"
    CRD_VERSION: str = "v1"
    CRD_PLURAL: str = "zeebeclusters"
    CRD_KIND: str = "ZeebeCluster"
    PROGRESS_PREFIX: str = "zeebe.io.zeebe"
    FINALIZER: str = os.environ.get("FINALIZER", "zeebecluster.cloud.camunda.com")
    # Records owned by this tag were created in the console, never by us
    EXTERNAL_OWNER: str = os.environ.get("EXTERNAL_OWNER", "CC")

    # Camunda Cloud console API
    CLOUD_API_URL: str = os.environ.get("CLOUD_API_URL", "https://api.cloud.camunda.io")
    CLOUD_API_TOKEN: str = os.environ.get("CLOUD_API_TOKEN", "")
    REMOTE_TIMEOUT: float = float(os.environ.get("REMOTE_TIMEOUT", "5"))

    # Reconciliation
    POLL_INTERVAL: float = float(os.environ.get("POLL_INTERVAL", "10"))
    RESYNC_INTERVAL: float = float(os.environ.get("RESYNC_INTERVAL", "300"))
    EVENT_RELAY_INTERVAL: float = float(os.environ.get("EVENT_RELAY_INTERVAL", "2"))
    MAX_CONCURRENT_RECONCILES: int = int(os.environ.get("MAX_CONCURRENT_RECONCILES", "3"))
    # TemporaryError delay: RETRY_BASE_DELAY * 2**retry, capped at RETRY_MAX_DELAY
    RETRY_BASE_DELAY: float = float(os.environ.get("RETRY_BASE_DELAY", "1"))
    RETRY_MAX_DELAY: float = float(os.environ.get("RETRY_MAX_DELAY", "300"))

    # Activity stream (optional)
    REDIS_URL: str = os.environ.get("REDIS_URL", "")

    # API
    API_ENABLED: bool = os.environ.get("API_ENABLED", "true").lower() == "true"
    API_HOST: str = os.environ.get("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.environ.get("API_PORT", "8080"))
    RATE_LIMIT: str = os.environ.get("RATE_LIMIT", "30/minute")
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")


settings = Settings()
