#!/usr/bin/env python3
"""
LogTrace configuration

All settings come from environment variables (a local .env file is loaded
first). Use Settings.from_env() to get a snapshot.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Load environment
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime configuration for the API, simulator and retention job"""

    # Elasticsearch
    elasticsearch_url: str = "http://localhost:9200"
    elastic_cloud_id: Optional[str] = None
    elastic_api_key: Optional[str] = None
    elastic_password: Optional[str] = None
    index_name: str = "logs"

    # HTTP
    port: int = 3001
    frontend_url: str = "http://localhost:5173"

    # Retention
    retention_days: int = 30
    retention_hour: int = 2

    # Simulator
    incident_service: str = "payment-service"
    tick_seconds: float = 1.0
    simulator_autostart: bool = False

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment"""
        return cls(
            elasticsearch_url=os.getenv("ELASTICSEARCH_URL", "http://localhost:9200"),
            elastic_cloud_id=os.getenv("ELASTIC_CLOUD_ID") or None,
            elastic_api_key=os.getenv("ELASTIC_API_KEY") or None,
            elastic_password=os.getenv("ELASTIC_PASSWORD") or None,
            index_name=os.getenv("LOGTRACE_INDEX", "logs"),
            port=int(os.getenv("PORT", "3001")),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173"),
            retention_days=int(os.getenv("RETENTION_DAYS", "30")),
            retention_hour=int(os.getenv("RETENTION_HOUR", "2")),
            incident_service=os.getenv("SIMULATOR_INCIDENT_SERVICE", "payment-service"),
            tick_seconds=float(os.getenv("SIMULATOR_TICK_SECONDS", "1.0")),
            simulator_autostart=_env_bool("SIMULATOR_AUTOSTART"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
