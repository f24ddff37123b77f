"""
KV-HTTP Configuration Settings

This module contains all configuration constants for the KV-HTTP server.
Values marked with an environment variable can be overridden at startup.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = os.environ.get("KV_HTTP_HOST", "0.0.0.0")
    PORT: int = int(os.environ.get("KV_HTTP_PORT", "4000"))

    # Lifecycle settings
    REPORT_INTERVAL: float = float(os.environ.get("KV_HTTP_REPORT_INTERVAL", "5"))
    SHUTDOWN_TIMEOUT: float = float(os.environ.get("KV_HTTP_SHUTDOWN_TIMEOUT", "5"))

    # Request limits
    MAX_BODY_SIZE: int = 1024 * 1024
    READ_BUFFER_SIZE: int = 64 * 1024  # Also bounds the size of a header line

    # Logging settings
    DEBUG: bool = os.environ.get("KV_HTTP_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("KV_HTTP_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
