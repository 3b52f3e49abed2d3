"""Configuration management for the document rendering service.

Loads and validates YAML configuration with sensible defaults for the
HTTP server, the shared Chromium engine, per-request rendering sessions,
and ingress rate limiting. A small set of environment variables override
the file so container deployments can be tuned without a config mount.
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("configs/config.yaml")


class ServerConfig(BaseModel):
    """Configuration for the HTTP server and CORS."""

    host: str = "0.0.0.0"
    port: int = 3001
    allowed_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://localhost:5174",
        ]
    )
    max_body_bytes: int = 10 * 1024 * 1024


class EngineConfig(BaseModel):
    """Configuration for the shared headless Chromium process."""

    headless: bool = True
    chromium_sandbox: bool = False
    launch_args: list[str] = Field(
        default_factory=lambda: [
            "--no-sandbox",
            "--disable-setuid-sandbox",
            "--disable-dev-shm-usage",
        ]
    )
    launch_timeout_ms: int = 30000


class MarginConfig(BaseModel):
    """Page margins in CSS units; the bottom margin holds the footer band."""

    top: str = "20mm"
    right: str = "20mm"
    bottom: str = "25mm"
    left: str = "20mm"


class SessionConfig(BaseModel):
    """Configuration for a single rendering session."""

    viewport_width: int = 1200
    viewport_height: int = 16000
    render_timeout_ms: int = 60000
    settle_delay_ms: int = 1000
    pdf_timeout_ms: int = 120000
    page_format: str = "A4"
    margin: MarginConfig = Field(default_factory=MarginConfig)


class RateLimitConfig(BaseModel):
    """Per-client sliding window applied to the PDF endpoints."""

    max_requests: int = 100
    window_seconds: int = 15 * 60


class RenderConfig(BaseModel):
    """Configuration for the render pipeline as a whole."""

    max_concurrent_sessions: int = 0
    shutdown_grace_seconds: float = 30.0


class AppConfig(BaseModel):
    """Top-level application configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    log_level: str = "INFO"


def apply_env_overrides(
    config: AppConfig, environ: Mapping[str, str] | None = None
) -> AppConfig:
    """Apply environment variable overrides on top of a loaded config.

    Recognised variables are ``HOST``, ``PORT``, ``ALLOWED_ORIGINS``
    (comma separated) and ``LOG_LEVEL``.

    Args:
        config: Configuration loaded from file or defaults.
        environ: Environment mapping. Defaults to ``os.environ``.

    Returns:
        A new configuration with overrides applied.
    """
    if environ is None:
        environ = os.environ

    server_updates: dict[str, object] = {}
    if environ.get("HOST"):
        server_updates["host"] = environ["HOST"]
    if environ.get("PORT"):
        server_updates["port"] = int(environ["PORT"])
    if environ.get("ALLOWED_ORIGINS"):
        server_updates["allowed_origins"] = [
            origin.strip()
            for origin in environ["ALLOWED_ORIGINS"].split(",")
            if origin.strip()
        ]

    updates: dict[str, object] = {}
    if server_updates:
        updates["server"] = config.server.model_copy(update=server_updates)
    if environ.get("LOG_LEVEL"):
        updates["log_level"] = environ["LOG_LEVEL"]

    if not updates:
        return config
    logger.debug("Applying environment overrides: %s", sorted(updates))
    return config.model_copy(update=updates)


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file and the environment.

    Args:
        path: Path to the YAML configuration file. Defaults to the
            ``DOCRENDER_CONFIG`` environment variable, then
            configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path(os.environ.get("DOCRENDER_CONFIG", DEFAULT_CONFIG_PATH))

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        config = AppConfig(**raw)
    else:
        logger.info("No config file found at %s, using defaults", path)
        config = AppConfig()

    return apply_env_overrides(config)
