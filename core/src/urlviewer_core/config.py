from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from urlviewer_core.home import ViewerPaths


class NetworkConfig(BaseModel):
    bind_host: str = Field(default="127.0.0.1")
    port: int = Field(default=3000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    max_size_mb: int = Field(
        default=10, ge=1, description="Max size of a log file in MB before rolling."
    )
    backup_count: int = Field(default=5, ge=1, description="Number of log archives to keep.")


class FetchConfig(BaseModel):
    """Outbound request settings.

    The payload cap is not configurable; see ``urlviewer_core.relay.MAX_SIZE``.
    """

    user_agent: str = Field(default="URLViewer/0.1")
    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Optional outbound timeout; null waits on the upstream indefinitely.",
    )


class ViewerConfig(BaseModel):
    version: str = Field(default="1")
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)


def _read_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_viewer_config(paths: ViewerPaths) -> ViewerConfig:
    """Load config from ${URLVIEWER_HOME}/config/viewer.json.

    - If missing: returns defaults.
    - Validation is performed by Pydantic.
    """

    config_path = paths.config_path
    if not config_path.exists():
        return ViewerConfig()

    raw = _read_json(config_path)
    return ViewerConfig.model_validate(raw)


def resolve_listen_address(
    config: ViewerConfig, environ: dict[str, str] | None = None
) -> tuple[str, int]:
    """Return (host, port); URLVIEWER_PORT is the only environment override."""

    env = os.environ if environ is None else environ

    host = config.network.bind_host

    raw_port = (env.get("URLVIEWER_PORT") or "").strip()
    port = int(raw_port) if raw_port else config.network.port
    if not 1 <= port <= 65535:
        raise ValueError(f"URLVIEWER_PORT out of range: {port}")
    return host, port
