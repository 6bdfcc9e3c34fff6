from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_HOME_DIRNAME = ".urlviewer"


@dataclass(frozen=True)
class ViewerPaths:
    """Where the viewer keeps its optional config file and rotating logs."""

    home: Path

    @property
    def logs_dir(self) -> Path:
        return self.home / "logs"

    @property
    def config_dir(self) -> Path:
        return self.home / "config"

    @property
    def config_path(self) -> Path:
        return self.config_dir / "viewer.json"

    @property
    def log_path(self) -> Path:
        return self.logs_dir / "viewer.log"


def resolve_viewer_home(environ: dict[str, str] | None = None) -> Path:
    """``$URLVIEWER_HOME`` if set, else ``~/.urlviewer``."""

    env = os.environ if environ is None else environ
    raw = (env.get("URLVIEWER_HOME") or "").strip()
    if not raw:
        return (Path.home() / DEFAULT_HOME_DIRNAME).resolve()
    return Path(raw).expanduser().resolve()


def ensure_viewer_layout(home: Path) -> ViewerPaths:
    paths = ViewerPaths(home=home)
    paths.logs_dir.mkdir(parents=True, exist_ok=True)
    paths.config_dir.mkdir(parents=True, exist_ok=True)
    return paths
