from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import uvicorn

from urlviewer_core.app import create_app
from urlviewer_core.config import load_viewer_config, resolve_listen_address
from urlviewer_core.home import ensure_viewer_layout, resolve_viewer_home

logger = logging.getLogger("urlviewer_core")


def main() -> None:
    home = resolve_viewer_home()
    paths = ensure_viewer_layout(home)
    config = load_viewer_config(paths)

    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            RotatingFileHandler(
                paths.log_path,
                maxBytes=config.logging.max_size_mb * 1024 * 1024,
                backupCount=config.logging.backup_count,
                encoding="utf-8",
            ),
            logging.StreamHandler(),
        ],
    )

    host, port = resolve_listen_address(config)
    logger.info(f"Server running at http://{host}:{port}")

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":
    main()
