from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import uvicorn

from auralis_portal.app import create_app
from auralis_portal.config import load_portal_config
from auralis_portal.home import ensure_portal_layout, resolve_portal_home


def main() -> None:
    home = resolve_portal_home()
    paths = ensure_portal_layout(home)

    log_file = paths.logs_dir / "portal.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5),
            logging.StreamHandler(),
        ],
    )

    # Host and port already include AURALIS_BIND / AURALIS_PORT overrides.
    config = load_portal_config(paths)
    uvicorn.run(create_app(), host=config.network.bind_host, port=config.network.port)


if __name__ == "__main__":
    main()
