from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

import uvicorn

from linkgiver_core.app import create_app
from linkgiver_core.config import apply_env_overrides, load_core_config
from linkgiver_core.home import ensure_linkgiver_layout, resolve_linkgiver_home


def main() -> None:
    home = resolve_linkgiver_home()
    paths = ensure_linkgiver_layout(home)

    config = apply_env_overrides(load_core_config(paths), os.environ)

    # Configure logging
    log_file = paths.logs_dir / "core.log"
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            RotatingFileHandler(
                log_file,
                maxBytes=config.logging.max_size_mb * 1024 * 1024,
                backupCount=config.logging.backup_count,
                encoding="utf-8",
            ),
            logging.StreamHandler(),
        ],
    )

    uvicorn.run(create_app(), host=config.network.bind_host, port=config.network.port)


if __name__ == "__main__":
    main()
