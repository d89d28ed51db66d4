#!/usr/bin/env python3
"""
Gym Recommendation Engine Server — entrypoint.

    python -m server.server

Host, port and log level come from the environment (see server/config.py).
"""

import uvicorn

from .app import app
from .config import ServerConfig, configure_logging


def main() -> None:
    config = ServerConfig.from_env()
    configure_logging(config.log_level)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
