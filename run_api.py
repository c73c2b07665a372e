#!/usr/bin/env python3
"""
Script to run the Bookworm API server.
"""

import uvicorn

from api.main import create_app
from utilities.config import AppConfig


def main():
    """Run the API server."""
    config = AppConfig()

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
