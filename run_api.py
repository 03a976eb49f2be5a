#!/usr/bin/env python3
"""
Script to run the Library Book API server.
"""

import sys

import uvicorn

from api.config import config
from utilities.logger import get_logger, setup_logging


def main():
    """Run the API server."""
    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger = get_logger(__name__)

    if not config.mongodb_url:
        logger.error("MONGODB_URL is not defined in environment variables")
        sys.exit(1)

    logger.info("Starting Library Book API server",
                host=config.host,
                port=config.port,
                database=config.mongodb_database,
                collection=config.mongodb_collection)

    # Lifespan startup pings MongoDB; on failure uvicorn exits non-zero
    uvicorn.run(
        "api.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        log_config=None,
        access_log=True
    )


if __name__ == "__main__":
    main()
