"""
Main entry point for running the bridge as a module.

Usage:
    python -m qoyod_bridge
"""
import sys
import uvicorn
from loguru import logger

from .api import create_app
from .config import BridgeConfig, configure_logging


def main() -> int:
    config = BridgeConfig.from_env()
    configure_logging(config)

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Config error: {error}")
        return 1

    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
