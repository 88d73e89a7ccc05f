"""
container-updater CLI entry point.
"""

import argparse
import asyncio
import json
import logging
import sys

from pydantic import ValidationError as PydanticValidationError

from container_updater.config.settings import UpdaterConfig
from container_updater.errors import EngineError
from container_updater.logging_config import setup_logging
from container_updater.server import UpdaterServer


def main() -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="container-updater - Replace running containers in place from a webhook"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging on the console"
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate the environment configuration, print it and exit",
    )
    args = parser.parse_args()

    # Bootstrap console logging so config loading messages are visible
    setup_logging(console_level="DEBUG" if args.verbose else "INFO")
    logger = logging.getLogger("container_updater")

    try:
        config = UpdaterConfig.from_env()
    except PydanticValidationError as e:
        print(f"Configuration invalid: {e}", file=sys.stderr)
        return 1

    if args.check_config:
        print(json.dumps(config.redacted(), indent=2))
        return 0

    setup_logging(
        console_level="DEBUG" if args.verbose else config.log_level,
        log_dir=config.log_dir,
        use_json=config.log_json,
    )

    try:
        server = UpdaterServer(config)
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except EngineError as e:
        logger.error(f"Container engine unavailable: {e}")
        print(f"Error running container-updater: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        print(f"Error running container-updater: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
