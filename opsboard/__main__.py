"""
Uvicorn launcher for the dashboard API.
"""

from __future__ import annotations

import logging
import sys

import uvicorn

from opsboard.config import get_settings


def main() -> int:
    settings = get_settings()
    config = uvicorn.Config(
        app="opsboard.app:create_app",
        factory=True,
        host=settings.host,
        port=int(settings.port),
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)

    try:
        server.run()
        return 0
    except KeyboardInterrupt:
        return 130
    except (OSError, RuntimeError) as e:
        logging.getLogger(__name__).error("Server error: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
