#!/usr/bin/env python3
"""Launch the wellbeing analytics API.

Usage:
    # From the repo root with the venv activated:
    python scripts/run_server.py

    # Seed demo data first if Redis is empty:
    python -m wellbeing.scripts.seed_demo
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure the repo root is on sys.path so `from wellbeing.…` imports work
_root_dir = Path(__file__).resolve().parent.parent
if str(_root_dir) not in sys.path:
    sys.path.insert(0, str(_root_dir))

from wellbeing.config.settings import LOG_LEVEL, REDIS_URL, REFERENCE_TIMEZONE, SERVER_HOST, SERVER_PORT

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s  %(levelname)-7s  %(name)-28s  %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("run_server")


def main():
    import uvicorn

    logger.info("=" * 60)
    logger.info("  Wellbeing Analytics")
    logger.info("=" * 60)
    logger.info("  API               →  http://%s:%d", SERVER_HOST, SERVER_PORT)
    logger.info("  Redis             →  %s", REDIS_URL)
    logger.info("  Reference zone    →  %s", REFERENCE_TIMEZONE)
    logger.info("=" * 60)

    uvicorn.run(
        "wellbeing.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        log_level=LOG_LEVEL.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
