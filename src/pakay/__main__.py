"""Serve the demo orders API: python -m pakay"""

from __future__ import annotations

import logging

import uvicorn

from pakay.config import load_config

logger = logging.getLogger("pakay")


def main() -> None:
    config = load_config()
    if not config.salt:
        logger.warning("No salt configured; set PAKAY_SALT so tokens differ from other deployments")
    uvicorn.run(
        "pakay.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
    )


if __name__ == "__main__":
    main()
