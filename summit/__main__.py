"""
summit.__main__ — Entry point for ``python -m summit``
=======================================================

Wiring:
1. Load .env (secrets: DATABASE_URL, JWT_SECRET).
2. Load config.yaml (API port, time-zone default, background jobs).
3. Serve the FastAPI app with uvicorn.  Schema creation, seeding, the
   catalog cache and the realtime bridge start in the app lifespan.

Run with::

    python -m summit
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from summit.config import load_config

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("summit")


def main() -> None:
    """Bootstrap and run the Summit API."""
    load_dotenv()

    cfg = load_config()
    logger.info("Config loaded — Community: %s", cfg.community_name)

    uvicorn.run(
        "summit.api.main:app",
        host="0.0.0.0",
        port=cfg.api_port,
        log_config=None,  # keep the basicConfig format above
    )


if __name__ == "__main__":
    main()
