"""
Ecological Profile API Server Entry Point

Use this file for deployment:
  uvicorn main:app --host 0.0.0.0 --port $PORT
or run directly:
  python main.py
"""

import logging
import os

import uvicorn

from ecoprofile import config

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from api_server import app  # noqa: E402

logger = logging.getLogger(__name__)


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    logger.info(f"Starting Ecological Profile API on port {port}")
    uvicorn.run(app, host="0.0.0.0", port=port)
