"""Entry point for running the Outliers data service with Uvicorn."""
from __future__ import annotations

import logging
import os

import uvicorn


def main() -> None:
  logging.basicConfig(level=os.getenv("OUTLIERS_LOG_LEVEL", "INFO").upper())
  host = os.getenv("OUTLIERS_SERVER_HOST", "0.0.0.0")
  port = int(os.getenv("OUTLIERS_SERVER_PORT", "8000"))
  reload = os.getenv("UVICORN_RELOAD", "false").lower() == "true"
  uvicorn.run("outliers.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
  main()
