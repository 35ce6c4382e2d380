"""
RateGrid loader: loads every configured supplier's rate grid from OpenPro
and keeps it fresh until stopped.

Usage:
    python -m rategrid.main

Environment variables: see .env.example
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import signal
import sys
import threading
from datetime import date
from pathlib import Path

from rategrid import config
from rategrid.client.openpro import OpenProClient
from rategrid.client.supplier_data import SupplierDataOrchestrator
from rategrid.core import db as db_helpers

REFRESH_SECONDS = int(os.getenv("LOADER_REFRESH_SECONDS", "0"))

# ---------------------------------------------------------------------------
# Logging: console + rotating file (logs/rategrid.log)
# ---------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

logger = logging.getLogger("rategrid")


def configure_logging(log_dir: Path) -> None:
    log_dir.mkdir(exist_ok=True)

    # Root logger setup, captures all rategrid.* loggers
    root = logging.getLogger()
    root.setLevel(config.LOG_LEVEL)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(console)

    # Rotating file handler: 5 MB per file, keep 5 backups
    file_handler = logging.handlers.RotatingFileHandler(
        filename=str(log_dir / "rategrid.log"),
        maxBytes=5 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(file_handler)


# ---------------------------------------------------------------------------
# Graceful shutdown
# ---------------------------------------------------------------------------

_shutdown_event = threading.Event()


def _signal_handler(sig, frame):
    logger.info(f"Received signal {sig}, shutting down gracefully...")
    _shutdown_event.set()


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------


def _log_summary(orchestrator: SupplierDataOrchestrator) -> None:
    for supplier_id, data in orchestrator.data.items():
        days = sum(len(cells) for cells in data.projection.daily.values())
        logger.info(
            f"  {data.supplier.name} ({supplier_id}): {len(data.accommodations)} accommodation(s), "
            f"{days} projected day(s), rate types: "
            + ", ".join(rt.label for rt in data.rate_types)
        )
    for warning in orchestrator.warnings:
        logger.warning(f"  {warning}")


def main():
    configure_logging(Path(__file__).resolve().parent / "logs")
    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    logger.info(f"RateGrid loader starting (base_url={config.OPENPRO_BASE_URL})")
    logger.info(f"  suppliers={[s.id for s in config.SUPPLIERS]}, months={config.GRID_MONTHS}")

    try:
        cache_client = db_helpers.get_optional_client()
    except Exception as exc:
        logger.warning(f"Rate cache disabled: {exc}")
        cache_client = None
    if cache_client is not None:
        logger.info(f"  rate cache enabled (ttl={config.RATE_CACHE_TTL_MINUTES}min)")

    with OpenProClient(config.OPENPRO_BASE_URL, config.OPENPRO_API_KEY, config.HTTP_TIMEOUT_SECONDS) as client:
        orchestrator = SupplierDataOrchestrator(
            client,
            cache_client=cache_client,
            cache_ttl_minutes=config.RATE_CACHE_TTL_MINUTES,
        )
        orchestrator.load_all(config.SUPPLIERS, date.today(), config.GRID_MONTHS)
        _log_summary(orchestrator)

        while REFRESH_SECONDS > 0 and not _shutdown_event.wait(REFRESH_SECONDS):
            orchestrator.load_all(config.SUPPLIERS, date.today(), config.GRID_MONTHS)
            _log_summary(orchestrator)

        orchestrator.cancel_all()

    logger.info("Loader shut down.")


if __name__ == "__main__":
    main()
