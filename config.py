"""
config.py
Runtime settings (read from the environment / an optional .env file) and logging setup.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DB_FILE = Path(os.environ.get("DRIVETRACK_DB", Path(__file__).with_name("drivetrack.db")))
CURRENCY = os.environ.get("DRIVETRACK_CURRENCY", "NPR")
DUE_SOON_DAYS = int(os.environ.get("DRIVETRACK_DUE_SOON_DAYS", "2"))
LOG_LEVEL = os.environ.get("DRIVETRACK_LOG_LEVEL", "INFO").upper()

PRICING_SETTING_KEY = "driving-school-pricing"


def configure_logging() -> None:
    # basicConfig is a no-op after the first call, so Streamlit reruns are safe
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
