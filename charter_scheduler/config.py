"""Runtime configuration, read from the environment (optionally a .env file)."""

from __future__ import annotations

import logging
import os
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv(os.getenv("DOTENV_CONFIG_PATH", ".env"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Zone used when rendering instants for people (dashboard summaries).
DISPLAY_TIMEZONE = ZoneInfo(os.getenv("DISPLAY_TIMEZONE", "UTC"))

OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Block time assumed when a booking request names no arrival time.
DEFAULT_BLOCK_MINUTES = int(os.getenv("DEFAULT_BLOCK_MINUTES", "120"))

SEED_DATA = os.getenv("SEED_DATA", "").lower() in ("1", "true", "yes")


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format=LOG_FORMAT,
    )
