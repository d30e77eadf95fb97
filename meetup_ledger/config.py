"""
Meetup Ledger — Centralized configuration.

Loads all settings from .env and validates them.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (one level up from meetup_ledger/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

_DEFAULT_CONSUMABLES = "❇️,🚬,🍹,🍾,🍻"


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # SQLite
    DATABASE_PATH: str = "data/meetups.db"

    # Join links are built as <PUBLIC_BASE_URL>/#/join/@<handle>
    PUBLIC_BASE_URL: str = "http://localhost:5173"

    # Money
    CURRENCY: str = "KES"

    # Closure: the fixed catalog of consumable items tallied per meetup
    CONSUMABLE_ITEMS: list[str] = []

    # Registration
    VERIFICATION_CODE_DIGITS: int = 6

    # Notifications: "outbox" | "webhook"
    NOTIFIER: str = "outbox"
    NOTIFY_WEBHOOK_URL: str = ""

    # LLM (optional — bulk message drafting only)
    LLM_PROVIDER: str = "gemini"
    LLM_MODEL: str = ""          # empty → smart default per provider
    LLM_API_KEY: str = ""

    @field_validator("CONSUMABLE_ITEMS", mode="before")
    @classmethod
    def parse_items(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [item.strip() for item in v.split(",") if item.strip()]
        return []

    @field_validator("VERIFICATION_CODE_DIGITS", mode="before")
    @classmethod
    def parse_digits(cls, v: str | int) -> int:
        return int(v)


def _load_settings() -> Settings:
    """Load settings from environment, validating required combinations."""
    notifier = os.getenv("NOTIFIER", "outbox")
    webhook_url = os.getenv("NOTIFY_WEBHOOK_URL", "")

    if notifier.lower() == "webhook" and not webhook_url:
        print("ERROR: NOTIFIER=webhook requires NOTIFY_WEBHOOK_URL in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/meetups.db"),
        PUBLIC_BASE_URL=os.getenv("PUBLIC_BASE_URL", "http://localhost:5173").rstrip("/"),
        CURRENCY=os.getenv("CURRENCY", "KES"),
        CONSUMABLE_ITEMS=os.getenv("CONSUMABLE_ITEMS", _DEFAULT_CONSUMABLES),
        VERIFICATION_CODE_DIGITS=os.getenv("VERIFICATION_CODE_DIGITS", "6"),
        NOTIFIER=notifier,
        NOTIFY_WEBHOOK_URL=webhook_url,
        LLM_PROVIDER=os.getenv("LLM_PROVIDER", "gemini"),
        LLM_MODEL=os.getenv("LLM_MODEL", ""),
        LLM_API_KEY=os.getenv("LLM_API_KEY", ""),
    )


# Singleton — imported by all other modules as:
#   from meetup_ledger.config import settings
settings = _load_settings()
