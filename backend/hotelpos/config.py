# backend/hotelpos/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///hotelpos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Order listing pagination
    POS_DEFAULT_PAGE_SIZE = _env_int("POS_DEFAULT_PAGE_SIZE", 50)
    POS_MAX_PAGE_SIZE = _env_int("POS_MAX_PAGE_SIZE", 200)

    # Kitchen queue: tickets older than this are flagged overdue
    POS_KITCHEN_TARGET_MINUTES = _env_int("POS_KITCHEN_TARGET_MINUTES", 15)

    # Background menu-availability refresh after an item is added
    POS_INVENTORY_REFRESH_ENABLED = _env_bool("POS_INVENTORY_REFRESH_ENABLED", True)

    POS_SESSION_HOURS = _env_int("POS_SESSION_HOURS", 24)

    # bcrypt cost for passwords and approval PINs
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)
