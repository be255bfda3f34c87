from __future__ import annotations

from datetime import datetime, timezone


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")


def branch_timestamp() -> str:
    return datetime.now().strftime("%Y%m%d%H%M%S")


def display_timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")
