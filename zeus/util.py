"""
Small utilities for ids and timestamps.

This module intentionally avoids third-party dependencies.
"""

from __future__ import annotations

import hashlib
import uuid
from datetime import date, datetime, timezone


def new_id(prefix: str) -> str:
    """Generate a kind-prefixed id such as ``act-1a2b3c4d``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def stable_id(prefix: str, *parts: str) -> str:
    """Derive a reproducible kind-prefixed id from ``parts``.

    The same parts always produce the same id, so re-running an analysis on
    an unchanged store yields identical identifiers.
    """
    digest = hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()
    return f"{prefix}-{digest[:8]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as an ISO-8601 UTC string with a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp or ``YYYY-MM-DD`` date.

    Naive values are taken as UTC. Returns None for empty or unparseable
    input.
    """
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
