"""Correlation id helpers.

Every logical request carries one UUID v4 correlation id from the orchestrator
through each agent. Missing or malformed ids are replaced at the boundary.
"""
import re
import uuid
from typing import Optional

CORRELATION_HEADER = "x-correlation-id"

_UUID_V4 = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def is_valid_correlation_id(value: Optional[str]) -> bool:
    """Check that ``value`` is shaped like a UUID v4."""
    return bool(value) and _UUID_V4.match(value) is not None


def ensure_correlation_id(value: Optional[str]) -> str:
    """Return ``value`` if it is a valid UUID v4, otherwise a fresh one."""
    if value and is_valid_correlation_id(value):
        return value
    return generate_correlation_id()
