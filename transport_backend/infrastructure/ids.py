"""
Document ids. Readable ids for new documents; normalization of legacy ids at the store boundary.
"""

import re
import secrets
import string
from datetime import datetime
from typing import Any, Optional

_ALPHABET = string.ascii_lowercase + string.digits


def _suffix(n: int = 6) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(n))


def generate_readable_id(prefix: str, now: Optional[datetime] = None) -> str:
    """PREFIX-YYYYMMDD-HHMMSS-xxxxxx, e.g. DRV-20251009-143022-abc123."""
    now = now or datetime.now()
    return f"{prefix}-{now:%Y%m%d}-{now:%H%M%S}-{_suffix()}"


def generate_route_id(origin: str = "", destination: str = "") -> str:
    """RTE-ORIGIN-DESTINATION-XXXXXX when both ends are known, timestamped otherwise."""
    if origin and destination:
        clean_origin = re.sub(r"[^a-zA-Z0-9]", "", origin)[:10]
        clean_destination = re.sub(r"[^a-zA-Z0-9]", "", destination)[:10]
        return f"RTE-{clean_origin}-{clean_destination}-{_suffix()}".upper()
    return generate_readable_id("RTE")


def generate_driver_id() -> str:
    return generate_readable_id("DRV")


def generate_vehicle_id() -> str:
    return generate_readable_id("VEH")


def generate_stop_id() -> str:
    return generate_readable_id("STP")


def normalize_id(value: Any) -> Optional[str]:
    """
    Legacy documents carry numeric ids (demo data), new ones strings.
    Everything past the store boundary is a stripped str, or None when empty.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None
