# Store/utils.py ─────────────────────────────────────────────
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional


def generate_id(prefix: str = "") -> str:
    """`<prefix><epoch millis><6 random hex>`, e.g. USR17356...A1B2C3"""
    millis = int(time.time() * 1000)
    return f"{prefix}{millis}{uuid.uuid4().hex[:6].upper()}"


def now_iso() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO string / datetime → aware UTC datetime. Empty or unparsable → None."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def validate_required(data: Dict[str, Any], required: Iterable[str]) -> List[str]:
    """Names of required fields that are missing, None or empty."""
    return [f for f in required if data.get(f) is None or data.get(f) == ""]


def loose_equals(cell: Any, value: Any) -> bool:
    # sheets hand back 1 where callers pass "1" and vice versa
    if cell == value:
        return True
    if cell in (None, "") or value in (None, ""):
        return False
    if isinstance(cell, bool) or isinstance(value, bool):
        return str(cell).lower() == str(value).lower()
    return str(cell) == str(value)


def to_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
