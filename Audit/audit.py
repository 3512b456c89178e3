# Audit/audit.py ─────────────────────────────────────────────
"""
Append-only audit trail.

Every service mutation calls `AuditTrail.log(...)`. Entries are appended to
the AuditLog table and never rewritten. When that table is missing the write
is skipped with a warning, unless fail-closed auditing is switched on.
"""
import logging
import os
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from errors import NotFound, ValidationError, as_result
from Store.schema import AUDIT_TABLE
from Store.table import Store
from Store.utils import generate_id, now_iso, parse_timestamp

load_dotenv()
AUDIT_FAIL_CLOSED = os.getenv("AUDIT_FAIL_CLOSED", "false").strip().lower() in ("1", "true", "yes")

SYSTEM_ACTOR = "system"
REDACTED = "[redacted]"
REDACTED_FIELDS = {"hashed_password", "password"}
FILTER_FIELDS = ("sheet_name", "entity_id", "action", "user_id")

logger = logging.getLogger(__name__)


def compute_diff(old: Optional[Dict[str, Any]], new: Optional[Dict[str, Any]]) -> str:
    """
    `key: old -> new` for every key of `new` whose value differs in `old`.
    Keys that only exist in `old` are not reported.
    """
    if old is None or new is None:
        return ""
    changes = []
    for key, value in new.items():
        before = old.get(key)
        if before == value:
            continue
        if key in REDACTED_FIELDS:
            changes.append(f"{key}: {REDACTED} -> {REDACTED}")
        else:
            changes.append(f"{key}: {_fmt(before)} -> {_fmt(value)}")
    return "; ".join(changes)


def _fmt(value: Any) -> str:
    return "" if value is None else str(value)


class AuditTrail:
    def __init__(self, store: Store, actor: Optional[str] = None,
                 fail_closed: Optional[bool] = None):
        self.store = store
        self.actor = actor or SYSTEM_ACTOR
        self.fail_closed = AUDIT_FAIL_CLOSED if fail_closed is None else fail_closed

    def log(self, sheet_name: str, entity_id: str, action: str,
            old_data: Optional[Dict[str, Any]] = None,
            new_data: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        table = self.store.table(AUDIT_TABLE)
        if table is None:
            if self.fail_closed:
                raise NotFound(f"{AUDIT_TABLE} sheet not found")
            logger.warning("%s sheet not found - skipping audit log (%s %s %s)",
                           AUDIT_TABLE, sheet_name, entity_id, action)
            return None

        entry = {
            "log_id": generate_id("LOG"),
            "sheet_name": sheet_name,
            "entity_id": entity_id,
            "action": action,
            "user_id": self.actor,
            "timestamp": now_iso(),
            "diff": compute_diff(old_data, new_data),
            "notes": "",
        }
        with table.lock:
            return table.append(entry)

    def query(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        filters = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        table = self.store.require(AUDIT_TABLE)

        start = _bound(filters, "start_date")
        end = _bound(filters, "end_date")

        logs = []
        for entry in table.scan():
            if any(k in filters and entry.get(k) != filters[k] for k in FILTER_FIELDS):
                continue
            if start or end:
                ts = parse_timestamp(entry.get("timestamp"))
                if ts is None:
                    continue
                if start and ts < start:
                    continue
                if end and ts > end:
                    continue
            logs.append(entry)

        logs.sort(key=_sort_key, reverse=True)
        return logs

    @as_result
    def get_audit_logs(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return {"success": True, "logs": self.query(filters)}


def _bound(filters: Dict[str, Any], key: str):
    if key not in filters:
        return None
    parsed = parse_timestamp(filters[key])
    if parsed is None:
        raise ValidationError(f"Invalid {key}: {filters[key]}")
    return parsed


def _sort_key(entry: Dict[str, Any]):
    ts = parse_timestamp(entry.get("timestamp"))
    # unparsable timestamps sink to the end
    return (ts is not None, ts.timestamp() if ts else 0.0)
