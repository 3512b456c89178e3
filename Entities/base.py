# Entities/base.py ───────────────────────────────────────────
"""
Generic CRUD over one table, with every mutation written to the audit trail.
Concrete services only declare their table, key, required fields and defaults.
"""
from typing import Any, Dict, List, Optional, Tuple

from Audit.audit import AuditTrail
from errors import Conflict, NotFound, ValidationError, as_result
from Store.table import Located, Store, Table
from Store.utils import generate_id, loose_equals, now_iso, validate_required

Record = Dict[str, Any]


class EntityService:
    table_name: str = ""
    key: str = ""                      # id column
    label: str = "Entity"              # used in messages
    item: str = "item"                 # result key for one record
    items: str = "items"               # result key for a list
    id_prefix: Optional[str] = None    # generate the key when set
    required: Tuple[str, ...] = ()
    unique: Optional[str] = None       # column that must be unique (default: key)
    filters: Tuple[str, ...] = ()      # columns `list` may filter on
    soft_delete: Optional[Record] = None  # values written instead of removing the row
    conflict_message: Optional[str] = None
    read_only: Tuple[str, ...] = ()    # columns a generic update may not touch

    def __init__(self, store: Store, audit: Optional[AuditTrail] = None):
        self.store = store
        self.audit = audit or AuditTrail(store)

    # ─── hooks ───────────────────────────────────────────────────────────
    def build(self, data: Record, now: str) -> Record:
        """Record to append for `data`; override to add defaults."""
        return {**data, "created_at": now, "updated_at": now}

    # ─── internals (raise ErpError) ──────────────────────────────────────
    def _table(self) -> Table:
        return self.store.require(self.table_name)

    def _locate(self, table: Table, entity_id: Any) -> Located:
        found = table.find(self.key, entity_id)
        if found is None:
            raise NotFound(f"{self.label} not found")
        return found

    def _insert(self, data: Record) -> Record:
        missing = validate_required(data, self.required)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        table = self._table()
        unique = self.unique or self.key
        with table.lock:
            if data.get(unique) not in (None, "") and table.find(unique, data[unique]) is not None:
                raise self._conflict()
            now = now_iso()
            record = dict(data)
            if self.id_prefix:
                record[self.key] = generate_id(self.id_prefix)
            record = self.build(record, now)
            stored = table.append(record)

        self.audit.log(self.table_name, stored[self.key], "create", None, stored)
        return stored

    def _conflict(self) -> Conflict:
        unique = self.unique or self.key
        return Conflict(self.conflict_message
                        or f"{self.label} with this {unique.replace('_', ' ')} already exists")

    def _modify(self, entity_id: Any, patch: Record, action: str = "update") -> Record:
        patch = {k: v for k, v in patch.items() if k != self.key and k not in self.read_only}
        table = self._table()
        with table.lock:
            found = self._locate(table, entity_id)
            current = found.record
            unique = self.unique
            if unique and patch.get(unique) not in (None, "") \
                    and not loose_equals(patch[unique], current.get(unique)):
                other = table.find(unique, patch[unique])
                if other is not None and other.index != found.index:
                    raise self._conflict()
            updated = table.update(found, {**current, **patch, "updated_at": now_iso()})

        self.audit.log(self.table_name, entity_id, action, current, updated)
        return updated

    def _remove(self, entity_id: Any) -> Record:
        table = self._table()
        with table.lock:
            found = self._locate(table, entity_id)
            current = found.record
            if self.soft_delete is not None:
                table.set_values(found, **self.soft_delete, updated_at=now_iso())
            else:
                table.delete(found)

        self.audit.log(self.table_name, entity_id, "delete", current, None)
        return current

    def _select(self, filters: Optional[Record] = None) -> List[Record]:
        filters = {k: v for k, v in (filters or {}).items()
                   if k in self.filters and v not in (None, "")}
        return [
            r for r in self._table().scan()
            if all(loose_equals(r.get(k), v) for k, v in filters.items())
        ]

    # ─── public API (tagged results) ─────────────────────────────────────
    @as_result
    def get(self, entity_id: Any) -> Record:
        return {"success": True, self.item: self._locate(self._table(), entity_id).record}

    @as_result
    def list(self, filters: Optional[Record] = None) -> Record:
        return {"success": True, self.items: self._select(filters)}

    @as_result
    def create(self, data: Record) -> Record:
        return {"success": True, self.item: self._insert(data)}

    @as_result
    def update(self, entity_id: Any, patch: Record) -> Record:
        return {"success": True, self.item: self._modify(entity_id, patch)}

    @as_result
    def delete(self, entity_id: Any) -> Record:
        self._remove(entity_id)
        return {"success": True}
