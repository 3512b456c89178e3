# Store/table.py ─────────────────────────────────────────────
"""
Row store adapter: a table is an ordered header list plus rows.

Backends implement four row primitives (_rows, _append_row, _write_row,
_delete_row); everything above that (record mapping, find, scan, update)
lives here so the in-memory and workbook stores behave the same.
"""
from __future__ import annotations

import contextlib
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence

from errors import NotFound
from Store.schema import SCHEMAS
from Store.utils import loose_equals

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


@dataclass
class Located:
    """A row found by `find`: 0-based position below the header + its record."""

    index: int
    record: Record


class Table:
    def __init__(self, name: str, lock: Optional[threading.RLock] = None):
        self.name = name
        # one writer at a time: hold this across find → check → write
        self.lock = lock or threading.RLock()

    # ─── backend primitives ──────────────────────────────────────────────
    @property
    def headers(self) -> List[str]:
        raise NotImplementedError

    def _rows(self) -> List[Sequence[Any]]:
        raise NotImplementedError

    def _append_row(self, row: List[Any]) -> None:
        raise NotImplementedError

    def _write_row(self, index: int, row: List[Any]) -> None:
        raise NotImplementedError

    def _delete_row(self, index: int) -> None:
        raise NotImplementedError

    def reset(self, headers: List[str]) -> None:
        """Drop every row and rewrite the header row."""
        raise NotImplementedError

    def _prepare_row(self, row: List[Any]) -> List[Any]:
        """Backend hook: convert or reject a full row before anything is written."""
        return row

    # ─── row <-> record ──────────────────────────────────────────────────
    def row_to_record(self, row: Sequence[Any]) -> Record:
        record = {}
        for i, header in enumerate(self.headers):
            value = row[i] if i < len(row) else None
            record[header] = "" if value is None else value
        return record

    def record_to_row(self, record: Record) -> List[Any]:
        # absent / None → "" ; False and 0 are real values and are kept
        return ["" if record.get(h) is None else record.get(h) for h in self.headers]

    # ─── public API ──────────────────────────────────────────────────────
    def scan(self) -> List[Record]:
        return [self.row_to_record(r) for r in self._rows()]

    def find(self, column: str, value: Any) -> Optional[Located]:
        """First row (in row order) whose `column` equals `value`."""
        if column not in self.headers:
            return None
        for index, row in enumerate(self._rows()):
            record = self.row_to_record(row)
            if loose_equals(record[column], value):
                return Located(index, record)
        return None

    def where(self, **filters: Any) -> List[Record]:
        """Linear scan keeping rows that match every non-None filter."""
        active = {k: v for k, v in filters.items() if v is not None}
        return [
            r for r in self.scan()
            if all(loose_equals(r.get(k, ""), v) for k, v in active.items())
        ]

    def append(self, record: Record) -> Record:
        row = self._prepare_row(self.record_to_row(record))
        self._append_row(row)
        return self.row_to_record(row)

    def update(self, located: Located, record: Record) -> Record:
        """Rewrite the whole row at `located` from `record`."""
        row = self._prepare_row(self.record_to_row(record))
        self._write_row(located.index, row)
        return self.row_to_record(row)

    def set_values(self, located: Located, **values: Any) -> Record:
        """Overwrite a few cells of a located row, keeping the rest."""
        return self.update(located, {**located.record, **values})

    def delete(self, located: Located) -> None:
        self._delete_row(located.index)

    def __len__(self) -> int:
        return len(self._rows())


class MemoryTable(Table):
    def __init__(self, name: str, headers: List[str], rows: Optional[List[List[Any]]] = None,
                 lock: Optional[threading.RLock] = None):
        super().__init__(name, lock)
        self._headers = list(headers)
        self._data: List[List[Any]] = [list(r) for r in rows or []]

    @property
    def headers(self) -> List[str]:
        return list(self._headers)

    def _rows(self) -> List[Sequence[Any]]:
        return [list(r) for r in self._data]

    def _append_row(self, row: List[Any]) -> None:
        self._data.append(list(row))

    def _write_row(self, index: int, row: List[Any]) -> None:
        self._data[index] = list(row)

    def _delete_row(self, index: int) -> None:
        del self._data[index]

    def reset(self, headers: List[str]) -> None:
        self._headers = list(headers)
        self._data = []


# ─── stores ───────────────────────────────────────────────────────────────
class Store:
    """A named collection of tables (one spreadsheet)."""

    def table(self, name: str) -> Optional[Table]:
        raise NotImplementedError

    def table_names(self) -> List[str]:
        raise NotImplementedError

    def _create_table(self, name: str, headers: List[str]) -> Table:
        raise NotImplementedError

    def require(self, name: str) -> Table:
        table = self.table(name)
        if table is None:
            raise NotFound(f"{name} sheet not found")
        return table

    @contextlib.contextmanager
    def locked(self, *names: str) -> Iterator[None]:
        """Hold the write locks of several tables, always in sorted order."""
        with contextlib.ExitStack() as stack:
            for name in sorted(set(names)):
                table = self.table(name)
                if table is not None:
                    stack.enter_context(table.lock)
            yield

    def provision(self, schemas: Optional[Dict[str, List[str]]] = None, reset: bool = True) -> List[str]:
        """
        Create every table of `schemas` (default: the full registry) with its
        header row. Existing tables are cleared when `reset`, otherwise left alone.
        Returns the names of the tables that were created or reset.
        """
        touched = []
        for name, headers in (schemas or SCHEMAS).items():
            table = self.table(name)
            if table is None:
                self._create_table(name, headers)
                logger.info("Created sheet: %s", name)
            elif reset:
                with table.lock:
                    table.reset(headers)
                logger.info("Reset sheet: %s", name)
            else:
                continue
            touched.append(name)
        return touched

    def stats(self) -> Dict[str, Any]:
        sheets = {name: len(self.table(name)) for name in self.table_names()}
        return {"sheets": sheets, "total_records": sum(sheets.values())}


class MemoryStore(Store):
    def __init__(self, tables: Optional[Dict[str, MemoryTable]] = None):
        self._tables: Dict[str, MemoryTable] = dict(tables or {})

    @classmethod
    def provisioned(cls, exclude: Sequence[str] = ()) -> "MemoryStore":
        store = cls()
        store.provision({n: h for n, h in SCHEMAS.items() if n not in exclude})
        return store

    def table(self, name: str) -> Optional[Table]:
        return self._tables.get(name)

    def table_names(self) -> List[str]:
        return list(self._tables)

    def _create_table(self, name: str, headers: List[str]) -> Table:
        self._tables[name] = MemoryTable(name, headers)
        return self._tables[name]
