# Store/workbook.py ──────────────────────────────────────────
# The ERP spreadsheet as an .xlsx file: one sheet per table, headers in row 1.
import json
import logging
import threading
from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import openpyxl
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill
from openpyxl.utils.exceptions import IllegalCharacterError
from openpyxl.worksheet.worksheet import Worksheet

from errors import ValidationError
from Store.table import Store, Table

logger = logging.getLogger(__name__)

HEADER_ROW = 1
FIRST_DATA_ROW = 2

# what openpyxl can put in a cell as-is
CELL_TYPES = (str, int, float, Decimal, datetime, date, time)


class SheetTable(Table):
    def __init__(self, store: "WorkbookStore", ws: Worksheet):
        # the whole workbook is one file: all sheets share the store lock
        super().__init__(ws.title, store.lock)
        self._store = store
        self._ws = ws

    @property
    def headers(self) -> List[str]:
        if self._ws.max_row < HEADER_ROW:
            return []
        row = next(self._ws.iter_rows(min_row=HEADER_ROW, max_row=HEADER_ROW, values_only=True), ())
        headers = [str(h).strip() for h in row if h not in (None, "")]
        return headers

    def _rows(self) -> List[Sequence[Any]]:
        if self._ws.max_row < FIRST_DATA_ROW:
            return []
        rows = list(self._ws.iter_rows(min_row=FIRST_DATA_ROW, values_only=True))
        # openpyxl keeps formatted-but-empty rows around after deletes
        while rows and all(v in (None, "") for v in rows[-1]):
            rows.pop()
        return rows

    def _prepare_row(self, row: List[Any]) -> List[Any]:
        prepared = []
        for header, value in zip(self.headers, row):
            if isinstance(value, (list, tuple, dict)):
                value = json.dumps(value, default=str)
            elif value is not None and not isinstance(value, CELL_TYPES):
                value = str(value)
            if isinstance(value, str) and ILLEGAL_CHARACTERS_RE.search(value):
                raise ValidationError(f"Invalid characters in {header}")
            prepared.append(value)
        return prepared

    def _set_cells(self, target: int, row: List[Any]) -> None:
        for col, value in enumerate(row, 1):
            self._ws.cell(row=target, column=col, value=value)

    def _append_row(self, row: List[Any]) -> None:
        target = FIRST_DATA_ROW + len(self._rows())
        try:
            self._set_cells(target, row)
        except (ValueError, IllegalCharacterError) as exc:
            self._ws.delete_rows(target)
            raise ValidationError(f"Row could not be written to {self.name}: {exc}") from exc
        self._store.save()

    def _write_row(self, index: int, row: List[Any]) -> None:
        target = FIRST_DATA_ROW + index
        previous = [c.value for c in self._ws[target]]
        try:
            self._set_cells(target, row)
        except (ValueError, IllegalCharacterError) as exc:
            self._set_cells(target, previous)
            raise ValidationError(f"Row could not be written to {self.name}: {exc}") from exc
        self._store.save()

    def _delete_row(self, index: int) -> None:
        self._ws.delete_rows(FIRST_DATA_ROW + index)
        self._store.save()

    def reset(self, headers: List[str]) -> None:
        if self._ws.max_row:
            self._ws.delete_rows(1, self._ws.max_row)
        _write_headers(self._ws, headers)
        self._store.save()


def _write_headers(ws: Worksheet, headers: List[str]) -> None:
    header_font = Font(bold=True)
    header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=HEADER_ROW, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
    ws.freeze_panes = "A2"


class WorkbookStore(Store):
    """
    Opens (or creates) the workbook at `path`. Every write is saved straight
    away; reads always come from the loaded workbook.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.lock = threading.RLock()
        if self.path.exists():
            self._wb = openpyxl.load_workbook(self.path)
            logger.info("Opened workbook %s (%d sheets)", self.path, len(self._wb.sheetnames))
        else:
            self._wb = openpyxl.Workbook()
            logger.info("New workbook %s", self.path)
        self._tables: Dict[str, SheetTable] = {}

    def save(self) -> None:
        with self.lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._wb.save(self.path)

    def table(self, name: str) -> Optional[Table]:
        if name not in self._wb.sheetnames:
            return None
        if name not in self._tables:
            self._tables[name] = SheetTable(self, self._wb[name])
        return self._tables[name]

    def table_names(self) -> List[str]:
        return list(self._wb.sheetnames)

    def _create_table(self, name: str, headers: List[str]) -> Table:
        with self.lock:
            # a brand-new workbook carries one empty default sheet
            default = self._wb.worksheets[0] if len(self._wb.worksheets) == 1 else None
            if default is not None and default.title == "Sheet" and default.max_row == 1 \
                    and default.cell(1, 1).value is None:
                ws = default
                ws.title = name
            else:
                ws = self._wb.create_sheet(name)
            _write_headers(ws, headers)
            self.save()
        return self.table(name)
