# Entities/export.py
from io import BytesIO

import pandas as pd

from Store.schema import SENSITIVE_COLUMNS
from Store.table import Table


def table_to_df(table: Table) -> pd.DataFrame:
    df = pd.DataFrame(table.scan(), columns=table.headers)
    return df.drop(columns=[c for c in SENSITIVE_COLUMNS if c in df.columns])


def table_to_xlsx(table: Table) -> BytesIO:
    """Whole table as an in-memory .xlsx, ready to stream."""
    buf = BytesIO()
    table_to_df(table).to_excel(buf, index=False, sheet_name=table.name[:31], engine="openpyxl")
    buf.seek(0)
    return buf
