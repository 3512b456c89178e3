# Store/database.py
import os
from functools import lru_cache
from typing import Iterator, List

from dotenv import load_dotenv

from Store.table import Store
from Store.workbook import WorkbookStore

load_dotenv()
ERP_WORKBOOK = os.getenv("ERP_WORKBOOK", "erp.xlsx")


@lru_cache(maxsize=1)
def get_engine() -> Store:
    return WorkbookStore(ERP_WORKBOOK)


def init_db(reset: bool = False) -> List[str]:
    """Make sure every table exists; `reset=True` wipes them back to headers."""
    return get_engine().provision(reset=reset)


def get_store() -> Iterator[Store]:
    yield get_engine()
