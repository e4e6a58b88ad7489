from __future__ import annotations

from .errors import DdbConflict, DdbError
from .table import DynamoTable, Page, get_main_table

__all__ = ["DdbConflict", "DdbError", "DynamoTable", "Page", "get_main_table"]
