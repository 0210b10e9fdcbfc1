"""
Test Suite Configuration
"""
from datetime import datetime
from types import SimpleNamespace

import pandas as pd
import pytest

from crm_clients.export_store import ExportFileStore, LoadedTables

NOW = datetime(2025, 6, 15, 12, 0, 0)


class FakeQuery:
    """Mimics the supabase-py query builder over a list of row dicts."""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table = table
        self.filters = []
        self.range_calls = []

    def select(self, columns):
        self.filters.append(("select", columns))
        return self

    def ilike(self, column, pattern):
        self.filters.append(("ilike", column, pattern))
        return self

    def eq(self, column, value):
        self.filters.append(("eq", column, value))
        return self

    def gte(self, column, value):
        self.filters.append(("gte", column, value))
        return self

    def in_(self, column, values):
        self.filters.append(("in", column, list(values)))
        return self

    def order(self, column, desc=False):
        self.filters.append(("order", column, desc))
        return self

    def range(self, start, end):
        self.range_calls.append((start, end))
        return self

    def _matches(self, row):
        for f in self.filters:
            kind = f[0]
            if kind == "ilike":
                term = f[2].strip("%").lower()
                value = row.get(f[1])
                if value is None or term not in str(value).lower():
                    return False
            elif kind == "eq" and row.get(f[1]) != f[2]:
                return False
            elif kind == "gte" and (row.get(f[1]) is None or str(row.get(f[1])) < f[2]):
                return False
            elif kind == "in" and str(row.get(f[1])) not in {str(v) for v in f[2]}:
                return False
        return True

    def execute(self):
        self.client.executed.append(self)
        if self.table in self.client.failing_tables:
            raise ConnectionError(f"connection refused for {self.table}")
        rows = [r for r in self.client.tables.get(self.table, []) if self._matches(r)]
        start, end = self.range_calls[-1] if self.range_calls else (0, len(rows) - 1)
        # Server-side cap, like PostgREST max-rows
        end = min(end, start + self.client.max_rows - 1)
        return SimpleNamespace(data=rows[start:end + 1])


class FakeSupabase:
    def __init__(self, tables: dict[str, list[dict]], max_rows: int = 1000):
        self.tables = tables
        self.max_rows = max_rows
        self.failing_tables: set[str] = set()
        self.executed: list[FakeQuery] = []

    def table(self, name):
        return FakeQuery(self, name)

    def queries_for(self, table):
        return [q for q in self.executed if q.table == table]


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def products_df() -> pd.DataFrame:
    return pd.DataFrame({
        "sku": ["NK-F-01", "NK-M-01", "NK-U-01", "AD-F-01", "NK-F-02"],
        "brand": ["Nike", "Nike", "Nike", "Adidas", "NIKE SPORTSWEAR"],
        "gender": ["Feminino", "Masculino", "Unissex", "Feminino", "Feminino"],
        "category": ["Tenis", "Tenis", "Camiseta", "Tenis", "Camiseta"],
    })


@pytest.fixture
def sale_items_df() -> pd.DataFrame:
    return pd.DataFrame({
        "transaction_id": ["T1", "T2", "T2", "T3", "T4", "T5", "T6", "T7"],
        "sku": ["NK-F-01", "NK-F-01", "NK-F-02", "NK-F-01", "NK-M-01", "NK-F-01", "NK-F-01", "AD-F-01"],
        "size": ["38", "38", "M", "37", "40", "38", "38", "38"],
        "occurred_at": pd.to_datetime([
            "2025-05-01",
            "2025-03-10",
            "2025-03-10",
            "2025-04-01",
            "2025-02-01",
            "2023-01-01",  # outside the 12-month window
            "2025-06-01",
            "2025-05-20",
        ]),
    })


@pytest.fixture
def sales_df() -> pd.DataFrame:
    return pd.DataFrame({
        "transaction_id": ["T1", "T2", "T3", "T4", "T5", "T6", "T7"],
        "customer_name": ["Ana", "Ana Souza", "Bia", "Caio", "Duda", "Eva", "Fabi"],
        "customer_phone": ["11999998888", "11999998888", "11988887777", "11977776666",
                           "11966665555", "1234567", "11955554444"],
        "total_amount": [100.0, 50.0, 80.0, 60.0, 70.0, 90.0, 40.0],
        "occurred_at": pd.to_datetime([
            "2025-05-01", "2025-03-10", "2025-04-01", "2025-02-01",
            "2023-01-01", "2025-06-01", "2025-05-20",
        ]),
        "salesperson": ["Julia", "Marta", "Julia", None, "Marta", "Julia", "Marta"],
    })


@pytest.fixture
def export_store(products_df, sale_items_df, sales_df) -> ExportFileStore:
    return ExportFileStore(
        LoadedTables(products=products_df, sale_items=sale_items_df, sales=sales_df)
    )


@pytest.fixture
def stock_df() -> pd.DataFrame:
    return pd.DataFrame({
        "sku": ["A", "B", "C", "D"],
        "brand": ["Nike", "Nike", "Adidas", "Nike"],
        "category": ["Tenis", "Tenis", "Tenis", "Camiseta"],
        "gender": ["Feminino", "Feminino", "Masculino", "Feminino"],
        "units_on_hand": [6, 2, 0, 10],
        "units_sold_90d": [1, 10, 0, 90],
        "revenue_90d": [100.0, 1000.0, 0.0, 4500.0],
        "stock_value": [600.0, 200.0, 0.0, 500.0],
    })


@pytest.fixture
def make_supabase():
    """Factory for FakeSupabase clients: make_supabase(tables, max_rows=...)."""
    return FakeSupabase
