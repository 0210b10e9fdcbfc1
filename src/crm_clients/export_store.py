"""
File-backed store built from CSV exports of the store database.

THIS FILE CONTAINS CLIENT-SPECIFIC HANDLING:
- one CSV per table, named after the table (gemini_produtos.csv, ...)
- Portuguese headers renamed through schema.py
- phones and transaction ids read as text (CSV would turn them into floats)

Answers the same queries as SupabaseRetailStore with the same semantics
(case-insensitive substring filters, inclusive date bound), entirely in
pandas. Used offline, for batch reports and in tests.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Sequence
import pandas as pd

from crm_core.config import Settings, get_settings
from crm_core.errors import DataSourceUnavailable
from crm_core.logging import get_logger
from crm_core.models import ProductFilterCriteria
from crm_core.parsers import TextMatcher
from crm_core.quality import DataQualityReport, sale_header_checks, stock_fact_checks
from crm_core.sources import SALE_HEADER_COLUMNS, SALE_ITEM_COLUMNS, gender_filter_applies

from . import schema

logger = get_logger(__name__)

TEXT_COLUMNS = {"telefone": str, "movimentacao": str, "sku": str, "tamanho": str}


@dataclass
class LoadedTables:
    """Canonical DataFrames for every table the dashboard reads."""

    products: pd.DataFrame
    sale_items: pd.DataFrame
    sales: pd.DataFrame
    stock: pd.DataFrame = field(default_factory=pd.DataFrame)
    categories: pd.DataFrame = field(default_factory=pd.DataFrame)
    monthly: pd.DataFrame = field(default_factory=pd.DataFrame)
    ranking: pd.DataFrame = field(default_factory=pd.DataFrame)
    portfolio: pd.DataFrame = field(default_factory=pd.DataFrame)


class ExportFileStore:
    """
    In-memory store over canonical DataFrames.

    Build it from a directory of exports with from_directory(), or pass
    DataFrames (already using canonical names) directly.
    """

    def __init__(self, tables: LoadedTables):
        self.tables = tables
        self.matcher = TextMatcher()
        self.quality_reports: dict[str, DataQualityReport] = {}

    @classmethod
    def from_directory(cls, data_dir: Path | str | None = None, settings: Settings | None = None) -> "ExportFileStore":
        settings = settings or get_settings()
        data_dir = Path(data_dir or settings.data_dir)
        sb = settings.supabase

        def read(table: str, column_map: dict[str, str], required: bool = True) -> pd.DataFrame:
            path = data_dir / f"{table}.csv"
            if not path.exists():
                if required:
                    raise DataSourceUnavailable(f"Export file not found: {path}", table=table)
                return schema.to_canonical([], column_map)
            try:
                raw = pd.read_csv(path, dtype=TEXT_COLUMNS)
            except (OSError, pd.errors.ParserError) as exc:
                raise DataSourceUnavailable(f"Could not read {path}: {exc}", table=table) from exc
            return schema.to_canonical(raw, column_map)

        tables = LoadedTables(
            products=read(sb.products_table, schema.PRODUCT_COLUMNS),
            sale_items=read(sb.sale_items_table, schema.SALE_ITEM_COLUMNS),
            sales=read(sb.sales_table, schema.SALE_COLUMNS),
            stock=read(sb.stock_view, schema.STOCK_COLUMNS, required=False),
            categories=read(sb.categories_view, schema.CATEGORY_COLUMNS, required=False),
            monthly=read(sb.monthly_view, schema.MONTHLY_COLUMNS, required=False),
            ranking=read(sb.ranking_view, schema.RANKING_COLUMNS, required=False),
            portfolio=read(sb.portfolio_view, schema.PORTFOLIO_COLUMNS, required=False),
        )
        store = cls(tables)
        store.run_quality_checks(settings.analysis.min_phone_length)
        logger.info(
            "Exports loaded",
            data_dir=str(data_dir),
            products=len(tables.products),
            sale_items=len(tables.sale_items),
            sales=len(tables.sales),
            stock=len(tables.stock),
        )
        return store

    def run_quality_checks(self, min_phone_length: int = 8) -> dict[str, DataQualityReport]:
        self.quality_reports = {
            "sales": sale_header_checks(min_phone_length).run(self.tables.sales),
        }
        if len(self.tables.stock):
            self.quality_reports["stock"] = stock_fact_checks().run(self.tables.stock)
        return self.quality_reports

    # --- sales sniper ---

    def find_product_skus(
        self, criteria: ProductFilterCriteria, neutral_gender: str = "Unissex"
    ) -> list[str]:
        products = self.tables.products
        mask = self.matcher.contains_series(products["brand"], criteria.brand)
        if gender_filter_applies(criteria.gender, neutral_gender):
            mask &= self.matcher.contains_series(products["gender"], criteria.gender)
        mask &= self.matcher.contains_series(products["category"], criteria.category)
        return list(dict.fromkeys(products.loc[mask, "sku"].dropna()))

    def find_sale_items(
        self, skus: Sequence[str], size: str | None, since: datetime
    ) -> pd.DataFrame:
        items = self.tables.sale_items
        occurred = pd.to_datetime(items["occurred_at"], errors="coerce")
        mask = (
            (occurred >= pd.Timestamp(since))
            & items["sku"].isin(set(skus))
            & self.matcher.contains_series(items["size"], size)
        )
        return items.loc[mask, SALE_ITEM_COLUMNS].reset_index(drop=True)

    def find_sale_headers(self, transaction_ids: Sequence[str]) -> pd.DataFrame:
        sales = self.tables.sales
        mask = sales["transaction_id"].isin(set(transaction_ids))
        return sales.loc[mask, SALE_HEADER_COLUMNS].reset_index(drop=True)

    # --- inventory and overview ---

    def load_stock(self) -> pd.DataFrame:
        return self.tables.stock.copy()

    def load_categories(self) -> pd.DataFrame:
        return self.tables.categories.copy()

    def load_monthly(self) -> pd.DataFrame:
        return self.tables.monthly.copy()

    def load_ranking(self) -> pd.DataFrame:
        return self.tables.ranking.copy()

    def load_sales(self, customer_name: str | None = None) -> pd.DataFrame:
        sales = self.tables.sales
        if customer_name is not None:
            sales = sales[sales["customer_name"] == customer_name]
        return sales.sort_values("occurred_at", ascending=False, kind="stable").reset_index(drop=True)

    def load_items_for(self, transaction_ids: Sequence[str]) -> pd.DataFrame:
        items = self.tables.sale_items
        return items[items["transaction_id"].isin(set(transaction_ids))].reset_index(drop=True)

    def load_portfolio(self) -> pd.DataFrame:
        return self.tables.portfolio.copy()
