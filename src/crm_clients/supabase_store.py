"""
Supabase-backed store for the CRM dashboard.

THIS FILE CONTAINS CLIENT-SPECIFIC QUERIES:
- table and view names come from SupabaseSettings
- filters use the store's Portuguese column names (see schema.py)
- every read is paged to exhaustion (pagination.py)

Implements crm_core.sources.RetailDataSource for the sales sniper, plus
the reads the inventory and overview pages need.
"""

from datetime import datetime
from typing import Sequence
import pandas as pd
from supabase import Client, create_client

from crm_core.config import Settings, SupabaseSettings, get_settings
from crm_core.errors import ConfigError
from crm_core.logging import get_logger
from crm_core.models import ProductFilterCriteria
from crm_core.sources import gender_filter_applies

from . import schema
from .pagination import paginate, paginate_in

logger = get_logger(__name__)

_client: Client | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Create the Supabase client once per process."""
    global _client
    if _client is not None:
        return _client
    sb = (settings or get_settings()).supabase
    if not sb.url or sb.key is None:
        raise ConfigError("Missing SUPABASE_URL or SUPABASE_KEY")
    _client = create_client(sb.url, sb.key.get_secret_value())
    return _client


def _ilike_term(value: str) -> str:
    return f"%{value.strip()}%"


class SupabaseRetailStore:
    """Reads the store's tables and views through a supabase-py client."""

    def __init__(self, client: Client, settings: SupabaseSettings | None = None):
        self.client = client
        self.settings = settings or get_settings().supabase

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SupabaseRetailStore":
        settings = settings or get_settings()
        return cls(get_supabase_client(settings), settings.supabase)

    # --- helpers ---

    def _all(self, table: str, build_query) -> list[dict]:
        return paginate(build_query, self.settings.page_size, table=table)

    def _all_in(self, table: str, build_query, values: Sequence) -> list[dict]:
        return paginate_in(
            build_query,
            values,
            chunk_size=self.settings.in_chunk_size,
            page_size=self.settings.page_size,
            table=table,
        )

    # --- sales sniper ---

    def find_product_skus(
        self, criteria: ProductFilterCriteria, neutral_gender: str = "Unissex"
    ) -> list[str]:
        table = self.settings.products_table

        def build():
            query = self.client.table(table).select("sku")
            if criteria.brand:
                query = query.ilike("marca", _ilike_term(criteria.brand))
            if gender_filter_applies(criteria.gender, neutral_gender):
                query = query.ilike("genero", _ilike_term(criteria.gender))
            if criteria.category:
                query = query.ilike("categoria_produto", _ilike_term(criteria.category))
            return query.order("sku")

        # SKUs go back to the server in an IN filter, so they stay exactly as stored
        skus = list(
            dict.fromkeys(
                row["sku"]
                for row in self._all(table, build)
                if row.get("sku") is not None and str(row["sku"]).strip()
            )
        )
        logger.debug("Products resolved", table=table, skus=len(skus))
        return skus

    def find_sale_items(
        self, skus: Sequence[str], size: str | None, since: datetime
    ) -> pd.DataFrame:
        table = self.settings.sale_items_table

        def build(chunk: list):
            query = (
                self.client.table(table)
                .select("movimentacao, tamanho, data, sku")
                .gte("data", since.isoformat())
                .in_("sku", chunk)
            )
            if size:
                query = query.ilike("tamanho", _ilike_term(size))
            return query.order("movimentacao")

        rows = self._all_in(table, build, skus)
        return schema.to_canonical(rows, schema.SALE_ITEM_COLUMNS)

    def find_sale_headers(self, transaction_ids: Sequence[str]) -> pd.DataFrame:
        table = self.settings.sales_table

        def build(chunk: list):
            return (
                self.client.table(table)
                .select("movimentacao, nome, telefone, total_venda, data")
                .in_("movimentacao", chunk)
                .order("movimentacao")
            )

        rows = self._all_in(table, build, transaction_ids)
        return schema.to_canonical(rows, schema.SALE_COLUMNS)

    # --- inventory and overview ---

    def load_stock(self) -> pd.DataFrame:
        """Per-SKU stock and sales view, best sellers first."""
        table = self.settings.stock_view
        rows = self._all(
            table,
            lambda: self.client.table(table).select("*").order("vendas_90d", desc=True),
        )
        return schema.to_canonical(rows, schema.STOCK_COLUMNS)

    def load_categories(self) -> pd.DataFrame:
        table = self.settings.categories_view
        rows = self._all(
            table,
            lambda: self.client.table(table).select("*").order("faturamento_bruto", desc=True),
        )
        return schema.to_canonical(rows, schema.CATEGORY_COLUMNS)

    def load_monthly(self) -> pd.DataFrame:
        table = self.settings.monthly_view
        rows = self._all(
            table,
            lambda: self.client.table(table).select("*").order("mes_ano"),
        )
        return schema.to_canonical(rows, schema.MONTHLY_COLUMNS)

    def load_ranking(self) -> pd.DataFrame:
        table = self.settings.ranking_view
        rows = self._all(
            table,
            lambda: self.client.table(table).select("*").order("total_gasto_real", desc=True),
        )
        return schema.to_canonical(rows, schema.RANKING_COLUMNS)

    def load_sales(self, customer_name: str | None = None) -> pd.DataFrame:
        """Sale headers, newest first; optionally one customer's only."""
        table = self.settings.sales_table

        def build():
            query = self.client.table(table).select("*")
            if customer_name is not None:
                query = query.eq("nome", customer_name)
            return query.order("data", desc=True)

        return schema.to_canonical(self._all(table, build), schema.SALE_COLUMNS)

    def load_items_for(self, transaction_ids: Sequence[str]) -> pd.DataFrame:
        table = self.settings.sale_items_table

        def build(chunk: list):
            return (
                self.client.table(table)
                .select("movimentacao, sku, tamanho, data, quantidade")
                .in_("movimentacao", chunk)
                .order("movimentacao")
            )

        return schema.to_canonical(self._all_in(table, build, transaction_ids), schema.SALE_ITEM_COLUMNS)

    def load_portfolio(self) -> pd.DataFrame:
        table = self.settings.portfolio_view
        rows = self._all(
            table,
            lambda: self.client.table(table).select("*").order("total_gasto_acumulado", desc=True),
        )
        return schema.to_canonical(rows, schema.PORTFOLIO_COLUMNS)
