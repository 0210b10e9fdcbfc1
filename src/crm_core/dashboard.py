"""
Overview KPIs, customer ranking, salesperson portfolio and purchase history.

All functions take DataFrames already fetched (completely) from the store,
with canonical column names, and treat null numbers as 0.
"""

from typing import Iterable
import pandas as pd

from .logging import get_logger
from .models import (
    CustomerRankingEntry,
    DashboardKpis,
    PurchaseHistory,
    PurchaseHistoryEntry,
    RankingKpis,
    to_amount,
)
from .parsers import DateParser, TextMatcher

logger = get_logger(__name__)

NO_SALESPERSON = "Sem vendedor"
PLACEHOLDER_CUSTOMERS = ("Cliente Import", "Consumidor final")


def _numbers(df: pd.DataFrame, col: str) -> pd.Series:
    if col not in df.columns:
        return pd.Series(0.0, index=df.index)
    return pd.to_numeric(df[col], errors="coerce").fillna(0)


def _text(value, default: str = "") -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return default
    return str(value).strip() or default


def compute_dashboard_kpis(
    categories_df: pd.DataFrame,
    evolution_df: pd.DataFrame,
    top_n: int = 5,
) -> tuple[DashboardKpis, pd.DataFrame, pd.DataFrame]:
    """
    Headline KPIs plus the two chart tables of the overview page.

    - gross revenue / estimated profit: summed over the top_n categories by
      gross revenue
    - total orders: visits summed over every month
    - average ticket: monthly net revenue / total orders (divisor at least 1)

    Returns (kpis, top_categories, evolution sorted by month).
    """
    categories = categories_df.copy()
    categories["gross_revenue"] = _numbers(categories, "gross_revenue")
    categories["estimated_profit"] = _numbers(categories, "estimated_profit")
    top_categories = (
        categories.sort_values("gross_revenue", ascending=False, kind="stable")
        .head(top_n)
        .reset_index(drop=True)
    )

    evolution = evolution_df.copy()
    evolution["visit_count"] = _numbers(evolution, "visit_count")
    evolution["net_revenue"] = _numbers(evolution, "net_revenue")
    if "month" in evolution.columns:
        evolution = evolution.sort_values("month", kind="stable").reset_index(drop=True)

    total_orders = int(evolution["visit_count"].sum())
    net_revenue = float(evolution["net_revenue"].sum())

    kpis = DashboardKpis(
        gross_revenue=float(top_categories["gross_revenue"].sum()),
        estimated_profit=float(top_categories["estimated_profit"].sum()),
        total_orders=total_orders,
        net_revenue=net_revenue,
        average_ticket=net_revenue / (total_orders or 1),
    )
    return kpis, top_categories, evolution


def last_salesperson_by_customer(sales_df: pd.DataFrame) -> dict[str, str]:
    """Salesperson of each customer's most recent sale."""
    if len(sales_df) == 0:
        return {}
    sales = sales_df.copy()
    sales["occurred_at"] = DateParser().parse_series(sales["occurred_at"])
    sales = sales[sales["customer_name"].notna()]
    sales = sales.sort_values("occurred_at", ascending=False, kind="stable", na_position="last")

    owners: dict[str, str] = {}
    for row in sales.itertuples(index=False):
        owners.setdefault(row.customer_name, _text(row.salesperson, NO_SALESPERSON))
    return owners


def rank_customers(
    ranking_df: pd.DataFrame,
    sales_df: pd.DataFrame,
    limit: int = 100,
    excluded_names: Iterable[str] = PLACEHOLDER_CUSTOMERS,
) -> tuple[list[CustomerRankingEntry], RankingKpis]:
    """
    Top customers by real spend, each tagged with the salesperson who served
    them last ("owner").

    Placeholder customers (walk-in / import records) are excluded from both
    the ranking and the owner lookup.
    """
    excluded = set(excluded_names)
    ranking = ranking_df[~ranking_df["customer_name"].isin(excluded)].copy()
    ranking["total_spent"] = _numbers(ranking, "total_spent")
    ranking["purchase_count"] = _numbers(ranking, "purchase_count").astype(int)
    ranking = ranking.sort_values("total_spent", ascending=False, kind="stable").head(limit)

    sales = sales_df[~sales_df["customer_name"].isin(excluded)] if len(sales_df) else sales_df
    owners = last_salesperson_by_customer(sales)
    parser = DateParser()

    entries = [
        CustomerRankingEntry(
            customer_name=_text(row.customer_name),
            phone=_text(getattr(row, "phone", None)),
            owner_salesperson=owners.get(row.customer_name, NO_SALESPERSON),
            purchase_count=int(row.purchase_count),
            total_spent=float(row.total_spent),
            last_purchase_at=parser.parse(getattr(row, "last_purchase_at", None)),
        )
        for row in ranking.itertuples(index=False)
    ]

    total_sales = sum(e.total_spent for e in entries)
    kpis = RankingKpis(
        total_sales=total_sales,
        customer_count=len(entries),
        average_ticket=total_sales / len(entries) if entries else 0.0,
        total_visits=sum(e.purchase_count for e in entries),
    )
    logger.debug("Customer ranking built", customers=len(entries), owners=len(owners))
    return entries, kpis


def filter_ranking(
    entries: list[CustomerRankingEntry], term: str | None
) -> list[CustomerRankingEntry]:
    """Case-insensitive search over customer and owner names."""
    if term is None or not term.strip():
        return list(entries)
    matcher = TextMatcher()
    return [
        e
        for e in entries
        if matcher.contains(e.customer_name, term) or matcher.contains(e.owner_salesperson, term)
    ]


def customer_portfolio(
    portfolio_df: pd.DataFrame, salesperson: str | None = None
) -> pd.DataFrame:
    """
    Customers ordered by accumulated spend, optionally restricted to one
    responsible salesperson (exact match).
    """
    portfolio = portfolio_df.copy()
    portfolio["accumulated_spend"] = _numbers(portfolio, "accumulated_spend")
    if salesperson:
        portfolio = portfolio[portfolio["responsible_salesperson"] == salesperson]
    return portfolio.sort_values(
        "accumulated_spend", ascending=False, kind="stable"
    ).reset_index(drop=True)


def purchase_history(
    sales_df: pd.DataFrame, items_df: pd.DataFrame, customer_name: str
) -> PurchaseHistory:
    """A customer's sales, newest first, with each transaction's item quantity."""
    parser = DateParser()
    sales = sales_df[sales_df["customer_name"] == customer_name].copy()
    sales["occurred_at"] = parser.parse_series(sales["occurred_at"])
    sales = sales.sort_values("occurred_at", ascending=False, kind="stable", na_position="last")

    quantities: dict[str, int] = {}
    if len(items_df):
        items = items_df.copy()
        items["quantity"] = _numbers(items, "quantity")
        quantities = {
            str(k): int(v) for k, v in items.groupby("transaction_id")["quantity"].sum().items()
        }

    history = PurchaseHistory(customer_name=customer_name)
    for row in sales.itertuples(index=False):
        occurred_at = None if pd.isna(row.occurred_at) else row.occurred_at.to_pydatetime()
        history.entries.append(
            PurchaseHistoryEntry(
                transaction_id=_text(row.transaction_id),
                occurred_at=occurred_at,
                total_amount=float(to_amount(getattr(row, "total_amount", 0))),
                item_quantity=quantities.get(_text(row.transaction_id), 0),
                salesperson=_text(getattr(row, "salesperson", None), NO_SALESPERSON),
                invoice_number=_text(getattr(row, "invoice_number", None)),
                payment_type=_text(getattr(row, "payment_type", None)),
            )
        )
    return history
