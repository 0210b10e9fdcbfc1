"""
Inventory turnover and replenishment heuristic.

For each SKU (or aggregated brand/category/gender group) computes:
- sales velocity over the trailing 90 days
- coverage days (how long current stock lasts at that velocity)
- a stocking recommendation: COMPRAR / LIQUIDAR / MANTER

Two threshold sets exist, one calibrated for single SKUs and one for
rolled-up groups. The caller picks one explicitly.
"""

from dataclasses import dataclass
from typing import Iterable
import numpy as np
import pandas as pd

from .logging import get_logger
from .models import Recommendation, StockAssessment, StockFact, StockGrain

logger = get_logger(__name__)

VELOCITY_WINDOW_DAYS = 90

# Stands in for "no recent sales, stock never runs out"
COVERAGE_SENTINEL_DAYS = 999

STOCK_COLUMNS = ["units_on_hand", "units_sold_90d", "unit_price", "revenue_90d"]


@dataclass(frozen=True)
class RestockPolicy:
    """
    Thresholds for the LIQUIDATE / RESTOCK / HOLD decision.

    LIQUIDATE when units_on_hand > liquidate_above_units and
    coverage_days > liquidate_above_coverage_days. Otherwise RESTOCK when
    units_on_hand < restock_below_units and every configured demand signal
    holds (minimum units sold, maximum coverage). Otherwise HOLD.
    """

    name: str
    liquidate_above_units: int
    liquidate_above_coverage_days: int
    restock_below_units: int
    restock_min_units_sold: int | None = None
    restock_below_coverage_days: int | None = None

    def liquidate_mask(self, units: pd.Series, coverage: pd.Series) -> pd.Series:
        return (units > self.liquidate_above_units) & (
            coverage > self.liquidate_above_coverage_days
        )

    def restock_mask(
        self, units: pd.Series, sold: pd.Series, coverage: pd.Series
    ) -> pd.Series:
        mask = units < self.restock_below_units
        if self.restock_min_units_sold is not None:
            mask &= sold >= self.restock_min_units_sold
        if self.restock_below_coverage_days is not None:
            mask &= coverage < self.restock_below_coverage_days
        return mask


# Single items: >5 units that take over 6 months to sell get liquidated;
# 2 or fewer units with 5+ sold in 90 days get restocked.
PER_SKU_POLICY = RestockPolicy(
    name="per_sku",
    liquidate_above_units=5,
    liquidate_above_coverage_days=180,
    restock_below_units=3,
    restock_min_units_sold=5,
)

# Rollups carry larger quantities: >20 units and >120 days liquidates,
# fewer than 10 units lasting under 30 days restocks.
PER_AGGREGATE_POLICY = RestockPolicy(
    name="per_aggregate",
    liquidate_above_units=20,
    liquidate_above_coverage_days=120,
    restock_below_units=10,
    restock_below_coverage_days=30,
)

_POLICIES = {
    StockGrain.SKU: PER_SKU_POLICY,
    StockGrain.AGGREGATE: PER_AGGREGATE_POLICY,
}


def policy_for(grain: StockGrain) -> RestockPolicy:
    """Named policy for a stock grain."""
    return _POLICIES[grain]


def sanitize_counts(series: pd.Series) -> pd.Series:
    """Non-numeric, null and negative values become 0."""
    values = pd.to_numeric(series, errors="coerce").astype(float).fillna(0)
    values = values.where(np.isfinite(values), 0)
    return values.clip(lower=0)


def assess_stock(
    stock_df: pd.DataFrame,
    policy: RestockPolicy,
    stock_col: str = "units_on_hand",
    sold_col: str = "units_sold_90d",
    window_days: int = VELOCITY_WINDOW_DAYS,
) -> pd.DataFrame:
    """
    Annotate stock rows with velocity, coverage and a recommendation.

    Returns a copy of stock_df, same row order and index, with:
    - sales_velocity_per_day (units sold / window, not truncated)
    - coverage_days (int, half-up rounding; COVERAGE_SENTINEL_DAYS if no sales)
    - coverage_is_infinite
    - recommendation (Recommendation value)

    Bad numbers in stock_col / sold_col are treated as 0 and never raise.
    """
    result = stock_df.copy()

    missing = pd.Series(0, index=result.index)
    units = sanitize_counts(result[stock_col] if stock_col in result else missing).astype(int)
    sold = sanitize_counts(result[sold_col] if sold_col in result else missing).astype(int)
    result[stock_col] = units
    result[sold_col] = sold

    result["sales_velocity_per_day"] = sold / float(window_days)

    has_sales = sold > 0
    # units / (sold / window) computed as units * window / sold to keep x.5 exact
    safe_sold = sold.where(has_sales, 1)
    raw_coverage = units * window_days / safe_sold
    result["coverage_days"] = np.where(
        has_sales, np.floor(raw_coverage + 0.5), COVERAGE_SENTINEL_DAYS
    ).astype(int)
    result["coverage_is_infinite"] = ~has_sales

    coverage = result["coverage_days"]
    result["recommendation"] = np.select(
        [
            policy.liquidate_mask(units, coverage),
            policy.restock_mask(units, sold, coverage),
        ],
        [Recommendation.LIQUIDATE.value, Recommendation.RESTOCK.value],
        default=Recommendation.HOLD.value,
    )

    logger.debug(
        "Stock assessed",
        policy=policy.name,
        rows=len(result),
        liquidate=int((result["recommendation"] == Recommendation.LIQUIDATE.value).sum()),
        restock=int((result["recommendation"] == Recommendation.RESTOCK.value).sum()),
    )
    return result


def assess_stock_facts(
    facts: Iterable[StockFact],
    policy: RestockPolicy,
    window_days: int = VELOCITY_WINDOW_DAYS,
) -> list[tuple[StockFact, StockAssessment]]:
    """Record-based variant of assess_stock; pairs each fact with its assessment."""
    facts = list(facts)
    if not facts:
        return []

    frame = pd.DataFrame(
        {
            "units_on_hand": [f.units_on_hand for f in facts],
            "units_sold_90d": [f.units_sold_90d for f in facts],
        }
    )
    assessed = assess_stock(frame, policy, window_days=window_days)

    return [
        (
            fact,
            StockAssessment(
                sales_velocity_per_day=float(row.sales_velocity_per_day),
                coverage_days=int(row.coverage_days),
                coverage_is_infinite=bool(row.coverage_is_infinite),
                recommendation=Recommendation(row.recommendation),
            ),
        )
        for fact, row in zip(facts, assessed.itertuples(index=False))
    ]


def format_coverage(coverage_days: int, is_infinite: bool) -> str:
    """Display text for coverage; the sentinel renders as infinity."""
    if is_infinite:
        return "∞"
    return f"{int(coverage_days)} dias"


def filter_stock(
    stock_df: pd.DataFrame,
    brand: str | None = None,
    gender: str | None = None,
    brand_col: str = "brand",
    gender_col: str = "gender",
) -> pd.DataFrame:
    """
    Restrict stock rows to one brand and/or gender (exact match).

    None means no filter; UI values like "Todas" must be mapped to None by
    the caller.
    """
    mask = pd.Series(True, index=stock_df.index)
    if brand is not None:
        mask &= stock_df[brand_col] == brand
    if gender is not None:
        mask &= stock_df[gender_col] == gender
    return stock_df[mask]


def aggregate_stock(
    stock_df: pd.DataFrame,
    group_cols: tuple[str, ...] = ("brand", "category", "gender"),
    stock_col: str = "units_on_hand",
    sold_col: str = "units_sold_90d",
    revenue_col: str = "revenue_90d",
    value_col: str = "stock_value",
) -> pd.DataFrame:
    """
    Roll per-SKU stock up to brand/category/gender groups.

    Numeric columns are summed after sanitizing. The composite group key
    ("Nike|Tenis|Feminino") goes into `identifier`. Groups keep the order of
    their first appearance.
    """
    group_cols = list(group_cols)
    df = stock_df.copy()
    for col in group_cols:
        df[col] = df[col].fillna("").astype(str).str.strip()

    sum_cols = [c for c in (stock_col, sold_col, revenue_col, value_col) if c in df.columns]
    for col in sum_cols:
        df[col] = sanitize_counts(df[col])

    if len(df) == 0:
        return pd.DataFrame(columns=["identifier"] + group_cols + sum_cols + ["sku_count"])

    df["sku_count"] = 1
    result = (
        df.groupby(group_cols, sort=False)
        .agg(**{c: (c, "sum") for c in sum_cols + ["sku_count"]})
        .reset_index()
    )
    for col in (stock_col, sold_col):
        if col in result:
            result[col] = result[col].astype(int)

    result.insert(0, "identifier", result[group_cols].agg("|".join, axis=1))
    return result


def summarize_assessment(
    assessed_df: pd.DataFrame,
    stock_col: str = "units_on_hand",
    sold_col: str = "units_sold_90d",
    value_col: str = "stock_value",
) -> dict:
    """KPI numbers for an assessed stock table."""
    counts = assessed_df["recommendation"].value_counts()
    stock_value = (
        float(sanitize_counts(assessed_df[value_col]).sum()) if value_col in assessed_df else 0.0
    )
    return {
        "rows": len(assessed_df),
        "units_on_hand": int(assessed_df[stock_col].sum()) if len(assessed_df) else 0,
        "units_sold_90d": int(assessed_df[sold_col].sum()) if len(assessed_df) else 0,
        "stock_value": stock_value,
        "restock_count": int(counts.get(Recommendation.RESTOCK.value, 0)),
        "liquidate_count": int(counts.get(Recommendation.LIQUIDATE.value, 0)),
        "hold_count": int(counts.get(Recommendation.HOLD.value, 0)),
    }
