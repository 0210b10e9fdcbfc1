# Core computations for the retail CRM dashboard
# Data-source agnostic: everything here works on DataFrames or records

from .errors import CRMError, ConfigError, DataSourceUnavailable, EmptySearchError
from .models import (
    ProductFilterCriteria,
    Recommendation,
    SniperMatch,
    StockAssessment,
    StockFact,
    StockGrain,
)
from .inventory import (
    COVERAGE_SENTINEL_DAYS,
    PER_AGGREGATE_POLICY,
    PER_SKU_POLICY,
    RestockPolicy,
    aggregate_stock,
    assess_stock,
    assess_stock_facts,
    filter_stock,
    format_coverage,
    policy_for,
    summarize_assessment,
)
from .sniper import SalesSniperMatcher, build_reason, matches_to_frame
from .sources import RetailDataSource
from .dashboard import (
    compute_dashboard_kpis,
    customer_portfolio,
    filter_ranking,
    purchase_history,
    rank_customers,
)

__all__ = [
    "CRMError",
    "ConfigError",
    "DataSourceUnavailable",
    "EmptySearchError",
    "ProductFilterCriteria",
    "Recommendation",
    "SniperMatch",
    "StockAssessment",
    "StockFact",
    "StockGrain",
    "COVERAGE_SENTINEL_DAYS",
    "PER_AGGREGATE_POLICY",
    "PER_SKU_POLICY",
    "RestockPolicy",
    "aggregate_stock",
    "assess_stock",
    "assess_stock_facts",
    "filter_stock",
    "format_coverage",
    "policy_for",
    "summarize_assessment",
    "SalesSniperMatcher",
    "build_reason",
    "matches_to_frame",
    "RetailDataSource",
    "compute_dashboard_kpis",
    "customer_portfolio",
    "filter_ranking",
    "purchase_history",
    "rank_customers",
]
