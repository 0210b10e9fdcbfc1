"""
Read contract between the analysis functions and a data store.

Implementations MUST return complete result sets. If the store pages its
responses, the adapter pages until exhausted: deduplication and spend
aggregation are silently wrong on a truncated page. Failures to reach the
store raise DataSourceUnavailable; "nothing matched" is an empty result.

Canonical column names:
- sale items:   transaction_id, sku, size, occurred_at
- sale headers: transaction_id, customer_name, customer_phone,
                total_amount, occurred_at
"""

from datetime import datetime
from typing import Protocol, Sequence, runtime_checkable
import pandas as pd

from .models import ProductFilterCriteria

SALE_ITEM_COLUMNS = ["transaction_id", "sku", "size", "occurred_at"]
SALE_HEADER_COLUMNS = [
    "transaction_id",
    "customer_name",
    "customer_phone",
    "total_amount",
    "occurred_at",
]


@runtime_checkable
class RetailDataSource(Protocol):
    """The three read queries the sales sniper needs."""

    def find_product_skus(
        self, criteria: ProductFilterCriteria, neutral_gender: str = "Unissex"
    ) -> list[str]:
        """
        SKUs whose brand / category contain the criteria text (case-insensitive),
        and whose gender does too unless the gender criterion is absent or neutral.
        """
        ...

    def find_sale_items(
        self, skus: Sequence[str], size: str | None, since: datetime
    ) -> pd.DataFrame:
        """Sale lines for the given SKUs, size containing `size`, occurred_at >= since."""
        ...

    def find_sale_headers(self, transaction_ids: Sequence[str]) -> pd.DataFrame:
        """Sale headers for the given transaction ids, one row per transaction."""
        ...


def gender_filter_applies(gender: str | None, neutral_gender: str) -> bool:
    """The neutral gender ("Unissex") means "any gender", not a filter value."""
    return bool(gender) and gender.strip().casefold() != neutral_gender.casefold()
