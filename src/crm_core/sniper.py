"""
Sales Sniper: find customers to contact about a product.

Given brand / size / gender / category, the pipeline:
1. resolves matching SKUs in the catalog
2. finds sale lines of those SKUs in that size over the trailing 12 months
3. fetches the sale headers of those transactions
4. groups headers by phone (first header wins name; latest date and summed
   spend are kept)
5. sorts customers by most recent purchase, newest first

An empty stage ends the search with an empty list. Store failures propagate
as DataSourceUnavailable so callers can tell "error" from "no targets".
"""

from datetime import datetime, timezone
from typing import Callable, Iterable
import pandas as pd

from .logging import get_logger
from .models import ProductFilterCriteria, SniperMatch, to_amount
from .parsers import DateParser
from .sources import RetailDataSource

logger = get_logger(__name__)

SNIPER_WINDOW_MONTHS = 12
MIN_PHONE_LENGTH = 8
NEUTRAL_GENDER = "Unissex"
DEFAULT_CUSTOMER_NAME = "Cliente"


def utc_now() -> datetime:
    """Current time as naive UTC, the same convention DateParser produces."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def build_reason(criteria: ProductFilterCriteria) -> str:
    """Human text for why a customer matched, e.g. 'Comprou Nike (Feminino) Tam 38'."""
    parts = ["Comprou"]
    if criteria.brand:
        parts.append(criteria.brand)
    elif criteria.category:
        parts.append(criteria.category)
    if criteria.gender:
        parts.append(f"({criteria.gender})")
    if criteria.size:
        parts.append(f"Tam {criteria.size}")
    return " ".join(parts)


def _phone(value, min_length: int) -> str | None:
    """Trimmed phone, or None when missing or shorter than min_length as stored."""
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    raw = str(value)
    if len(raw) < min_length:
        return None
    return raw.strip() or None


def _name(value) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return DEFAULT_CUSTOMER_NAME
    return str(value).strip() or DEFAULT_CUSTOMER_NAME


def aggregate_matches(
    headers: pd.DataFrame,
    reason: str,
    min_phone_length: int = MIN_PHONE_LENGTH,
    date_parser: DateParser | None = None,
) -> list[SniperMatch]:
    """
    Collapse sale headers into one SniperMatch per phone, in first-seen order.

    Headers with no phone, a phone shorter than min_phone_length, or a
    negative total are dropped. The length is measured on the phone as
    stored; the trimmed phone is the grouping key. For repeated phones the
    latest purchase date is kept and every header's total is added to the
    spend.
    """
    date_parser = date_parser or DateParser()
    by_phone: dict[str, SniperMatch] = {}

    for row in headers.itertuples(index=False):
        phone = _phone(row.customer_phone, min_phone_length)
        amount = to_amount(row.total_amount)
        if phone is None or amount < 0:
            continue

        occurred_at = date_parser.parse(row.occurred_at)
        match = by_phone.get(phone)
        if match is None:
            by_phone[phone] = SniperMatch(
                customer_name=_name(row.customer_name),
                customer_phone=phone,
                reason=reason,
                most_recent_purchase_at=occurred_at,
                cumulative_historical_spend=amount,
            )
            continue

        if occurred_at is not None and (
            match.most_recent_purchase_at is None or occurred_at > match.most_recent_purchase_at
        ):
            match.most_recent_purchase_at = occurred_at
        match.cumulative_historical_spend += amount

    return list(by_phone.values())


def sort_matches(matches: Iterable[SniperMatch]) -> list[SniperMatch]:
    """Newest purchase first. Stable: ties keep their input order; undated go last."""
    return sorted(
        matches,
        key=lambda m: m.most_recent_purchase_at or datetime.min,
        reverse=True,
    )


def _unique(values: Iterable) -> list[str]:
    seen: dict[str, None] = {}
    for value in values:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            continue
        seen.setdefault(str(value), None)
    return list(seen)


class SalesSniperMatcher:
    """
    Runs the sniper pipeline against a RetailDataSource.

    Stateless between calls; `clock` is injectable so the trailing window
    can be pinned in tests.
    """

    def __init__(
        self,
        source: RetailDataSource,
        window_months: int = SNIPER_WINDOW_MONTHS,
        neutral_gender: str = NEUTRAL_GENDER,
        min_phone_length: int = MIN_PHONE_LENGTH,
        clock: Callable[[], datetime] | None = None,
    ):
        self.source = source
        self.window_months = window_months
        self.neutral_gender = neutral_gender
        self.min_phone_length = min_phone_length
        self.clock = clock or utc_now

    @classmethod
    def from_settings(cls, source: RetailDataSource, settings) -> "SalesSniperMatcher":
        analysis = settings.analysis
        return cls(
            source,
            window_months=analysis.sniper_window_months,
            neutral_gender=analysis.neutral_gender,
            min_phone_length=analysis.min_phone_length,
        )

    def window_start(self) -> datetime:
        """Start of the trailing window, recomputed on every call."""
        now = pd.Timestamp(self.clock())
        return (now - pd.DateOffset(months=self.window_months)).to_pydatetime()

    def search(self, criteria: ProductFilterCriteria) -> list[SniperMatch]:
        log = logger.bind(
            brand=criteria.brand,
            gender=criteria.gender,
            size=criteria.size,
            category=criteria.category,
        )

        skus = self.source.find_product_skus(criteria, neutral_gender=self.neutral_gender)
        if not skus:
            log.info("Sniper: no products match brand/gender/category")
            return []

        since = self.window_start()
        items = self.source.find_sale_items(skus, criteria.size, since)
        if items.empty:
            log.info("Sniper: no sales of matching products", skus=len(skus), since=since.isoformat())
            return []

        transaction_ids = _unique(items["transaction_id"])
        headers = self.source.find_sale_headers(transaction_ids)
        if headers.empty:
            log.info("Sniper: no sale headers for matched lines", transactions=len(transaction_ids))
            return []

        matches = aggregate_matches(
            headers,
            reason=build_reason(criteria),
            min_phone_length=self.min_phone_length,
        )
        log.info(
            "Sniper search complete",
            skus=len(skus),
            sale_items=len(items),
            headers=len(headers),
            customers=len(matches),
        )
        return sort_matches(matches)


def matches_to_frame(matches: list[SniperMatch]) -> pd.DataFrame:
    """Tabular view of matches for display/export."""
    return pd.DataFrame(
        [
            {
                "customer_name": m.customer_name,
                "customer_phone": m.customer_phone,
                "reason": m.reason,
                "most_recent_purchase_at": m.most_recent_purchase_at,
                "cumulative_historical_spend": float(m.cumulative_historical_spend),
            }
            for m in matches
        ],
        columns=[
            "customer_name",
            "customer_phone",
            "reason",
            "most_recent_purchase_at",
            "cumulative_historical_spend",
        ],
    )
