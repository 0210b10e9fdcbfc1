"""
Records shared by the analysis functions and the data adapters.

Derived records (StockAssessment, SniperMatch) are computed on read and
never persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
import math

from .errors import EmptySearchError


# Values the dashboard filters use to mean "no filter"
UI_ALL_SENTINELS = {"", "all", "todas", "todos"}


def to_count(value: Any) -> int:
    """Coerce a stock/sales quantity to a non-negative int (bad data -> 0)."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0
    return int(number)


def to_amount(value: Any) -> Decimal:
    """Coerce a money value to Decimal. Null or non-numeric becomes 0."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not amount.is_finite():
        return Decimal(0)
    return amount


class Recommendation(str, Enum):
    """Stocking action suggested for a SKU or group."""

    RESTOCK = "COMPRAR"
    LIQUIDATE = "LIQUIDAR"
    HOLD = "MANTER"


class StockGrain(Enum):
    """Whether a stock row is a single SKU or a rolled-up group."""

    SKU = "sku"
    AGGREGATE = "aggregate"


@dataclass
class StockFact:
    """Stock and trailing-90-day sales for one SKU or aggregate group."""

    identifier: str
    units_on_hand: int = 0
    unit_price: Decimal = Decimal(0)
    units_sold_90d: int = 0
    revenue_90d: Decimal = Decimal(0)

    @classmethod
    def from_raw(
        cls,
        identifier: Any,
        units_on_hand: Any = 0,
        unit_price: Any = 0,
        units_sold_90d: Any = 0,
        revenue_90d: Any = 0,
    ) -> "StockFact":
        """Build a fact from untrusted values, sanitizing bad numbers to 0."""
        price = to_amount(unit_price)
        revenue = to_amount(revenue_90d)
        return cls(
            identifier=str(identifier),
            units_on_hand=to_count(units_on_hand),
            unit_price=price if price >= 0 else Decimal(0),
            units_sold_90d=to_count(units_sold_90d),
            revenue_90d=revenue if revenue >= 0 else Decimal(0),
        )


@dataclass(frozen=True)
class StockAssessment:
    """Velocity, coverage and recommendation derived from a StockFact."""

    sales_velocity_per_day: float
    coverage_days: int
    coverage_is_infinite: bool
    recommendation: Recommendation


@dataclass(frozen=True)
class ProductFilterCriteria:
    """
    Product attributes a sniper search targets.

    Every field is optional. UI sentinels such as "Todas" must be mapped to
    None before they get here (see from_form).
    """

    brand: str | None = None
    size: str | None = None
    gender: str | None = None
    category: str | None = None

    @classmethod
    def from_form(
        cls,
        brand: str | None = None,
        size: str | None = None,
        gender: str | None = None,
        category: str | None = None,
    ) -> "ProductFilterCriteria":
        """Translate raw form values ("all", "Todas", blanks) into absent fields."""

        def clean(value: str | None) -> str | None:
            if value is None:
                return None
            value = str(value).strip()
            if value.lower() in UI_ALL_SENTINELS:
                return None
            return value

        return cls(
            brand=clean(brand),
            size=clean(size),
            gender=clean(gender),
            category=clean(category),
        )

    @property
    def is_empty(self) -> bool:
        return not any((self.brand, self.size, self.gender, self.category))

    def require_any(self) -> "ProductFilterCriteria":
        """Reject an all-empty search. Returns self for chaining."""
        if self.is_empty:
            raise EmptySearchError("At least one of brand, size, gender or category is required")
        return self


@dataclass
class SniperMatch:
    """A customer targeted by a sniper search, one per phone number."""

    customer_name: str
    customer_phone: str
    reason: str
    most_recent_purchase_at: datetime | None
    cumulative_historical_spend: Decimal = Decimal(0)


@dataclass
class DashboardKpis:
    """Headline numbers for the overview page."""

    gross_revenue: float
    estimated_profit: float
    total_orders: int
    net_revenue: float
    average_ticket: float


@dataclass
class CustomerRankingEntry:
    """One row of the customer ranking."""

    customer_name: str
    phone: str
    owner_salesperson: str
    purchase_count: int
    total_spent: float
    last_purchase_at: datetime | None = None


@dataclass
class RankingKpis:
    total_sales: float
    customer_count: int
    average_ticket: float
    total_visits: int


@dataclass
class PurchaseHistoryEntry:
    """A single past sale of a customer, with its item count."""

    transaction_id: str
    occurred_at: datetime | None
    total_amount: float
    item_quantity: int
    salesperson: str
    invoice_number: str = ""
    payment_type: str = ""


@dataclass
class PurchaseHistory:
    customer_name: str
    entries: list[PurchaseHistoryEntry] = field(default_factory=list)

    @property
    def total_spent(self) -> float:
        return sum(e.total_amount for e in self.entries)

    @property
    def purchase_count(self) -> int:
        return len(self.entries)

    @property
    def total_items(self) -> int:
        return sum(e.item_quantity for e in self.entries)
