"""
Unit Tests - Sales Sniper
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pandas as pd
import pytest

from crm_clients.export_store import ExportFileStore, LoadedTables
from crm_core.errors import DataSourceUnavailable, EmptySearchError
from crm_core.models import ProductFilterCriteria
from crm_core.sniper import (
    SalesSniperMatcher,
    aggregate_matches,
    build_reason,
    matches_to_frame,
    sort_matches,
    utc_now,
)


class RecordingSource:
    """Wraps a store and records which stages were queried."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def find_product_skus(self, criteria, neutral_gender="Unissex"):
        self.calls.append("products")
        return self.inner.find_product_skus(criteria, neutral_gender)

    def find_sale_items(self, skus, size, since):
        self.calls.append("items")
        return self.inner.find_sale_items(skus, size, since)

    def find_sale_headers(self, transaction_ids):
        self.calls.append("headers")
        return self.inner.find_sale_headers(transaction_ids)


def headers(rows):
    return pd.DataFrame(
        rows,
        columns=["transaction_id", "customer_name", "customer_phone", "total_amount", "occurred_at"],
    )


class TestSalesSniperMatcher:
    """End-to-end pipeline over the in-memory store"""

    def test_same_phone_collapses_into_one_match(self, export_store, now):
        matcher = SalesSniperMatcher(export_store, clock=lambda: now)
        criteria = ProductFilterCriteria(brand="Nike", gender="Feminino", size="38")

        matches = matcher.search(criteria)

        assert len(matches) == 1
        match = matches[0]
        assert match.customer_phone == "11999998888"
        assert match.customer_name == "Ana"
        assert match.cumulative_historical_spend == Decimal("150")
        assert match.most_recent_purchase_at == datetime(2025, 5, 1)
        assert match.reason == "Comprou Nike (Feminino) Tam 38"

    def test_short_phone_is_excluded(self, export_store, now):
        matcher = SalesSniperMatcher(export_store, clock=lambda: now)
        matches = matcher.search(ProductFilterCriteria(brand="Nike", gender="Feminino", size="38"))

        assert "1234567" not in {m.customer_phone for m in matches}

    def test_neutral_gender_does_not_filter(self, export_store, now):
        matcher = SalesSniperMatcher(export_store, clock=lambda: now)

        unisex = matcher.search(ProductFilterCriteria(brand="Nike", gender="Unissex", size="40"))
        female = matcher.search(ProductFilterCriteria(brand="Nike", gender="Feminino", size="40"))

        assert [m.customer_name for m in unisex] == ["Caio"]
        assert female == []

    def test_size_uses_substring_matching(self, export_store, now):
        matcher = SalesSniperMatcher(export_store, clock=lambda: now)
        matches = matcher.search(ProductFilterCriteria(brand="nike", gender="feminino", size="3"))

        assert [m.customer_name for m in matches] == ["Ana", "Bia"]

    def test_sales_outside_window_are_ignored(self, export_store, now):
        matcher = SalesSniperMatcher(export_store, clock=lambda: now)
        matches = matcher.search(ProductFilterCriteria(brand="Nike", size="38"))

        assert "Duda" not in {m.customer_name for m in matches}

    def test_no_brand_match_skips_later_stages(self, export_store, now):
        source = RecordingSource(export_store)
        matcher = SalesSniperMatcher(source, clock=lambda: now)

        assert matcher.search(ProductFilterCriteria(brand="Puma")) == []
        assert source.calls == ["products"]

    def test_no_sale_items_skips_header_stage(self, export_store, now):
        source = RecordingSource(export_store)
        matcher = SalesSniperMatcher(source, clock=lambda: now)

        assert matcher.search(ProductFilterCriteria(brand="Nike", size="XGG")) == []
        assert source.calls == ["products", "items"]

    def test_window_start_is_inclusive(self, products_df, sales_df, now):
        items = pd.DataFrame({
            "transaction_id": ["T1", "T2"],
            "sku": ["NK-F-01", "NK-F-01"],
            "size": ["38", "38"],
            "occurred_at": [datetime(2024, 6, 15, 12, 0, 0), datetime(2024, 6, 15, 11, 59, 59)],
        })
        store = ExportFileStore(LoadedTables(products=products_df, sale_items=items, sales=sales_df))
        matcher = SalesSniperMatcher(store, clock=lambda: now)

        assert matcher.window_start() == datetime(2024, 6, 15, 12, 0, 0)
        found = store.find_sale_items(["NK-F-01"], "38", matcher.window_start())
        assert found["transaction_id"].tolist() == ["T1"]

    def test_store_failure_is_not_an_empty_result(self, export_store, now):
        class BrokenSource(RecordingSource):
            def find_sale_items(self, skus, size, since):
                raise DataSourceUnavailable("store down", table="gemini_vendas_itens")

        matcher = SalesSniperMatcher(BrokenSource(export_store), clock=lambda: now)
        with pytest.raises(DataSourceUnavailable):
            matcher.search(ProductFilterCriteria(brand="Nike"))

    def test_repeated_runs_give_same_order(self, export_store, now):
        matcher = SalesSniperMatcher(export_store, clock=lambda: now)
        criteria = ProductFilterCriteria(brand="Nike")

        first = [m.customer_phone for m in matcher.search(criteria)]
        second = [m.customer_phone for m in matcher.search(criteria)]

        assert first == second


class TestAggregateMatches:
    """Grouping of sale headers by phone"""

    def test_keeps_first_name_and_latest_date(self):
        df = headers([
            ("T1", "Ana", "11999998888", 100, datetime(2025, 1, 10)),
            ("T2", "Ana Maria", "11999998888", 50, datetime(2025, 3, 1)),
            ("T3", "Ana", "11999998888", 25, datetime(2025, 2, 1)),
        ])

        matches = aggregate_matches(df, reason="r")

        assert len(matches) == 1
        assert matches[0].customer_name == "Ana"
        assert matches[0].most_recent_purchase_at == datetime(2025, 3, 1)
        assert matches[0].cumulative_historical_spend == Decimal("175")

    def test_negative_total_and_missing_phone_are_dropped(self):
        df = headers([
            ("T1", "Ana", "11999998888", -10, datetime(2025, 1, 10)),
            ("T2", "Bia", None, 30, datetime(2025, 1, 11)),
            ("T3", "Caio", "   ", 30, datetime(2025, 1, 12)),
            ("T4", "Duda", "11966665555", 20, datetime(2025, 1, 13)),
        ])

        matches = aggregate_matches(df, reason="r")

        assert [m.customer_name for m in matches] == ["Duda"]

    def test_negative_header_does_not_reduce_spend(self):
        df = headers([
            ("T1", "Ana", "11999998888", 100, datetime(2025, 1, 10)),
            ("T2", "Ana", "11999998888", -40, datetime(2025, 2, 10)),
        ])

        match = aggregate_matches(df, reason="r")[0]

        assert match.cumulative_historical_spend == Decimal("100")
        assert match.most_recent_purchase_at == datetime(2025, 1, 10)

    def test_null_total_counts_as_zero(self):
        df = headers([
            ("T1", "Ana", "11999998888", None, datetime(2025, 1, 10)),
            ("T2", "Ana", "11999998888", "abc", datetime(2025, 1, 11)),
        ])

        match = aggregate_matches(df, reason="r")[0]

        assert match.cumulative_historical_spend == Decimal("0")

    def test_missing_name_defaults(self):
        df = headers([("T1", None, "11999998888", 10, datetime(2025, 1, 10))])

        assert aggregate_matches(df, reason="r")[0].customer_name == "Cliente"

    def test_phone_length_counts_padding_as_stored(self):
        df = headers([
            ("T1", "Ana", " 1234567", 10, datetime(2025, 1, 10)),
            ("T2", "Bia", "1234567", 10, datetime(2025, 1, 11)),
            ("T3", "Ana", "1234567 ", 5, datetime(2025, 1, 12)),
            ("T4", "Caio", "        ", 10, datetime(2025, 1, 13)),
        ])

        matches = aggregate_matches(df, reason="r")

        assert len(matches) == 1
        assert matches[0].customer_phone == "1234567"
        assert matches[0].cumulative_historical_spend == Decimal("15")
        assert matches[0].most_recent_purchase_at == datetime(2025, 1, 12)


class TestSortMatches:
    def test_ties_keep_input_order(self):
        df = headers([
            ("T1", "Ana", "11900000001", 10, datetime(2025, 1, 10)),
            ("T2", "Bia", "11900000002", 10, datetime(2025, 1, 10)),
            ("T3", "Caio", "11900000003", 10, datetime(2025, 2, 10)),
            ("T4", "Duda", "11900000004", 10, datetime(2025, 1, 10)),
        ])

        ordered = sort_matches(aggregate_matches(df, reason="r"))

        assert [m.customer_name for m in ordered] == ["Caio", "Ana", "Bia", "Duda"]

    def test_undated_matches_go_last(self):
        df = headers([
            ("T1", "Ana", "11900000001", 10, None),
            ("T2", "Bia", "11900000002", 10, datetime(2025, 1, 10)),
        ])

        ordered = sort_matches(aggregate_matches(df, reason="r"))

        assert [m.customer_name for m in ordered] == ["Bia", "Ana"]


class TestCriteria:
    def test_ui_sentinels_become_absent(self):
        criteria = ProductFilterCriteria.from_form(brand="Nike", size="", gender="Todos", category="all")

        assert criteria == ProductFilterCriteria(brand="Nike")

    def test_empty_search_is_rejected(self):
        with pytest.raises(EmptySearchError):
            ProductFilterCriteria.from_form(brand=" ", gender="Todas").require_any()

    def test_reason_omits_absent_parts(self):
        assert build_reason(ProductFilterCriteria(brand="Nike", size="M")) == "Comprou Nike Tam M"
        assert build_reason(ProductFilterCriteria(category="Tenis")) == "Comprou Tenis"

    def test_matches_to_frame(self, export_store, now):
        matcher = SalesSniperMatcher(export_store, clock=lambda: now)
        frame = matches_to_frame(matcher.search(ProductFilterCriteria(brand="Nike", size="38")))

        assert frame.loc[0, "cumulative_historical_spend"] == 150.0
        assert list(frame.columns)[:2] == ["customer_name", "customer_phone"]


class TestClock:
    def test_default_clock_is_naive_utc(self, export_store):
        matcher = SalesSniperMatcher(export_store)

        current = matcher.clock()

        assert matcher.clock is utc_now
        assert current.tzinfo is None
        reference = datetime.now(timezone.utc).replace(tzinfo=None)
        assert abs(reference - current) < timedelta(seconds=5)
