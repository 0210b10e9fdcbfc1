"""
Parsers and normalizers for the store's exported data.

The ERP exports mix Brazilian and ISO date formats, pad SKUs with
whitespace, and store brand/gender/size text in inconsistent case.
"""

from datetime import datetime
import pandas as pd


class DateParser:
    """
    Parses the date formats the ERP and Supabase exports produce.

    Day-first formats are tried before month-first ones: 03/04/2024 is
    3 April in this store's data.
    """

    DATE_FORMATS = [
        "%Y-%m-%dT%H:%M:%S.%f%z",  # Supabase timestamptz: 2024-07-25T14:03:11.123+00:00
        "%Y-%m-%dT%H:%M:%S%z",     # 2024-07-25T14:03:11+00:00
        "%Y-%m-%dT%H:%M:%S.%f",    # PostgREST timestamp: 2024-07-25T14:03:11.123456
        "%Y-%m-%dT%H:%M:%S",       # 2024-07-25T14:03:11
        "%Y-%m-%d %H:%M:%S.%f",    # DataFrame.to_csv: 2024-07-25 14:03:11.500000
        "%Y-%m-%d %H:%M:%S",       # 2024-07-25 14:03:11
        "%Y-%m-%d",                # 2024-07-25
        "%d/%m/%Y %H:%M",          # 25/07/2024 14:03
        "%d/%m/%Y",                # 25/07/2024
        "%d/%m/%y",                # 25/07/24
        "%d-%m-%Y",                # 25-07-2024
    ]

    def __init__(self, custom_formats: list[str] | None = None):
        self.formats = (custom_formats or []) + self.DATE_FORMATS
        self._cache: dict[str, datetime | None] = {}

    def parse(self, value) -> datetime | None:
        """Parse one value. Unparseable input gives None, never raises."""
        if value is None or pd.isna(value):
            return None
        if isinstance(value, datetime):
            stamp = pd.Timestamp(value)
            if stamp.tzinfo is not None:
                stamp = stamp.tz_convert("UTC").tz_localize(None)
            return stamp.to_pydatetime()
        if not str(value).strip():
            return None

        text = str(value).strip()
        if text in self._cache:
            return self._cache[text]

        parsed = None
        for fmt in self.formats:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue

        # Timestamps are compared naively; drop the offset after converting to UTC
        if parsed is not None and parsed.tzinfo is not None:
            parsed = pd.Timestamp(parsed).tz_convert("UTC").tz_localize(None).to_pydatetime()

        self._cache[text] = parsed
        return parsed

    def parse_series(self, series: pd.Series) -> pd.Series:
        """Parse a Series into datetime64 (NaT where unparseable)."""
        return pd.to_datetime(series.apply(self.parse), errors="coerce")


class SKUNormalizer:
    """
    Normalizes SKU codes so catalog rows and sale lines join.

    SKUs are kept as text: "00123" and "123" are different products here.
    """

    def __init__(self, uppercase: bool = True):
        self.uppercase = uppercase

    def normalize(self, sku) -> str | None:
        if sku is None or pd.isna(sku):
            return None
        result = str(sku).strip()
        # Numeric SKUs read from CSV come back as floats ("123.0")
        if result.endswith(".0") and result[:-2].isdigit():
            result = result[:-2]
        if not result:
            return None
        return result.upper() if self.uppercase else result

    def normalize_series(self, series: pd.Series) -> pd.Series:
        return series.apply(self.normalize)


class TextMatcher:
    """
    Case-insensitive substring matching, the semantics of SQL ILIKE '%term%'.

    Used for every sniper filter (brand, gender, category, size).
    """

    @staticmethod
    def fold(value) -> str:
        if value is None or (not isinstance(value, str) and pd.isna(value)):
            return ""
        return " ".join(str(value).split()).casefold()

    def contains(self, haystack, needle: str | None) -> bool:
        """True when needle is absent or found inside haystack."""
        if not needle:
            return True
        if haystack is None or (not isinstance(haystack, str) and pd.isna(haystack)):
            return False
        return self.fold(needle) in self.fold(haystack)

    def contains_series(self, series: pd.Series, needle: str | None) -> pd.Series:
        """Boolean mask version of contains(); nulls never match a term."""
        if not needle:
            return pd.Series(True, index=series.index)
        folded = series.apply(lambda v: self.fold(v) if v is not None and not pd.isna(v) else None)
        term = self.fold(needle)
        return folded.apply(lambda v: v is not None and term in v).astype(bool)
