"""
Data quality checks for the store tables.

The analysis functions are lenient (bad numbers become 0, short phones are
skipped), so nothing here blocks a computation. These reports make visible
how many rows that leniency touched.
"""

from dataclasses import dataclass, field
from typing import Callable, Any
import pandas as pd


@dataclass
class DataQualityIssue:
    """One kind of problem found in one column."""

    column: str
    issue_type: str  # "missing", "non_numeric", "negative", "short_text", "duplicate"
    severity: str  # "critical", "warning", "info"
    count: int
    percentage: float
    sample_values: list[Any] = field(default_factory=list)
    description: str = ""


@dataclass
class DataQualityReport:
    """All issues found in one table."""

    source_name: str
    total_rows: int
    issues: list[DataQualityIssue] = field(default_factory=list)

    @property
    def critical_issues(self) -> list[DataQualityIssue]:
        return [i for i in self.issues if i.severity == "critical"]

    @property
    def has_critical_issues(self) -> bool:
        return len(self.critical_issues) > 0

    def count_for(self, column: str, issue_type: str) -> int:
        return sum(i.count for i in self.issues if i.column == column and i.issue_type == issue_type)

    def summary(self) -> dict:
        return {
            "source": self.source_name,
            "total_rows": self.total_rows,
            "critical": len(self.critical_issues),
            "warnings": len([i for i in self.issues if i.severity == "warning"]),
            "info": len([i for i in self.issues if i.severity == "info"]),
        }


Check = Callable[[pd.DataFrame], list[DataQualityIssue]]


class DataQualityChecker:
    """
    Collects checks for one table and runs them together.

    Builder methods return self so checks chain:
        DataQualityChecker("sales").check_short_text("customer_phone", 8).run(df)
    """

    def __init__(self, source_name: str, check_missing: bool = True):
        self.source_name = source_name
        self._checks: list[Check] = []
        if check_missing:
            self._checks.append(self._check_missing_values)

    def add_check(self, check_fn: Check) -> "DataQualityChecker":
        self._checks.append(check_fn)
        return self

    def _issue(
        self,
        df: pd.DataFrame,
        column: str,
        mask: pd.Series,
        issue_type: str,
        severity: str,
        description: str,
    ) -> list[DataQualityIssue]:
        count = int(mask.sum())
        if count == 0:
            return []
        return [
            DataQualityIssue(
                column=column,
                issue_type=issue_type,
                severity=severity,
                count=count,
                percentage=(count / len(df)) * 100,
                sample_values=df.loc[mask, column].head(5).tolist(),
                description=f"{count:,} {description}",
            )
        ]

    def _check_missing_values(self, df: pd.DataFrame) -> list[DataQualityIssue]:
        issues = []
        for col in df.columns:
            missing = int(df[col].isna().sum())
            if missing > 0:
                pct = (missing / len(df)) * 100
                severity = "critical" if pct > 20 else "warning" if pct > 5 else "info"
                issues.append(
                    DataQualityIssue(
                        column=col,
                        issue_type="missing",
                        severity=severity,
                        count=missing,
                        percentage=pct,
                        description=f"{missing:,} missing values ({pct:.1f}%)",
                    )
                )
        return issues

    def check_duplicates(self, key_columns: list[str], severity: str = "warning") -> "DataQualityChecker":
        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if not set(key_columns) <= set(df.columns):
                return []
            mask = df.duplicated(subset=key_columns, keep=False)
            return self._issue(df, key_columns[0], mask, "duplicate", severity, "rows share the same key")

        return self.add_check(check)

    def check_numeric(self, column: str, severity: str = "warning") -> "DataQualityChecker":
        """Flag values present but not parseable as numbers (they count as 0)."""

        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if column not in df.columns:
                return []
            values = pd.to_numeric(df[column], errors="coerce")
            mask = df[column].notna() & values.isna()
            return self._issue(df, column, mask, "non_numeric", severity, "non-numeric values treated as 0")

        return self.add_check(check)

    def check_negative(self, column: str, severity: str = "warning") -> "DataQualityChecker":
        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if column not in df.columns:
                return []
            mask = pd.to_numeric(df[column], errors="coerce") < 0
            return self._issue(df, column, mask.fillna(False), "negative", severity, "negative values")

        return self.add_check(check)

    def check_short_text(self, column: str, min_length: int, severity: str = "warning") -> "DataQualityChecker":
        """Flag present text shorter than min_length, measured as stored."""

        def check(df: pd.DataFrame) -> list[DataQualityIssue]:
            if column not in df.columns:
                return []
            present = df[column].notna()
            lengths = df[column].astype(str).str.len()
            mask = present & (lengths < min_length)
            return self._issue(
                df, column, mask, "short_text", severity, f"values shorter than {min_length} characters"
            )

        return self.add_check(check)

    def run(self, df: pd.DataFrame) -> DataQualityReport:
        issues = []
        for check_fn in self._checks:
            issues.extend(check_fn(df))
        return DataQualityReport(source_name=self.source_name, total_rows=len(df), issues=issues)


def stock_fact_checks(name: str = "Stock") -> DataQualityChecker:
    """Rows the inventory analyzer will sanitize to 0."""
    return (
        DataQualityChecker(name)
        .check_numeric("units_on_hand")
        .check_negative("units_on_hand", severity="critical")
        .check_numeric("units_sold_90d")
        .check_negative("units_sold_90d")
        .check_duplicates(["sku"])
    )


def sale_header_checks(min_phone_length: int = 8, name: str = "Sales") -> DataQualityChecker:
    """Rows the sales sniper will skip (short phones, negative totals)."""
    return (
        DataQualityChecker(name)
        .check_short_text("customer_phone", min_phone_length)
        .check_numeric("total_amount")
        .check_negative("total_amount")
        .check_duplicates(["transaction_id"], severity="critical")
    )
