"""Direct numeric aggregation over structured rows for computational queries.

This is a best-effort closed-vocabulary extractor, not NL-to-SQL:

  1. category  — first vocabulary category found in the lower-cased query
                 (none → clarification, no aggregation)
  2. region    — optional, same matching; absent means all regions
  3. years     — every 4-digit token in the query; the span min..max is the
                 time filter
  4. rows      — keep rows whose flattened values contain category (and region)
  5. values    — leading-float parse of each column whose name contains a
                 year in the span, or of every column when no year was given
  6. report    — total, average (2 decimals) and count in a fixed template

When no year is given every numeric column of the matched rows is summed,
which can mix unrelated measures (price and yield, say). That limitation is
kept on purpose and is visible in the reported data-point count.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from agrirag.rag.vocabulary import Vocabulary

_YEAR_RE = re.compile(r"\d{4}")
# Same prefix grammar JavaScript's parseFloat accepts, minus Infinity.
_LEADING_FLOAT_RE = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
# A wider span is treated as a list of the literal years only.
_MAX_YEAR_SPAN = 200


class ComputationOutcome(str, Enum):
    COMPUTED = "computed"
    ENTITY_NOT_FOUND = "entity_not_found"
    NO_MATCHING_DATA = "no_matching_data"
    NO_NUMERIC_DATA = "no_numeric_data"


@dataclass
class ComputationResult:
    """User-facing text plus the structured figures behind it.

    Only ``COMPUTED`` results carry ``total`` and ``average``; the other
    outcomes are clarification messages, not errors.
    """

    text: str
    outcome: ComputationOutcome
    category: str | None = None
    region: str | None = None
    years: list[int] = field(default_factory=list)
    total: float | None = None
    average: float | None = None
    count: int = 0


def parse_leading_float(value: object) -> float | None:
    """Parse the numeric prefix of *value* (``"12.5 t"`` → 12.5); None if absent."""
    match = _LEADING_FLOAT_RE.match(str(value))
    if match is None:
        return None
    number = float(match.group(1))
    return number if math.isfinite(number) else None


def extract_years(query: str) -> list[int]:
    """All 4-digit tokens of *query*, in order of appearance."""
    return [int(token) for token in _YEAR_RE.findall(query)]


def _year_span(years: list[int]) -> list[str]:
    if not years:
        return []
    low, high = min(years), max(years)
    if high - low > _MAX_YEAR_SPAN:
        return sorted({str(y) for y in years})
    return [str(y) for y in range(low, high + 1)]


def _title(term: str) -> str:
    return term[:1].upper() + term[1:]


class ComputationEngine:
    """Aggregate the numeric cells of rows matching a query's category/region/years."""

    def __init__(self, vocabulary: Vocabulary) -> None:
        self.vocabulary = vocabulary

    def compute(self, query: str, rows: Sequence[Mapping[str, str]]) -> ComputationResult:
        category = self.vocabulary.find_category(query)
        if category is None:
            examples = ", ".join(self.vocabulary.categories[:3])
            return ComputationResult(
                text=f"Please specify a crop for computation (e.g., {examples}).",
                outcome=ComputationOutcome.ENTITY_NOT_FOUND,
            )

        region = self.vocabulary.find_region(query)
        years = extract_years(query)

        matched = [row for row in rows if self._row_matches(row, category, region)]
        if not matched:
            where = f" in {region}" if region else ""
            return ComputationResult(
                text=f"No data found for {category}{where}.",
                outcome=ComputationOutcome.NO_MATCHING_DATA,
                category=category,
                region=region,
                years=years,
            )

        values = self._collect_values(matched, _year_span(years))
        if not values:
            return ComputationResult(
                text="No numeric data found for computation.",
                outcome=ComputationOutcome.NO_NUMERIC_DATA,
                category=category,
                region=region,
                years=years,
            )

        total = math.fsum(values)
        average = total / len(values)
        year_range = f"{min(years)}-{max(years)}" if years else "available years"
        where = f" in {_title(region)}" if region else ""
        text = (
            f"Computation Results for {_title(category)}{where} ({year_range}):\n"
            f"Total: {total:.2f}\n"
            f"Average: {average:.2f}\n"
            f"Data points: {len(values)}"
        )
        return ComputationResult(
            text=text,
            outcome=ComputationOutcome.COMPUTED,
            category=category,
            region=region,
            years=years,
            total=total,
            average=average,
            count=len(values),
        )

    @staticmethod
    def _row_matches(row: Mapping[str, str], category: str, region: str | None) -> bool:
        flattened = " ".join(str(v) for v in row.values()).lower()
        return category in flattened and (region is None or region in flattened)

    @staticmethod
    def _collect_values(rows: list[Mapping[str, str]], year_tokens: list[str]) -> list[float]:
        values: list[float] = []
        for row in rows:
            for column, raw in row.items():
                if year_tokens and not any(token in str(column) for token in year_tokens):
                    continue
                number = parse_leading_float(raw)
                if number is not None:
                    values.append(number)
        return values
