"""
Analytics Service

Dashboard statistics and period reports built on the calculation engine.
Everything except fetch_period_report is a pure function of the quotes
passed in.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, Iterable, List, Optional, Union
import logging

from calculation_models import (
    ExchangeRates,
    Quote,
    QuoteStatus,
    ProfitAnalysis,
    PerformanceMetrics,
    TrendResult,
    PeriodGranularity,
)
from calculation_engine import (
    analyze,
    performance_metrics,
    filter_by_period,
    previous_period,
    trend,
)
from services.quote_service import get_all_quotes

logger = logging.getLogger(__name__)

MONTHS_OF_EVOLUTION = 6


@dataclass
class PeriodReport:
    """Analysis of one period compared with the preceding one"""
    granularity: PeriodGranularity
    year: int
    month: Optional[int]
    analysis: ProfitAnalysis
    metrics: PerformanceMetrics
    previous_analysis: ProfitAnalysis
    trend: TrendResult


# =============================================================================
# DASHBOARD
# =============================================================================

def monthly_growth(current_count: int, previous_count: int) -> Decimal:
    """
    Quote-count growth vs previous month.

    Unlike trend(), growth from an empty month to a non-empty one is 100.
    """
    if previous_count > 0:
        return Decimal(current_count - previous_count) / Decimal(previous_count) * 100
    return Decimal("100") if current_count > 0 else Decimal("0")


def get_dashboard_stats(quotes: Iterable[Quote], clients_count: int = 0, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Headline numbers for the dashboard.

    Returns:
        Dict with total_quotes, pending_quotes, confirmed_quotes,
        delivered_quotes, total_clients, total_value, confirmed_value
        (confirmed + delivered) and monthly_growth
    """
    quotes = list(quotes)
    now = now or datetime.now(timezone.utc)

    year, month = previous_period(PeriodGranularity.MONTH, now.year, now.month)
    current_month = filter_by_period(quotes, PeriodGranularity.MONTH, now.year, now.month)
    last_month = filter_by_period(quotes, PeriodGranularity.MONTH, year, month)

    confirmed_value = sum(
        (q.total_amount for q in quotes if q.status in (QuoteStatus.CONFIRMED, QuoteStatus.DELIVERED)),
        Decimal("0"),
    )

    return {
        "total_quotes": len(quotes),
        "pending_quotes": sum(1 for q in quotes if q.status == QuoteStatus.PENDING),
        "confirmed_quotes": sum(1 for q in quotes if q.status == QuoteStatus.CONFIRMED),
        "delivered_quotes": sum(1 for q in quotes if q.status == QuoteStatus.DELIVERED),
        "total_clients": clients_count,
        "total_value": sum((q.total_amount for q in quotes), Decimal("0")),
        "confirmed_value": confirmed_value,
        "monthly_growth": monthly_growth(len(current_month), len(last_month)),
    }


def recent_quotes(quotes: Iterable[Quote], limit: int = 5) -> List[Quote]:
    """Newest quotes first; the input is not reordered."""
    return sorted(quotes, key=lambda q: q.created_at, reverse=True)[:limit]


def _count_by(quotes: Iterable[Quote], key) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for quote in quotes:
        label = key(quote)
        counts[label] = counts.get(label, 0) + 1
    return counts


def get_quote_breakdowns(quotes: Iterable[Quote]) -> Dict[str, Dict[str, int]]:
    """Quote counts by status, shipping method and origin country."""
    quotes = list(quotes)
    return {
        "status": _count_by(quotes, lambda q: q.status.value),
        "shipping_method": _count_by(quotes, lambda q: q.shipping_method.value),
        "origin_country": _count_by(quotes, lambda q: q.origin_country),
    }


def monthly_evolution(quotes: Iterable[Quote], now: Optional[datetime] = None, months: int = MONTHS_OF_EVOLUTION) -> List[Dict[str, Any]]:
    """
    Quote count and value for each of the last `months` months, oldest first.
    """
    quotes = list(quotes)
    now = now or datetime.now(timezone.utc)

    periods = [(now.year, now.month)]
    for _ in range(months - 1):
        year, month = periods[0]
        periods.insert(0, previous_period(PeriodGranularity.MONTH, year, month))

    evolution = []
    for year, month in periods:
        in_month = filter_by_period(quotes, PeriodGranularity.MONTH, year, month)
        evolution.append({
            "year": year,
            "month": month,
            "quotes": len(in_month),
            "value": sum((q.total_amount for q in in_month), Decimal("0")),
        })
    return evolution


# =============================================================================
# PERIOD REPORTS
# =============================================================================

def build_period_report(
    quotes: Iterable[Quote],
    granularity: Union[PeriodGranularity, str],
    year: int,
    month: Optional[int] = None,
    rates: Optional[ExchangeRates] = None
) -> PeriodReport:
    """Profit analysis of a year or month, with trend vs the preceding period."""
    quotes = list(quotes)
    granularity = PeriodGranularity(granularity)
    if granularity not in (PeriodGranularity.YEAR, PeriodGranularity.MONTH):
        raise ValueError(f"Period reports support year or month granularity, got {granularity.value}")

    current = filter_by_period(quotes, granularity, year, month)
    prev_year, prev_month = previous_period(granularity, year, month)
    previous = filter_by_period(quotes, granularity, prev_year, prev_month)

    analysis = analyze(current, rates)
    previous_analysis = analyze(previous, rates)

    return PeriodReport(
        granularity=granularity,
        year=year,
        month=month,
        analysis=analysis,
        metrics=performance_metrics(current, analysis),
        previous_analysis=previous_analysis,
        trend=trend(analysis, previous_analysis),
    )


def fetch_period_report(
    user_id: Optional[str],
    granularity: Union[PeriodGranularity, str],
    year: int,
    month: Optional[int] = None,
    rates: Optional[ExchangeRates] = None
) -> PeriodReport:
    """Load a user's quotes and build the period report."""
    quotes = get_all_quotes(user_id)
    logger.info(f"Building {PeriodGranularity(granularity).value} report for {year}/{month or '-'} over {len(quotes)} quotes")
    return build_period_report(quotes, granularity, year, month, rates)
