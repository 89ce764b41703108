"""
Import/Export Quotes - Calculation Engine
Cost resolution, profit analysis and period comparison for quotes.

CURRENCY HANDLING:
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
ALL DERIVED AMOUNTS ARE IN MGA (Malagasy Ariary), THE ACCOUNTING CURRENCY.

Flow:
1. Rates: caller supplies {currency: MGA per unit}, MGA itself is implicit 1
2. Conversion: purchase price (and foreign transport fee) converted to MGA
3. Cost: purchase x quantity + transport + misc + customs
4. Sale price: cost + cost x margin %
5. Analysis: stored quote totals are revenue, item costs are cost

Missing rates never raise: the default table is used and a warning logged.
No intermediate rounding; rounding belongs to presentation.
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Tuple, Union
from datetime import date, datetime
import logging
import math

from calculation_models import (
    Currency,
    ExchangeRates,
    LineItemInput,
    LineItemResolved,
    QuoteItem,
    Quote,
    ProfitAnalysis,
    PerformanceMetrics,
    TrendResult,
    PeriodGranularity,
    PaymentStatus,
)
from calculation_mapper import normalize_origin_country

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

ACCOUNTING_CURRENCY = Currency.MGA

# Origin whose transport fee is entered directly in MGA
PRIMARY_SOURCING_COUNTRY = "China"

# Fallback rates (MGA per unit) when the caller's table lacks a currency
DEFAULT_EXCHANGE_RATES: ExchangeRates = {
    Currency.USD: Decimal("4500"),
    Currency.EUR: Decimal("4900"),
    Currency.CNY: Decimal("620"),
}

# Cost share assumed for quote items saved without purchase data
ESTIMATED_COST_RATIO = Decimal("0.75")

ZERO = Decimal("0")
HUNDRED = Decimal("100")


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def round_decimal(value: Decimal, decimal_places: int = 2) -> Decimal:
    """Round decimal to specified places using ROUND_HALF_UP."""
    if decimal_places == 0:
        return value.quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    quantizer = Decimal(10) ** -decimal_places
    return value.quantize(quantizer, rounding=ROUND_HALF_UP)


def _to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _as_currency(code: Union[Currency, str]) -> Optional[Currency]:
    if isinstance(code, Currency):
        return code
    try:
        return Currency(str(code).strip().upper())
    except ValueError:
        return None


def _percent_of(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole x 100, or 0 when whole is 0"""
    if whole == 0:
        return ZERO
    return part / whole * HUNDRED


def percent_change(current, previous) -> Decimal:
    """(current - previous) / previous x 100, or 0 when previous is 0"""
    current = _to_decimal(current)
    previous = _to_decimal(previous)
    if previous == 0:
        return ZERO
    return (current - previous) / previous * HUNDRED


def is_primary_origin(origin_country: str, primary_origin: str = PRIMARY_SOURCING_COUNTRY) -> bool:
    """Check whether an origin is the primary sourcing country (name variants accepted)"""
    return normalize_origin_country(origin_country) == normalize_origin_country(primary_origin)


# ============================================================================
# CURRENCY CONVERSION
# ============================================================================

def get_rate(currency: Union[Currency, str], rates: Optional[ExchangeRates]) -> Decimal:
    """
    MGA per 1 unit of currency.

    Falls back to DEFAULT_EXCHANGE_RATES when the table has no usable rate,
    and to 1 for a code the defaults do not know either.
    """
    code = _as_currency(currency)
    if code == ACCOUNTING_CURRENCY:
        return Decimal("1")

    if code is not None and rates:
        rate = rates.get(code)
        if rate is not None and _to_decimal(rate) > 0:
            return _to_decimal(rate)

    if code in DEFAULT_EXCHANGE_RATES:
        fallback = DEFAULT_EXCHANGE_RATES[code]
        logger.warning(f"No exchange rate for {code.value}, using default rate {fallback}")
        return fallback

    logger.warning(f"Unknown currency {currency!r}, converting at rate 1")
    return Decimal("1")


def convert(amount, currency: Union[Currency, str], rates: Optional[ExchangeRates]) -> Decimal:
    """Convert amount in currency to MGA."""
    amount = _to_decimal(amount)
    if amount == 0 or _as_currency(currency) == ACCOUNTING_CURRENCY:
        return amount
    return amount * get_rate(currency, rates)


# ============================================================================
# LINE ITEM COST RESOLUTION
# ============================================================================

def resolve_transport_fee(
    item: LineItemInput,
    rates: Optional[ExchangeRates],
    primary_origin: str = PRIMARY_SOURCING_COUNTRY
) -> Decimal:
    """
    Transport fee in MGA.

    Primary origin: fee was entered in MGA and is used as-is.
    Any other origin: fee was entered in transport_currency and is converted.
    """
    if is_primary_origin(item.origin_country, primary_origin):
        return item.transport_fee
    return convert(item.transport_fee_original, item.transport_currency, rates)


def item_cost(
    item: LineItemInput,
    rates: Optional[ExchangeRates],
    primary_origin: str = PRIMARY_SOURCING_COUNTRY
) -> Decimal:
    """Total cost of a line item, margin excluded"""
    purchase = convert(item.purchase_price, item.source_currency, rates) * item.quantity
    transport = resolve_transport_fee(item, rates, primary_origin)
    return purchase + transport + item.misc_fee + item.customs_fee


def resolve_item(
    item: LineItemInput,
    rates: Optional[ExchangeRates],
    primary_origin: str = PRIMARY_SOURCING_COUNTRY
) -> LineItemResolved:
    """
    Compute every derived amount of a line item.

    The whole chain runs on each call, so re-resolving an already resolved
    item after editing any input gives consistent derived fields.
    """
    # Step 1: purchase price to MGA
    purchase_price_converted = convert(item.purchase_price, item.source_currency, rates)

    # Step 2: purchase cost for full quantity
    total_purchase_cost = purchase_price_converted * item.quantity

    # Step 3: cost base
    transport_fee = resolve_transport_fee(item, rates, primary_origin)
    total_cost = total_purchase_cost + transport_fee + item.misc_fee + item.customs_fee

    # Step 4: margin
    margin_amount = total_cost * item.margin_percent / HUNDRED

    # Step 5: sale price
    line_total_price = total_cost + margin_amount
    unit_price = line_total_price / item.quantity if item.quantity > 0 else ZERO

    data = item.model_dump(include=set(LineItemInput.model_fields))
    data["transport_fee"] = transport_fee

    return LineItemResolved(
        **data,
        purchase_price_converted=purchase_price_converted,
        total_purchase_cost=total_purchase_cost,
        transport_fee_converted=transport_fee,
        total_cost=total_cost,
        margin_amount=margin_amount,
        line_total_price=line_total_price,
        unit_price=unit_price,
    )


def resolve_items(
    items: Iterable[LineItemInput],
    rates: Optional[ExchangeRates],
    primary_origin: str = PRIMARY_SOURCING_COUNTRY
) -> List[LineItemResolved]:
    return [resolve_item(item, rates, primary_origin) for item in items]


def calculation_totals(resolved: Sequence[LineItemResolved]) -> Tuple[Decimal, Decimal, Decimal]:
    """(total cost, total margin, total selling price) of resolved items"""
    total_cost = sum((item.total_cost for item in resolved), ZERO)
    total_margin = sum((item.margin_amount for item in resolved), ZERO)
    total_selling_price = sum((item.line_total_price for item in resolved), ZERO)
    return total_cost, total_margin, total_selling_price


def quote_total(resolved: Sequence[LineItemResolved]) -> Decimal:
    """Quote total amount: sum of line totals"""
    return sum((item.line_total_price for item in resolved), ZERO)


def change_origin(
    item: LineItemInput,
    new_origin: str,
    rates: Optional[ExchangeRates],
    primary_origin: str = PRIMARY_SOURCING_COUNTRY
) -> LineItemInput:
    """
    Switch an item's origin, re-expressing the entered transport fee.

    To the primary origin the MGA fee becomes the entered value; away from it
    the MGA fee is expressed in USD.
    """
    updates = {"origin_country": new_origin}
    if is_primary_origin(new_origin, primary_origin):
        updates["transport_currency"] = Currency.MGA
        updates["transport_fee_original"] = item.transport_fee
    else:
        updates["transport_currency"] = Currency.USD
        updates["transport_fee_original"] = item.transport_fee / get_rate(Currency.USD, rates)
    return item.model_copy(update=updates)


# ============================================================================
# PAYMENT TRACKING
# ============================================================================

def calculate_down_payment(total_amount, percentage) -> Decimal:
    """Down payment amount for a percentage, rounded to whole Ariary"""
    return round_decimal(_to_decimal(total_amount) * _to_decimal(percentage) / HUNDRED, 0)


def calculate_down_payment_percentage(total_amount, amount) -> Decimal:
    """Whole-percent share of the total represented by amount"""
    return round_decimal(_percent_of(_to_decimal(amount), _to_decimal(total_amount)), 0)


def calculate_remaining_amount(total_amount, down_payment_amount) -> Decimal:
    return _to_decimal(total_amount) - _to_decimal(down_payment_amount)


def payment_status(total_amount, paid_amount) -> PaymentStatus:
    total_amount = _to_decimal(total_amount)
    paid_amount = _to_decimal(paid_amount)
    if paid_amount == total_amount:
        return PaymentStatus.PAID
    if paid_amount > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


# ============================================================================
# PROFIT ANALYSIS
# ============================================================================

def quote_item_cost(item: QuoteItem, rates: Optional[ExchangeRates]) -> Decimal:
    """Cost of a stored quote item; stored fees are already MGA"""
    purchase = convert(item.purchase_price, item.source_currency, rates) * item.quantity
    return purchase + item.transport_fee + item.misc_fee + item.customs_fee


def quote_cost(
    quote: Quote,
    rates: Optional[ExchangeRates] = None,
    estimate_missing_costs: bool = False
) -> Decimal:
    """Cost of all items of a quote; each item prefers its own rate snapshot"""
    total = ZERO
    for item in quote.items:
        if estimate_missing_costs and not item.has_cost_data:
            total += item.line_total * ESTIMATED_COST_RATIO
            continue
        item_rates = item.exchange_rates or rates or DEFAULT_EXCHANGE_RATES
        total += quote_item_cost(item, item_rates)
    return total


def quote_revenue_drift(quote: Quote, decimal_places: int = 2) -> Decimal:
    """
    Stored total minus the sum of item line totals, rounded to decimal_places.

    Remainders of per-unit price division round to 0.
    """
    drift = quote.total_amount - sum((item.line_total for item in quote.items), ZERO)
    return round_decimal(drift, decimal_places)


def analyze(
    quotes: Iterable[Quote],
    rates: Optional[ExchangeRates] = None,
    estimate_missing_costs: bool = False
) -> ProfitAnalysis:
    """
    Aggregate profit analysis.

    Revenue is the stored total_amount of each quote, not recomputed from
    items. Cost is the per-item cost (margin excluded).
    """
    quotes = list(quotes)
    if not quotes:
        return ProfitAnalysis()

    total_revenue = sum((quote.total_amount for quote in quotes), ZERO)
    total_cost = sum((quote_cost(quote, rates, estimate_missing_costs) for quote in quotes), ZERO)
    net_profit = total_revenue - total_cost

    return ProfitAnalysis(
        total_revenue=total_revenue,
        total_cost=total_cost,
        net_profit=net_profit,
        profit_margin=_percent_of(net_profit, total_revenue),
        cost_ratio=_percent_of(total_cost, total_revenue),
        quotes_analyzed=len(quotes),
    )


def performance_metrics(
    quotes: Iterable[Quote],
    analysis: Optional[ProfitAnalysis] = None,
    rates: Optional[ExchangeRates] = None
) -> PerformanceMetrics:
    """Per-quote averages and ROI derived from a profit analysis"""
    quotes = list(quotes)
    if analysis is None:
        analysis = analyze(quotes, rates)

    count = len(quotes)
    total_items = sum(item.quantity for quote in quotes for item in quote.items)
    if count == 0:
        return PerformanceMetrics(total_items=total_items)

    return PerformanceMetrics(
        average_quote_value=analysis.total_revenue / count,
        average_cost_per_quote=analysis.total_cost / count,
        average_profit_per_quote=analysis.net_profit / count,
        return_on_investment=_percent_of(analysis.net_profit, analysis.total_cost),
        total_items=total_items,
    )


# ============================================================================
# PERIOD FILTER AND TREND
# ============================================================================

def _in_period(
    created: datetime,
    granularity: PeriodGranularity,
    year: int,
    month: Optional[int],
    week: Optional[int],
    day: Optional[date]
) -> bool:
    if granularity == PeriodGranularity.DAY:
        return day is not None and created.date() == (day.date() if isinstance(day, datetime) else day)

    if created.year != year:
        return False

    if granularity == PeriodGranularity.MONTH:
        return created.month == month if month else True

    if granularity == PeriodGranularity.WEEK:
        if not month or not week:
            return True
        return created.month == month and math.ceil(created.day / 7) == week

    return True


def filter_by_period(
    quotes: Iterable[Quote],
    granularity: Union[PeriodGranularity, str],
    year: int,
    month: Optional[int] = None,
    week: Optional[int] = None,
    day: Optional[date] = None
) -> List[Quote]:
    """
    Quotes whose created_at falls in the period.

    year: calendar year. month: year + month (whole year if month is None).
    week: week of month (ceil(day / 7)) inside year + month. day: exact date.
    Input order is preserved.
    """
    granularity = PeriodGranularity(granularity)
    return [
        quote for quote in quotes
        if _in_period(quote.created_at, granularity, year, month, week, day)
    ]


def previous_period(
    granularity: Union[PeriodGranularity, str],
    year: int,
    month: Optional[int] = None
) -> Tuple[int, Optional[int]]:
    """(year, month) of the period preceding a year or month period"""
    granularity = PeriodGranularity(granularity)
    if granularity == PeriodGranularity.YEAR or not month:
        return year - 1, None
    if month == 1:
        return year - 1, 12
    return year, month - 1


def trend(current: ProfitAnalysis, previous: ProfitAnalysis) -> TrendResult:
    """Percentage change of revenue, profit and quote count between periods"""
    return TrendResult(
        revenue_trend=percent_change(current.total_revenue, previous.total_revenue),
        profit_trend=percent_change(current.net_profit, previous.net_profit),
        quotes_trend=percent_change(current.quotes_analyzed, previous.quotes_analyzed),
    )
