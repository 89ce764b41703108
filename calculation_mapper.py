"""
Quote Row Mapping Module

This module handles:
- Safe conversion of raw database values (None, "", strings, floats)
- Normalization of currency codes and origin country names
- Mapping Supabase rows to calculation models and back

Rows use snake_case columns. Documents exported from the earlier
document-store version of the app use camelCase keys; both are accepted
when reading.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import logging

from pydantic import BaseModel

from calculation_models import (
    Currency,
    ExchangeRates,
    QuoteItem,
    Quote,
    DownPayment,
    QuoteStatus,
    PaymentStatus,
    ShippingMethod,
)

# Setup logger
logger = logging.getLogger(__name__)


# ============================================================================
# SAFE CONVERSION UTILITIES
# ============================================================================

def safe_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Safely convert value to Decimal"""
    if value is None or value == "":
        return default
    try:
        result = Decimal(str(value).replace(" ", "").replace(",", "."))
    except (ValueError, TypeError, InvalidOperation):
        logger.debug(f"Could not convert {value!r} to Decimal, using {default}")
        return default
    if not result.is_finite():
        return default
    return result


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert value to string"""
    if value is None or value == "":
        return default
    return str(value)


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert value to int"""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        logger.debug(f"Could not convert {value!r} to int, using {default}")
        return default


def _field(row: Dict[str, Any], name: str, camel: Optional[str] = None, default: Any = None) -> Any:
    """Read a column by snake_case name, falling back to the camelCase key"""
    if name in row and row[name] is not None:
        return row[name]
    if camel and camel in row and row[camel] is not None:
        return row[camel]
    return default


# ============================================================================
# CURRENCY AND COUNTRY NORMALIZATION
# ============================================================================

# Currency labels seen in stored data
CURRENCY_ALIASES = {
    "AR": "MGA",
    "ARIARY": "MGA",
    "RMB": "CNY",
    "YUAN": "CNY",
    "$": "USD",
    "€": "EUR",
}


def normalize_currency(value: Any, default: Currency = Currency.MGA) -> Currency:
    """
    Normalize a currency label to Currency.

    Args:
        value: Raw currency value (code, alias, or enum)
        default: Returned for empty or unrecognized values

    Returns:
        Currency enum member
    """
    if isinstance(value, Currency):
        return value
    code = safe_str(value).strip().upper()
    if not code:
        return default
    code = CURRENCY_ALIASES.get(code, code)
    try:
        return Currency(code)
    except ValueError:
        logger.debug(f"Unknown currency {value!r}, using {getattr(default, 'value', default)}")
        return default


# Map stored origin values to canonical English names
ORIGIN_COUNTRY_MAPPING = {
    # China variations
    "chine": "China",
    "china": "China",
    "cn": "China",
    "prc": "China",

    # French labels used by the quote form
    "états-unis": "United States",
    "etats-unis": "United States",
    "usa": "United States",
    "us": "United States",
    "allemagne": "Germany",
    "de": "Germany",
    "france": "France",
    "fr": "France",
    "italie": "Italy",
    "it": "Italy",
    "japon": "Japan",
    "jp": "Japan",
    "corée du sud": "South Korea",
    "coree du sud": "South Korea",
    "kr": "South Korea",
    "royaume-uni": "United Kingdom",
    "uk": "United Kingdom",
    "gb": "United Kingdom",
    "espagne": "Spain",
    "es": "Spain",
    "pays-bas": "Netherlands",
    "nl": "Netherlands",
    "belgique": "Belgium",
    "be": "Belgium",
    "autre": "Other",
}


def normalize_origin_country(value: str) -> str:
    """
    Normalize an origin country to its canonical English name.

    Unknown names are returned stripped, unchanged otherwise.
    """
    if not value:
        return ""
    cleaned = value.strip()
    return ORIGIN_COUNTRY_MAPPING.get(cleaned.lower(), cleaned)


# ============================================================================
# ROW PARSING
# ============================================================================

def _as_utc(value: datetime) -> datetime:
    """Naive timestamps are stored in UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp.

    Accepts datetimes, ISO strings (with trailing Z), epoch seconds and
    {"seconds": ...} objects from document-store exports.
    Results are always timezone-aware.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, dict) and "seconds" in value:
        value = value["seconds"]
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        return _as_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))
    except ValueError:
        logger.debug(f"Could not parse timestamp {value!r}")
        return None


def parse_exchange_rates(value: Any) -> ExchangeRates:
    """Parse a {currency: rate} mapping, dropping unknown or non-positive entries"""
    if not isinstance(value, dict):
        return {}
    rates: ExchangeRates = {}
    for code, rate in value.items():
        currency = normalize_currency(code, default=None) if code else None
        amount = safe_decimal(rate)
        if currency is None or currency == Currency.MGA or amount <= 0:
            continue
        rates[currency] = amount
    return rates


def _parse_enum(enum_cls, value: Any, default):
    try:
        return enum_cls(value)
    except ValueError:
        logger.debug(f"Invalid {enum_cls.__name__} {value!r}, using {default.value}")
        return default


def map_row_to_quote_item(row: Dict[str, Any]) -> QuoteItem:
    """Parse a stored quote item (JSON element of quotes.items)"""
    return QuoteItem(
        id=safe_str(_field(row, "id")),
        description=safe_str(_field(row, "description")),
        quantity=max(safe_int(_field(row, "quantity")), 0),
        unit_price=safe_decimal(_field(row, "unit_price", "unitPrice")),
        purchase_price=max(safe_decimal(_field(row, "purchase_price", "purchasePrice")), Decimal("0")),
        source_currency=normalize_currency(_field(row, "source_currency", "mainCurrency")),
        exchange_rates=parse_exchange_rates(_field(row, "exchange_rates", "exchangeRates")),
        transport_fee=max(safe_decimal(_field(row, "transport_fee", "transportFees")), Decimal("0")),
        transport_fee_original=max(safe_decimal(_field(row, "transport_fee_original", "transportFeesOriginal")), Decimal("0")),
        transport_currency=normalize_currency(_field(row, "transport_currency", "transportCurrency")),
        misc_fee=max(safe_decimal(_field(row, "misc_fee", "miscFees")), Decimal("0")),
        customs_fee=max(safe_decimal(_field(row, "customs_fee", "customsFees")), Decimal("0")),
        margin_percent=safe_decimal(_field(row, "margin_percent", "margin")),
        category=safe_str(_field(row, "category")),
        hs_code=_field(row, "hs_code", "hsCode"),
        weight=max(safe_decimal(_field(row, "weight")), Decimal("0")),
        product_link=_field(row, "product_link", "productLink"),
    )


def map_row_to_down_payment(row: Optional[Dict[str, Any]]) -> Optional[DownPayment]:
    if not row:
        return None
    return DownPayment(
        id=safe_str(_field(row, "id")),
        amount=max(safe_decimal(_field(row, "amount")), Decimal("0")),
        percentage=min(max(safe_decimal(_field(row, "percentage")), Decimal("0")), Decimal("100")),
        paid_date=parse_timestamp(_field(row, "paid_date", "paidDate")),
        payment_method=_field(row, "payment_method", "paymentMethod"),
        notes=_field(row, "notes"),
    )


def map_row_to_quote(row: Dict[str, Any]) -> Quote:
    """
    Parse a quotes table row into a Quote.

    Missing created_at falls back to updated_at, then to the current time.
    """
    created_at = parse_timestamp(_field(row, "created_at", "createdAt"))
    updated_at = parse_timestamp(_field(row, "updated_at", "updatedAt"))
    if created_at is None:
        logger.debug(f"Quote {row.get('id')} has no created_at")
        created_at = updated_at or datetime.now(timezone.utc)

    items = [map_row_to_quote_item(item) for item in (_field(row, "items") or [])]

    return Quote(
        id=safe_str(_field(row, "id")),
        user_id=safe_str(_field(row, "user_id", "userId")),
        quote_number=safe_str(_field(row, "quote_number", "quoteNumber")),
        client_name=safe_str(_field(row, "client_name", "clientName")),
        client_email=safe_str(_field(row, "client_email", "clientEmail")),
        client_phone=safe_str(_field(row, "client_phone", "clientPhone")),
        client_address=safe_str(_field(row, "client_address", "clientAddress")),
        status=_parse_enum(QuoteStatus, _field(row, "status"), QuoteStatus.DRAFT),
        created_at=created_at,
        updated_at=updated_at,
        valid_until=parse_timestamp(_field(row, "valid_until", "validUntil")),
        estimated_delivery=parse_timestamp(_field(row, "estimated_delivery", "estimatedDelivery")),
        items=items,
        total_amount=safe_decimal(_field(row, "total_amount", "totalAmount")),
        currency=Currency.MGA,
        notes=_field(row, "notes"),
        shipping_method=_parse_enum(ShippingMethod, _field(row, "shipping_method", "shippingMethod"), ShippingMethod.SEA),
        origin_country=safe_str(_field(row, "origin_country", "originCountry")),
        destination_port=safe_str(_field(row, "destination_port", "destinationPort")),
        down_payment=map_row_to_down_payment(_field(row, "down_payment", "downPayment")),
        payment_status=_parse_enum(PaymentStatus, _field(row, "payment_status", "paymentStatus"), PaymentStatus.UNPAID),
        remaining_amount=safe_decimal(_field(row, "remaining_amount", "remainingAmount")),
    )


# ============================================================================
# ROW SERIALIZATION
# ============================================================================

def to_storage(value: Any) -> Any:
    """Convert models to dicts, Decimals to float, datetimes to ISO, enums to values (recursively)"""
    if isinstance(value, BaseModel):
        return to_storage(value.model_dump())
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (Currency, QuoteStatus, PaymentStatus, ShippingMethod)):
        return value.value
    if isinstance(value, dict):
        return {to_storage(k): to_storage(v) for k, v in value.items()}
    if isinstance(value, list):
        return [to_storage(v) for v in value]
    return value


def quote_item_to_row(item: QuoteItem) -> Dict[str, Any]:
    return to_storage(item.model_dump())


def quote_to_row(quote: Quote, include_id: bool = False) -> Dict[str, Any]:
    """Serialize a Quote for insert/update; id is omitted unless requested"""
    data = quote.model_dump(exclude={"items"})
    data["items"] = [quote_item_to_row(item) for item in quote.items]
    if not include_id:
        data.pop("id", None)
    return to_storage(data)


def map_rows_to_quotes(rows: List[Dict[str, Any]]) -> List[Quote]:
    return [map_row_to_quote(row) for row in rows]
