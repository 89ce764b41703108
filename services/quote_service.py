"""
Quote Service - CRUD operations for the quotes table

Quotes are stored one row per quote with their items in a JSON column.
Items keep the purchase price in its source currency together with the
exchange rates used when the quote was priced, so profit analysis can
recompute costs later without today's rates.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Any, List, Optional, Sequence, Union
from uuid import uuid4
import logging

from calculation_models import (
    ExchangeRates,
    LineItemResolved,
    Quote,
    QuoteItem,
    QuoteStatus,
    DownPayment,
)
from calculation_engine import (
    quote_total,
    calculate_remaining_amount,
    payment_status,
)
from calculation_mapper import map_row_to_quote, quote_to_row, to_storage
from services.database import get_supabase

logger = logging.getLogger(__name__)

QUOTES_TABLE = "quotes"
DEFAULT_QUOTE_PREFIX = "QT"


# =============================================================================
# QUOTE ASSEMBLY
# =============================================================================

def generate_quote_number(prefix: str = DEFAULT_QUOTE_PREFIX, now: Optional[datetime] = None) -> str:
    """Quote number like QT-2024-123456 (last 6 digits of the epoch millis)"""
    now = now or datetime.now(timezone.utc)
    millis = str(int(now.timestamp() * 1000))
    return f"{prefix}-{now.year}-{millis[-6:]}"


def build_quote_items(resolved: Sequence[LineItemResolved], rates: ExchangeRates) -> List[QuoteItem]:
    """Convert resolved line items into stored quote items (per-unit sale price)."""
    items = []
    for index, item in enumerate(resolved):
        items.append(QuoteItem(
            id=f"item_{index}_{uuid4().hex[:8]}",
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            purchase_price=item.purchase_price,
            source_currency=item.source_currency,
            exchange_rates=dict(rates),
            transport_fee=item.transport_fee_converted,
            transport_fee_original=item.transport_fee_original,
            transport_currency=item.transport_currency,
            misc_fee=item.misc_fee,
            customs_fee=item.customs_fee,
            margin_percent=item.margin_percent,
            category=item.category,
            hs_code=item.hs_code,
            weight=item.weight,
            product_link=item.product_link,
        ))
    return items


def build_quote(
    resolved: Sequence[LineItemResolved],
    rates: ExchangeRates,
    *,
    user_id: str = "",
    down_payment: Optional[DownPayment] = None,
    quote_prefix: str = DEFAULT_QUOTE_PREFIX,
    now: Optional[datetime] = None,
    **fields: Any,
) -> Quote:
    """
    Assemble a new draft quote from resolved line items.

    total_amount is the sum of line totals; remaining amount and payment
    status follow from the down payment. Extra keyword fields (client
    details, shipping, dates) are passed to Quote.
    """
    now = now or datetime.now(timezone.utc)
    total = quote_total(resolved)
    paid = down_payment.amount if down_payment else Decimal("0")

    return Quote(
        user_id=user_id,
        quote_number=generate_quote_number(quote_prefix, now),
        status=QuoteStatus.DRAFT,
        created_at=now,
        updated_at=now,
        items=build_quote_items(resolved, rates),
        total_amount=total,
        down_payment=down_payment if paid > 0 else None,
        payment_status=payment_status(total, paid),
        remaining_amount=calculate_remaining_amount(total, paid),
        **fields,
    )


# =============================================================================
# QUOTE CRUD
# =============================================================================

def create_quote(quote: Quote) -> Optional[Quote]:
    """
    Insert a quote.

    Returns:
        Stored Quote (with database id) if successful, None otherwise
    """
    try:
        supabase = get_supabase()

        result = supabase.table(QUOTES_TABLE).insert(quote_to_row(quote)).execute()

        if result.data and len(result.data) > 0:
            return map_row_to_quote(result.data[0])
        return None

    except Exception as e:
        logger.error(f"Error creating quote: {e}")
        return None


def get_quote(quote_id: str) -> Optional[Quote]:
    """Get a quote by ID, None if not found."""
    try:
        supabase = get_supabase()

        result = supabase.table(QUOTES_TABLE).select("*").eq("id", quote_id).execute()

        if result.data and len(result.data) > 0:
            return map_row_to_quote(result.data[0])
        return None

    except Exception as e:
        logger.error(f"Error getting quote: {e}")
        return None


def get_all_quotes(user_id: Optional[str] = None) -> List[Quote]:
    """All quotes (optionally of one user), newest first."""
    try:
        supabase = get_supabase()

        query = supabase.table(QUOTES_TABLE).select("*")
        if user_id:
            query = query.eq("user_id", user_id)
        result = query.order("created_at", desc=True).execute()

        return [map_row_to_quote(row) for row in (result.data or [])]

    except Exception as e:
        logger.error(f"Error getting quotes: {e}")
        return []


def get_quotes_by_status(status: Union[QuoteStatus, str], user_id: Optional[str] = None) -> List[Quote]:
    """Quotes with the given status, newest first."""
    status = QuoteStatus(status)
    try:
        supabase = get_supabase()

        query = supabase.table(QUOTES_TABLE).select("*").eq("status", status.value)
        if user_id:
            query = query.eq("user_id", user_id)
        result = query.order("created_at", desc=True).execute()

        return [map_row_to_quote(row) for row in (result.data or [])]

    except Exception as e:
        logger.error(f"Error getting quotes by status: {e}")
        return []


def update_quote(quote_id: str, updates: Dict[str, Any]) -> bool:
    """
    Apply a partial update and stamp updated_at.

    Args:
        quote_id: Quote ID
        updates: Columns to change; Decimal/datetime/enum values are converted

    Returns:
        True if the update was sent successfully, False otherwise
    """
    update_data = to_storage(dict(updates))
    update_data.pop("id", None)
    update_data.pop("created_at", None)
    update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

    try:
        supabase = get_supabase()
        supabase.table(QUOTES_TABLE).update(update_data).eq("id", quote_id).execute()
        return True

    except Exception as e:
        logger.error(f"Error updating quote: {e}")
        return False


def update_quote_status(quote_id: str, status: Union[QuoteStatus, str]) -> bool:
    return update_quote(quote_id, {"status": QuoteStatus(status)})


def record_down_payment(quote: Quote, down_payment: DownPayment) -> bool:
    """Store a down payment and the resulting remaining amount and payment status."""
    return update_quote(quote.id, {
        "down_payment": down_payment.model_dump(),
        "remaining_amount": calculate_remaining_amount(quote.total_amount, down_payment.amount),
        "payment_status": payment_status(quote.total_amount, down_payment.amount),
    })


def delete_quote(quote_id: str) -> bool:
    """Delete a quote permanently (no soft delete)."""
    try:
        supabase = get_supabase()
        supabase.table(QUOTES_TABLE).delete().eq("id", quote_id).execute()
        return True

    except Exception as e:
        logger.error(f"Error deleting quote: {e}")
        return False
