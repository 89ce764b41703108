"""
Import/Export Quotes - Calculation Models
Pydantic models for line items, quotes and derived financial analyses.

All monetary values are Decimal. Derived amounts are expressed in the
accounting currency (MGA, Malagasy Ariary) unless a field says otherwise.
"""

from decimal import Decimal
from typing import Optional, List, Dict
from datetime import datetime
from pydantic import BaseModel, Field, validator
from enum import Enum


# ============================================================================
# ENUMS - Dropdown/Select Values
# ============================================================================

class Currency(str, Enum):
    """Supported currencies (MGA is the accounting currency)"""
    MGA = "MGA"
    USD = "USD"
    EUR = "EUR"
    CNY = "CNY"


class QuoteStatus(str, Enum):
    """Quote lifecycle status"""
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment progress of a quote"""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class ShippingMethod(str, Enum):
    AIR = "air"
    SEA = "sea"
    LAND = "land"


class PeriodGranularity(str, Enum):
    """Calendar granularity for period filtering"""
    YEAR = "year"
    MONTH = "month"
    WEEK = "week"
    DAY = "day"


# Currency -> MGA per 1 unit of that currency
ExchangeRates = Dict[Currency, Decimal]


# ============================================================================
# LINE ITEMS
# ============================================================================

class LineItemInput(BaseModel):
    """
    One priced article as entered in a cost calculation or quote form.

    purchase_price is in source_currency. transport_fee, misc_fee and
    customs_fee are in MGA. For non-primary origins the transport fee is
    entered as transport_fee_original in transport_currency.
    """
    description: str = Field(default="", description="Article description")
    quantity: int = Field(default=1, ge=0, description="Number of units")
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0, description="Unit purchase price in source currency")
    source_currency: Currency = Field(default=Currency.USD, description="Currency of purchase price")
    origin_country: str = Field(default="China", description="Sourcing country")

    transport_fee: Decimal = Field(default=Decimal("0"), ge=0, description="Transport fee in MGA")
    transport_fee_original: Decimal = Field(default=Decimal("0"), ge=0, description="Transport fee as entered")
    transport_currency: Currency = Field(default=Currency.USD, description="Currency of entered transport fee")
    misc_fee: Decimal = Field(default=Decimal("0"), ge=0, description="Miscellaneous fees in MGA")
    customs_fee: Decimal = Field(default=Decimal("0"), ge=0, description="Customs fees in MGA")

    margin_percent: Decimal = Field(default=Decimal("0"), description="Markup on total cost %")

    # Descriptive fields carried to the quote
    category: str = Field(default="")
    hs_code: Optional[str] = Field(default=None, description="Harmonized System code")
    weight: Decimal = Field(default=Decimal("0"), ge=0, description="Weight in kg")
    product_link: Optional[str] = None


class LineItemResolved(LineItemInput):
    """Line item with every derived amount computed (all MGA)"""
    purchase_price_converted: Decimal = Field(..., description="Unit purchase price in MGA")
    total_purchase_cost: Decimal = Field(..., description="Purchase price x quantity")
    transport_fee_converted: Decimal = Field(..., description="Transport fee entering the cost base")
    total_cost: Decimal = Field(..., description="Purchase cost + transport + misc + customs")
    margin_amount: Decimal = Field(..., description="total_cost x margin %")
    line_total_price: Decimal = Field(..., description="Sale price for the full quantity")
    unit_price: Decimal = Field(..., description="Sale price per unit")


# ============================================================================
# QUOTES
# ============================================================================

class QuoteItem(BaseModel):
    """Line item as stored inside a quote"""
    id: str = ""
    description: str = ""
    quantity: int = Field(default=0, ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), description="Sale price per unit in MGA")

    purchase_price: Decimal = Field(default=Decimal("0"), ge=0, description="Unit purchase price in source currency")
    source_currency: Currency = Currency.MGA
    exchange_rates: ExchangeRates = Field(default_factory=dict, description="Rates used when the quote was priced")

    transport_fee: Decimal = Field(default=Decimal("0"), ge=0)
    transport_fee_original: Decimal = Field(default=Decimal("0"), ge=0)
    transport_currency: Currency = Currency.MGA
    misc_fee: Decimal = Field(default=Decimal("0"), ge=0)
    customs_fee: Decimal = Field(default=Decimal("0"), ge=0)
    margin_percent: Decimal = Decimal("0")

    category: str = ""
    hs_code: Optional[str] = None
    weight: Decimal = Decimal("0")
    product_link: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        """Sale contribution of the item (unit price x quantity)"""
        return self.unit_price * self.quantity

    @property
    def has_cost_data(self) -> bool:
        return self.purchase_price > 0


class DownPayment(BaseModel):
    id: str = ""
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    paid_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None


class Quote(BaseModel):
    """Customer-facing priced proposal"""
    id: str = ""
    user_id: str = ""
    quote_number: str = ""

    client_name: str = ""
    client_email: str = ""
    client_phone: str = ""
    client_address: str = ""

    status: QuoteStatus = QuoteStatus.DRAFT
    created_at: datetime
    updated_at: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    estimated_delivery: Optional[datetime] = None

    items: List[QuoteItem] = Field(default_factory=list)
    total_amount: Decimal = Field(default=Decimal("0"), description="Recorded revenue figure in MGA")
    currency: Currency = Currency.MGA
    notes: Optional[str] = None

    shipping_method: ShippingMethod = ShippingMethod.SEA
    origin_country: str = ""
    destination_port: str = ""

    down_payment: Optional[DownPayment] = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    remaining_amount: Decimal = Decimal("0")

    @validator('currency')
    def validate_quote_currency(cls, v):
        """Quotes are always denominated in the accounting currency"""
        if v != Currency.MGA:
            raise ValueError("Quote currency must be MGA")
        return v


# ============================================================================
# DERIVED ANALYSES
# ============================================================================

class ProfitAnalysis(BaseModel):
    """Aggregate profit view over a set of quotes (never stored)"""
    total_revenue: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    net_profit: Decimal = Decimal("0")
    profit_margin: Decimal = Field(default=Decimal("0"), description="net_profit / revenue %")
    cost_ratio: Decimal = Field(default=Decimal("0"), description="total_cost / revenue %")
    quotes_analyzed: int = 0


class PerformanceMetrics(BaseModel):
    average_quote_value: Decimal = Decimal("0")
    average_cost_per_quote: Decimal = Decimal("0")
    average_profit_per_quote: Decimal = Decimal("0")
    return_on_investment: Decimal = Field(default=Decimal("0"), description="net_profit / total_cost %")
    total_items: int = 0


class TrendResult(BaseModel):
    """Percentage change between two comparable periods"""
    revenue_trend: Decimal = Decimal("0")
    profit_trend: Decimal = Decimal("0")
    quotes_trend: Decimal = Decimal("0")


class CostCalculationSnapshot(BaseModel):
    """Saved standalone cost calculation, owned by the caller"""
    id: str = ""
    name: str = ""
    items: List[LineItemResolved] = Field(default_factory=list)
    exchange_rates: ExchangeRates = Field(default_factory=dict)
    total_cost: Decimal = Decimal("0")
    total_margin: Decimal = Decimal("0")
    total_selling_price: Decimal = Decimal("0")
    calculated_at: datetime
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
