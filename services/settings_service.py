"""
User Settings Service

Per-user profile, business settings and the exchange-rate table used by
cost calculations. Stored values are merged over DEFAULT_SETTINGS so a
partially filled row always yields complete settings.
"""

from typing import Dict, Any, Optional
import logging

from pydantic import BaseModel, Field

from calculation_models import ExchangeRates
from calculation_engine import DEFAULT_EXCHANGE_RATES
from calculation_mapper import parse_exchange_rates, to_storage
from services.database import get_supabase

logger = logging.getLogger(__name__)

SETTINGS_TABLE = "user_settings"


class ProfileSettings(BaseModel):
    name: str = "Admin User"
    email: str = "admin@example.com"
    phone: str = "+261 34 12 345 67"
    company: str = "Import Export Solutions"
    address: str = "123 Avenue de l'Indépendance, Antananarivo, Madagascar"
    website: str = "www.importexport.mg"


class BusinessSettings(BaseModel):
    company_name: str = "Import Export Solutions"
    tax_id: str = "NIF123456789"
    currency: str = "MGA"
    language: str = "fr"
    timezone: str = "Indian/Antananarivo"
    quote_validity_days: int = Field(default=30, ge=1)
    quote_prefix: str = "QT"


class UserSettings(BaseModel):
    profile: ProfileSettings = Field(default_factory=ProfileSettings)
    business: BusinessSettings = Field(default_factory=BusinessSettings)
    exchange_rates: ExchangeRates = Field(default_factory=lambda: dict(DEFAULT_EXCHANGE_RATES))


DEFAULT_SETTINGS = UserSettings()


def _merge_settings(row: Dict[str, Any]) -> UserSettings:
    """Stored sections override defaults field by field."""
    defaults = DEFAULT_SETTINGS.model_dump()
    profile = {**defaults["profile"], **(row.get("profile") or {})}
    business = {**defaults["business"], **(row.get("business") or {})}
    rates = {**DEFAULT_EXCHANGE_RATES, **parse_exchange_rates(row.get("exchange_rates"))}
    return UserSettings(profile=profile, business=business, exchange_rates=rates)


def _settings_to_row(user_id: str, settings: UserSettings) -> Dict[str, Any]:
    row = to_storage(settings.model_dump())
    row["user_id"] = user_id
    return row


def get_user_settings(user_id: Optional[str]) -> UserSettings:
    """
    Settings of a user.

    No user -> defaults. Missing row -> default row is created and returned.
    Any database error -> defaults (logged).
    """
    if not user_id:
        return DEFAULT_SETTINGS.model_copy(deep=True)

    try:
        supabase = get_supabase()

        result = supabase.table(SETTINGS_TABLE).select("*").eq("user_id", user_id).execute()

        if result.data and len(result.data) > 0:
            return _merge_settings(result.data[0])

        supabase.table(SETTINGS_TABLE).insert(_settings_to_row(user_id, DEFAULT_SETTINGS)).execute()
        return DEFAULT_SETTINGS.model_copy(deep=True)

    except Exception as e:
        logger.error(f"Error getting user settings: {e}")
        return DEFAULT_SETTINGS.model_copy(deep=True)


def update_user_settings(user_id: str, updates: Dict[str, Any]) -> UserSettings:
    """
    Merge updates into a user's settings and store them.

    Args:
        user_id: User ID (required)
        updates: Partial sections, e.g. {"business": {"quote_prefix": "DV"}}

    Returns:
        The merged settings

    Raises:
        ValueError: If user_id is empty
        pydantic.ValidationError: If merged values are invalid
        Exception: Database errors are logged and re-raised
    """
    if not user_id:
        raise ValueError("User must be signed in to update settings")

    current = get_user_settings(user_id).model_dump()
    merged_row = {
        "profile": {**current["profile"], **(updates.get("profile") or {})},
        "business": {**current["business"], **(updates.get("business") or {})},
        "exchange_rates": {**current["exchange_rates"], **(updates.get("exchange_rates") or {})},
    }
    merged = _merge_settings(merged_row)

    try:
        supabase = get_supabase()
        supabase.table(SETTINGS_TABLE).upsert(_settings_to_row(user_id, merged), on_conflict="user_id").execute()
    except Exception as e:
        logger.error(f"Error updating user settings: {e}")
        raise

    return merged


def get_exchange_rates(user_id: Optional[str]) -> ExchangeRates:
    """User's exchange-rate table (defaults for missing currencies)."""
    return dict(get_user_settings(user_id).exchange_rates)
