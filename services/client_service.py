"""
Client Service - CRUD operations for the clients table

This module provides functions for managing client records:
- Create/Update/Delete clients
- Query clients for a user, newest first
- Validate contact details before writing
- Maintain the denormalized quote count and total value per client

Clients are the companies or people quotes are addressed to. Quotes store
the client name directly, so client statistics are recomputed from quotes
rather than joined.
"""

from dataclasses import dataclass
from typing import List, Optional, Dict, Any, Iterable
from datetime import datetime, timezone
from decimal import Decimal
import logging
import re

from calculation_models import Quote
from calculation_mapper import safe_decimal, safe_int, safe_str, parse_timestamp
from services.database import get_supabase

logger = logging.getLogger(__name__)

CLIENTS_TABLE = "clients"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class Client:
    """
    Represents a client.

    Maps to clients table in database.
    """
    id: str
    user_id: str
    name: str

    # Contact details
    email: str = ""
    phone: str = ""
    address: str = ""
    company: Optional[str] = None

    # Denormalized statistics
    total_quotes: int = 0
    total_value: Decimal = Decimal("0")

    created_at: Optional[datetime] = None


def _parse_client(data: dict) -> Client:
    """Parse database row into Client object."""
    return Client(
        id=data["id"],
        user_id=safe_str(data.get("user_id")),
        name=data["name"],
        email=safe_str(data.get("email")),
        phone=safe_str(data.get("phone")),
        address=safe_str(data.get("address")),
        company=data.get("company"),
        total_quotes=safe_int(data.get("total_quotes")),
        total_value=safe_decimal(data.get("total_value")),
        created_at=parse_timestamp(data.get("created_at")),
    )


# =============================================================================
# VALIDATION
# =============================================================================

def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email to validate

    Returns:
        True if valid format, False otherwise
    """
    if not email:
        return True  # Email is optional
    return bool(re.match(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', email))


def validate_phone(phone: str) -> bool:
    """
    Validate phone format (basic).

    Args:
        phone: Phone to validate, e.g. "+261 34 12 345 67"

    Returns:
        True if looks like a phone number, False otherwise
    """
    if not phone:
        return True  # Phone is optional
    digits = re.sub(r'[\s\-\(\)\+\.]', '', phone)
    return len(digits) >= 7 and digits.isdigit()


def _validate_contact(email: Optional[str], phone: Optional[str]) -> None:
    if email and not validate_email(email):
        raise ValueError(f"Invalid email format: {email}")
    if phone and not validate_phone(phone):
        raise ValueError(f"Invalid phone format: {phone}")


# =============================================================================
# CLIENT CRUD
# =============================================================================

def create_client(
    user_id: str,
    name: str,
    *,
    email: str = "",
    phone: str = "",
    address: str = "",
    company: Optional[str] = None,
) -> Optional[Client]:
    """
    Create a new client with zeroed statistics.

    Returns:
        Client object if successful, None otherwise

    Raises:
        ValueError: If name is empty or email/phone are malformed
    """
    if not name or not name.strip():
        raise ValueError("Client name is required")
    _validate_contact(email, phone)

    try:
        supabase = get_supabase()

        result = supabase.table(CLIENTS_TABLE).insert({
            "user_id": user_id,
            "name": name.strip(),
            "email": email,
            "phone": phone,
            "address": address,
            "company": company,
            "total_quotes": 0,
            "total_value": 0,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }).execute()

        if result.data and len(result.data) > 0:
            return _parse_client(result.data[0])
        return None

    except Exception as e:
        logger.error(f"Error creating client: {e}")
        return None


def get_client(client_id: str) -> Optional[Client]:
    """Get a client by ID, None if not found."""
    try:
        supabase = get_supabase()

        result = supabase.table(CLIENTS_TABLE).select("*").eq("id", client_id).execute()

        if result.data and len(result.data) > 0:
            return _parse_client(result.data[0])
        return None

    except Exception as e:
        logger.error(f"Error getting client: {e}")
        return None


def get_all_clients(user_id: str) -> List[Client]:
    """All clients of a user, newest first."""
    try:
        supabase = get_supabase()

        result = supabase.table(CLIENTS_TABLE).select("*")\
            .eq("user_id", user_id)\
            .order("created_at", desc=True)\
            .execute()

        return [_parse_client(row) for row in (result.data or [])]

    except Exception as e:
        logger.error(f"Error getting clients: {e}")
        return []


def update_client(
    client_id: str,
    *,
    name: Optional[str] = None,
    email: Optional[str] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
    company: Optional[str] = None,
) -> Optional[Client]:
    """
    Update a client's contact fields.

    Returns:
        Updated Client object if successful, None otherwise

    Raises:
        ValueError: If email/phone are malformed
    """
    _validate_contact(email, phone)

    update_data: Dict[str, Any] = {}
    if name is not None:
        update_data["name"] = name
    if email is not None:
        update_data["email"] = email
    if phone is not None:
        update_data["phone"] = phone
    if address is not None:
        update_data["address"] = address
    if company is not None:
        update_data["company"] = company

    if not update_data:
        return get_client(client_id)

    try:
        supabase = get_supabase()

        result = supabase.table(CLIENTS_TABLE).update(update_data)\
            .eq("id", client_id)\
            .execute()

        if result.data and len(result.data) > 0:
            return _parse_client(result.data[0])
        return None

    except Exception as e:
        logger.error(f"Error updating client: {e}")
        return None


def delete_client(client_id: str) -> bool:
    """Delete a client permanently. Quotes keep their copied client fields."""
    try:
        supabase = get_supabase()
        supabase.table(CLIENTS_TABLE).delete().eq("id", client_id).execute()
        return True

    except Exception as e:
        logger.error(f"Error deleting client: {e}")
        return False


# =============================================================================
# STATISTICS
# =============================================================================

def compute_client_stats(client_name: str, quotes: Iterable[Quote]) -> Dict[str, Any]:
    """
    Quote count and total value for a client, matched by name (case-insensitive).

    Returns:
        {"total_quotes": int, "total_value": Decimal}
    """
    key = client_name.strip().lower()
    matching = [q for q in quotes if q.client_name.strip().lower() == key]
    return {
        "total_quotes": len(matching),
        "total_value": sum((q.total_amount for q in matching), Decimal("0")),
    }


def update_client_stats(client_id: str, total_quotes: int, total_value: Decimal) -> bool:
    """Store recomputed statistics on the client row."""
    try:
        supabase = get_supabase()
        supabase.table(CLIENTS_TABLE).update({
            "total_quotes": total_quotes,
            "total_value": float(total_value),
        }).eq("id", client_id).execute()
        return True

    except Exception as e:
        logger.error(f"Error updating client stats: {e}")
        return False


def refresh_client_stats(client: Client, quotes: Iterable[Quote]) -> Client:
    """Recompute a client's statistics from quotes and persist them."""
    stats = compute_client_stats(client.name, quotes)
    update_client_stats(client.id, stats["total_quotes"], stats["total_value"])
    client.total_quotes = stats["total_quotes"]
    client.total_value = stats["total_value"]
    return client


def top_clients(clients: Iterable[Client], limit: int = 5) -> List[Client]:
    """Clients with the highest total value"""
    return sorted(clients, key=lambda c: c.total_value, reverse=True)[:limit]
