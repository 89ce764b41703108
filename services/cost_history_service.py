"""
Cost Calculation History Service

Saved standalone cost calculations. A snapshot is an explicit object owned
by the caller: helpers take a history list and return a new list, they never
keep state of their own. Supabase persistence is provided separately.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Any, Iterable, List, Optional, Sequence
from uuid import uuid4
import logging

from calculation_models import (
    CostCalculationSnapshot,
    ExchangeRates,
    LineItemInput,
)
from calculation_engine import resolve_items, calculation_totals
from calculation_mapper import to_storage, parse_timestamp
from services.database import get_supabase

logger = logging.getLogger(__name__)

COST_CALCULATIONS_TABLE = "cost_calculations"
MAX_HISTORY_ENTRIES = 50
EXPORT_VERSION = "1.0"


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def default_calculation_name(now: datetime) -> str:
    """e.g. 'Calcul du 15/01/2024 à 14:30'"""
    return f"Calcul du {now.strftime('%d/%m/%Y')} à {now.strftime('%H:%M')}"


def build_snapshot(
    items: Iterable[LineItemInput],
    rates: ExchangeRates,
    now: Optional[datetime] = None
) -> CostCalculationSnapshot:
    """Resolve items and capture totals with the rates used."""
    now = _now(now)
    resolved = resolve_items(items, rates)
    total_cost, total_margin, total_selling_price = calculation_totals(resolved)
    return CostCalculationSnapshot(
        items=resolved,
        exchange_rates=dict(rates),
        total_cost=total_cost,
        total_margin=total_margin,
        total_selling_price=total_selling_price,
        calculated_at=now,
    )


# =============================================================================
# HISTORY LIST OPERATIONS
# =============================================================================

def add_to_history(
    history: Sequence[CostCalculationSnapshot],
    snapshot: CostCalculationSnapshot,
    name: Optional[str] = None,
    now: Optional[datetime] = None
) -> List[CostCalculationSnapshot]:
    """Prepend a named copy of snapshot; keeps at most MAX_HISTORY_ENTRIES."""
    now = _now(now)
    entry = snapshot.model_copy(update={
        "id": f"calc_{uuid4().hex[:12]}",
        "name": name or default_calculation_name(now),
        "created_at": now,
        "updated_at": now,
    })
    return [entry, *history][:MAX_HISTORY_ENTRIES]


def delete_from_history(history: Sequence[CostCalculationSnapshot], calculation_id: str) -> List[CostCalculationSnapshot]:
    return [calc for calc in history if calc.id != calculation_id]


def duplicate_in_history(
    history: Sequence[CostCalculationSnapshot],
    calculation_id: str,
    now: Optional[datetime] = None
) -> List[CostCalculationSnapshot]:
    """Prepend a copy of a saved calculation named '<name> (copie)'."""
    original = get_from_history(history, calculation_id)
    if original is None:
        return list(history)
    return add_to_history(history, original, name=f"{original.name} (copie)", now=now)


def rename_in_history(
    history: Sequence[CostCalculationSnapshot],
    calculation_id: str,
    new_name: str,
    now: Optional[datetime] = None
) -> List[CostCalculationSnapshot]:
    now = _now(now)
    return [
        calc.model_copy(update={"name": new_name, "updated_at": now}) if calc.id == calculation_id else calc
        for calc in history
    ]


def get_from_history(history: Iterable[CostCalculationSnapshot], calculation_id: str) -> Optional[CostCalculationSnapshot]:
    return next((calc for calc in history if calc.id == calculation_id), None)


def search_history(history: Sequence[CostCalculationSnapshot], term: str) -> List[CostCalculationSnapshot]:
    """Match name, item description, origin country or category (case-insensitive)."""
    if not term or not term.strip():
        return list(history)
    term = term.strip().lower()

    def matches(calc: CostCalculationSnapshot) -> bool:
        if term in calc.name.lower():
            return True
        return any(
            term in item.description.lower()
            or term in item.origin_country.lower()
            or term in item.category.lower()
            for item in calc.items
        )

    return [calc for calc in history if matches(calc)]


def get_history_statistics(history: Sequence[CostCalculationSnapshot]) -> Dict[str, Any]:
    total_calculations = len(history)
    total_value = sum((calc.total_selling_price for calc in history), Decimal("0"))
    return {
        "total_calculations": total_calculations,
        "total_value": total_value,
        "average_value": total_value / total_calculations if total_calculations else Decimal("0"),
        "total_items": sum(len(calc.items) for calc in history),
    }


def is_calculation_recent(
    snapshot: Optional[CostCalculationSnapshot],
    now: Optional[datetime] = None,
    max_age_minutes: int = 30
) -> bool:
    if snapshot is None:
        return False
    age = _now(now) - snapshot.calculated_at
    return age < timedelta(minutes=max_age_minutes)


def export_calculation(snapshot: CostCalculationSnapshot) -> Dict[str, Any]:
    """JSON-ready export of a saved calculation."""
    return {
        "version": EXPORT_VERSION,
        "name": snapshot.name,
        "calculated_at": to_storage(snapshot.calculated_at),
        "exchange_rates": to_storage(snapshot.exchange_rates),
        "items": [to_storage(item.model_dump()) for item in snapshot.items],
        "totals": {
            "total_cost": float(snapshot.total_cost),
            "total_margin": float(snapshot.total_margin),
            "total_selling_price": float(snapshot.total_selling_price),
        },
    }


# =============================================================================
# PERSISTENCE
# =============================================================================

def _parse_snapshot(row: Dict[str, Any]) -> CostCalculationSnapshot:
    data = dict(row)
    data["calculated_at"] = parse_timestamp(row.get("calculated_at")) or parse_timestamp(row.get("created_at"))
    data.pop("user_id", None)
    return CostCalculationSnapshot.model_validate(data)


def save_calculation(user_id: str, snapshot: CostCalculationSnapshot) -> Optional[CostCalculationSnapshot]:
    """Insert a snapshot for a user; returns the stored snapshot or None."""
    row = to_storage(snapshot.model_dump())
    row["user_id"] = user_id
    if not row.get("id"):
        row.pop("id", None)

    try:
        supabase = get_supabase()
        result = supabase.table(COST_CALCULATIONS_TABLE).insert(row).execute()

        if result.data and len(result.data) > 0:
            return _parse_snapshot(result.data[0])
        return None

    except Exception as e:
        logger.error(f"Error saving cost calculation: {e}")
        return None


def list_calculations(user_id: str, limit: int = MAX_HISTORY_ENTRIES) -> List[CostCalculationSnapshot]:
    """Saved calculations of a user, newest first."""
    try:
        supabase = get_supabase()
        result = supabase.table(COST_CALCULATIONS_TABLE).select("*")\
            .eq("user_id", user_id)\
            .order("created_at", desc=True)\
            .limit(limit)\
            .execute()

        return [_parse_snapshot(row) for row in (result.data or [])]

    except Exception as e:
        logger.error(f"Error listing cost calculations: {e}")
        return []


def delete_calculation(calculation_id: str) -> bool:
    try:
        supabase = get_supabase()
        supabase.table(COST_CALCULATIONS_TABLE).delete().eq("id", calculation_id).execute()
        return True

    except Exception as e:
        logger.error(f"Error deleting cost calculation: {e}")
        return False
