"""
Tests for Cost Calculation History Service

Tests: snapshots, history list operations (add/delete/duplicate/rename/search),
statistics, export, Supabase persistence.
"""

import pytest
from unittest.mock import patch, MagicMock
from decimal import Decimal
from datetime import datetime, timedelta, timezone

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from calculation_models import Currency, LineItemInput
from services.cost_history_service import (
    COST_CALCULATIONS_TABLE,
    MAX_HISTORY_ENTRIES,
    default_calculation_name,
    build_snapshot,
    add_to_history,
    delete_from_history,
    duplicate_in_history,
    rename_in_history,
    get_from_history,
    search_history,
    get_history_statistics,
    is_calculation_recent,
    export_calculation,
    save_calculation,
    list_calculations,
    delete_calculation,
)


NOW = datetime(2024, 1, 15, 14, 30, tzinfo=timezone.utc)


@pytest.fixture
def snapshot(rates):
    return build_snapshot([
        LineItemInput(
            description="Smartphones",
            quantity=50,
            purchase_price=Decimal("200"),
            source_currency=Currency.USD,
            transport_fee=Decimal("125000"),
            misc_fee=Decimal("50000"),
            customs_fee=Decimal("75000"),
            margin_percent=Decimal("20"),
            category="Électronique",
        ),
        LineItemInput(
            description="Machine parts",
            quantity=20,
            purchase_price=Decimal("120"),
            source_currency=Currency.EUR,
            origin_country="Germany",
            transport_fee_original=Decimal("40"),
            misc_fee=Decimal("25000"),
            customs_fee=Decimal("45000"),
            margin_percent=Decimal("25"),
        ),
    ], rates, now=NOW)


class TestSnapshot:

    def test_totals(self, snapshot, rates):
        assert snapshot.total_cost == Decimal("57260000")
        assert snapshot.total_margin == Decimal("12052500")
        assert snapshot.total_selling_price == Decimal("67312500")
        assert snapshot.exchange_rates == rates
        assert snapshot.calculated_at == NOW

    def test_default_name(self):
        assert default_calculation_name(NOW) == "Calcul du 15/01/2024 à 14:30"


class TestHistoryOperations:

    def test_add_prepends_with_default_name(self, snapshot):
        history = add_to_history([], snapshot, now=NOW)
        history = add_to_history(history, snapshot, name="Commande Rakoto", now=NOW)

        assert [calc.name for calc in history] == ["Commande Rakoto", "Calcul du 15/01/2024 à 14:30"]
        assert history[0].id.startswith("calc_")
        assert history[0].id != history[1].id
        assert history[0].created_at == NOW

    def test_add_does_not_mutate_input(self, snapshot):
        history = add_to_history([], snapshot, now=NOW)
        add_to_history(history, snapshot, now=NOW)
        assert len(history) == 1
        assert snapshot.id == ""

    def test_history_is_capped(self, snapshot):
        history = []
        for i in range(MAX_HISTORY_ENTRIES + 5):
            history = add_to_history(history, snapshot, name=f"Calc {i}", now=NOW)

        assert len(history) == MAX_HISTORY_ENTRIES
        assert history[0].name == f"Calc {MAX_HISTORY_ENTRIES + 4}"
        assert history[-1].name == "Calc 5"

    def test_delete(self, snapshot):
        history = add_to_history(add_to_history([], snapshot, name="A"), snapshot, name="B")
        remaining = delete_from_history(history, history[0].id)
        assert [calc.name for calc in remaining] == ["A"]

    def test_duplicate(self, snapshot):
        history = add_to_history([], snapshot, name="Commande", now=NOW)
        history = duplicate_in_history(history, history[0].id, now=NOW)

        assert [calc.name for calc in history] == ["Commande (copie)", "Commande"]
        assert history[0].total_selling_price == history[1].total_selling_price

    def test_duplicate_unknown_id(self, snapshot):
        history = add_to_history([], snapshot, name="Commande")
        assert duplicate_in_history(history, "calc_missing") == history

    def test_rename(self, snapshot):
        later = NOW + timedelta(hours=1)
        history = add_to_history([], snapshot, name="Old", now=NOW)
        history = rename_in_history(history, history[0].id, "New", now=later)

        assert history[0].name == "New"
        assert history[0].updated_at == later
        assert history[0].created_at == NOW

    def test_get_from_history(self, snapshot):
        history = add_to_history([], snapshot, name="A")
        assert get_from_history(history, history[0].id).name == "A"
        assert get_from_history(history, "calc_missing") is None

    @pytest.mark.parametrize("term,expected", [
        ("rakoto", 1),
        ("machine", 1),
        ("germany", 1),
        ("électronique", 1),
        ("  ", 2),
        ("nothing", 0),
    ])
    def test_search(self, snapshot, term, expected):
        history = add_to_history([], snapshot, name="Commande Rakoto")
        history = add_to_history(history, snapshot.model_copy(update={"items": []}), name="Vide")

        assert len(search_history(history, term)) == expected


class TestStatistics:

    def test_statistics(self, snapshot):
        history = add_to_history(add_to_history([], snapshot), snapshot)
        stats = get_history_statistics(history)

        assert stats["total_calculations"] == 2
        assert stats["total_value"] == Decimal("134625000")
        assert stats["average_value"] == Decimal("67312500")
        assert stats["total_items"] == 4

    def test_empty_statistics(self):
        stats = get_history_statistics([])
        assert stats["average_value"] == Decimal("0")
        assert stats["total_items"] == 0

    def test_recent(self, snapshot):
        assert is_calculation_recent(snapshot, now=NOW + timedelta(minutes=29))
        assert not is_calculation_recent(snapshot, now=NOW + timedelta(minutes=31))
        assert not is_calculation_recent(None, now=NOW)


class TestExport:

    def test_export(self, snapshot):
        data = export_calculation(add_to_history([], snapshot, name="Commande", now=NOW)[0])

        assert data["version"] == "1.0"
        assert data["name"] == "Commande"
        assert data["calculated_at"] == "2024-01-15T14:30:00+00:00"
        assert data["exchange_rates"] == {"USD": 4500.0, "EUR": 4900.0, "CNY": 620.0}
        assert data["items"][1]["transport_fee_converted"] == 180000.0
        assert data["totals"]["total_selling_price"] == 67312500.0


class TestPersistence:

    @patch('services.cost_history_service.get_supabase')
    def test_save_and_list(self, mock_get_supabase, mock_supabase, snapshot):
        mock_get_supabase.return_value = mock_supabase
        entry = add_to_history([], snapshot, name="Commande", now=NOW)[0]

        stored = save_calculation("user-1", entry)
        listed = list_calculations("user-1")

        assert stored is not None
        assert stored.name == "Commande"
        assert stored.total_cost == Decimal("57260000")
        assert stored.items[0].line_total_price == Decimal("54300000")
        assert stored.exchange_rates[Currency.EUR] == Decimal("4900")
        assert [calc.id for calc in listed] == [entry.id]
        assert list_calculations("user-2") == []

    @patch('services.cost_history_service.get_supabase')
    def test_save_unnamed_snapshot_gets_database_id(self, mock_get_supabase, mock_supabase, snapshot):
        mock_get_supabase.return_value = mock_supabase

        stored = save_calculation("user-1", snapshot)

        assert stored.id
        assert mock_supabase.get_table_data(COST_CALCULATIONS_TABLE)[0]["user_id"] == "user-1"

    @patch('services.cost_history_service.get_supabase')
    def test_save_error(self, mock_get_supabase, snapshot):
        mock_client = MagicMock()
        mock_get_supabase.return_value = mock_client
        mock_client.table.return_value.insert.return_value.execute.side_effect = Exception("quota")

        assert save_calculation("user-1", snapshot) is None

    @patch('services.cost_history_service.get_supabase')
    def test_delete(self, mock_get_supabase, mock_supabase, snapshot):
        mock_get_supabase.return_value = mock_supabase
        entry = add_to_history([], snapshot, now=NOW)[0]
        save_calculation("user-1", entry)

        assert delete_calculation(entry.id)
        assert list_calculations("user-1") == []
