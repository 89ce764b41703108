#!/usr/bin/env python3
"""
Calculation Engine Test Runner

Compares calculation engine output against hand-computed reference values:
- Scenario A: China origin, transport fee entered in MGA
- Scenario B: Germany origin, transport fee entered in USD
- Scenario C: profit analysis over two stored quotes

All amounts are MGA. Rates: USD 4500, EUR 4900, CNY 620.

Usage:
    python test_calculation.py
"""

from decimal import Decimal
from datetime import datetime, timezone

from calculation_engine import resolve_item, analyze
from calculation_models import (
    Currency,
    LineItemInput,
    Quote,
    QuoteItem,
)


RATES = {
    Currency.USD: Decimal("4500"),
    Currency.EUR: Decimal("4900"),
    Currency.CNY: Decimal("620"),
}


# ============================================================================
# SCENARIO INPUTS
# ============================================================================

def create_scenario_a_input() -> LineItemInput:
    """
    50 units at 200 USD from China.

    Transport 125,000 MGA, misc 50,000, customs 75,000, margin 20%.
    """
    return LineItemInput(
        description="Smartphones",
        quantity=50,
        purchase_price=Decimal("200"),
        source_currency=Currency.USD,
        origin_country="China",
        transport_fee=Decimal("125000"),
        misc_fee=Decimal("50000"),
        customs_fee=Decimal("75000"),
        margin_percent=Decimal("20"),
    )


def create_scenario_b_input() -> LineItemInput:
    """
    20 units at 120 EUR from Germany.

    Transport 40 USD, misc 25,000, customs 45,000, margin 25%.
    """
    return LineItemInput(
        description="Machine parts",
        quantity=20,
        purchase_price=Decimal("120"),
        source_currency=Currency.EUR,
        origin_country="Germany",
        transport_fee_original=Decimal("40"),
        transport_currency=Currency.USD,
        misc_fee=Decimal("25000"),
        customs_fee=Decimal("45000"),
        margin_percent=Decimal("25"),
    )


def create_scenario_c_quotes() -> list:
    """Two quotes whose single items cost 20,250,000 and 5,240,000."""
    created_at = datetime(2024, 1, 15, tzinfo=timezone.utc)
    return [
        Quote(
            created_at=created_at,
            total_amount=Decimal("24000000"),
            items=[QuoteItem(quantity=1, purchase_price=Decimal("20000000"), transport_fee=Decimal("250000"))],
        ),
        Quote(
            created_at=created_at,
            total_amount=Decimal("7000000"),
            items=[QuoteItem(quantity=1, purchase_price=Decimal("5000000"), customs_fee=Decimal("240000"))],
        ),
    ]


SCENARIO_A_EXPECTED = {
    "total_purchase_cost": Decimal("45000000"),
    "total_cost": Decimal("45250000"),
    "margin_amount": Decimal("9050000"),
    "line_total_price": Decimal("54300000"),
}

SCENARIO_B_EXPECTED = {
    "transport_fee_converted": Decimal("180000"),
    "total_purchase_cost": Decimal("11760000"),
    "total_cost": Decimal("12010000"),
    "margin_amount": Decimal("3002500"),
    "line_total_price": Decimal("13012500"),
}

SCENARIO_C_EXPECTED = {
    "total_revenue": Decimal("31000000"),
    "total_cost": Decimal("25490000"),
    "net_profit": Decimal("5510000"),
    "profit_margin": Decimal("17.77"),
}


# ============================================================================
# COMPARISON
# ============================================================================

def compare_results(title: str, result, expected: dict, tolerance: Decimal = Decimal("0.01")) -> bool:
    """Print a comparison table; True if every field is within tolerance."""
    print("=" * 80)
    print(title)
    print("=" * 80)
    print(f"\n{'Field':26s}  {'Actual':>15s}  {'Expected':>15s}  {'Diff':>10s}  {'Result':6s}")
    print("-" * 80)

    passed = 0
    for field, expected_value in expected.items():
        actual = getattr(result, field)
        diff = actual - expected_value
        is_pass = abs(diff) <= tolerance
        if is_pass:
            passed += 1
        status = "PASS" if is_pass else "FAIL"
        print(f"{field:26s}  {float(actual):>15.2f}  {float(expected_value):>15.2f}  {float(diff):>10.2f}  {status:6s}")

    print("-" * 80)
    print(f"Summary: {passed} passed, {len(expected) - passed} failed out of {len(expected)} comparisons\n")
    return passed == len(expected)


def run_scenario_a() -> bool:
    result = resolve_item(create_scenario_a_input(), RATES)
    return compare_results("SCENARIO A: China origin, MGA transport fee", result, SCENARIO_A_EXPECTED)


def run_scenario_b() -> bool:
    result = resolve_item(create_scenario_b_input(), RATES)
    return compare_results("SCENARIO B: Germany origin, USD transport fee", result, SCENARIO_B_EXPECTED)


def run_scenario_c() -> bool:
    analysis = analyze(create_scenario_c_quotes(), RATES)
    # profit margin is 17.774...; compared to 2 places
    return compare_results("SCENARIO C: profit analysis of two quotes", analysis, SCENARIO_C_EXPECTED, Decimal("0.01"))


def test_reference_scenarios():
    """All reference scenarios match."""
    assert run_scenario_a()
    assert run_scenario_b()
    assert run_scenario_c()


def main():
    """Run all scenarios."""
    print()
    print("=" * 80)
    print("CALCULATION ENGINE TEST SUITE")
    print("=" * 80)
    print()

    results = [run_scenario_a(), run_scenario_b(), run_scenario_c()]
    return 0 if all(results) else 1


if __name__ == "__main__":
    exit(main())
