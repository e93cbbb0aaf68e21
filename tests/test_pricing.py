from datetime import date
from decimal import Decimal

import pytest

from hotelbook.domain.pricing import calculate_nights, compute_cost
from hotelbook.schemas.booking import FlatPlan, FoodPlan, Itemized, MealLine

from tests.conftest import make_settings, make_stay


def test_breakfast_plan_for_two_guests_over_three_nights():
    cost = compute_cost(make_stay(), Decimal("25000"), settings=make_settings())

    assert cost.nights == 3
    assert cost.room_cost == Decimal("75000")
    assert cost.food_cost == Decimal("9000")
    assert cost.subtotal == Decimal("84000")
    assert cost.taxes == Decimal("10080")
    assert cost.service_charge == Decimal("8400")
    assert cost.total == Decimal("102480")
    assert cost.currency == "LKR"
    assert [item.label for item in cost.line_items] == [
        "Room × 3 nights",
        "Breakfast × 3 nights × 2 guests",
        "Taxes (12%)",
        "Service Charge (10%)",
    ]


def test_same_day_checkout_prices_to_zero():
    stay = make_stay(check_out=date(2025, 3, 1))

    cost = compute_cost(stay, 25000, settings=make_settings())

    assert cost.nights == 0
    assert cost.total == Decimal("0")
    assert cost.line_items == ()


def test_missing_dates_price_to_zero():
    cost = compute_cost(make_stay(check_in=None), 25000, settings=make_settings())

    assert cost.nights == 0
    assert cost.subtotal == Decimal("0")


def test_itemized_meals_replace_the_flat_plan():
    stay = make_stay(
        check_out=date(2025, 3, 3),
        food=Itemized(
            lines=(
                MealLine(item_id="m1", name="Rice & Curry", unit_price=Decimal("1200"), quantity=2),
                MealLine(item_id="m2", unit_price=Decimal("800")),
            )
        ),
    )

    cost = compute_cost(stay, 10000, settings=make_settings())

    assert cost.room_cost == Decimal("20000")
    assert cost.food_cost == Decimal("3200")
    assert cost.total == Decimal("28304")
    labels = [item.label for item in cost.line_items if item.type == "food"]
    assert labels == ["Rice & Curry × 2", "m2 × 1"]


def test_food_is_part_of_the_taxable_base():
    settings = make_settings()
    without_food = compute_cost(make_stay(food=FlatPlan(plan=FoodPlan.NONE)), 25000, settings=settings)
    with_food = compute_cost(make_stay(), 25000, settings=settings)

    assert without_food.taxes == Decimal("9000")
    assert with_food.taxes == (with_food.room_cost + with_food.food_cost) * Decimal("0.12")
    assert with_food.taxes > without_food.taxes


def test_no_food_plan_adds_no_food_line():
    cost = compute_cost(make_stay(food=FlatPlan()), 25000, settings=make_settings())

    assert cost.food_cost == Decimal("0")
    assert {item.type for item in cost.line_items} == {"room", "tax", "service"}


def test_compute_cost_is_deterministic():
    settings = make_settings()
    stay = make_stay()

    assert compute_cost(stay, 25000, settings=settings) == compute_cost(stay, 25000, settings=settings)


def test_totals_never_drop_below_subtotal():
    settings = make_settings()
    for guests in (1, 2, 3):
        for plan in FoodPlan:
            cost = compute_cost(make_stay(guests=guests, food=FlatPlan(plan=plan)), 18000, settings=settings)
            assert cost.nights >= 0
            assert cost.total >= cost.subtotal >= 0


def test_rates_come_from_settings():
    settings = make_settings(tax_rate=Decimal("0.08"), service_charge_rate=Decimal("0"), currency="USD")

    cost = compute_cost(make_stay(food=FlatPlan()), 100, settings=settings)

    assert cost.taxes == Decimal("24")
    assert cost.service_charge == Decimal("0")
    assert cost.total == Decimal("324")
    assert cost.currency == "USD"


def test_negative_room_rate_is_rejected():
    with pytest.raises(ValueError):
        compute_cost(make_stay(), -1, settings=make_settings())


def test_calculate_nights_bounds():
    assert calculate_nights(date(2025, 3, 4), date(2025, 3, 1)) == 0
    assert calculate_nights(None, date(2025, 3, 1)) == 0
    assert calculate_nights(date(2025, 1, 1), date(2027, 1, 1)) == 365
