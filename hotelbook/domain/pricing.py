"""Stay pricing.

CRITICAL BUSINESS LOGIC:
- Room cost = nightly rate × nights
- Food cost is either a flat plan (nights × guests × plan rate) or the sum of
  itemized meals (unit price × quantity). Itemized always wins.
- Tax and service charge are both charged on the subtotal (room + food),
  never on the room alone.
- Missing dates or a zero-night stay price to an all-zero breakdown.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from hotelbook.config import Settings, settings as default_settings
from hotelbook.schemas.booking import (
    CostBreakdown,
    Itemized,
    LineItem,
    StayRequest,
)

MAX_NIGHTS = 365

CENTS = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def _percent(rate: Decimal) -> str:
    return f"{(rate * 100).normalize():f}%"


def calculate_nights(check_in: date | None, check_out: date | None) -> int:
    """Whole nights between two dates.

    Returns 0 when either date is missing or check-out is not after
    check-in, and never more than 365.
    """
    if check_in is None or check_out is None:
        return 0
    nights = (check_out - check_in).days
    return min(max(nights, 0), MAX_NIGHTS)


def _food_cost(
    stay: StayRequest, nights: int, settings: Settings
) -> tuple[Decimal, list[LineItem]]:
    food = stay.food

    if isinstance(food, Itemized):
        cost = Decimal("0")
        lines = []
        for meal in food.lines:
            amount = _money(meal.unit_price * meal.quantity)
            cost += amount
            lines.append(
                LineItem(
                    label=f"{meal.name or meal.item_id} × {meal.quantity}",
                    amount=amount,
                    type="food",
                )
            )
        return _money(cost), lines

    # FlatPlan is the only other member of the FoodSelection union
    rate = Decimal(settings.food_plan_rates.get(food.plan.value, 0))
    cost = _money(rate * nights * stay.guests)
    if cost == 0:
        return cost, []
    label = (
        f"{food.plan.value} × {_plural(nights, 'night')} × "
        f"{_plural(stay.guests, 'guest')}"
    )
    return cost, [LineItem(label=label, amount=cost, type="food")]


def compute_cost(
    stay: StayRequest,
    room_rate_per_night: Decimal | int,
    *,
    settings: Settings | None = None,
) -> CostBreakdown:
    """Price a stay against a nightly room rate.

    Args:
        stay: The stay being priced
        room_rate_per_night: Room rate in the hotel currency
        settings: Rates to apply (defaults to application settings)

    Returns:
        CostBreakdown: Deterministic breakdown for these inputs

    Raises:
        ValueError: If the room rate is negative
    """
    settings = settings or default_settings
    rate = Decimal(room_rate_per_night)
    if rate < 0:
        raise ValueError("Room rate cannot be negative")

    nights = calculate_nights(stay.check_in, stay.check_out)
    if nights == 0:
        return CostBreakdown(currency=settings.currency)

    room_cost = _money(rate * nights)
    food_cost, food_lines = _food_cost(stay, nights, settings)

    subtotal = room_cost + food_cost
    taxes = _money(subtotal * settings.tax_rate)
    service_charge = _money(subtotal * settings.service_charge_rate)
    total = subtotal + taxes + service_charge

    line_items = [
        LineItem(label=f"Room × {_plural(nights, 'night')}", amount=room_cost, type="room"),
        *food_lines,
        LineItem(label=f"Taxes ({_percent(settings.tax_rate)})", amount=taxes, type="tax"),
        LineItem(
            label=f"Service Charge ({_percent(settings.service_charge_rate)})",
            amount=service_charge,
            type="service",
        ),
    ]

    return CostBreakdown(
        nights=nights,
        room_cost=room_cost,
        food_cost=food_cost,
        subtotal=subtotal,
        taxes=taxes,
        service_charge=service_charge,
        total=total,
        line_items=tuple(line_items),
        currency=settings.currency,
    )
