"""Stay request validation.

Every rule is checked on every call so the guest sees all problems at once.
"""

from datetime import date, timedelta

from hotelbook.config import settings
from hotelbook.schemas.booking import StayRequest, ValidationResult

CHECK_IN_REQUIRED = "Check-in date is required"
CHECK_OUT_REQUIRED = "Check-out date is required"
CHECK_IN_IN_PAST = "Check-in date cannot be in the past"
CHECK_OUT_NOT_AFTER_CHECK_IN = "Check-out date must be after check-in date"
GUESTS_REQUIRED = "At least 1 guest is required"


def validate_stay(
    stay: StayRequest,
    *,
    max_capacity: int | None = None,
    today: date | None = None,
    max_nights: int | None = None,
    max_advance_days: int | None = None,
) -> ValidationResult:
    """Validate a stay request.

    Args:
        stay: Stay to validate
        max_capacity: Room capacity, when the caller has room data
        today: Reference day (defaults to today's date)
        max_nights: Longest allowed stay
        max_advance_days: How far ahead check-in may be

    Returns:
        ValidationResult with every violated rule
    """
    today = today or date.today()
    max_nights = max_nights if max_nights is not None else settings.max_nights
    if max_advance_days is None:
        max_advance_days = settings.max_advance_booking_days

    errors: list[str] = []

    if stay.check_in is None:
        errors.append(CHECK_IN_REQUIRED)
    if stay.check_out is None:
        errors.append(CHECK_OUT_REQUIRED)

    if stay.check_in is not None:
        if stay.check_in < today:
            errors.append(CHECK_IN_IN_PAST)
        if stay.check_in > today + timedelta(days=max_advance_days):
            errors.append(f"Bookings can only be made up to {max_advance_days} days in advance")

    if stay.check_in is not None and stay.check_out is not None:
        nights = (stay.check_out - stay.check_in).days
        if nights <= 0:
            errors.append(CHECK_OUT_NOT_AFTER_CHECK_IN)
        elif nights > max_nights:
            errors.append(f"Stay cannot exceed {max_nights} nights")

    if stay.guests < 1:
        errors.append(GUESTS_REQUIRED)
    elif max_capacity is not None and stay.guests > max_capacity:
        errors.append(f"Maximum {max_capacity} guests allowed for this room")

    return ValidationResult(valid=not errors, errors=errors)
