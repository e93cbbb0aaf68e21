"""Booking number generation utilities."""

import random
import string
from collections.abc import Awaitable, Callable

BOOKING_NUMBER_PREFIX = "HB"


def new_booking_number() -> str:
    """Random booking number like 'HB-A3B7K9' (not checked for uniqueness)."""
    chars = string.ascii_uppercase + string.digits
    random_part = "".join(random.choices(chars, k=6))
    return f"{BOOKING_NUMBER_PREFIX}-{random_part}"


async def generate_booking_number(is_taken: Callable[[str], Awaitable[bool]]) -> str:
    """Generate a unique booking number in format HB-XXXXXX.

    Args:
        is_taken: Store lookup telling whether a number is already used

    Returns:
        str: Unique booking number like 'HB-A3B7K9'
    """
    while True:
        booking_number = new_booking_number()
        if not await is_taken(booking_number):
            return booking_number
