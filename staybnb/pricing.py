"""
Booking arithmetic. All amounts are integers in minor currency units.
"""
import datetime
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

PLATFORM_COMMISSION_PERCENT = 12
DAY_MS = 24 * 60 * 60 * 1000

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


@dataclass(frozen=True)
class PriceQuote:
    nights: int
    subtotal: int
    platform_fee: int
    total_price: int


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_nights(check_in: datetime.datetime, check_out: datetime.datetime) -> int:
    """Whole nights between two timestamps, rounded rather than truncated."""
    delta_ms = Decimal((check_out - check_in) // datetime.timedelta(microseconds=1)) / 1000
    return _round_half_up(delta_ms / DAY_MS)


def calculate_subtotal(price_per_night: int, nights: int) -> int:
    return price_per_night * nights


def calculate_commission(subtotal: int, percent: int = PLATFORM_COMMISSION_PERCENT) -> int:
    return _round_half_up(Decimal(subtotal) * percent / 100)


def calculate_total(subtotal: int, percent: int = PLATFORM_COMMISSION_PERCENT) -> int:
    return subtotal + calculate_commission(subtotal, percent)


def quote(
        price_per_night: int,
        check_in: datetime.datetime,
        check_out: datetime.datetime,
        percent: int = PLATFORM_COMMISSION_PERCENT,
) -> PriceQuote:
    nights = calculate_nights(check_in, check_out)
    subtotal = calculate_subtotal(price_per_night, nights)
    fee = calculate_commission(subtotal, percent)
    return PriceQuote(nights=nights, subtotal=subtotal, platform_fee=fee, total_price=subtotal + fee)


def ranges_overlap(a_start, a_end, b_start, b_end) -> bool:
    # Half-open ranges: touching boundaries do not overlap
    return a_start < b_end and a_end > b_start


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


def clamp_limit(limit: int) -> int:
    return max(1, min(limit, MAX_PAGE_LIMIT))
