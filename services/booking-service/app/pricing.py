"""
Pricing engine.

Pure functions only: nothing here touches the database or the clock, so the
billing rules can be exercised directly with plain values.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from dateutil import parser

from .catalog import ItemCategory, free_radius_km, parse_category
from .clock import as_utc
from .config import DELAY_COMPENSATION_RATE, DISTANCE_RATE_PER_KM
from .errors import InvalidDuration

EARTH_RADIUS_KM = 6371
ONE_HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class PriceBreakdown:
    duration_hours: int
    purpose_rate: float
    operator_rate: float
    distance_charge: float
    total: float


def _as_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        try:
            return as_utc(parser.isoparse(value))
        except (ValueError, OverflowError):
            raise InvalidDuration(f"Unparseable timestamp: {value!r}")
    raise InvalidDuration(f"Unsupported timestamp: {value!r}")


def _billable_hours(category, raw_hours: int) -> int:
    if parse_category(category) == ItemCategory.DRONES:
        # drones bill the plain ceiling; only a zero-length job is bumped to 1
        return raw_hours if raw_hours != 0 else 1
    return max(1, raw_hours)


def round_duration(category, work_start, work_end) -> int:
    start = _as_datetime(work_start)
    end = _as_datetime(work_end)
    elapsed = end - start
    if elapsed < timedelta(0):
        raise InvalidDuration("Work end is before work start")
    return _billable_hours(category, math.ceil(elapsed / ONE_HOUR))


def purpose_rate(purposes, work_purpose: str) -> float:
    for purpose in purposes or []:
        if purpose.get("name") == work_purpose:
            return float(purpose.get("price") or 0)
    return 0.0


def operator_rate(operator_required: bool, operator_charge) -> float:
    if not operator_required:
        return 0.0
    return float(operator_charge or 0)


def _breakdown(duration_hours, purposes, work_purpose, operator_required, operator_charge, distance_charge):
    p_rate = purpose_rate(purposes, work_purpose)
    o_rate = operator_rate(operator_required, operator_charge)
    surcharge = float(distance_charge or 0)
    return PriceBreakdown(
        duration_hours=duration_hours,
        purpose_rate=p_rate,
        operator_rate=o_rate,
        distance_charge=surcharge,
        total=(p_rate + o_rate) * duration_hours + surcharge,
    )


def compute_final_price(
    *,
    category,
    work_start,
    work_end,
    purposes,
    work_purpose: str,
    operator_required: bool = False,
    operator_charge=None,
    distance_charge=None,
) -> PriceBreakdown:
    hours = round_duration(category, work_start, work_end)
    return _breakdown(hours, purposes, work_purpose, operator_required, operator_charge, distance_charge)


def estimate_price(
    *,
    category,
    estimated_duration_hours,
    purposes,
    work_purpose: str,
    operator_required: bool = False,
    operator_charge=None,
    distance_charge=None,
) -> PriceBreakdown:
    """Quote built from the requested duration instead of the measured one."""
    hours = validate_estimated_duration(estimated_duration_hours)
    billable = _billable_hours(category, math.ceil(hours))
    return _breakdown(billable, purposes, work_purpose, operator_required, operator_charge, distance_charge)


def validate_estimated_duration(value) -> float:
    if isinstance(value, bool):
        raise InvalidDuration(f"Invalid estimated duration: {value!r}")
    try:
        hours = float(value)
    except (TypeError, ValueError):
        raise InvalidDuration(f"Invalid estimated duration: {value!r}")
    if math.isnan(hours) or math.isinf(hours) or hours <= 0:
        raise InvalidDuration(f"Estimated duration must be positive, got {value!r}")
    return hours


def haversine(lat1, lon1, lat2, lon2):
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_charge(
    category,
    requester_lat,
    requester_lon,
    item_lat,
    item_lon,
    rate_per_km: float = DISTANCE_RATE_PER_KM,
) -> int:
    """
    One-time travel surcharge for distance beyond the category's free
    radius. Returns 0 when either location is unknown.
    """
    if None in (requester_lat, requester_lon, item_lat, item_lon):
        return 0

    distance = haversine(requester_lat, requester_lon, item_lat, item_lon)
    radius = free_radius_km(category)
    if distance <= radius:
        return 0
    # half-up, to the nearest currency unit
    return math.floor((distance - radius) * rate_per_km + 0.5)


def delay_compensation(price, rate: float = DELAY_COMPENSATION_RATE) -> int:
    """Credit owed to the requester when the provider is late to start."""
    return math.floor(float(price or 0) * rate + 0.5)


def amount_due(final_price, discount_amount) -> float:
    return max(0.0, float(final_price or 0) - float(discount_amount or 0))
