"""Centralized pricing calculations for bookings.

Everything here is pure: no session, no I/O. ``BookingService`` calls
``calculate_price`` at creation time and stores the result; nothing
recomputes a stored booking's price afterwards.

Billing units differ by package type: training and all-inclusive packages
charge both the check-in and the check-out day (nights + 1), accommodation
charges nights.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
import math
from typing import Any, Dict, List, Mapping, Optional

from app.core.config import settings
from app.core.constants import (
    DAYS_PER_MONTH,
    DAYS_PER_WEEK,
    DEFAULT_MIN_STAY_OTHER,
    DEFAULT_MIN_STAY_TRAINING,
    MONTHLY_RATE_THRESHOLD_DAYS,
    WEEKLY_RATE_THRESHOLD_DAYS,
)
from app.core.exceptions import ValidationException
from app.models.gym import Package, PackageType, PackageVariant

CENT = Decimal("0.01")

INCLUSIVE_BILLING_TYPES = frozenset({PackageType.TRAINING.value, PackageType.ALL_INCLUSIVE.value})


@dataclass(frozen=True)
class RateCard:
    daily: Optional[Decimal] = None
    weekly: Optional[Decimal] = None
    monthly: Optional[Decimal] = None

    @property
    def is_empty(self) -> bool:
        return not (self.daily or self.weekly or self.monthly)


@dataclass(frozen=True)
class FixedDuration:
    days: int
    price: Decimal
    discount_label: Optional[str] = None


@dataclass(frozen=True)
class PriceQuote:
    """Result of pricing one stay against one package."""

    total: Decimal
    billable_units: int
    duration_label: str
    min_stay_days: int
    below_min_stay: bool
    mode: str  # "rate" or "fixed"


def _money(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    amount = Decimal(str(value))
    return amount if amount > 0 else None


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def billable_units(duration_days: int, package_type: str) -> int:
    """Nights for accommodation; nights + 1 for training and all-inclusive."""
    if package_type in INCLUSIVE_BILLING_TYPES:
        return duration_days + 1
    return duration_days


def duration_label(days: int, unit: str = "day") -> str:
    return f"1 {unit}" if days == 1 else f"{days} {unit}s"


def calculate_rate_price(units: int, rates: RateCard) -> tuple[Decimal, str]:
    """
    Price ``units`` days against a daily/weekly/monthly rate card.

    Policy (predictable, not cheapest):
    - 28+ days with a monthly rate: 30-day month bundles, remainder as whole
      weeks then days; with no daily rate leftover days cost one extra week.
    - 7+ days with a weekly rate: weeks rounded up.
    - otherwise daily.
    """
    if units <= 0:
        raise ValidationException("Duration must be at least one day", code="INVALID_DURATION")

    if units >= MONTHLY_RATE_THRESHOLD_DAYS and rates.monthly:
        months = max(1, units // DAYS_PER_MONTH)
        remainder = max(0, units - months * DAYS_PER_MONTH)
        weeks = remainder // DAYS_PER_WEEK if rates.weekly else 0
        after_weeks = remainder - weeks * DAYS_PER_WEEK
        extra_week = 1 if (not rates.daily and rates.weekly and after_weeks > 0) else 0
        extra_days = after_weeks if rates.daily else 0

        total = months * rates.monthly
        total += (weeks + extra_week) * (rates.weekly or Decimal("0"))
        total += extra_days * (rates.daily or Decimal("0"))

        parts = [duration_label(months, "month")]
        if weeks + extra_week:
            parts.append(duration_label(weeks + extra_week, "week"))
        if extra_days:
            parts.append(duration_label(extra_days))
        return quantize(total), " + ".join(parts)

    if units >= WEEKLY_RATE_THRESHOLD_DAYS and rates.weekly:
        weeks = max(1, math.ceil(units / DAYS_PER_WEEK))
        return quantize(weeks * rates.weekly), duration_label(weeks, "week")

    if not rates.daily:
        raise ValidationException(
            "Package has no daily rate for a stay of this length",
            code="NO_APPLICABLE_RATE",
            details={"units": units},
        )
    return quantize(units * rates.daily), duration_label(units)


def select_fixed_duration(units: int, durations: List[FixedDuration]) -> FixedDuration:
    """Exact match, else the shortest option that covers the stay, else the longest."""
    if not durations:
        raise ValidationException("Package has no fixed durations", code="NO_APPLICABLE_RATE")
    ordered = sorted(durations, key=lambda option: option.days)
    for option in ordered:
        if option.days == units:
            return option
    for option in ordered:
        if option.days >= units:
            return option
    return ordered[-1]


def parse_fixed_durations(config: Mapping[str, Any]) -> List[FixedDuration]:
    durations = []
    for raw in config.get("durations") or []:
        price = _money(raw.get("price"))
        days = int(raw.get("days") or 0)
        if price is None or days <= 0:
            continue
        durations.append(
            FixedDuration(days=days, price=price, discount_label=raw.get("discountLabel"))
        )
    return durations


def resolve_rate_card(package: Package, variant: Optional[PackageVariant] = None) -> RateCard:
    """Variant rates win, then pricing_config.rates, then the package columns."""
    if variant is not None:
        card = RateCard(
            daily=_money(variant.price_per_day),
            weekly=_money(variant.price_per_week),
            monthly=_money(variant.price_per_month),
        )
        if not card.is_empty:
            return card

    rates: Dict[str, Any] = (package.pricing_config or {}).get("rates") or {}
    card = RateCard(
        daily=_money(rates.get("daily")),
        weekly=_money(rates.get("weekly")),
        monthly=_money(rates.get("monthly")),
    )
    if not card.is_empty:
        return card

    return RateCard(
        daily=_money(package.price_per_day),
        weekly=_money(package.price_per_week),
        monthly=_money(package.price_per_month),
    )


def resolve_min_stay(package: Package) -> int:
    rates = (package.pricing_config or {}).get("rates") or {}
    if rates.get("minStay"):
        return int(rates["minStay"])
    if package.min_stay_days:
        return int(package.min_stay_days)
    if package.type == PackageType.TRAINING.value:
        return DEFAULT_MIN_STAY_TRAINING
    return DEFAULT_MIN_STAY_OTHER


def calculate_price(
    duration_days: int, package: Package, variant: Optional[PackageVariant] = None
) -> PriceQuote:
    """
    Price a stay of ``duration_days`` nights against a package.

    A stay shorter than the package minimum is still priced; the shortfall is
    reported through ``below_min_stay`` for the caller to act on.
    """
    if duration_days <= 0:
        raise ValidationException("Check-out must be after check-in", code="INVALID_DATE_RANGE")

    units = billable_units(duration_days, package.type)
    min_stay = resolve_min_stay(package)
    config = package.pricing_config or {}

    if config.get("mode") == "fixed":
        option = select_fixed_duration(units, parse_fixed_durations(config))
        label = duration_label(option.days)
        if option.discount_label:
            label = f"{label} ({option.discount_label})"
        total, mode = quantize(option.price), "fixed"
    else:
        total, label = calculate_rate_price(units, resolve_rate_card(package, variant))
        mode = "rate"

    return PriceQuote(
        total=total,
        billable_units=units,
        duration_label=label,
        min_stay_days=min_stay,
        below_min_stay=duration_days < min_stay,
        mode=mode,
    )


def quote_gym_rates(duration_days: int, rates: RateCard) -> PriceQuote:
    """Price a stay booked without a package, against the gym's own rates (nights + 1)."""
    if duration_days <= 0:
        raise ValidationException("Check-out must be after check-in", code="INVALID_DATE_RANGE")
    units = billable_units(duration_days, PackageType.TRAINING.value)
    total, label = calculate_rate_price(units, rates)
    return PriceQuote(
        total=total,
        billable_units=units,
        duration_label=label,
        min_stay_days=DEFAULT_MIN_STAY_TRAINING,
        below_min_stay=duration_days < DEFAULT_MIN_STAY_TRAINING,
        mode="rate",
    )


def calculate_platform_fee(total: Decimal, percentage: Optional[float] = None) -> Decimal:
    """Platform commission, a fixed share of the total (15% unless configured)."""
    pct = settings.stripe_platform_fee_percentage if percentage is None else percentage
    return quantize(Decimal(str(total)) * Decimal(str(pct)) / Decimal("100"))


def to_minor_units(amount: Decimal) -> int:
    """Major currency units to the integer amount the payment provider expects."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
