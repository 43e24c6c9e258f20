"""Display contract commission engine.

Prices a display campaign (spot length, locations, term, add-ons) and splits
the rep's commission into an initial payment and monthly residuals.  The
engine is a pure function of its inputs: the same CommissionIn always yields
the same CommissionResult, nothing is cached between calls.

Usage:
    result = calc_commission(inputs)

    # Custom pay plan (e.g. a variant with different prices)
    engine = CommissionEngine(PayPlan(spot_prices={10: 90.0, 20: 140.0, 30: 190.0}))
    result = engine.calc(inputs)

    # Rate card for the form's select labels / API
    card = engine.rate_card()
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any


ADD_ON_KEYS = ("peak_time", "screen_takeover")


# ── Pay plan ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PayPlan:
    """Price tables and commission rates.

    Discounts are stored as (percent, multiplier) so the reported percentage
    and the factor applied to the rate never drift apart.
    """
    spot_prices: dict[int, float] = field(
        default_factory=lambda: {10: 100.0, 20: 150.0, 30: 200.0}
    )
    add_on_prices: dict[str, float] = field(
        default_factory=lambda: {"peak_time": 50.0, "screen_takeover": 50.0}
    )
    add_on_labels: dict[str, str] = field(
        default_factory=lambda: {
            "peak_time": "Peak Time Scheduling",
            "screen_takeover": "Screen Takeover",
        }
    )
    # contract_length -> (percent off, multiplier)
    term_discounts: dict[int, tuple[int, float]] = field(
        default_factory=lambda: {12: (10, 0.9)}
    )
    # (min_locations, percent off, multiplier), highest threshold first
    volume_tiers: tuple[tuple[int, int, float], ...] = (
        (11, 15, 0.85),
        (6, 10, 0.9),
        (2, 5, 0.95),
    )
    new_business_rate: float = 0.15
    # renewal_year -> rate; later years fall back to renewal_floor_rate
    renewal_rates: dict[int, float] = field(
        default_factory=lambda: {2: 0.15, 3: 0.125}
    )
    renewal_floor_rate: float = 0.1
    initial_share: float = 0.5
    referral_deduction: float = 100.0


DEFAULT_PLAN = PayPlan()


# ── Result containers ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AddOnDetail:
    enabled: bool = False
    locations: int = 0
    monthly_value: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "locations": self.locations,
            "monthlyValue": self.monthly_value,
        }


@dataclass(frozen=True)
class DiscountInfo:
    term_discount: int = 0        # percent
    location_discount: int = 0    # percent


@dataclass(frozen=True)
class CommissionResult:
    base_price: float
    monthly_rate_per_location: float
    base_monthly_value: float
    add_on_monthly_value: float
    total_monthly_value: float
    total_contract_value: float
    commission_percentage: float  # 15.0, 12.5, 10.0
    total_commission: float       # referral already deducted
    initial_commission: float
    monthly_residual: float
    add_on_details: dict[str, AddOnDetail]
    discount_info: DiscountInfo

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly payload with the camelCase keys the UI speaks."""
        return {
            "basePrice": self.base_price,
            "monthlyRatePerLocation": self.monthly_rate_per_location,
            "baseMonthlyValue": self.base_monthly_value,
            "addOnMonthlyValue": self.add_on_monthly_value,
            "totalMonthlyValue": self.total_monthly_value,
            "totalContractValue": self.total_contract_value,
            "commissionPercentage": self.commission_percentage,
            "totalCommission": self.total_commission,
            "initialCommission": self.initial_commission,
            "monthlyResidual": self.monthly_residual,
            "addOnDetails": {
                "peakTime": self.add_on_details["peak_time"].to_dict(),
                "screenTakeover": self.add_on_details["screen_takeover"].to_dict(),
            },
            "discountInfo": {
                "termDiscount": self.discount_info.term_discount,
                "locationDiscount": self.discount_info.location_discount,
            },
        }


# ── Engine ───────────────────────────────────────────────────────────────────

class CommissionEngine:
    """Pricing + commission calculator for a single pay plan.

    Parameters
    ----------
    plan : PayPlan with the price tables and rates (defaults to DEFAULT_PLAN)
    """

    def __init__(self, plan: PayPlan | None = None):
        self.plan = plan or DEFAULT_PLAN

    # ── Pricing ──────────────────────────────────────────────────────────────

    def _volume_tier(self, locations: int) -> tuple[int, float]:
        for min_locations, pct, factor in self.plan.volume_tiers:
            if locations >= min_locations:
                return pct, factor
        return 0, 1.0

    def discounted_rate(self, list_price: float, inputs) -> float:
        """Apply the term discount, then the volume discount, to a list price."""
        rate = list_price
        term = self.plan.term_discounts.get(inputs.contract_length)
        if term:
            rate *= term[1]
        rate *= self._volume_tier(inputs.locations)[1]
        return rate

    def monthly_rate(self, inputs) -> float:
        return self.discounted_rate(self.plan.spot_prices[inputs.spot_type], inputs)

    def discount_info(self, inputs) -> DiscountInfo:
        term = self.plan.term_discounts.get(inputs.contract_length)
        return DiscountInfo(
            term_discount=term[0] if term else 0,
            location_discount=self._volume_tier(inputs.locations)[0],
        )

    def commission_rate(self, inputs) -> float:
        if not inputs.is_renewal:
            return self.plan.new_business_rate
        return self.plan.renewal_rates.get(inputs.renewal_year, self.plan.renewal_floor_rate)

    def _add_ons(self, inputs) -> dict[str, AddOnDetail]:
        details = {}
        for key in ADD_ON_KEYS:
            add_on = getattr(inputs.add_ons, key)
            # Never price more add-on locations than the campaign has
            locations = min(add_on.locations, inputs.locations)
            if add_on.enabled and locations > 0:
                rate = self.discounted_rate(self.plan.add_on_prices[key], inputs)
                details[key] = AddOnDetail(
                    enabled=True, locations=locations, monthly_value=rate * locations,
                )
            else:
                details[key] = AddOnDetail()
        return details

    # ── Commission ───────────────────────────────────────────────────────────

    def calc(self, inputs) -> CommissionResult:
        """Calculate the full pricing and commission breakdown.

        Parameters
        ----------
        inputs : CommissionIn (Pydantic) or any object with .spot_type,
                 .locations, .contract_length, .has_referral, .is_renewal,
                 .renewal_year and .add_ons.peak_time / .add_ons.screen_takeover
        """
        p = self.plan
        base_price = p.spot_prices[inputs.spot_type]
        rate = self.monthly_rate(inputs)

        add_on_details = self._add_ons(inputs)
        add_on_monthly = 0.0
        for key in ADD_ON_KEYS:
            if add_on_details[key].enabled:
                add_on_monthly += add_on_details[key].monthly_value

        base_monthly = rate * inputs.locations
        total_monthly = base_monthly + add_on_monthly
        total_contract = total_monthly * inputs.contract_length

        comm_rate = self.commission_rate(inputs)
        raw_commission = total_contract * comm_rate

        initial = 0.0
        if inputs.is_renewal:
            # Spread evenly over the whole term, nothing up front
            residual = raw_commission / inputs.contract_length
        else:
            initial = total_monthly * p.initial_share
            adjusted = raw_commission - p.referral_deduction if inputs.has_referral else raw_commission
            remaining = max(0.0, adjusted - initial)
            residual = remaining / (inputs.contract_length - 1) if inputs.contract_length > 1 else 0.0

        # Deducted from the reported total in both branches (the new-business
        # residual above has already taken it once).
        total_commission = raw_commission - p.referral_deduction if inputs.has_referral else raw_commission

        return CommissionResult(
            base_price=float(base_price),
            monthly_rate_per_location=float(rate),
            base_monthly_value=float(base_monthly),
            add_on_monthly_value=float(add_on_monthly),
            total_monthly_value=float(total_monthly),
            total_contract_value=float(total_contract),
            commission_percentage=comm_rate * 100,
            total_commission=float(total_commission),
            initial_commission=float(initial),
            monthly_residual=float(residual),
            add_on_details=add_on_details,
            discount_info=self.discount_info(inputs),
        )

    # ── Rate card ────────────────────────────────────────────────────────────

    def rate_card(self) -> dict[str, Any]:
        """Build a JSON-friendly description of the active pay plan."""
        p = self.plan
        return {
            "spotPrices": {str(k): v for k, v in sorted(p.spot_prices.items())},
            "addOns": [
                {"key": k, "name": p.add_on_labels.get(k, k), "price": p.add_on_prices[k]}
                for k in ADD_ON_KEYS
            ],
            "termDiscounts": {str(k): pct for k, (pct, _) in p.term_discounts.items()},
            "volumeTiers": [
                {"minLocations": mn, "discount": pct} for mn, pct, _ in p.volume_tiers
            ],
            "commissionRates": {
                "newBusiness": p.new_business_rate * 100,
                "renewal": {str(k): v * 100 for k, v in sorted(p.renewal_rates.items())},
                "renewalFloor": p.renewal_floor_rate * 100,
            },
            "referralDeduction": p.referral_deduction,
        }


def calc_commission(inputs, plan: PayPlan | None = None) -> CommissionResult:
    """Calculate the commission breakdown for one set of inputs."""
    return CommissionEngine(plan).calc(inputs)
