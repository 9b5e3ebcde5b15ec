"""
BAWASA Billing Calculator
Consumption -> amount conversion based on the official BAWASA water bill form

The registered-voter discount applies to the first 10 cu.m only, and depends on
the consumer's year of service:
    Year 1: 0%, Year 2: 25%, Year 3: 50%, Year 4: 75%, Year 5+: 100% (FREE)
"""
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Dict, Optional, Union

from bawasa.config import RATE_PER_CUBIC_METER

FIRST_TIER_LIMIT = 10  # cu.m covered by the voter discount

DISCOUNT_BY_YEAR_OF_SERVICE = {
    1: 0.00,
    2: 0.25,
    3: 0.50,
    4: 0.75,
    5: 1.00,
}

DateLike = Union[date, datetime, str]


@dataclass
class BillingCalculation:
    consumption_10_or_below: float
    amount_10_or_below: float
    amount_10_or_below_with_discount: float
    consumption_over_10: float
    amount_over_10: float
    amount_current_billing: float
    discount_percentage: float
    years_of_service: int
    is_registered_voter: bool

    def to_dict(self) -> Dict:
        return asdict(self)


def _to_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def calculate_years_of_service(account_created_at: DateLike, today: Optional[date] = None) -> int:
    """
    Year of service the consumer is currently in (the first year is year 1).

    Args:
        account_created_at: Account creation date
        today: Reference date, defaults to today

    Returns:
        Years of service, never below 1
    """
    created = _to_date(account_created_at)
    today = today or date.today()

    years = today.year - created.year
    # Anniversary not reached yet this year
    if (today.month, today.day) < (created.month, created.day):
        years -= 1

    return max(1, years + 1)


def get_discount_percentage(years_of_service: int, is_registered_voter: bool) -> float:
    """Discount on the first 10 cu.m; registered voters only"""
    if not is_registered_voter:
        return 0.0
    if years_of_service >= 5:
        return 1.0
    return DISCOUNT_BY_YEAR_OF_SERVICE.get(years_of_service, 0.0)


def calculate_billing(
    consumption: float,
    is_registered_voter: bool = False,
    account_created_at: Optional[DateLike] = None,
    today: Optional[date] = None,
    rate_per_cubic_meter: float = RATE_PER_CUBIC_METER,
) -> BillingCalculation:
    """
    Compute the bill for a month's consumption.

    Args:
        consumption: Consumption in cubic meters
        is_registered_voter: Voter-registration flag of the consumer
        account_created_at: Account creation date; year 1 when missing
        today: Reference date for years of service
        rate_per_cubic_meter: Flat rate per cu.m

    Returns:
        BillingCalculation breakdown (a = first 10 cu.m, b = over 10 cu.m)
    """
    if consumption is None or consumption < 0:
        raise ValueError("Consumption cannot be negative")

    years_of_service = (
        calculate_years_of_service(account_created_at, today) if account_created_at else 1
    )
    discount = get_discount_percentage(years_of_service, is_registered_voter)

    consumption_10_or_below = min(consumption, FIRST_TIER_LIMIT)
    consumption_over_10 = max(consumption - FIRST_TIER_LIMIT, 0)

    amount_10_or_below = consumption_10_or_below * rate_per_cubic_meter
    amount_10_or_below_with_discount = amount_10_or_below * (1 - discount)
    # Never discounted
    amount_over_10 = consumption_over_10 * rate_per_cubic_meter

    return BillingCalculation(
        consumption_10_or_below=consumption_10_or_below,
        amount_10_or_below=amount_10_or_below,
        amount_10_or_below_with_discount=amount_10_or_below_with_discount,
        consumption_over_10=consumption_over_10,
        amount_over_10=amount_over_10,
        amount_current_billing=amount_10_or_below_with_discount + amount_over_10,
        discount_percentage=discount,
        years_of_service=years_of_service,
        is_registered_voter=bool(is_registered_voter),
    )


def get_expected_payment_for_10_cubic_meters(
    is_registered_voter: bool = False,
    account_created_at: Optional[DateLike] = None,
    today: Optional[date] = None,
) -> float:
    return calculate_billing(10, is_registered_voter, account_created_at, today).amount_current_billing


def _discount_text(discount: float, is_registered_voter: bool, years_of_service: int) -> str:
    if not is_registered_voter:
        return "No discount (not a registered voter)"
    if discount == 1.0:
        return "FREE (100% discount)"
    if discount == 0:
        return f"No discount (Year {years_of_service})"
    return f"{discount * 100:.0f}% discount"


def get_discount_info(
    is_registered_voter: bool,
    account_created_at: DateLike,
    today: Optional[date] = None,
) -> Dict:
    """Discount details for display"""
    years_of_service = calculate_years_of_service(account_created_at, today)
    discount = get_discount_percentage(years_of_service, is_registered_voter)

    return {
        "years_of_service": years_of_service,
        "discount_percentage": discount,
        "discount_text": _discount_text(discount, is_registered_voter, years_of_service),
        "is_eligible": bool(is_registered_voter),
    }


def format_billing_summary(calculation: BillingCalculation) -> str:
    total = f"₱{calculation.amount_current_billing:.2f}"

    if not calculation.is_registered_voter:
        return f"No discount (not a registered voter) - Total: {total}"

    if calculation.discount_percentage == 1.0:
        discount_text = "FREE"
    else:
        discount_text = _discount_text(
            calculation.discount_percentage, True, calculation.years_of_service
        )

    return f"Year {calculation.years_of_service} of service: {discount_text} - Total: {total}"
