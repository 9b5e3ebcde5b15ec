from datetime import date

import pytest

from bawasa.services.billing_calculator import (
    calculate_billing,
    calculate_years_of_service,
    format_billing_summary,
    get_discount_info,
    get_discount_percentage,
    get_expected_payment_for_10_cubic_meters,
)


def test_registered_voter_in_year_two():
    # 25% off the first 10 cu.m, the remaining 5 cu.m at full rate
    calc = calculate_billing(15, True, date(2023, 1, 1), today=date(2024, 6, 1))

    assert calc.years_of_service == 2
    assert calc.discount_percentage == 0.25
    assert calc.amount_10_or_below == 300
    assert calc.amount_10_or_below_with_discount == 225
    assert calc.consumption_over_10 == 5
    assert calc.amount_over_10 == 150
    assert calc.amount_current_billing == 375


def test_non_voter_never_discounted():
    calc = calculate_billing(8, False, date(2010, 1, 1), today=date(2025, 1, 1))

    assert calc.discount_percentage == 0
    assert calc.amount_current_billing == 240
    assert calc.consumption_over_10 == 0


@pytest.mark.parametrize("years,expected", [(1, 0.0), (2, 0.25), (3, 0.5), (4, 0.75), (5, 1.0), (12, 1.0)])
def test_discount_schedule(years, expected):
    assert get_discount_percentage(years, True) == expected
    assert get_discount_percentage(years, False) == 0.0


def test_discount_saturates_from_year_five():
    calc = calculate_billing(25, True, date(2015, 3, 1), today=date(2025, 3, 1))

    assert calc.years_of_service == 11
    assert calc.amount_10_or_below_with_discount == 0
    # Consumption above 10 cu.m is still charged in full
    assert calc.amount_over_10 == 450
    assert calc.amount_current_billing == 450


def test_zero_consumption():
    calc = calculate_billing(0, True, date(2020, 1, 1), today=date(2025, 1, 1))
    assert calc.amount_current_billing == 0
    assert calc.consumption_10_or_below == 0


def test_negative_consumption_rejected():
    with pytest.raises(ValueError):
        calculate_billing(-1)


def test_missing_creation_date_counts_as_first_year():
    calc = calculate_billing(10, True)
    assert calc.years_of_service == 1
    assert calc.amount_current_billing == 300


def test_years_of_service_waits_for_the_anniversary():
    created = date(2022, 8, 15)

    assert calculate_years_of_service(created, today=date(2022, 8, 15)) == 1
    assert calculate_years_of_service(created, today=date(2023, 8, 14)) == 1
    assert calculate_years_of_service(created, today=date(2023, 8, 15)) == 2
    assert calculate_years_of_service(created, today=date(2025, 1, 1)) == 3


def test_years_of_service_accepts_iso_strings():
    assert calculate_years_of_service("2021-05-01T08:00:00Z", today=date(2024, 5, 1)) == 4


def test_future_creation_date_stays_in_year_one():
    assert calculate_years_of_service(date(2030, 1, 1), today=date(2025, 1, 1)) == 1


def test_expected_payment_for_first_tier():
    assert get_expected_payment_for_10_cubic_meters(True, date(2021, 1, 1), today=date(2024, 2, 1)) == 75
    assert get_expected_payment_for_10_cubic_meters(False) == 300


def test_discount_info_text():
    info = get_discount_info(True, date(2019, 1, 1), today=date(2025, 1, 1))
    assert info["discount_text"] == "FREE (100% discount)"
    assert info["is_eligible"] is True

    info = get_discount_info(False, date(2019, 1, 1), today=date(2025, 1, 1))
    assert info["discount_text"] == "No discount (not a registered voter)"
    assert info["discount_percentage"] == 0


def test_summary_line():
    calc = calculate_billing(15, True, date(2023, 1, 1), today=date(2024, 6, 1))
    assert format_billing_summary(calc) == "Year 2 of service: 25% discount - Total: ₱375.00"

    calc = calculate_billing(15, False)
    assert format_billing_summary(calc) == "No discount (not a registered voter) - Total: ₱450.00"
