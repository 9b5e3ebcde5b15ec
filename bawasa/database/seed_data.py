"""
Seed Data Script
Creates the default admin, staff accounts and sample consumers with a year of
meter readings and billings so every screen has something to show.

Usage:
    python -m bawasa.database.seed_data
    python -m bawasa.database.seed_data --dry-run
"""
import argparse
import logging
import random
from datetime import date, datetime, timedelta

from bawasa.config import DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, LATE_PAYMENT_PENALTY_RATE
from bawasa.database.db import get_db, init_db
from bawasa.database.models import (
    Account,
    AccountRole,
    Billing,
    Cashier,
    Consumer,
    MeterReader,
    MeterReading,
)
from bawasa.services.account_service import build_account
from bawasa.services.billing_calculator import calculate_billing
from bawasa.utils import billing_month_label, round_money

logger = logging.getLogger("seed-data")

DEFAULT_STAFF_PASSWORD = "password123"
SEED_MONTHS = 12

CASHIER = {
    "email": "cashier@bawasa.local",
    "full_name": "Maria Dela Cruz",
    "employee_id": "CASH-001",
}

METER_READER = {
    "email": "reader@bawasa.local",
    "full_name": "Jose Rizal Santos",
}

# years_ago: account age, drives the voter discount
CONSUMERS = [
    {"name": "SILVESTRE MARCELITO", "meter_no": "BWS-0001", "address": "P-2, Brgy. 6 Bañadero, Legazpi City",
     "voter": True, "years_ago": 6},
    {"name": "ANA REYES", "meter_no": "BWS-0002", "address": "P-1, Brgy. 6 Bañadero, Legazpi City",
     "voter": True, "years_ago": 1},
    {"name": "PEDRO BAUTISTA", "meter_no": "BWS-0003", "address": "P-3, Brgy. 6 Bañadero, Legazpi City",
     "voter": False, "years_ago": 4},
    {"name": "LUZ MENDOZA", "meter_no": "BWS-0004", "address": "P-4, Brgy. 6 Bañadero, Legazpi City",
     "voter": True, "years_ago": 3},
    {"name": "RAMON GARCIA", "meter_no": "BWS-0005", "address": "P-5, Brgy. 6 Bañadero, Legazpi City",
     "voter": False, "years_ago": 0},
]


def generate_email(name: str) -> str:
    """'ANA REYES' -> 'ana.reyes@bawasa.local'"""
    local = ".".join(part for part in name.lower().split() if part)
    return f"{''.join(ch for ch in local if ch.isalnum() or ch == '.')}@bawasa.local"


def month_starts(today: date, count: int):
    """First day of each of the last `count` months before today's month, oldest first"""
    year, month = today.year, today.month
    starts = []
    for _ in range(count):
        month -= 1
        if month == 0:
            year, month = year - 1, 12
        starts.append(date(year, month, 1))
    return list(reversed(starts))


def _next_month(value: date) -> date:
    return date(value.year + (value.month == 12), value.month % 12 + 1, 1)


def payment_status_for(month_index: int, month_count: int, rng: random.Random) -> str:
    """Recent months are mostly unpaid, older months mostly paid"""
    roll = rng.random()
    if month_index >= month_count - 2:
        if roll < 0.60:
            return "unpaid"
        if roll < 0.80:
            return "partial"
        if roll < 0.95:
            return "paid"
        return "overdue"
    if roll < 0.10:
        return "unpaid"
    if roll < 0.20:
        return "partial"
    if roll < 0.95:
        return "paid"
    return "overdue"


def seed_admin(db, summary):
    if db.query(Account).filter(Account.email == DEFAULT_ADMIN_EMAIL).first():
        return
    db.add(build_account(DEFAULT_ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, AccountRole.ADMIN, full_name="BAWASA Administrator"))
    summary["accounts_created"] += 1


def seed_staff(db, summary):
    if not db.query(Account).filter(Account.email == CASHIER["email"]).first():
        account = build_account(
            CASHIER["email"], DEFAULT_STAFF_PASSWORD, AccountRole.CASHIER, full_name=CASHIER["full_name"]
        )
        account.cashier = Cashier(employee_id=CASHIER["employee_id"], status="active", hire_date=date.today())
        db.add(account)
        summary["accounts_created"] += 1

    if not db.query(Account).filter(Account.email == METER_READER["email"]).first():
        account = build_account(
            METER_READER["email"], DEFAULT_STAFF_PASSWORD, AccountRole.METER_READER, full_name=METER_READER["full_name"]
        )
        account.meter_reader = MeterReader(status="active")
        db.add(account)
        summary["accounts_created"] += 1


def seed_consumers(db, summary, today: date):
    consumers = []
    for data in CONSUMERS:
        email = generate_email(data["name"])
        account = db.query(Account).filter(Account.email == email).first()
        if account and account.consumer:
            consumers.append(account.consumer)
            continue

        account = build_account(
            email, DEFAULT_STAFF_PASSWORD, AccountRole.CONSUMER,
            full_name=data["name"], full_address=data["address"],
        )
        account.created_at = datetime.combine(today, datetime.min.time()) - timedelta(days=365 * data["years_ago"] + 30)
        account.consumer = Consumer(water_meter_no=data["meter_no"], registered_voter=data["voter"])
        db.add(account)
        db.flush()

        consumers.append(account.consumer)
        summary["accounts_created"] += 1
        summary["consumers_created"] += 1
    return consumers


def seed_readings_and_billings(db, consumers, summary, today: date, rng: random.Random):
    starts = month_starts(today, SEED_MONTHS)

    for consumer in consumers:
        existing = {
            r.reading_date: r for r in db.query(MeterReading).filter(MeterReading.consumer_id == consumer.id)
        }
        current = 0.0
        arrears = 0.0

        for index, reading_date in enumerate(starts):
            if reading_date in existing:
                current = existing[reading_date].present_reading or current
                continue

            consumption = float(rng.randint(5, 25))
            reading = MeterReading(
                consumer_id=consumer.id,
                reading_date=reading_date,
                previous_reading=current,
                present_reading=current + consumption,
                consumption_cubic_meters=consumption,
                is_recorded=True,
                reading_assigned=True,
            )
            db.add(reading)
            db.flush()
            current += consumption

            calc = calculate_billing(
                consumption,
                is_registered_voter=bool(consumer.registered_voter),
                account_created_at=consumer.account.created_at,
                today=reading_date,
            )
            total_due = round_money(calc.amount_current_billing + arrears)
            due_date = _next_month(reading_date)
            status = payment_status_for(index, len(starts), rng)

            if status == "paid":
                amount_paid = total_due
            elif status == "partial":
                amount_paid = round_money(total_due * (0.3 + rng.random() * 0.5))
            else:
                amount_paid = 0.0

            billing = Billing(
                consumer_id=consumer.id,
                meter_reading_id=reading.id,
                billing_month=billing_month_label(reading_date),
                consumption_10_or_below=calc.consumption_10_or_below,
                amount_10_or_below=calc.amount_10_or_below,
                amount_10_or_below_with_discount=calc.amount_10_or_below_with_discount,
                consumption_over_10=calc.consumption_over_10,
                amount_over_10=calc.amount_over_10,
                amount_current_billing=calc.amount_current_billing,
                discount_percentage=calc.discount_percentage,
                years_of_service=calc.years_of_service,
                arrears_to_be_paid=round_money(arrears),
                total_amount_due=total_due,
                due_date=due_date,
                arrears_after_due_date=round_money(total_due * LATE_PAYMENT_PENALTY_RATE) if status == "overdue" else None,
                payment_status=status,
                payment_date=(
                    datetime.combine(due_date - timedelta(days=rng.randint(1, 10)), datetime.min.time())
                    if amount_paid else None
                ),
                amount_paid=amount_paid,
                reading_assigned=True,
                created_at=datetime.combine(reading_date + timedelta(days=5), datetime.min.time()),
            )
            db.add(billing)

            # Whatever is left unpaid is carried to the next bill
            arrears = 0.0 if status == "paid" else round_money(total_due - amount_paid)

            summary["meter_readings"] += 1
            summary["billings"] += 1


def seed_all(dry_run: bool = False, today: date = None, random_seed: int = 42) -> dict:
    """
    Runs every seed step. Existing accounts and months are left untouched.

    Args:
        dry_run: Roll the changes back and only report what would be created
    """
    today = today or date.today()
    rng = random.Random(random_seed)
    summary = {
        "success": True,
        "dry_run": dry_run,
        "accounts_created": 0,
        "consumers_created": 0,
        "meter_readings": 0,
        "billings": 0,
    }

    init_db()

    with get_db() as db:
        seed_admin(db, summary)
        seed_staff(db, summary)
        db.flush()
        consumers = seed_consumers(db, summary, today)
        seed_readings_and_billings(db, consumers, summary, today, rng)

        if dry_run:
            db.rollback()

    logger.info(
        f"Seed {'(dry run) ' if dry_run else ''}complete: {summary['accounts_created']} accounts, "
        f"{summary['meter_readings']} readings, {summary['billings']} billings"
    )
    return summary


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    parser = argparse.ArgumentParser(description="Seed the BAWASA database with sample data")
    parser.add_argument("--dry-run", action="store_true", help="report without writing")
    args = parser.parse_args()

    result = seed_all(dry_run=args.dry_run)
    print(f"[SEED] {result}")
    print(f"[INFO] Admin login: {DEFAULT_ADMIN_EMAIL}")
    print(f"[INFO] Staff / consumer password: {DEFAULT_STAFF_PASSWORD}")
