"""
Billing Service
Billing generation from meter readings, payment status and billing queries
"""
import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import desc, func, or_

from bawasa.config import LATE_PAYMENT_PENALTY_RATE
from bawasa.database.db import get_db
from bawasa.database.models import (
    PAYMENT_STATUSES,
    Account,
    Billing,
    Consumer,
    MeterReading,
)
from bawasa.services.billing_calculator import calculate_billing
from bawasa.services.serializers import (
    outstanding_balance,
    serialize_billing,
    serialize_billing_with_consumer,
)
from bawasa.utils import billing_month_label, parse_billing_month, round_money

logger = logging.getLogger("billing-service")

OUTSTANDING_STATUSES = ("unpaid", "partial", "overdue")


def first_day_of_next_month(value: date) -> date:
    if value.month == 12:
        return date(value.year + 1, 1, 1)
    return date(value.year, value.month + 1, 1)


class BillingService:
    """
    Billing lifecycle.
    - Billing generation from a recorded reading (calculator + arrears)
    - Payment status updates and the overdue sweep
    - Listing, search, stats and revenue trends
    """

    def __init__(self, penalty_rate: float = LATE_PAYMENT_PENALTY_RATE):
        self.penalty_rate = penalty_rate

    def generate_billing_for_reading(self, reading_id: int) -> dict:
        """
        Creates the billing of a recorded meter reading.

        Years of service are counted up to the reading date. Arrears are the
        outstanding balance of the consumer's previous billing, which already
        carries whatever was left unpaid before it.
        """
        try:
            with get_db() as db:
                reading = db.query(MeterReading).filter(MeterReading.id == reading_id).first()
                if not reading:
                    return {"success": False, "message": "Meter reading not found", "error_code": "not_found"}

                if not reading.is_recorded or reading.present_reading is None:
                    return {
                        "success": False,
                        "message": "Present reading has not been recorded yet",
                        "error_code": "invalid",
                    }

                if reading.billing is not None or reading.reading_assigned:
                    return {
                        "success": False,
                        "message": "A billing already exists for this reading",
                        "error_code": "conflict",
                    }

                consumer = reading.consumer
                consumption = reading.consumption_cubic_meters
                if consumption is None:
                    consumption = reading.present_reading - (reading.previous_reading or 0)

                calculation = calculate_billing(
                    consumption,
                    is_registered_voter=bool(consumer.registered_voter),
                    account_created_at=consumer.account.created_at if consumer.account else None,
                    today=reading.reading_date,
                )

                due_date = first_day_of_next_month(reading.reading_date)
                arrears = self._carried_arrears(db, consumer.id, due_date)

                billing = Billing(
                    consumer_id=consumer.id,
                    meter_reading_id=reading.id,
                    billing_month=billing_month_label(reading.reading_date),
                    consumption_10_or_below=calculation.consumption_10_or_below,
                    amount_10_or_below=calculation.amount_10_or_below,
                    amount_10_or_below_with_discount=calculation.amount_10_or_below_with_discount,
                    consumption_over_10=calculation.consumption_over_10,
                    amount_over_10=calculation.amount_over_10,
                    amount_current_billing=calculation.amount_current_billing,
                    discount_percentage=calculation.discount_percentage,
                    years_of_service=calculation.years_of_service,
                    arrears_to_be_paid=arrears,
                    total_amount_due=round_money(calculation.amount_current_billing + arrears),
                    due_date=due_date,
                    payment_status="unpaid",
                    amount_paid=0,
                    reading_assigned=True,
                )
                db.add(billing)
                reading.reading_assigned = True
                db.flush()

                logger.info(
                    f"Billing {billing.id} created for {consumer.water_meter_no} ({billing.billing_month}): "
                    f"{calculation.amount_current_billing:.2f} + arrears {arrears:.2f}"
                )
                return {"success": True, "billing": serialize_billing(billing)}

        except ValueError as e:
            return {"success": False, "message": str(e), "error_code": "invalid"}
        except Exception as e:
            logger.exception(f"Billing generation for reading {reading_id} failed: {e}")
            return {"success": False, "message": "Failed to generate billing"}

    def _carried_arrears(self, db, consumer_id: int, due_date: date) -> float:
        """Outstanding balance of the latest billing due on or before due_date"""
        previous = (
            db.query(Billing)
            .filter(
                Billing.consumer_id == consumer_id,
                Billing.due_date <= due_date,
            )
            .order_by(desc(Billing.due_date), desc(Billing.id))
            .first()
        )
        if previous is None or previous.payment_status not in OUTSTANDING_STATUSES:
            return 0.0
        return outstanding_balance(previous)

    def generate_billings_for_month(self, year: int, month: int) -> dict:
        """Bills every recorded, unbilled reading dated in the given month"""
        try:
            start = date(int(year), int(month), 1)
        except (TypeError, ValueError):
            return {"success": False, "message": "Invalid year or month", "error_code": "invalid"}
        end = first_day_of_next_month(start)

        with get_db() as db:
            reading_ids = [
                row[0] for row in db.query(MeterReading.id)
                .filter(
                    MeterReading.reading_date >= start,
                    MeterReading.reading_date < end,
                    MeterReading.is_recorded.is_(True),
                    MeterReading.reading_assigned.is_(False),
                )
                .order_by(MeterReading.reading_date, MeterReading.id)
                .all()
            ]

        created, failed = [], []
        for reading_id in reading_ids:
            result = self.generate_billing_for_reading(reading_id)
            if result.get("success"):
                created.append(result["billing"])
            else:
                failed.append({"meter_reading_id": reading_id, "message": result.get("message")})

        logger.info(f"Billings for {start:%B %Y}: {len(created)} created, {len(failed)} failed")
        return {
            "success": True,
            "billing_month": billing_month_label(start),
            "created": len(created),
            "billings": created,
            "failed": failed,
        }

    def update_billing_status(self, billing_id: int, status: str) -> dict:
        """
        Sets the payment status directly.
        Marking a bill paid settles it in full as of now. Moving a paid bill
        back to unpaid or overdue clears the settlement; a paid bill cannot be
        made partial without recording an actual payment.
        """
        if status not in PAYMENT_STATUSES:
            return {
                "success": False,
                "message": f"Invalid payment status. Expected one of {list(PAYMENT_STATUSES)}",
                "error_code": "invalid",
            }

        with get_db() as db:
            billing = db.query(Billing).filter(Billing.id == billing_id).first()
            if not billing:
                return {"success": False, "message": "Billing not found", "error_code": "not_found"}

            if billing.payment_status == "paid" and status != "paid":
                if status == "partial":
                    return {
                        "success": False,
                        "message": "A paid billing can only be reopened as unpaid or overdue",
                        "error_code": "conflict",
                    }
                billing.amount_paid = 0
                billing.payment_date = None

            billing.payment_status = status
            if status == "paid":
                billing.payment_date = datetime.utcnow()
                billing.amount_paid = round_money(
                    (billing.total_amount_due or 0) + (billing.arrears_after_due_date or 0)
                )

            db.flush()
            logger.info(f"Billing {billing_id} status -> {status}")
            return {"success": True, "billing": serialize_billing(billing)}

    def mark_overdue_billings(self, today: Optional[date] = None) -> dict:
        """
        Flags unsettled billings past their due date as overdue and applies
        the late payment penalty once.
        """
        today = today or date.today()

        with get_db() as db:
            billings = db.query(Billing).filter(
                Billing.payment_status.in_(("unpaid", "partial")),
                Billing.due_date < today,
            ).all()

            for billing in billings:
                billing.payment_status = "overdue"
                if billing.arrears_after_due_date is None:
                    billing.arrears_after_due_date = round_money(
                        (billing.total_amount_due or 0) * self.penalty_rate
                    )

            if billings:
                logger.info(f"{len(billings)} billing(s) marked overdue as of {today.isoformat()}")
            return {"success": True, "updated": len(billings), "billing_ids": [b.id for b in billings]}

    def get_billing(self, billing_id: int) -> Optional[dict]:
        with get_db() as db:
            billing = db.query(Billing).filter(Billing.id == billing_id).first()
            return serialize_billing_with_consumer(billing) if billing else None

    def get_all_billings(self) -> List[dict]:
        with get_db() as db:
            billings = (
                db.query(Billing)
                .filter(Billing.reading_assigned.is_(True))
                .order_by(desc(Billing.created_at), desc(Billing.id))
                .all()
            )
            return [serialize_billing_with_consumer(b) for b in billings]

    def get_billings_by_status(self, status: str) -> List[dict]:
        if status not in PAYMENT_STATUSES:
            raise ValueError(f"Invalid payment status: {status}")

        with get_db() as db:
            billings = (
                db.query(Billing)
                .filter(
                    Billing.reading_assigned.is_(True),
                    Billing.payment_status == status,
                )
                .order_by(desc(Billing.created_at), desc(Billing.id))
                .all()
            )
            return [serialize_billing_with_consumer(b) for b in billings]

    def search_billings(self, query: str, outstanding_only: bool = True) -> List[dict]:
        """Consumer name, e-mail or meter number; unsettled billings by default"""
        pattern = f"%{(query or '').strip()}%"
        with get_db() as db:
            q = (
                db.query(Billing)
                .join(Consumer, Billing.consumer_id == Consumer.id)
                .join(Account, Consumer.account_id == Account.id)
                .filter(
                    Billing.reading_assigned.is_(True),
                    or_(
                        Account.full_name.ilike(pattern),
                        Account.email.ilike(pattern),
                        Consumer.water_meter_no.ilike(pattern),
                    ),
                )
            )
            if outstanding_only:
                q = q.filter(Billing.payment_status.in_(OUTSTANDING_STATUSES))

            billings = q.order_by(desc(Billing.created_at), desc(Billing.id)).all()
            return [serialize_billing_with_consumer(b) for b in billings]

    def get_billing_stats(self) -> dict:
        with get_db() as db:
            by_status = dict(
                db.query(Billing.payment_status, func.count(Billing.id))
                .group_by(Billing.payment_status)
                .all()
            )
            total_revenue = db.query(func.coalesce(func.sum(Billing.amount_paid), 0)).scalar()

            stats = {"total": sum(by_status.values())}
            for status in PAYMENT_STATUSES:
                stats[status] = by_status.get(status, 0)
            stats["total_revenue"] = round_money(total_revenue)
            return stats

    def get_revenue_trends(self) -> List[dict]:
        """Collected amount per billing month, oldest first"""
        with get_db() as db:
            rows = (
                db.query(
                    Billing.billing_month,
                    func.sum(Billing.amount_paid),
                    func.sum(Billing.total_amount_due),
                    func.count(Billing.id),
                )
                .group_by(Billing.billing_month)
                .all()
            )

        trends = [
            {
                "month": month,
                "revenue": round_money(revenue),
                "billed": round_money(billed),
                "bills": count,
            }
            for month, revenue, billed, count in rows
        ]
        trends.sort(key=lambda t: parse_billing_month(t["month"]) or date.min)
        return trends


# Global instance
billing_service = BillingService()
