"""
Dashboard Service
Admin dashboard counters, recent activity and yearly revenue
"""
import calendar
import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import desc

from bawasa.database.db import get_db
from bawasa.database.models import Billing, Consumer, IssueReport, MeterReading
from bawasa.utils import as_naive_utc, isoformat, round_money

logger = logging.getLogger("dashboard-service")


def _month_index(value, year: int) -> Optional[int]:
    """0-based month of value when it falls in year"""
    if value is None:
        return None
    if isinstance(value, datetime):
        value = as_naive_utc(value)
    if value.year != year:
        return None
    return value.month - 1


class DashboardService:

    def get_stats(self) -> dict:
        with get_db() as db:
            return {
                "total_users": db.query(Consumer).count(),
                "total_meter_readings": db.query(MeterReading).count(),
                "pending_bills": db.query(Billing).filter(Billing.payment_status == "unpaid").count(),
                "open_issues": db.query(IssueReport).filter(IssueReport.status == "open").count(),
            }

    def get_recent_meter_readings(self, limit: int = 5) -> List[dict]:
        with get_db() as db:
            readings = (
                db.query(MeterReading)
                .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                .limit(limit)
                .all()
            )

            result = []
            for reading in readings:
                account = reading.consumer.account if reading.consumer else None
                if reading.billing:
                    status = reading.billing.payment_status
                else:
                    status = "recorded" if reading.is_recorded else "pending"
                result.append({
                    "id": reading.id,
                    "user": account.full_name if account else None,
                    "value": f"{reading.present_reading or 0:g} m³",
                    "status": status,
                    "date": isoformat(reading.reading_date),
                })
            return result

    def get_recent_issues(self, limit: int = 5) -> List[dict]:
        with get_db() as db:
            issues = (
                db.query(IssueReport)
                .order_by(desc(IssueReport.created_at), desc(IssueReport.id))
                .limit(limit)
                .all()
            )
            return [
                {
                    "id": issue.id,
                    "user": issue.consumer.account.full_name if issue.consumer and issue.consumer.account else None,
                    "issue": issue.issue_title,
                    "priority": issue.priority,
                    "status": issue.status,
                }
                for issue in issues
            ]

    def get_revenue_stats(self, year: Optional[int] = None) -> dict:
        """
        Revenue for a calendar year.

        monthly_revenue has twelve buckets ("Jan 2025" ...): revenue is bucketed
        by payment month of every bill with money collected, bills_count by
        creation month.
        """
        year = int(year or date.today().year)
        monthly = [
            {"month": f"{calendar.month_abbr[m]} {year}", "revenue": 0.0, "bills_count": 0}
            for m in range(1, 13)
        ]

        with get_db() as db:
            billings = db.query(Billing).all()

            total_revenue = 0.0
            paid_bills = pending_bills = overdue_bills = 0

            for billing in billings:
                created_month = _month_index(billing.created_at, year)
                if created_month is not None:
                    monthly[created_month]["bills_count"] += 1

                    total_revenue += billing.amount_paid or 0
                    if billing.payment_status == "paid":
                        paid_bills += 1
                    elif billing.payment_status in ("unpaid", "partial"):
                        pending_bills += 1
                    elif billing.payment_status == "overdue":
                        overdue_bills += 1

                # Any collected amount, whatever the current status
                if billing.amount_paid:
                    paid_month = _month_index(billing.payment_date, year)
                    if paid_month is not None:
                        monthly[paid_month]["revenue"] += billing.amount_paid or 0

        for bucket in monthly:
            bucket["revenue"] = round_money(bucket["revenue"])

        return {
            "year": year,
            "total_revenue": round_money(total_revenue),
            "paid_bills": paid_bills,
            "pending_bills": pending_bills,
            "overdue_bills": overdue_bills,
            "monthly_revenue": monthly,
        }


# Global instance
dashboard_service = DashboardService()
