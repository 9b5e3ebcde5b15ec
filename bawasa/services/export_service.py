"""
Export Service
CSV exports of billings, readings, issues and cashier transactions
"""
import csv
import io
import logging
import re
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import desc

from bawasa.database.db import get_db
from bawasa.database.models import Billing, Consumer, IssueReport, MeterReading, PaymentTransaction
from bawasa.utils import isoformat

logger = logging.getLogger("export-service")

# Excel needs the BOM to read the file as UTF-8
UTF8_BOM = "\ufeff"

BILLING_HISTORY_HEADERS = [
    "Billing Month", "Due Date", "Amount Due", "Amount Paid", "Payment Status",
    "Payment Date", "Arrears", "Arrears After Due Date",
]
READING_HISTORY_HEADERS = [
    "Consumer", "Reading Date", "Previous Reading", "Present Reading", "Consumption (cu.m)",
    "Billing Month", "Payment Status", "Submitted Date", "Image URL",
]
ISSUE_HISTORY_HEADERS = [
    "Issue ID", "Consumer", "Title", "Issue Type", "Priority", "Status", "Description",
    "Scheduled Fix Date", "Assigned Technician", "Created Date",
]
TRANSACTION_HEADERS = [
    "Transaction ID", "Transaction Date", "Customer Name", "Email", "Water Meter No",
    "Billing Month", "Amount Paid", "Payment Method", "Balance After", "Payment Status",
    "Cashier", "Amount Due", "Due Date",
]


def to_csv(rows: Iterable[Dict], headers: List[str]) -> str:
    """Header row plus one line per dict; fields with separators or quotes are quoted"""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({h: "" if row.get(h) is None else row.get(h) for h in headers})
    return UTF8_BOM + buffer.getvalue()


def _money(value) -> str:
    return f"{value or 0:.2f}"


def _slug(value: Optional[str]) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", value or "").strip("_") or "unknown"


class ExportService:
    """Every export returns (filename, csv_text)"""

    def _consumer(self, db, consumer_id: int) -> Consumer:
        consumer = db.query(Consumer).filter(Consumer.id == consumer_id).first()
        if not consumer:
            raise LookupError(f"Consumer {consumer_id} not found")
        return consumer

    def _filename(self, prefix: str, consumer: Optional[Consumer] = None) -> str:
        parts = [prefix]
        if consumer is not None:
            parts += [_slug(consumer.account.full_name if consumer.account else None), _slug(consumer.water_meter_no)]
        parts.append(date.today().isoformat())
        return "_".join(parts) + ".csv"

    def export_billing_history(self, consumer_id: int) -> Tuple[str, str]:
        with get_db() as db:
            consumer = self._consumer(db, consumer_id)
            billings = (
                db.query(Billing)
                .filter(Billing.consumer_id == consumer_id)
                .order_by(desc(Billing.due_date), desc(Billing.id))
                .all()
            )
            rows = [
                {
                    "Billing Month": b.billing_month,
                    "Due Date": isoformat(b.due_date),
                    "Amount Due": _money(b.total_amount_due),
                    "Amount Paid": _money(b.amount_paid),
                    "Payment Status": b.payment_status,
                    "Payment Date": isoformat(b.payment_date) or "N/A",
                    "Arrears": _money(b.arrears_to_be_paid),
                    "Arrears After Due Date": _money(b.arrears_after_due_date),
                }
                for b in billings
            ]
            return self._filename("billing_payment_history", consumer), to_csv(rows, BILLING_HISTORY_HEADERS)

    def export_meter_reading_history(self, consumer_id: int) -> Tuple[str, str]:
        with get_db() as db:
            consumer = self._consumer(db, consumer_id)
            name = consumer.account.full_name if consumer.account else None
            readings = (
                db.query(MeterReading)
                .filter(MeterReading.consumer_id == consumer_id)
                .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                .all()
            )
            rows = [
                {
                    "Consumer": name or "N/A",
                    "Reading Date": isoformat(r.reading_date),
                    "Previous Reading": r.previous_reading,
                    "Present Reading": r.present_reading,
                    "Consumption (cu.m)": r.consumption_cubic_meters,
                    "Billing Month": r.billing.billing_month if r.billing else "N/A",
                    "Payment Status": r.billing.payment_status if r.billing else "N/A",
                    "Submitted Date": isoformat(r.updated_at or r.created_at),
                    "Image URL": r.meter_image or "No image",
                }
                for r in readings
            ]
            return self._filename("meter_reading_history", consumer), to_csv(rows, READING_HISTORY_HEADERS)

    def export_issue_history(self, consumer_id: int) -> Tuple[str, str]:
        with get_db() as db:
            consumer = self._consumer(db, consumer_id)
            name = consumer.account.full_name if consumer.account else None
            issues = (
                db.query(IssueReport)
                .filter(IssueReport.consumer_id == consumer_id)
                .order_by(desc(IssueReport.created_at), desc(IssueReport.id))
                .all()
            )
            rows = [
                {
                    "Issue ID": i.id,
                    "Consumer": name or "N/A",
                    "Title": i.issue_title or "No title",
                    "Issue Type": i.issue_type or "N/A",
                    "Priority": i.priority or "N/A",
                    "Status": i.status or "Pending",
                    "Description": i.description or "No description",
                    "Scheduled Fix Date": isoformat(i.scheduled_fix_date) or "N/A",
                    "Assigned Technician": i.assigned_technician or "Not assigned",
                    "Created Date": isoformat(i.created_at),
                }
                for i in issues
            ]
            return self._filename("maintenance_report_history", consumer), to_csv(rows, ISSUE_HISTORY_HEADERS)

    def export_transactions(self) -> Tuple[str, str]:
        """One row per recorded payment, newest first"""
        with get_db() as db:
            transactions = (
                db.query(PaymentTransaction)
                .order_by(desc(PaymentTransaction.created_at), desc(PaymentTransaction.id))
                .all()
            )
            rows = []
            for t in transactions:
                b = t.billing
                consumer = b.consumer if b else None
                account = consumer.account if consumer else None
                rows.append({
                    "Transaction ID": t.id,
                    "Transaction Date": isoformat(t.created_at),
                    "Customer Name": account.full_name if account else "N/A",
                    "Email": account.email if account else "N/A",
                    "Water Meter No": consumer.water_meter_no if consumer else "N/A",
                    "Billing Month": b.billing_month if b else "N/A",
                    "Amount Paid": _money(t.amount),
                    "Payment Method": t.payment_method,
                    "Balance After": _money(t.balance_after),
                    "Payment Status": t.status_after,
                    "Cashier": t.cashier.employee_id if t.cashier else "Admin",
                    "Amount Due": _money(b.total_amount_due) if b else "N/A",
                    "Due Date": isoformat(b.due_date) if b else "N/A",
                })

            logger.info(f"Exporting {len(rows)} cashier transaction(s)")
            return self._filename("cashier_transactions"), to_csv(rows, TRANSACTION_HEADERS)


# Global instance
export_service = ExportService()
