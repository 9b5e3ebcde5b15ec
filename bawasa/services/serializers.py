"""
Row -> dict conversion
Called inside the session so relationships can still be loaded
"""
import json

from bawasa.database.models import (
    Billing,
    Cashier,
    Consumer,
    IssueReport,
    MeterReader,
    MeterReaderAssignment,
    MeterReading,
    PaymentTransaction,
)
from bawasa.services.account_service import serialize_account
from bawasa.utils import isoformat, round_money


def serialize_reading(reading: MeterReading) -> dict:
    return {
        "id": reading.id,
        "consumer_id": reading.consumer_id,
        "reading_date": isoformat(reading.reading_date),
        "previous_reading": reading.previous_reading,
        "present_reading": reading.present_reading,
        "consumption_cubic_meters": reading.consumption_cubic_meters,
        "is_recorded": bool(reading.is_recorded),
        "reading_assigned": bool(reading.reading_assigned),
        "remarks": reading.remarks,
        "meter_image": reading.meter_image,
        "created_at": isoformat(reading.created_at),
        "updated_at": isoformat(reading.updated_at),
    }


def outstanding_balance(billing: Billing) -> float:
    """Amount still owed on a billing, penalty included once overdue"""
    total = (billing.total_amount_due or 0) + (billing.arrears_after_due_date or 0)
    return round_money(max(total - (billing.amount_paid or 0), 0))


def serialize_billing(billing: Billing) -> dict:
    return {
        "id": billing.id,
        "consumer_id": billing.consumer_id,
        "meter_reading_id": billing.meter_reading_id,
        "billing_month": billing.billing_month,
        "consumption_10_or_below": billing.consumption_10_or_below,
        "amount_10_or_below": round_money(billing.amount_10_or_below),
        "amount_10_or_below_with_discount": round_money(billing.amount_10_or_below_with_discount),
        "consumption_over_10": billing.consumption_over_10,
        "amount_over_10": round_money(billing.amount_over_10),
        "amount_current_billing": round_money(billing.amount_current_billing),
        "discount_percentage": billing.discount_percentage,
        "years_of_service": billing.years_of_service,
        "arrears_to_be_paid": round_money(billing.arrears_to_be_paid),
        "total_amount_due": round_money(billing.total_amount_due),
        "due_date": isoformat(billing.due_date),
        "arrears_after_due_date": (
            round_money(billing.arrears_after_due_date)
            if billing.arrears_after_due_date is not None else None
        ),
        "payment_status": billing.payment_status,
        "payment_date": isoformat(billing.payment_date),
        "amount_paid": round_money(billing.amount_paid),
        "outstanding_balance": outstanding_balance(billing),
        "reading_assigned": bool(billing.reading_assigned),
        "created_at": isoformat(billing.created_at),
        "updated_at": isoformat(billing.updated_at),
    }


def serialize_consumer(consumer: Consumer, include_account: bool = True) -> dict:
    data = {
        "id": consumer.id,
        "account_id": consumer.account_id,
        "water_meter_no": consumer.water_meter_no,
        "registered_voter": bool(consumer.registered_voter),
        "created_at": isoformat(consumer.created_at),
        "updated_at": isoformat(consumer.updated_at),
    }
    if include_account:
        data["account"] = serialize_account(consumer.account) if consumer.account else None
    return data


def serialize_billing_with_consumer(billing: Billing) -> dict:
    """Billing joined with consumer, account and meter reading"""
    data = serialize_billing(billing)
    data["consumer"] = serialize_consumer(billing.consumer) if billing.consumer else None
    data["meter_reading"] = serialize_reading(billing.meter_reading) if billing.meter_reading else None
    return data


def serialize_meter_reader(reader: MeterReader) -> dict:
    return {
        "id": reader.id,
        "reader_id": reader.reader_id,
        "status": reader.status,
        "created_at": isoformat(reader.created_at),
        "account": serialize_account(reader.account) if reader.account else None,
    }


def serialize_cashier(cashier: Cashier) -> dict:
    return {
        "id": cashier.id,
        "account_id": cashier.account_id,
        "employee_id": cashier.employee_id,
        "status": cashier.status,
        "hire_date": isoformat(cashier.hire_date),
        "created_at": isoformat(cashier.created_at),
        "account": serialize_account(cashier.account) if cashier.account else None,
    }


def serialize_assignment(assignment: MeterReaderAssignment) -> dict:
    consumer = assignment.consumer
    return {
        "id": assignment.id,
        "meter_reader_id": assignment.meter_reader_id,
        "consumer_id": assignment.consumer_id,
        "meter_reading_id": assignment.meter_reading_id,
        "status": assignment.status,
        "created_at": isoformat(assignment.created_at),
        "updated_at": isoformat(assignment.updated_at),
        "consumer": serialize_consumer(consumer) if consumer else None,
    }


def serialize_issue(issue: IssueReport) -> dict:
    account = issue.consumer.account if issue.consumer else None
    try:
        images = json.loads(issue.issue_images) if issue.issue_images else []
    except ValueError:
        images = []

    return {
        "id": issue.id,
        "consumer_id": issue.consumer_id,
        "issue_type": issue.issue_type,
        "priority": issue.priority,
        "issue_title": issue.issue_title,
        "description": issue.description,
        "issue_images": images,
        "status": issue.status,
        "scheduled_fix_date": isoformat(issue.scheduled_fix_date),
        "assigned_technician": issue.assigned_technician,
        "created_at": isoformat(issue.created_at),
        "reporter": {
            "full_name": account.full_name if account else None,
            "email": account.email if account else None,
            "mobile_no": account.mobile_no if account else None,
            "water_meter_no": issue.consumer.water_meter_no if issue.consumer else None,
        },
    }


def serialize_transaction(transaction: PaymentTransaction) -> dict:
    billing = transaction.billing
    consumer = billing.consumer if billing else None
    cashier = transaction.cashier
    return {
        "id": transaction.id,
        "billing_id": transaction.billing_id,
        "cashier_id": transaction.cashier_id,
        "amount": round_money(transaction.amount),
        "payment_method": transaction.payment_method,
        "balance_after": round_money(transaction.balance_after),
        "status_after": transaction.status_after,
        "created_at": isoformat(transaction.created_at),
        "billing_month": billing.billing_month if billing else None,
        "water_meter_no": consumer.water_meter_no if consumer else None,
        "consumer_name": consumer.account.full_name if consumer and consumer.account else None,
        "cashier_employee_id": cashier.employee_id if cashier else None,
    }
