"""
Payment Service
Cashier payment processing and the cashier dashboard
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import desc, func

from bawasa.database.db import get_db
from bawasa.database.models import Account, AccountRole, Billing, Cashier, PaymentTransaction
from bawasa.services.serializers import (
    outstanding_balance,
    serialize_billing,
    serialize_billing_with_consumer,
    serialize_transaction,
)
from bawasa.utils import round_money

logger = logging.getLogger("payment-service")

PAYMENT_METHODS = ("cash", "check", "gcash", "bank_transfer")

# Rounding tolerance on peso amounts
CENT = 0.005


class PaymentService:
    """
    Payments against billings.
    - Amount must be positive and within the outstanding balance
    - amount_paid accumulates across payments
    - Every payment leaves a PaymentTransaction row
    """

    def process_payment(
        self,
        billing_id: int,
        amount,
        cashier_account_id: int,
        payment_method: str = "cash",
    ) -> dict:
        """
        Records a payment.

        Returns:
            {"success": bool, "billing": dict, "transaction": dict, "message": str}
        """
        try:
            amount = round_money(amount)
        except (TypeError, ValueError):
            return {"success": False, "message": "Payment amount must be a number", "error_code": "invalid"}

        if amount <= 0:
            return {"success": False, "message": "Payment amount must be greater than 0", "error_code": "invalid"}

        payment_method = (payment_method or "cash").lower()
        if payment_method not in PAYMENT_METHODS:
            return {
                "success": False,
                "message": f"Invalid payment method. Expected one of {list(PAYMENT_METHODS)}",
                "error_code": "invalid",
            }

        try:
            with get_db() as db:
                account = db.query(Account).filter(Account.id == cashier_account_id).first()
                if not account:
                    return {"success": False, "message": "Account not found", "error_code": "forbidden"}

                cashier = account.cashier
                if account.role == AccountRole.CASHIER:
                    if not cashier or cashier.status != "active":
                        return {
                            "success": False,
                            "message": "Only active cashiers can process payments",
                            "error_code": "forbidden",
                        }
                elif account.role != AccountRole.ADMIN:
                    return {"success": False, "message": "Not allowed to process payments", "error_code": "forbidden"}

                billing = db.query(Billing).filter(Billing.id == billing_id).first()
                if not billing:
                    return {"success": False, "message": "Billing not found", "error_code": "not_found"}

                balance = outstanding_balance(billing)
                if billing.payment_status == "paid" or balance <= 0:
                    return {"success": False, "message": "Billing is already fully paid", "error_code": "conflict"}

                if amount > balance + CENT:
                    return {
                        "success": False,
                        "message": f"Payment amount cannot exceed the amount due (₱{balance:.2f})",
                        "error_code": "invalid",
                    }

                billing.amount_paid = round_money((billing.amount_paid or 0) + amount)
                billing.payment_date = datetime.utcnow()
                remaining = round_money(balance - amount)
                billing.payment_status = "paid" if remaining <= CENT else "partial"

                transaction = PaymentTransaction(
                    billing_id=billing.id,
                    cashier_id=cashier.id if cashier else None,
                    amount=amount,
                    payment_method=payment_method,
                    balance_after=max(remaining, 0),
                    status_after=billing.payment_status,
                )
                db.add(transaction)
                db.flush()

                logger.info(
                    f"Payment of {amount:.2f} on billing {billing.id} by account {account.id}: "
                    f"{billing.payment_status}, balance {max(remaining, 0):.2f}"
                )
                return {
                    "success": True,
                    "billing": serialize_billing(billing),
                    "transaction": serialize_transaction(transaction),
                    "message": "Payment processed successfully",
                }

        except Exception as e:
            logger.exception(f"Payment on billing {billing_id} failed: {e}")
            return {"success": False, "message": "Failed to process payment"}

    def get_transactions(self, cashier_account_id: Optional[int] = None, limit: Optional[int] = None) -> List[dict]:
        with get_db() as db:
            q = db.query(PaymentTransaction)
            if cashier_account_id is not None:
                q = q.join(Cashier, PaymentTransaction.cashier_id == Cashier.id).filter(
                    Cashier.account_id == cashier_account_id
                )
            q = q.order_by(desc(PaymentTransaction.created_at), desc(PaymentTransaction.id))
            if limit:
                q = q.limit(limit)
            return [serialize_transaction(t) for t in q.all()]

    def get_billing_transactions(self, billing_id: int) -> List[dict]:
        with get_db() as db:
            transactions = (
                db.query(PaymentTransaction)
                .filter(PaymentTransaction.billing_id == billing_id)
                .order_by(PaymentTransaction.created_at, PaymentTransaction.id)
                .all()
            )
            return [serialize_transaction(t) for t in transactions]

    def get_cashier_dashboard(self, recent_limit: int = 5) -> dict:
        """Collected revenue, bill counts and the latest payments"""
        with get_db() as db:
            paid_query = db.query(Billing).filter(Billing.payment_date.isnot(None))

            all_transactions = paid_query.count()
            all_revenue = (
                db.query(func.coalesce(func.sum(Billing.amount_paid), 0))
                .filter(Billing.payment_date.isnot(None))
                .scalar()
            )
            pending_bills = db.query(Billing).filter(Billing.payment_status == "unpaid").count()
            completed_bills = db.query(Billing).filter(Billing.payment_status == "paid").count()

            recent = paid_query.order_by(desc(Billing.payment_date), desc(Billing.id)).limit(recent_limit).all()

            return {
                "all_transactions": all_transactions,
                "all_revenue": round_money(all_revenue),
                "pending_bills": pending_bills,
                "completed_bills": completed_bills,
                "recent_payments": [serialize_billing_with_consumer(b) for b in recent],
            }


# Global instance
payment_service = PaymentService()
