"""
Consumer Service
Consumer accounts, meter numbers and per-consumer history
"""
import logging
from typing import List, Optional

from sqlalchemy import desc, or_

from bawasa.database.db import get_db
from bawasa.database.models import (
    Account,
    AccountRole,
    Billing,
    Consumer,
    IssueReport,
    MeterReading,
)
from bawasa.services.account_service import build_account, validate_new_account
from bawasa.services.serializers import (
    serialize_billing,
    serialize_consumer,
    serialize_issue,
    serialize_reading,
)
from bawasa.utils import normalize_email

logger = logging.getLogger("consumer-service")


def latest_reading(db, consumer_id: int) -> Optional[MeterReading]:
    return (
        db.query(MeterReading)
        .filter(MeterReading.consumer_id == consumer_id)
        .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
        .first()
    )


def latest_billing(db, consumer_id: int) -> Optional[Billing]:
    return (
        db.query(Billing)
        .filter(Billing.consumer_id == consumer_id)
        .order_by(desc(Billing.created_at), desc(Billing.id))
        .first()
    )


class ConsumerService:
    """
    Consumer management.
    - Registration (account + consumer row)
    - Listing with latest reading / billing and derived status
    - Suspension through the account status
    """

    ACCOUNT_FIELDS = ("full_name", "full_address", "mobile_no")

    def _with_latest(self, db, consumer: Consumer) -> dict:
        data = serialize_consumer(consumer)
        reading = latest_reading(db, consumer.id)
        billing = latest_billing(db, consumer.id)
        data["latest_meter_reading"] = serialize_reading(reading) if reading else None
        data["latest_billing"] = serialize_billing(billing) if billing else None
        # Payment status of the latest bill, unpaid when never billed
        data["status"] = billing.payment_status if billing else "unpaid"
        return data

    def create_consumer(self, data: dict) -> dict:
        """
        Registers a consumer account.

        Args:
            data: email, password, water_meter_no and optional full_name,
                  full_address, mobile_no, registered_voter
        """
        water_meter_no = (data.get("water_meter_no") or "").strip()
        if not water_meter_no:
            return {"success": False, "message": "water_meter_no is required", "error_code": "invalid"}

        try:
            with get_db() as db:
                error = validate_new_account(db, data.get("email"), data.get("password"))
                if error:
                    code = "conflict" if "already exists" in error else "invalid"
                    return {"success": False, "message": error, "error_code": code}

                if db.query(Consumer).filter(Consumer.water_meter_no == water_meter_no).first():
                    return {
                        "success": False,
                        "message": f"Water meter number {water_meter_no} is already registered",
                        "error_code": "conflict",
                    }

                account = build_account(
                    normalize_email(data["email"]),
                    data["password"],
                    AccountRole.CONSUMER,
                    full_name=data.get("full_name"),
                    full_address=data.get("full_address"),
                    mobile_no=data.get("mobile_no"),
                )
                account.consumer = Consumer(
                    water_meter_no=water_meter_no,
                    registered_voter=bool(data.get("registered_voter", False)),
                )
                db.add(account)
                db.flush()
                db.refresh(account.consumer)

                logger.info(f"Consumer created: {water_meter_no} ({account.email})")
                return {"success": True, "consumer": serialize_consumer(account.consumer)}

        except Exception as e:
            logger.exception(f"Consumer creation failed: {e}")
            return {"success": False, "message": "Failed to create consumer"}

    def list_consumers(self) -> List[dict]:
        with get_db() as db:
            consumers = db.query(Consumer).order_by(desc(Consumer.created_at), desc(Consumer.id)).all()
            return [self._with_latest(db, c) for c in consumers]

    def get_consumer(self, consumer_id: int) -> Optional[dict]:
        with get_db() as db:
            consumer = db.query(Consumer).filter(Consumer.id == consumer_id).first()
            if not consumer:
                return None
            return self._with_latest(db, consumer)

    def search_consumers(self, query: str) -> List[dict]:
        """Meter number, e-mail, name or address"""
        if not query:
            return self.list_consumers()

        pattern = f"%{query.strip()}%"
        with get_db() as db:
            consumers = (
                db.query(Consumer)
                .join(Account, Consumer.account_id == Account.id)
                .filter(or_(
                    Consumer.water_meter_no.ilike(pattern),
                    Account.email.ilike(pattern),
                    Account.full_name.ilike(pattern),
                    Account.full_address.ilike(pattern),
                ))
                .order_by(desc(Consumer.created_at), desc(Consumer.id))
                .all()
            )
            return [self._with_latest(db, c) for c in consumers]

    def update_consumer(self, consumer_id: int, data: dict) -> dict:
        try:
            with get_db() as db:
                consumer = db.query(Consumer).filter(Consumer.id == consumer_id).first()
                if not consumer:
                    return {"success": False, "message": "Consumer not found", "error_code": "not_found"}

                new_meter_no = data.get("water_meter_no")
                if new_meter_no and new_meter_no != consumer.water_meter_no:
                    taken = db.query(Consumer).filter(
                        Consumer.water_meter_no == new_meter_no,
                        Consumer.id != consumer_id,
                    ).first()
                    if taken:
                        return {
                            "success": False,
                            "message": f"Water meter number {new_meter_no} is already registered",
                            "error_code": "conflict",
                        }
                    consumer.water_meter_no = new_meter_no

                if "registered_voter" in data:
                    consumer.registered_voter = bool(data["registered_voter"])

                for field in self.ACCOUNT_FIELDS:
                    if field in data:
                        setattr(consumer.account, field, data[field])

                db.flush()
                return {"success": True, "consumer": self._with_latest(db, consumer)}

        except Exception as e:
            logger.exception(f"Consumer update failed: {e}")
            return {"success": False, "message": "Failed to update consumer"}

    def delete_consumer(self, consumer_id: int) -> dict:
        """Deletes the consumer with its account, readings, billings, assignments and issues"""
        try:
            with get_db() as db:
                consumer = db.query(Consumer).filter(Consumer.id == consumer_id).first()
                if not consumer:
                    return {"success": False, "message": "Consumer not found", "error_code": "not_found"}

                meter_no = consumer.water_meter_no
                db.delete(consumer.account)

            logger.info(f"Consumer deleted: {meter_no}")
            return {"success": True, "message": "Consumer deleted"}

        except Exception as e:
            logger.exception(f"Consumer deletion failed: {e}")
            return {"success": False, "message": "Failed to delete consumer"}

    def set_suspended(self, consumer_id: int, suspended: bool) -> dict:
        with get_db() as db:
            consumer = db.query(Consumer).filter(Consumer.id == consumer_id).first()
            if not consumer:
                return {"success": False, "message": "Consumer not found", "error_code": "not_found"}

            consumer.account.status = "suspended" if suspended else "active"
            logger.info(f"Consumer {consumer.water_meter_no} status -> {consumer.account.status}")
            return {"success": True, "consumer": serialize_consumer(consumer)}

    def update_latest_billing_status(self, consumer_id: int, status: str) -> dict:
        """Sets the payment status of the consumer's most recent billing"""
        from bawasa.services.billing_service import billing_service

        with get_db() as db:
            billing = latest_billing(db, consumer_id)
            billing_id = billing.id if billing else None

        if not billing_id:
            return {"success": False, "message": "No billing found for consumer", "error_code": "not_found"}
        return billing_service.update_billing_status(billing_id, status)

    def get_reading_history(self, consumer_id: int) -> List[dict]:
        with get_db() as db:
            readings = (
                db.query(MeterReading)
                .filter(MeterReading.consumer_id == consumer_id)
                .order_by(desc(MeterReading.reading_date), desc(MeterReading.id))
                .all()
            )
            return [serialize_reading(r) for r in readings]

    def get_billing_history(self, consumer_id: int) -> List[dict]:
        with get_db() as db:
            billings = (
                db.query(Billing)
                .filter(Billing.consumer_id == consumer_id)
                .order_by(desc(Billing.due_date), desc(Billing.id))
                .all()
            )
            return [serialize_billing(b) for b in billings]

    def get_issue_history(self, consumer_id: int) -> List[dict]:
        with get_db() as db:
            issues = (
                db.query(IssueReport)
                .filter(IssueReport.consumer_id == consumer_id)
                .order_by(desc(IssueReport.created_at), desc(IssueReport.id))
                .all()
            )
            return [serialize_issue(i) for i in issues]

    def get_consumer_id_for_account(self, account_id: int) -> Optional[int]:
        with get_db() as db:
            consumer = db.query(Consumer).filter(Consumer.account_id == account_id).first()
            return consumer.id if consumer else None


# Global instance
consumer_service = ConsumerService()
