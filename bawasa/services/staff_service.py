"""
Staff Service
Meter reader and cashier accounts
"""
import logging
from typing import List, Optional

from sqlalchemy import desc, or_

from bawasa.database.db import get_db
from bawasa.database.models import (
    CASHIER_STATUSES,
    Account,
    AccountRole,
    Cashier,
    MeterReader,
)
from bawasa.services.account_service import build_account, validate_new_account
from bawasa.services.assignment_service import assignment_counts
from bawasa.services.serializers import serialize_cashier, serialize_meter_reader
from bawasa.utils import normalize_email, parse_date

logger = logging.getLogger("staff-service")

ACCOUNT_FIELDS = ("full_name", "full_address", "mobile_no")


def _account_error(error: str) -> dict:
    code = "conflict" if "already exists" in error else "invalid"
    return {"success": False, "message": error, "error_code": code}


def _search_filter(query: str):
    pattern = f"%{query.strip()}%"
    return or_(
        Account.full_name.ilike(pattern),
        Account.email.ilike(pattern),
        Account.mobile_no.ilike(pattern),
    )


class MeterReaderService:
    """Meter reader accounts with their assignment counts"""

    def _with_counts(self, db, reader: MeterReader) -> dict:
        data = serialize_meter_reader(reader)
        counts = assignment_counts(db, reader.id)
        data["active_assignments"] = counts["active"]
        data["completed_assignments"] = counts["completed"]
        return data

    def create_meter_reader(self, data: dict) -> dict:
        try:
            with get_db() as db:
                error = validate_new_account(db, data.get("email"), data.get("password"))
                if error:
                    return _account_error(error)

                account = build_account(
                    normalize_email(data["email"]),
                    data["password"],
                    AccountRole.METER_READER,
                    full_name=data.get("full_name"),
                    full_address=data.get("full_address"),
                    mobile_no=data.get("mobile_no"),
                )
                account.meter_reader = MeterReader(status="active")
                db.add(account)
                db.flush()

                logger.info(f"Meter reader created: {account.email}")
                return {"success": True, "meter_reader": self._with_counts(db, account.meter_reader)}

        except Exception as e:
            logger.exception(f"Meter reader creation failed: {e}")
            return {"success": False, "message": "Failed to create meter reader"}

    def list_meter_readers(self, query: Optional[str] = None) -> List[dict]:
        with get_db() as db:
            q = db.query(MeterReader).join(Account, MeterReader.reader_id == Account.id)
            if query:
                q = q.filter(_search_filter(query))
            readers = q.order_by(desc(MeterReader.created_at), desc(MeterReader.id)).all()
            return [self._with_counts(db, r) for r in readers]

    def get_meter_reader(self, meter_reader_id: int) -> Optional[dict]:
        with get_db() as db:
            reader = db.query(MeterReader).filter(MeterReader.id == meter_reader_id).first()
            return self._with_counts(db, reader) if reader else None

    def update_meter_reader(self, meter_reader_id: int, data: dict) -> dict:
        with get_db() as db:
            reader = db.query(MeterReader).filter(MeterReader.id == meter_reader_id).first()
            if not reader:
                return {"success": False, "message": "Meter reader not found", "error_code": "not_found"}

            for field in ACCOUNT_FIELDS:
                if field in data:
                    setattr(reader.account, field, data[field])

            db.flush()
            return {"success": True, "meter_reader": self._with_counts(db, reader)}

    def set_suspended(self, meter_reader_id: int, suspended: bool) -> dict:
        with get_db() as db:
            reader = db.query(MeterReader).filter(MeterReader.id == meter_reader_id).first()
            if not reader:
                return {"success": False, "message": "Meter reader not found", "error_code": "not_found"}

            status = "suspended" if suspended else "active"
            reader.status = status
            reader.account.status = status
            db.flush()

            logger.info(f"Meter reader {reader.id} status -> {status}")
            return {"success": True, "meter_reader": self._with_counts(db, reader)}

    def delete_meter_reader(self, meter_reader_id: int) -> dict:
        with get_db() as db:
            reader = db.query(MeterReader).filter(MeterReader.id == meter_reader_id).first()
            if not reader:
                return {"success": False, "message": "Meter reader not found", "error_code": "not_found"}

            db.delete(reader.account)
            logger.info(f"Meter reader {meter_reader_id} deleted")
            return {"success": True, "message": "Meter reader deleted"}


class CashierService:
    """Cashier accounts; only active cashiers may sign in"""

    def create_cashier(self, data: dict) -> dict:
        employee_id = (data.get("employee_id") or "").strip()
        if not employee_id:
            return {"success": False, "message": "employee_id is required", "error_code": "invalid"}

        try:
            hire_date = parse_date(data.get("hire_date"))
        except ValueError:
            return {"success": False, "message": "Invalid hire_date", "error_code": "invalid"}

        try:
            with get_db() as db:
                error = validate_new_account(db, data.get("email"), data.get("password"))
                if error:
                    return _account_error(error)

                if db.query(Cashier).filter(Cashier.employee_id == employee_id).first():
                    return {
                        "success": False,
                        "message": f"Employee ID {employee_id} is already in use",
                        "error_code": "conflict",
                    }

                account = build_account(
                    normalize_email(data["email"]),
                    data["password"],
                    AccountRole.CASHIER,
                    full_name=data.get("full_name"),
                    full_address=data.get("full_address"),
                    mobile_no=data.get("mobile_no"),
                )
                account.cashier = Cashier(employee_id=employee_id, status="active", hire_date=hire_date)
                db.add(account)
                db.flush()

                logger.info(f"Cashier created: {employee_id} ({account.email})")
                return {"success": True, "cashier": serialize_cashier(account.cashier)}

        except Exception as e:
            logger.exception(f"Cashier creation failed: {e}")
            return {"success": False, "message": "Failed to create cashier"}

    def list_cashiers(self, query: Optional[str] = None) -> List[dict]:
        with get_db() as db:
            q = db.query(Cashier).join(Account, Cashier.account_id == Account.id)
            if query:
                q = q.filter(or_(_search_filter(query), Cashier.employee_id.ilike(f"%{query.strip()}%")))
            cashiers = q.order_by(desc(Cashier.created_at), desc(Cashier.id)).all()
            return [serialize_cashier(c) for c in cashiers]

    def get_cashier(self, cashier_id: int) -> Optional[dict]:
        with get_db() as db:
            cashier = db.query(Cashier).filter(Cashier.id == cashier_id).first()
            return serialize_cashier(cashier) if cashier else None

    def update_cashier(self, cashier_id: int, data: dict) -> dict:
        with get_db() as db:
            cashier = db.query(Cashier).filter(Cashier.id == cashier_id).first()
            if not cashier:
                return {"success": False, "message": "Cashier not found", "error_code": "not_found"}

            for field in ACCOUNT_FIELDS:
                if field in data:
                    setattr(cashier.account, field, data[field])
            if "hire_date" in data:
                try:
                    cashier.hire_date = parse_date(data["hire_date"])
                except ValueError:
                    return {"success": False, "message": "Invalid hire_date", "error_code": "invalid"}

            db.flush()
            return {"success": True, "cashier": serialize_cashier(cashier)}

    def update_cashier_status(self, cashier_id: int, status: str) -> dict:
        if status not in CASHIER_STATUSES:
            return {
                "success": False,
                "message": f"Invalid status. Expected one of {list(CASHIER_STATUSES)}",
                "error_code": "invalid",
            }

        with get_db() as db:
            cashier = db.query(Cashier).filter(Cashier.id == cashier_id).first()
            if not cashier:
                return {"success": False, "message": "Cashier not found", "error_code": "not_found"}

            cashier.status = status
            db.flush()

            logger.info(f"Cashier {cashier.employee_id} status -> {status}")
            return {"success": True, "cashier": serialize_cashier(cashier)}


# Global instances
meter_reader_service = MeterReaderService()
cashier_service = CashierService()
