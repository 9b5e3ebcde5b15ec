"""
Account Service
Credentials, profiles and account listing shared by every role
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from werkzeug.security import check_password_hash, generate_password_hash

from bawasa.auth.jwt_utils import create_token
from bawasa.config import MIN_PASSWORD_LENGTH
from bawasa.database.db import get_db
from bawasa.database.models import Account, AccountRole
from bawasa.utils import isoformat, normalize_email

logger = logging.getLogger("account-service")

INVALID_LOGIN = "Invalid email or password"
INVALID_CREDENTIALS = "Invalid login credentials"
SUSPENDED_CASHIER = "Your account has been suspended. Please contact the administrator for assistance."
RESET_SUCCESS = "Password has been reset successfully."


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def serialize_account(account: Account) -> dict:
    """Account without its password hash"""
    return {
        "id": account.id,
        "email": account.email,
        "full_name": account.full_name,
        "full_address": account.full_address,
        "mobile_no": account.mobile_no,
        "role": account.role.value if account.role else None,
        "status": account.status or "active",
        "created_at": isoformat(account.created_at),
        "updated_at": isoformat(account.updated_at),
        "last_signed_in": isoformat(account.last_signed_in),
    }


def get_account_display_status(account: Account) -> str:
    """suspended / verified (signed in at least once) / pending"""
    if account.status == "suspended":
        return "suspended"
    if account.last_signed_in:
        return "verified"
    return "pending"


def build_account(
    email: str,
    password: str,
    role: AccountRole,
    full_name: Optional[str] = None,
    full_address: Optional[str] = None,
    mobile_no: Optional[str] = None,
) -> Account:
    """Unsaved Account with a hashed password"""
    return Account(
        email=email,
        password=hash_password(password),
        role=role,
        full_name=full_name,
        full_address=full_address,
        mobile_no=str(mobile_no) if mobile_no else None,
        status="active",
    )


def validate_new_account(db, email: str, password: str) -> Optional[str]:
    """Returns an error message or None"""
    if not normalize_email(email):
        return "A valid email is required"
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if db.query(Account).filter(Account.email == normalize_email(email)).first():
        return "An account with this email already exists"
    return None


class AccountService:
    """
    Authentication and profile operations.
    - Back-office sign-in (admin, cashier)
    - Mobile credential verification (consumer, meter reader)
    - Enumeration-safe password reset
    """

    PORTAL_ROLES = (AccountRole.ADMIN, AccountRole.CASHIER)
    MOBILE_ROLES = (AccountRole.CONSUMER, AccountRole.METER_READER)

    def login(self, email: str, password: str) -> dict:
        """
        Admin / cashier portal sign-in.

        Returns:
            {"success": bool, "token": str, "user": dict, "message": str}
        """
        email = normalize_email(email)
        with get_db() as db:
            account = db.query(Account).filter(Account.email == email).first() if email else None

            if not account or not check_password_hash(account.password, password or ""):
                logger.info(f"Failed sign-in attempt for {email}")
                return {"success": False, "message": INVALID_LOGIN, "error_code": "unauthorized"}

            if account.role not in self.PORTAL_ROLES:
                return {
                    "success": False,
                    "message": "This account cannot sign in to the back office",
                    "error_code": "forbidden",
                }

            if account.status == "suspended":
                return {"success": False, "message": "Account is suspended", "error_code": "forbidden"}

            user = serialize_account(account)

            if account.role == AccountRole.CASHIER:
                cashier = account.cashier
                if not cashier:
                    return {"success": False, "message": "Cashier profile not found", "error_code": "forbidden"}
                if cashier.status != "active":
                    logger.warning(f"Inactive cashier sign-in: {cashier.employee_id} ({cashier.status})")
                    message = SUSPENDED_CASHIER if cashier.status == "suspended" else "Cashier account is not active"
                    return {"success": False, "message": message, "error_code": "forbidden"}
                user["cashier"] = {
                    "id": cashier.id,
                    "employee_id": cashier.employee_id,
                    "status": cashier.status,
                }

            account.last_signed_in = datetime.utcnow()
            user["last_signed_in"] = isoformat(account.last_signed_in)
            token = create_token(account.id, account.email, account.role)

            logger.info(f"Sign-in successful for {account.role.value} {account.email}")
            return {"success": True, "token": token, "user": user, "message": "Login successful"}

    def verify_mobile_credentials(self, email: str, password: str) -> dict:
        """
        Credential check used by the consumer / meter reader mobile app.
        Unknown e-mail and wrong password produce the same answer.
        """
        email = normalize_email(email)
        failure = {"success": False, "message": INVALID_CREDENTIALS, "error_code": "unauthorized"}

        with get_db() as db:
            account = db.query(Account).filter(Account.email == email).first() if email else None

            if not account or account.role not in self.MOBILE_ROLES:
                return failure
            if not check_password_hash(account.password, password or ""):
                return failure

            user = serialize_account(account)
            user["user_type"] = account.role.value
            user["consumer_id"] = None
            user["water_meter_no"] = None

            if account.role == AccountRole.CONSUMER:
                if not account.consumer:
                    logger.error(f"Consumer data not found for account {account.id}")
                    return {"success": False, "message": "Consumer data not found", "error_code": "not_found"}
                user["consumer_id"] = account.consumer.id
                user["water_meter_no"] = account.consumer.water_meter_no
            elif account.meter_reader:
                user["meter_reader_id"] = account.meter_reader.id

            account.last_signed_in = datetime.utcnow()
            token = create_token(account.id, account.email, account.role)

            return {
                "success": True,
                "user": user,
                "token": token,
                "message": f"Authentication successful for {account.role.value}",
            }

    def reset_password(self, email: str, new_password: str) -> dict:
        """
        Sets a new password. Unknown e-mails get the same success answer.
        """
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            return {
                "success": False,
                "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                "error_code": "invalid",
            }

        email = normalize_email(email)
        with get_db() as db:
            account = db.query(Account).filter(Account.email == email).first() if email else None
            if not account:
                logger.info("Password reset requested for unknown email (returning success)")
                return {"success": True, "message": RESET_SUCCESS}

            account.password = hash_password(new_password)
            logger.info(f"Password updated for account {account.id}")
            return {"success": True, "message": RESET_SUCCESS}

    def change_password(self, account_id: int, current_password: str, new_password: str) -> dict:
        if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
            return {
                "success": False,
                "message": f"Password must be at least {MIN_PASSWORD_LENGTH} characters long",
                "error_code": "invalid",
            }

        with get_db() as db:
            account = db.query(Account).filter(Account.id == account_id).first()
            if not account:
                return {"success": False, "message": "Account not found", "error_code": "not_found"}
            if not check_password_hash(account.password, current_password or ""):
                return {"success": False, "message": "Current password is incorrect", "error_code": "invalid"}

            account.password = hash_password(new_password)
            return {"success": True, "message": "Password changed"}

    def get_profile(self, account_id: int) -> Optional[dict]:
        with get_db() as db:
            account = db.query(Account).filter(Account.id == account_id).first()
            if not account:
                return None

            profile = serialize_account(account)
            if account.cashier:
                profile["cashier"] = {
                    "id": account.cashier.id,
                    "employee_id": account.cashier.employee_id,
                    "status": account.cashier.status,
                }
            if account.consumer:
                profile["consumer"] = {
                    "id": account.consumer.id,
                    "water_meter_no": account.consumer.water_meter_no,
                    "registered_voter": bool(account.consumer.registered_voter),
                }
            return profile

    def update_profile(self, account_id: int, data: dict) -> dict:
        with get_db() as db:
            account = db.query(Account).filter(Account.id == account_id).first()
            if not account:
                return {"success": False, "message": "Account not found", "error_code": "not_found"}

            # Only contact details are editable here
            for field in ("full_name", "full_address", "mobile_no"):
                if field in data:
                    setattr(account, field, data[field])

            db.flush()
            return {"success": True, "user": serialize_account(account)}

    def list_accounts(self, role: Optional[AccountRole] = None, query: Optional[str] = None) -> List[dict]:
        with get_db() as db:
            q = db.query(Account)
            if role:
                q = q.filter(Account.role == role)
            if query:
                pattern = f"%{query}%"
                q = q.filter(or_(
                    Account.full_name.ilike(pattern),
                    Account.email.ilike(pattern),
                    Account.mobile_no.ilike(pattern),
                ))

            accounts = q.order_by(Account.created_at.desc(), Account.id.desc()).all()
            return [
                {**serialize_account(a), "display_status": get_account_display_status(a)}
                for a in accounts
            ]

    def set_account_status(self, account_id: int, status: str) -> dict:
        if status not in ("active", "suspended"):
            return {"success": False, "message": "status must be 'active' or 'suspended'", "error_code": "invalid"}

        with get_db() as db:
            account = db.query(Account).filter(Account.id == account_id).first()
            if not account:
                return {"success": False, "message": "Account not found", "error_code": "not_found"}

            account.status = status
            db.flush()
            return {"success": True, "account": serialize_account(account)}


# Global instance
account_service = AccountService()
