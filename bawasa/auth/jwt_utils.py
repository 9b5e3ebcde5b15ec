"""
JWT Token Utilities
Token creation and verification helpers
"""
from datetime import datetime, timedelta
from typing import Dict, Optional

import jwt

from bawasa.config import JWT_EXPIRE_MINUTES, JWT_SECRET_KEY
from bawasa.database.models import AccountRole


def create_token(account_id: int, email: str, role: AccountRole) -> str:
    """
    Creates a signed JWT

    Args:
        account_id: Account primary key
        email: Account e-mail
        role: Account role

    Returns:
        JWT token string
    """
    payload = {
        "sub": str(account_id),
        "email": email.lower(),
        "role": role.value,
        "exp": datetime.utcnow() + timedelta(minutes=JWT_EXPIRE_MINUTES),
        "iat": datetime.utcnow(),
    }

    token = jwt.encode(payload, JWT_SECRET_KEY, algorithm="HS256")
    return token


def verify_token(token: str) -> Optional[Dict]:
    """
    Validates a JWT

    Returns:
        Token payload dict or None when invalid/expired
    """
    try:
        payload = jwt.decode(token, JWT_SECRET_KEY, algorithms=["HS256"])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def get_role_from_token(token: str) -> Optional[AccountRole]:
    payload = verify_token(token)
    if payload and "role" in payload:
        try:
            return AccountRole(payload["role"])
        except ValueError:
            return None
    return None


def get_account_id_from_token(token: str) -> Optional[int]:
    payload = verify_token(token)
    if payload and "sub" in payload:
        try:
            return int(payload["sub"])
        except (TypeError, ValueError):
            return None
    return None
