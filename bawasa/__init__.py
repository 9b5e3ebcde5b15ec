"""
BAWASA back-office backend
Admin dashboard, cashier portal and mobile authentication API
"""
__version__ = "1.0.0"
