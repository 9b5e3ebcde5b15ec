"""
Database Models
SQLAlchemy ORM models for the BAWASA back-office schema
"""
import enum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SQLEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from bawasa.database.db import Base


class AccountRole(enum.Enum):
    """
    Account roles

    - ADMIN: back-office administrator (dashboard, consumers, staff, billing)
    - CASHIER: cashier portal - payment processing
    - METER_READER: field staff reading water meters through the mobile app
    - CONSUMER: water consumer (mobile app, issue reports)
    """
    ADMIN = "admin"
    CASHIER = "cashier"
    METER_READER = "meter_reader"
    CONSUMER = "consumer"


# Allowed status values
ACCOUNT_STATUSES = ("active", "suspended")
PAYMENT_STATUSES = ("unpaid", "partial", "paid", "overdue")
ASSIGNMENT_STATUSES = ("assigned", "ongoing", "completed")
ACTIVE_ASSIGNMENT_STATUSES = ("assigned", "ongoing")
CASHIER_STATUSES = ("active", "inactive", "suspended")
ISSUE_PRIORITIES = ("low", "medium", "high")
ISSUE_STATUSES = ("open", "assigned", "in_progress", "resolved", "closed")


class Account(Base):
    """Identity, credentials and role of every user of the system"""
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password = Column(String(255), nullable=False)  # werkzeug password hash
    full_name = Column(String(255), nullable=True)
    full_address = Column(Text, nullable=True)
    mobile_no = Column(String(30), nullable=True)
    role = Column(SQLEnum(AccountRole), nullable=False, default=AccountRole.CONSUMER, index=True)
    status = Column(String(20), default="active")  # active, suspended
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    last_signed_in = Column(DateTime(timezone=True), nullable=True)

    consumer = relationship("Consumer", back_populates="account", uselist=False, cascade="all, delete-orphan")
    cashier = relationship("Cashier", back_populates="account", uselist=False, cascade="all, delete-orphan")
    meter_reader = relationship("MeterReader", back_populates="account", uselist=False, cascade="all, delete-orphan")


class Consumer(Base):
    """Water consumer - one per consumer account"""
    __tablename__ = "consumers"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True)
    water_meter_no = Column(String(50), nullable=False, unique=True, index=True)
    registered_voter = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    account = relationship("Account", back_populates="consumer")
    meter_readings = relationship("MeterReading", back_populates="consumer", cascade="all, delete-orphan")
    billings = relationship("Billing", back_populates="consumer", cascade="all, delete-orphan")
    assignments = relationship("MeterReaderAssignment", back_populates="consumer", cascade="all, delete-orphan")
    issues = relationship("IssueReport", back_populates="consumer", cascade="all, delete-orphan")


class MeterReading(Base):
    """Monthly previous/present reading pair for a consumer"""
    __tablename__ = "bawasa_meter_readings"

    id = Column(Integer, primary_key=True, index=True)
    consumer_id = Column(Integer, ForeignKey("consumers.id", ondelete="CASCADE"), nullable=False, index=True)
    reading_date = Column(Date, nullable=False)
    previous_reading = Column(Float, nullable=False, default=0)
    # Equal to previous_reading until the reader records the month's value
    present_reading = Column(Float, nullable=True)
    consumption_cubic_meters = Column(Float, nullable=True)
    is_recorded = Column(Boolean, default=False)
    reading_assigned = Column(Boolean, default=False)  # transitioned into a billing
    remarks = Column(Text, nullable=True)
    meter_image = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    consumer = relationship("Consumer", back_populates="meter_readings")
    billing = relationship("Billing", back_populates="meter_reading", uselist=False)

    __table_args__ = (
        Index("idx_reading_consumer_date", "consumer_id", "reading_date"),
    )


class Billing(Base):
    """Water bill computed from a meter reading"""
    __tablename__ = "bawasa_billings"

    id = Column(Integer, primary_key=True, index=True)
    consumer_id = Column(Integer, ForeignKey("consumers.id", ondelete="CASCADE"), nullable=False, index=True)
    # One billing per reading
    meter_reading_id = Column(
        Integer, ForeignKey("bawasa_meter_readings.id", ondelete="SET NULL"), nullable=True, unique=True
    )
    billing_month = Column(String(20), nullable=False)  # "October 2025"

    # Calculator breakdown
    consumption_10_or_below = Column(Float, nullable=False, default=0)
    amount_10_or_below = Column(Float, nullable=False, default=0)
    amount_10_or_below_with_discount = Column(Float, nullable=False, default=0)
    consumption_over_10 = Column(Float, nullable=False, default=0)
    amount_over_10 = Column(Float, nullable=False, default=0)
    amount_current_billing = Column(Float, nullable=False, default=0)
    discount_percentage = Column(Float, nullable=False, default=0)
    years_of_service = Column(Integer, nullable=False, default=1)

    arrears_to_be_paid = Column(Float, nullable=False, default=0)
    total_amount_due = Column(Float, nullable=False, default=0)
    due_date = Column(Date, nullable=False)
    arrears_after_due_date = Column(Float, nullable=True)

    payment_status = Column(String(20), default="unpaid", index=True)  # unpaid, partial, paid, overdue
    payment_date = Column(DateTime(timezone=True), nullable=True)
    amount_paid = Column(Float, nullable=False, default=0)
    reading_assigned = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    consumer = relationship("Consumer", back_populates="billings")
    meter_reading = relationship("MeterReading", back_populates="billing")
    transactions = relationship("PaymentTransaction", back_populates="billing", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_billing_consumer_status", "consumer_id", "payment_status"),
        Index("idx_billing_due_date", "due_date"),
    )


class Cashier(Base):
    """Cashier profile attached to a cashier account"""
    __tablename__ = "cashiers"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True)
    employee_id = Column(String(50), nullable=False, unique=True, index=True)
    status = Column(String(20), default="active")  # active, inactive, suspended
    hire_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    account = relationship("Account", back_populates="cashier")
    transactions = relationship("PaymentTransaction", back_populates="cashier")


class MeterReader(Base):
    """Meter reader profile attached to a meter_reader account"""
    __tablename__ = "bawasa_meter_reader"

    id = Column(Integer, primary_key=True, index=True)
    reader_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True)
    status = Column(String(20), default="active")  # active, suspended
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    account = relationship("Account", back_populates="meter_reader")
    assignments = relationship("MeterReaderAssignment", back_populates="meter_reader", cascade="all, delete-orphan")


class MeterReaderAssignment(Base):
    """Consumer assigned to a meter reader for a billing cycle"""
    __tablename__ = "meter_reader_assignments"

    id = Column(Integer, primary_key=True, index=True)
    meter_reader_id = Column(Integer, ForeignKey("bawasa_meter_reader.id", ondelete="CASCADE"), nullable=False, index=True)
    consumer_id = Column(Integer, ForeignKey("consumers.id", ondelete="CASCADE"), nullable=False, index=True)
    meter_reading_id = Column(Integer, ForeignKey("bawasa_meter_readings.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), default="assigned", index=True)  # assigned, ongoing, completed
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    meter_reader = relationship("MeterReader", back_populates="assignments")
    consumer = relationship("Consumer", back_populates="assignments")
    meter_reading = relationship("MeterReading")

    __table_args__ = (
        Index("idx_assignment_reader_status", "meter_reader_id", "status"),
    )


class IssueReport(Base):
    """Maintenance ticket reported by a consumer"""
    __tablename__ = "issue_report"

    id = Column(Integer, primary_key=True, index=True)
    consumer_id = Column(Integer, ForeignKey("consumers.id", ondelete="CASCADE"), nullable=True, index=True)
    issue_type = Column(String(50), nullable=True)
    priority = Column(String(20), nullable=True, index=True)  # low, medium, high
    issue_title = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    issue_images = Column(Text, nullable=True)  # JSON list of image paths
    status = Column(String(20), default="open", index=True)
    scheduled_fix_date = Column(DateTime(timezone=True), nullable=True)
    assigned_technician = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    consumer = relationship("Consumer", back_populates="issues")


class PaymentTransaction(Base):
    """Payment recorded by a cashier against a billing"""
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, index=True)
    billing_id = Column(Integer, ForeignKey("bawasa_billings.id", ondelete="CASCADE"), nullable=False, index=True)
    cashier_id = Column(Integer, ForeignKey("cashiers.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Float, nullable=False)
    payment_method = Column(String(30), default="cash")
    balance_after = Column(Float, nullable=False, default=0)
    status_after = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    billing = relationship("Billing", back_populates="transactions")
    cashier = relationship("Cashier", back_populates="transactions")

    __table_args__ = (
        Index("idx_transaction_created", "created_at"),
    )
