"""
Ledger Models

Customers and their credit transactions. The alert engine only reads these.
"""

from enum import Enum

from sqlalchemy import Column, String, DateTime, Numeric, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from creditbook.database import Base
from creditbook.models.base import generate_id


class TransactionType(str, Enum):
    SALE = "SALE"
    PAYMENT = "PAYMENT"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CREDIT = "CREDIT"
    PARTIAL_PAYMENT = "PARTIAL_PAYMENT"


class TransactionStatus(str, Enum):
    """Settlement status of a transaction."""
    UNPAID = "UNPAID"
    PARTIAL = "PARTIAL"
    OVERDUE = "OVERDUE"
    PAID = "PAID"            # Terminal


TERMINAL_STATUSES = frozenset({TransactionStatus.PAID.value})


class Customer(Base):
    """A credit customer of the business."""
    __tablename__ = "customers"

    id = Column(String, primary_key=True, default=generate_id)
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    balance = Column(Numeric(10, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    transactions = relationship("Transaction", back_populates="customer")


class Transaction(Base):
    """
    A sale on credit or a payment against a customer's balance.

    Sales carry an optional due date; unpaid or partially paid sales with a
    due date are what the alert engine classifies.
    """
    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=generate_id)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=False)

    type = Column(String, nullable=False, default=TransactionType.SALE.value)
    amount = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=True)
    payment_method = Column(String, nullable=False, default=PaymentMethod.CREDIT.value)

    due_date = Column(DateTime, nullable=True)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    remaining_amount = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String, nullable=False, default=TransactionStatus.UNPAID.value)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    customer = relationship("Customer", back_populates="transactions")
