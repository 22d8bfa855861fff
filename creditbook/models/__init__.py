"""
Consolidated models package.

IMPORTANT: Explicit imports only - no wildcards to prevent circular imports.
"""

from creditbook.models.base import generate_id

from creditbook.models.ledger import (
    TransactionType,
    PaymentMethod,
    TransactionStatus,
    TERMINAL_STATUSES,
    Customer,
    Transaction,
)

from creditbook.models.notification import NotificationRule


__all__ = [
    # Utilities
    "generate_id",
    # Ledger
    "TransactionType",
    "PaymentMethod",
    "TransactionStatus",
    "TERMINAL_STATUSES",
    "Customer",
    "Transaction",
    # Notification
    "NotificationRule",
]
