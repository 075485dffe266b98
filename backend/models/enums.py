"""Reusable enums for loan-management domain models."""

from enum import Enum


class StringEnum(str, Enum):
    """Base enum class with string behavior for JSON serialization."""


class Role(StringEnum):
    """Mutually exclusive user roles, fixed at creation."""

    ADMIN = "Admin"
    BORROWER = "Borrower"
    LENDER = "Lender"
    ANALYST = "Analyst"


class LoanStatus(StringEnum):
    """Loan lifecycle states.

    ``FUNDED`` is only ever requested; the store records a funded loan as
    ``REPAYING``.
    """

    PENDING = "Pending"
    APPROVED = "Approved"
    FUNDED = "Funded"
    REPAYING = "Repaying"
    PAID = "Paid"
    REJECTED = "Rejected"


class RepaymentStatus(StringEnum):
    """Installment payment states."""

    DUE = "Due"
    PAID = "Paid"


class StoreEventType(StringEnum):
    """Notifications emitted by the lifecycle store after a mutation."""

    DATA_LOADED = "data_loaded"
    USER_CREATED = "user_created"
    LOAN_CREATED = "loan_created"
    LOAN_STATUS_UPDATED = "loan_status_updated"
    REPAYMENT_APPLIED = "repayment_applied"
