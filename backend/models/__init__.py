"""Public model package exports for the LoanHub backend."""

from .base import IsoDate, Money, RecordModel
from .enums import LoanStatus, RepaymentStatus, Role, StoreEventType
from .exceptions import (
    AssistantError,
    InvalidTransitionError,
    ModelError,
    ModelNotFoundError,
    ModelValidationError,
)
from .loans import LoanModel
from .repayments import RepaymentModel, repayment_id
from .users import PublicUserModel, UserModel

__all__ = [
    "RecordModel",
    "Money",
    "IsoDate",
    "UserModel",
    "PublicUserModel",
    "LoanModel",
    "RepaymentModel",
    "repayment_id",
    "Role",
    "LoanStatus",
    "RepaymentStatus",
    "StoreEventType",
    "ModelError",
    "ModelValidationError",
    "ModelNotFoundError",
    "InvalidTransitionError",
    "AssistantError",
]
