"""Loan domain model and its lifecycle invariants."""

import logging
from typing import List, Optional

from pydantic import Field, model_validator

from .base import IsoDate, Money, RecordModel
from .enums import LoanStatus, RepaymentStatus
from .exceptions import ModelValidationError
from .repayments import RepaymentModel


logger = logging.getLogger(__name__)

SCHEDULED_STATUSES = frozenset({LoanStatus.REPAYING, LoanStatus.PAID})
UNSCHEDULED_STATUSES = frozenset({LoanStatus.PENDING, LoanStatus.APPROVED, LoanStatus.REJECTED})


class LoanModel(RecordModel):
    """Represents a borrowing agreement between a borrower and an optional lender."""

    id: str = Field(..., min_length=1)
    amount: Money = Field(..., gt=0)
    borrower_id: str = Field(..., min_length=1)
    lender_id: Optional[str] = Field(default=None)
    status: LoanStatus = Field(default=LoanStatus.PENDING)
    request_date: IsoDate = Field(...)
    repayment_schedule: List[RepaymentModel] = Field(default_factory=list)
    interest_rate: float = Field(..., ge=0, description="Percentage, e.g. 7.5")
    term: int = Field(..., gt=0, description="Number of monthly installments")

    @model_validator(mode="after")
    def _validate_schedule_rules(self) -> "LoanModel":
        """Keep the schedule consistent with the lifecycle state."""
        if self.status == LoanStatus.FUNDED:
            raise ValueError("Funded is a transition request and is never stored; use Repaying")
        if self.status in UNSCHEDULED_STATUSES and self.repayment_schedule:
            raise ValueError("Repayment schedule must be empty before funding")
        if self.status in SCHEDULED_STATUSES:
            try:
                RepaymentModel.validate_schedule(self.repayment_schedule, self.term)
            except ModelValidationError as exc:
                raise ValueError(str(exc))
            if self.status == LoanStatus.PAID and not self.is_fully_repaid:
                raise ValueError("A Paid loan cannot have Due installments")
        return self

    @property
    def is_fully_repaid(self) -> bool:
        """True when the schedule is non-empty and every installment is Paid."""
        return bool(self.repayment_schedule) and all(
            item.status == RepaymentStatus.PAID for item in self.repayment_schedule
        )

    def first_due_repayment(self) -> Optional[RepaymentModel]:
        """Return the earliest unpaid installment in schedule order."""
        for item in self.repayment_schedule:
            if item.status == RepaymentStatus.DUE:
                return item
        return None
