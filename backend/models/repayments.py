"""Repayment model for loan installment schedules."""

import logging
from typing import List

from pydantic import Field

from .base import IsoDate, Money, RecordModel
from .enums import RepaymentStatus
from .exceptions import ModelValidationError


logger = logging.getLogger(__name__)


def repayment_id(loan_id: str, index: int) -> str:
    """Build the installment id for position ``index`` of a loan's schedule."""
    return "repay-{0}-{1}".format(loan_id, index)


class RepaymentModel(RecordModel):
    """One scheduled installment of a loan."""

    id: str = Field(..., min_length=1)
    amount: Money = Field(..., gt=0)
    date: IsoDate = Field(..., description="Due date, replaced by the payment date once paid.")
    status: RepaymentStatus = Field(default=RepaymentStatus.DUE)

    @property
    def is_paid(self) -> bool:
        return self.status == RepaymentStatus.PAID

    @classmethod
    def validate_schedule(cls, repayments: List["RepaymentModel"], expected_count: int) -> None:
        """Validate the size and chronological order of a schedule.

        Args:
            repayments: Installments of one loan in schedule order.
            expected_count: Loan term in months.

        Raises:
            ModelValidationError: If the schedule size or due-date order is wrong.
        """
        if len(repayments) != expected_count:
            raise ModelValidationError(
                "Repayment schedule has {0} installments, expected {1}".format(
                    len(repayments), expected_count
                )
            )
        due_dates = [item.date for item in repayments if not item.is_paid]
        if due_dates != sorted(due_dates):
            raise ModelValidationError("Due installments must be in chronological order")
