"""Aggregate views over loans and users used by the role dashboards."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

from models.enums import LoanStatus, RepaymentStatus, Role
from models.loans import LoanModel
from models.users import UserModel


INVESTED_STATUSES = frozenset({LoanStatus.FUNDED, LoanStatus.REPAYING, LoanStatus.PAID})

LOAN_AMOUNT_BINS = ("< $5k", "$5k - $10k", "$10k - $20k", "> $20k")
CREDIT_SCORE_BINS = ("< 670 (Poor)", "670-739 (Good)", "740-799 (V. Good)", "> 800 (Excellent)")


@dataclass(frozen=True)
class RepaymentProgress:
    """Paid versus scheduled installments for one loan."""

    paid: int
    total: int
    percent: float


@dataclass(frozen=True)
class LenderPortfolio:
    """Headline numbers for a lender's assigned loans."""

    total_invested: float
    active_loans: int
    total_profit: float


@dataclass(frozen=True)
class BorrowerSummary:
    """Headline numbers for a borrower's loans."""

    total_loans: int
    active_loans: int


def loan_status_distribution(loans: Iterable[LoanModel]) -> List[Dict[str, Any]]:
    """Count loans per status, in the order statuses are first seen."""
    counts: Dict[str, int] = {}
    for loan in loans:
        counts[loan.status.value] = counts.get(loan.status.value, 0) + 1
    return [{"name": name, "value": value} for name, value in counts.items()]


def _amount_bin(amount: float) -> int:
    if amount < 5000:
        return 0
    if amount <= 10000:
        return 1
    if amount <= 20000:
        return 2
    return 3


def loan_amount_distribution(loans: Iterable[LoanModel]) -> List[Dict[str, Any]]:
    """Histogram of loan amounts over four fixed buckets."""
    counts = [0] * len(LOAN_AMOUNT_BINS)
    for loan in loans:
        counts[_amount_bin(loan.amount)] += 1
    return [{"name": name, "count": count} for name, count in zip(LOAN_AMOUNT_BINS, counts)]


def _credit_score_bin(score: int) -> int:
    if score < 670:
        return 0
    if score <= 739:
        return 1
    if score <= 799:
        return 2
    return 3


def credit_score_distribution(users: Iterable[UserModel]) -> List[Dict[str, Any]]:
    """Histogram of borrower credit scores; other roles are ignored."""
    counts = [0] * len(CREDIT_SCORE_BINS)
    for user in users:
        if user.role == Role.BORROWER:
            counts[_credit_score_bin(user.credit_score)] += 1
    return [{"name": name, "count": count} for name, count in zip(CREDIT_SCORE_BINS, counts)]


def repayment_progress(loan: LoanModel) -> RepaymentProgress:
    total = len(loan.repayment_schedule)
    paid = sum(1 for item in loan.repayment_schedule if item.status == RepaymentStatus.PAID)
    percent = (paid / total) * 100 if total > 0 else 0.0
    return RepaymentProgress(paid=paid, total=total, percent=percent)


def loan_profit(loan: LoanModel) -> float:
    """Interest earned so far: each Paid installment minus its principal share, floored at zero."""
    principal_per_payment = loan.amount / loan.term
    profit = 0.0
    for item in loan.repayment_schedule:
        if item.status != RepaymentStatus.PAID:
            continue
        profit += max(item.amount - principal_per_payment, 0.0)
    return profit


def lender_portfolio(loans: Iterable[LoanModel], lender_id: str) -> LenderPortfolio:
    lender_loans = [loan for loan in loans if loan.lender_id == lender_id]
    return LenderPortfolio(
        total_invested=sum(loan.amount for loan in lender_loans if loan.status in INVESTED_STATUSES),
        active_loans=sum(1 for loan in lender_loans if loan.status == LoanStatus.REPAYING),
        total_profit=sum(loan_profit(loan) for loan in lender_loans),
    )


def borrower_summary(loans: Iterable[LoanModel], borrower_id: str) -> BorrowerSummary:
    borrower_loans = [loan for loan in loans if loan.borrower_id == borrower_id]
    return BorrowerSummary(
        total_loans=len(borrower_loans),
        active_loans=sum(1 for loan in borrower_loans if loan.status == LoanStatus.REPAYING),
    )


def analyst_statistics(users: Iterable[UserModel], loans: Iterable[LoanModel]) -> Dict[str, Any]:
    """All analyst dashboard series in one payload."""
    loan_list = list(loans)
    return {
        "loan_status_distribution": loan_status_distribution(loan_list),
        "loan_amount_distribution": loan_amount_distribution(loan_list),
        "credit_score_distribution": credit_score_distribution(users),
    }


def to_dict(summary: Any) -> Dict[str, Any]:
    """Serialize one of the summary dataclasses."""
    return asdict(summary)
