"""Role dashboard routes: admin, borrower, lender and analyst views.

Each view returns the read model its dashboard renders. Mutating endpoints
return the fresh loan after the store has applied the change.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from api.access import require_roles
from models.enums import LoanStatus, Role
from models.exceptions import InvalidTransitionError, ModelNotFoundError, ModelValidationError
from models.loans import LoanModel
from models.users import UserModel
from services import analytics_service
from services.assistant_service import AnalystAssistantService
from services.loan_lifecycle_store import LoanLifecycleStore
from services.session_service import SessionService


logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateUserRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    role: Role
    credit_score: Optional[int] = Field(default=None, ge=0)


class CreateLoanRequest(BaseModel):
    borrower_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    interest_rate: float = Field(..., ge=0)
    term: int = Field(..., gt=0)


class LoanApplicationRequest(BaseModel):
    """Loan request submitted by the logged-in borrower."""

    amount: float = Field(..., gt=0)
    interest_rate: float = Field(..., ge=0)
    term: int = Field(..., gt=0)


class AssignLenderRequest(BaseModel):
    lender_id: str = Field(..., min_length=1)


class RepaymentRequest(BaseModel):
    amount: float = Field(..., gt=0)


class AssistantQuestionRequest(BaseModel):
    question: str = Field(default="")


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


def build_dashboard_router(
    store: LoanLifecycleStore,
    session: SessionService,
    assistant: AnalystAssistantService,
) -> APIRouter:
    """Build the role dashboard routes over shared store and session instances."""
    router = APIRouter()

    borrower_only = require_roles(session, [Role.BORROWER])
    lender_only = require_roles(session, [Role.LENDER])
    analyst_only = require_roles(session, [Role.ANALYST])

    def _loan_view(loan: LoanModel) -> Dict[str, Any]:
        payload = loan.to_payload()
        payload["borrower_name"] = store.user_name(loan.borrower_id)
        payload["lender_name"] = store.user_name(loan.lender_id)
        payload["progress"] = analytics_service.to_dict(analytics_service.repayment_progress(loan))
        return payload

    def _owned_loan(loan_id: str, owner_field: str, user: UserModel) -> LoanModel:
        loan = store.get_loan(loan_id)
        if loan is None or getattr(loan, owner_field) != user.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found.")
        return loan

    async def _apply_status(loan_id: str, new_status: LoanStatus, lender_id: Optional[str] = None) -> Dict[str, Any]:
        try:
            store.check_status_update(loan_id, new_status, lender_id)
        except ModelNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        except ModelValidationError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
        except InvalidTransitionError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

        try:
            updated = await store.update_loan_status(loan_id, new_status, lender_id)
        except Exception as exc:
            logger.exception("Loan status update failed loan_id=%s status=%s", loan_id, new_status.value)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
        if updated is None:
            # State moved under us while the mutation was suspended.
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Loan status update was not applied.")
        return {"loan": _loan_view(updated)}

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    @router.get("/admin/loans", summary="All loans")
    def admin_list_loans() -> Dict[str, List[Dict[str, Any]]]:
        return {"loans": [_loan_view(loan) for loan in store.loans]}

    @router.get("/admin/users", summary="All users")
    def admin_list_users(role: Optional[Role] = Query(default=None)) -> Dict[str, List[Dict[str, Any]]]:
        users = store.users_by_role(role) if role is not None else store.users
        return {"users": [user.to_public().to_payload() for user in users]}

    @router.post("/admin/users", summary="Create user", status_code=status.HTTP_201_CREATED)
    async def admin_create_user(payload: CreateUserRequest) -> Dict[str, Any]:
        """Create a user and return the one-time credentials."""
        credit_score = (payload.credit_score or 0) if payload.role == Role.BORROWER else 0
        try:
            user = await store.create_user(
                name=payload.name,
                email=payload.email,
                role=payload.role,
                credit_score=credit_score,
            )
        except ModelValidationError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
        return {
            "user": user.to_public().to_payload(),
            "credentials": {"username": user.email, "password": user.password},
        }

    @router.post("/admin/loans", summary="Create loan", status_code=status.HTTP_201_CREATED)
    async def admin_create_loan(payload: CreateLoanRequest) -> Dict[str, Any]:
        borrower = store.get_user(payload.borrower_id)
        if borrower is None or borrower.role != Role.BORROWER:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="borrower_id must reference an existing Borrower.",
            )
        try:
            loan = await store.create_loan(
                amount=payload.amount,
                borrower_id=payload.borrower_id,
                interest_rate=payload.interest_rate,
                term=payload.term,
            )
        except ModelValidationError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
        return {"loan": _loan_view(loan)}

    @router.post("/admin/loans/{loan_id}/approve", summary="Approve loan")
    async def admin_approve_loan(loan_id: str) -> Dict[str, Any]:
        return await _apply_status(loan_id, LoanStatus.APPROVED)

    @router.post("/admin/loans/{loan_id}/reject", summary="Reject loan")
    async def admin_reject_loan(loan_id: str) -> Dict[str, Any]:
        return await _apply_status(loan_id, LoanStatus.REJECTED)

    @router.post("/admin/loans/{loan_id}/assign-lender", summary="Assign lender")
    async def admin_assign_lender(loan_id: str, payload: AssignLenderRequest) -> Dict[str, Any]:
        """Attach a lender to an Approved loan that has none, without changing its status."""
        loan = store.get_loan(loan_id)
        if loan is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found.")
        if loan.status != LoanStatus.APPROVED or loan.lender_id is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="A lender can only be assigned to an Approved loan without one.",
            )
        return await _apply_status(loan_id, loan.status, payload.lender_id)

    # ------------------------------------------------------------------
    # Borrower
    # ------------------------------------------------------------------

    @router.get("/borrower/loans", summary="Borrower dashboard")
    def borrower_dashboard(user: UserModel = Depends(borrower_only)) -> Dict[str, Any]:
        loans = store.loans_for_borrower(user.id)
        return {
            "summary": analytics_service.to_dict(analytics_service.borrower_summary(loans, user.id)),
            "loans": [_loan_view(loan) for loan in loans],
        }

    @router.post("/borrower/loans", summary="Request loan", status_code=status.HTTP_201_CREATED)
    async def borrower_request_loan(
        payload: LoanApplicationRequest,
        user: UserModel = Depends(borrower_only),
    ) -> Dict[str, Any]:
        try:
            loan = await store.create_loan(
                amount=payload.amount,
                borrower_id=user.id,
                interest_rate=payload.interest_rate,
                term=payload.term,
            )
        except ModelValidationError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
        return {"loan": _loan_view(loan)}

    @router.get("/borrower/loans/{loan_id}/next-due", summary="Next due installment")
    def borrower_next_due(loan_id: str, user: UserModel = Depends(borrower_only)) -> Dict[str, Any]:
        loan = _owned_loan(loan_id, "borrower_id", user)
        due = store.next_due_repayment(loan.id)
        return {"repayment": due.to_payload() if due is not None else None}

    @router.post("/borrower/loans/{loan_id}/repayments", summary="Make repayment")
    async def borrower_make_repayment(
        loan_id: str,
        payload: RepaymentRequest,
        user: UserModel = Depends(borrower_only),
    ) -> Dict[str, Any]:
        """Pay the next installment; ``applied`` is false when nothing changed."""
        loan = _owned_loan(loan_id, "borrower_id", user)
        paid_before = analytics_service.repayment_progress(loan).paid
        try:
            updated = await store.add_repayment(loan_id, payload.amount)
        except Exception as exc:
            logger.exception("Repayment failed loan_id=%s", loan_id)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
        if updated is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Loan not found.")
        applied = analytics_service.repayment_progress(updated).paid > paid_before
        return {"loan": _loan_view(updated), "applied": applied}

    # ------------------------------------------------------------------
    # Lender
    # ------------------------------------------------------------------

    @router.get("/lender/loans", summary="Lender dashboard")
    def lender_dashboard(user: UserModel = Depends(lender_only)) -> Dict[str, Any]:
        loans = store.loans_for_lender(user.id)
        return {
            "portfolio": analytics_service.to_dict(analytics_service.lender_portfolio(loans, user.id)),
            "loans": [_loan_view(loan) for loan in loans],
        }

    @router.post("/lender/loans/{loan_id}/fund", summary="Fund loan")
    async def lender_fund_loan(loan_id: str, user: UserModel = Depends(lender_only)) -> Dict[str, Any]:
        """Fund an Approved loan assigned to the logged-in lender."""
        _owned_loan(loan_id, "lender_id", user)
        return await _apply_status(loan_id, LoanStatus.FUNDED, user.id)

    # ------------------------------------------------------------------
    # Analyst
    # ------------------------------------------------------------------

    @router.get("/analyst/statistics", summary="Analyst dashboard")
    def analyst_statistics(user: UserModel = Depends(analyst_only)) -> Dict[str, Any]:
        return analytics_service.analyst_statistics(store.users, store.loans)

    @router.get("/analyst/assistant", summary="Assistant transcript")
    def analyst_assistant_transcript(user: UserModel = Depends(analyst_only)) -> Dict[str, Any]:
        return {
            "enabled": assistant.enabled,
            "loading": assistant.loading,
            "messages": [{"sender": item.sender, "text": item.text} for item in assistant.messages],
        }

    @router.post("/analyst/assistant", summary="Ask assistant")
    async def analyst_ask_assistant(
        payload: AssistantQuestionRequest,
        user: UserModel = Depends(analyst_only),
    ) -> Dict[str, Any]:
        reply = await assistant.ask(payload.question)
        return reply.to_dict()

    @router.delete("/analyst/assistant", summary="Clear assistant transcript")
    def analyst_clear_assistant(user: UserModel = Depends(analyst_only)) -> Dict[str, Any]:
        assistant.clear()
        return {"messages": []}

    return router
