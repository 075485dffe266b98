"""In-memory loan lifecycle store: the single source of truth for users and loans.

Every mutation is an ``async`` unit of work that suspends once to simulate a
network round-trip and then applies its whole effect without yielding, so no
caller ever observes a half-applied change. Unknown ids and disallowed status
changes are logged and turned into no-ops that return ``None``.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass
from datetime import date
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

from pydantic import ValidationError

from common.common_functions import (
    add_months,
    generate_password,
    installment_amount,
    new_id,
    to_iso_date,
)
from common.mock_data_catalog import MockDataCatalog
from core.config import AppSettings
from models.enums import LoanStatus, RepaymentStatus, Role, StoreEventType
from models.exceptions import (
    InvalidTransitionError,
    ModelError,
    ModelNotFoundError,
    ModelValidationError,
)
from models.loans import LoanModel
from models.repayments import RepaymentModel, repayment_id
from models.users import UserModel


logger = logging.getLogger(__name__)

UNKNOWN_USER_NAME = "N/A"

# Forward-only lifecycle. Repaying -> Paid happens only through add_repayment.
ALLOWED_TRANSITIONS: Dict[LoanStatus, frozenset] = {
    LoanStatus.PENDING: frozenset({LoanStatus.APPROVED, LoanStatus.REJECTED}),
    LoanStatus.APPROVED: frozenset({LoanStatus.FUNDED}),
}

# Lenders are attached before funding only.
LENDER_ASSIGNABLE_STATUSES = frozenset({LoanStatus.PENDING, LoanStatus.APPROVED})


@dataclass(frozen=True)
class StoreEvent:
    """Notification delivered to subscribers after a mutation is applied."""

    type: StoreEventType
    record_id: Optional[str] = None


StoreListener = Callable[[StoreEvent], None]


class LoanLifecycleStore:
    """Owns the user and loan collections and every change made to them."""

    def __init__(
        self,
        latency_sec: float = 0.0,
        serialize_mutations: bool = False,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        """Create an empty store.

        Args:
            latency_sec: Simulated latency applied to each mutation.
            serialize_mutations: Process overlapping mutations strictly in
                arrival order instead of relying on the advisory busy flag.
            clock: Source of "today"; injectable for tests.
        """
        self._users: Dict[str, UserModel] = {}
        self._loans: Dict[str, LoanModel] = {}
        self._active_mutations = 0
        self._listeners: List[StoreListener] = []
        self._latency_sec = max(float(latency_sec), 0.0)
        self._mutation_lock: Optional[asyncio.Lock] = asyncio.Lock() if serialize_mutations else None
        self._clock = clock or date.today

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "LoanLifecycleStore":
        """Build a store configured from application settings."""
        return cls(
            latency_sec=settings.store_latency_sec,
            serialize_mutations=settings.store_serialize_mutations,
        )

    @property
    def loading(self) -> bool:
        """Advisory busy flag, set while a mutation is in flight."""
        return self._active_mutations > 0

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener and return a function that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event_type: StoreEventType, record_id: Optional[str] = None) -> None:
        """Deliver an event to every listener; listener failures never undo a mutation."""
        event = StoreEvent(type=event_type, record_id=record_id)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Store listener failed event=%s record_id=%s", event_type.value, record_id)

    # ------------------------------------------------------------------
    # Mutation plumbing
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _mutation(self) -> AsyncIterator[None]:
        """Mark the store busy, wait the simulated latency, then run the body.

        The busy flag stays set until the last overlapping mutation finishes.
        """
        guard: Any = self._mutation_lock if self._mutation_lock is not None else nullcontext()
        self._active_mutations += 1
        try:
            async with guard:
                await asyncio.sleep(self._latency_sec)
                yield
        finally:
            self._active_mutations -= 1

    def _today(self) -> date:
        return self._clock()

    @staticmethod
    def _replace_loan(loan: LoanModel, updates: Dict[str, Any]) -> LoanModel:
        """Build a validated copy of ``loan`` with ``updates`` applied."""
        payload = loan.model_dump()
        payload.update(updates)
        try:
            return LoanModel.model_validate(payload)
        except ValidationError as exc:
            raise ModelValidationError(str(exc))

    def _build_schedule(self, loan: LoanModel) -> List[RepaymentModel]:
        """Generate ``term`` equal monthly installments starting one month from today."""
        amount = installment_amount(loan.amount, loan.interest_rate, loan.term)
        today = self._today()
        return [
            RepaymentModel(
                id=repayment_id(loan.id, index),
                amount=amount,
                date=to_iso_date(add_months(today, index + 1)),
                status=RepaymentStatus.DUE,
            )
            for index in range(loan.term)
        ]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def load_initial_data(self, catalog: MockDataCatalog) -> None:
        """Replace both collections with the catalog's seed users and loans."""
        async with self._mutation():
            self._users = {user.id: user for user in catalog.users()}
            self._loans = {loan.id: loan for loan in catalog.loans()}
        logger.info("Store seeded users=%d loans=%d", len(self._users), len(self._loans))
        self._notify(StoreEventType.DATA_LOADED)

    async def create_user(
        self,
        name: str,
        email: str,
        role: Role,
        credit_score: int = 0,
    ) -> UserModel:
        """Create a user with a generated id and password.

        The returned record is the only place the caller is expected to read
        the generated password from.

        Raises:
            ModelValidationError: If the supplied fields do not form a valid user.
        """
        async with self._mutation():
            try:
                user = UserModel(
                    id=new_id("user"),
                    name=name,
                    email=email,
                    role=role,
                    credit_score=credit_score,
                    password=generate_password(),
                )
            except ValidationError as exc:
                raise ModelValidationError(str(exc))
            self._users[user.id] = user
        logger.info("User created user_id=%s role=%s", user.id, user.role.value)
        self._notify(StoreEventType.USER_CREATED, user.id)
        return user.model_copy(deep=True)

    async def create_loan(
        self,
        amount: float,
        borrower_id: str,
        interest_rate: float,
        term: int,
    ) -> LoanModel:
        """Record a new Pending loan request dated today.

        Raises:
            ModelValidationError: If the supplied fields do not form a valid loan.
        """
        async with self._mutation():
            try:
                loan = LoanModel(
                    id=new_id("loan"),
                    amount=amount,
                    borrower_id=borrower_id,
                    status=LoanStatus.PENDING,
                    request_date=to_iso_date(self._today()),
                    repayment_schedule=[],
                    interest_rate=interest_rate,
                    term=term,
                )
            except ValidationError as exc:
                raise ModelValidationError(str(exc))
            self._loans[loan.id] = loan
        logger.info("Loan created loan_id=%s borrower_id=%s amount=%s", loan.id, borrower_id, amount)
        self._notify(StoreEventType.LOAN_CREATED, loan.id)
        return loan.model_copy(deep=True)

    def check_status_update(
        self,
        loan_id: str,
        new_status: LoanStatus,
        lender_id: Optional[str] = None,
    ) -> LoanModel:
        """Validate a status update against the current state without applying it.

        Returns:
            LoanModel: The loan as currently stored.

        Raises:
            ModelNotFoundError: If the loan does not exist.
            ModelValidationError: If ``lender_id`` is not an existing Lender.
            InvalidTransitionError: If the change would break the lifecycle.
        """
        loan = self._loans.get(loan_id)
        if loan is None:
            raise ModelNotFoundError("Loan not found: {0}".format(loan_id))

        if lender_id:
            lender = self._users.get(lender_id)
            if lender is None or lender.role != Role.LENDER:
                raise ModelValidationError("lender_id must reference an existing Lender: {0}".format(lender_id))
            if lender_id != loan.lender_id and loan.status not in LENDER_ASSIGNABLE_STATUSES:
                raise InvalidTransitionError(
                    "Cannot change the lender of loan {0} in status {1}".format(loan_id, loan.status.value)
                )

        if new_status == loan.status:
            return loan

        if new_status not in ALLOWED_TRANSITIONS.get(loan.status, frozenset()):
            raise InvalidTransitionError(
                "Cannot move loan {0} from {1} to {2}".format(loan_id, loan.status.value, new_status.value)
            )
        if new_status == LoanStatus.FUNDED and not (lender_id or loan.lender_id):
            raise InvalidTransitionError("Loan {0} needs a lender before it can be funded".format(loan_id))
        return loan

    async def update_loan_status(
        self,
        loan_id: str,
        new_status: LoanStatus,
        lender_id: Optional[str] = None,
    ) -> Optional[LoanModel]:
        """Change a loan's status and/or attach a lender.

        Requesting ``Funded`` stores ``Repaying`` and generates the repayment
        schedule. Passing the loan's current status with a ``lender_id`` only
        assigns the lender.

        Returns:
            Optional[LoanModel]: The updated loan, or ``None`` when nothing was applied.
        """
        async with self._mutation():
            try:
                loan = self.check_status_update(loan_id, new_status, lender_id)
                updates: Dict[str, Any] = {"status": new_status}
                if lender_id:
                    updates["lender_id"] = lender_id
                if new_status == LoanStatus.FUNDED:
                    updates["status"] = LoanStatus.REPAYING
                    updates["repayment_schedule"] = self._build_schedule(loan)
                updated = self._replace_loan(loan, updates)
            except ModelError as exc:
                logger.warning("Loan status update skipped loan_id=%s reason=%s", loan_id, exc)
                return None
            self._loans[loan_id] = updated
        logger.info(
            "Loan status updated loan_id=%s status=%s lender_id=%s",
            loan_id,
            updated.status.value,
            updated.lender_id,
        )
        self._notify(StoreEventType.LOAN_STATUS_UPDATED, loan_id)
        return updated.model_copy(deep=True)

    async def add_repayment(self, loan_id: str, amount: float) -> Optional[LoanModel]:
        """Settle the first Due installment when ``amount`` covers it.

        At most one installment is settled per call and any excess is not
        credited. The loan becomes Paid once its whole schedule is Paid.

        Returns:
            Optional[LoanModel]: The loan after the call (unchanged when the
            payment was insufficient or nothing was due), or ``None`` for an
            unknown loan.
        """
        async with self._mutation():
            loan = self._loans.get(loan_id)
            if loan is None:
                logger.warning("Repayment skipped for unknown loan_id=%s", loan_id)
                return None

            due = loan.first_due_repayment()
            if due is None or amount < due.amount:
                logger.info(
                    "Repayment not applied loan_id=%s amount=%s due=%s",
                    loan_id,
                    amount,
                    due.amount if due is not None else None,
                )
                return loan.model_copy(deep=True)

            paid_on = to_iso_date(self._today())
            schedule = [
                item.model_copy(update={"status": RepaymentStatus.PAID, "date": paid_on})
                if item.id == due.id
                else item.model_copy()
                for item in loan.repayment_schedule
            ]
            updates: Dict[str, Any] = {"repayment_schedule": schedule}
            if all(item.status == RepaymentStatus.PAID for item in schedule):
                updates["status"] = LoanStatus.PAID
            try:
                updated = self._replace_loan(loan, updates)
            except ModelError as exc:
                logger.warning("Repayment skipped loan_id=%s reason=%s", loan_id, exc)
                return None
            self._loans[loan_id] = updated
        logger.info(
            "Repayment applied loan_id=%s repayment_id=%s status=%s",
            loan_id,
            due.id,
            updated.status.value,
        )
        self._notify(StoreEventType.REPAYMENT_APPLIED, loan_id)
        return updated.model_copy(deep=True)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def users(self) -> List[UserModel]:
        """All users in insertion order."""
        return [user.model_copy(deep=True) for user in self._users.values()]

    @property
    def loans(self) -> List[LoanModel]:
        """All loans in insertion order."""
        return [loan.model_copy(deep=True) for loan in self._loans.values()]

    def get_user(self, user_id: Optional[str]) -> Optional[UserModel]:
        user = self._users.get(user_id or "")
        return user.model_copy(deep=True) if user is not None else None

    def get_loan(self, loan_id: Optional[str]) -> Optional[LoanModel]:
        loan = self._loans.get(loan_id or "")
        return loan.model_copy(deep=True) if loan is not None else None

    def find_user_by_credentials(self, email: str, password: str) -> Optional[UserModel]:
        """Return the first user whose email and password both match exactly."""
        for user in self._users.values():
            if user.email == email and user.password == password:
                return user.model_copy(deep=True)
        return None

    def users_by_role(self, role: Role) -> List[UserModel]:
        return [user.model_copy(deep=True) for user in self._users.values() if user.role == role]

    def loans_for_borrower(self, borrower_id: str) -> List[LoanModel]:
        return [loan.model_copy(deep=True) for loan in self._loans.values() if loan.borrower_id == borrower_id]

    def loans_for_lender(self, lender_id: str) -> List[LoanModel]:
        return [loan.model_copy(deep=True) for loan in self._loans.values() if loan.lender_id == lender_id]

    def user_name(self, user_id: Optional[str]) -> str:
        """Display name for a user id, or ``"N/A"`` when it is unknown."""
        user = self._users.get(user_id or "")
        return user.name if user is not None else UNKNOWN_USER_NAME

    def next_due_repayment(self, loan_id: str) -> Optional[RepaymentModel]:
        """The installment a repayment would settle next, if any."""
        loan = self._loans.get(loan_id)
        if loan is None:
            return None
        due = loan.first_due_repayment()
        return due.model_copy() if due is not None else None

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """JSON-ready copy of both collections, without user credentials."""
        return {
            "users": [user.to_public().to_payload() for user in self._users.values()],
            "loans": [loan.to_payload() for loan in self._loans.values()],
        }
