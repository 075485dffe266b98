"""Unit tests for the in-memory loan lifecycle store."""

import asyncio
from datetime import date
from pathlib import Path
import sys
import unittest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = PROJECT_ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from common.common_functions import add_months
from common.mock_data_catalog import MockDataCatalog
from models.enums import LoanStatus, RepaymentStatus, Role, StoreEventType
from models.exceptions import InvalidTransitionError, ModelNotFoundError, ModelValidationError
from services.analytics_service import loan_profit
from services.loan_lifecycle_store import UNKNOWN_USER_NAME, LoanLifecycleStore


TODAY = date(2024, 1, 15)


class LoanLifecycleStoreTests(unittest.IsolatedAsyncioTestCase):
    """Validate store mutations, lifecycle rules and read helpers."""

    async def asyncSetUp(self) -> None:
        """Seed a store from the repository catalog with a fixed clock."""
        self.store = LoanLifecycleStore(latency_sec=0.0, clock=lambda: TODAY)
        self.events = []
        self.store.subscribe(self.events.append)
        await self.store.load_initial_data(
            MockDataCatalog(path=str(BACKEND_ROOT / "settings" / "mock_data.json"))
        )
        self.borrower = await self.store.create_user("Test Borrower", "tb@loanhub.test", Role.BORROWER, 700)
        self.lender = await self.store.create_user("Test Lender", "tl@loanhub.test", Role.LENDER)

    async def _funded_loan(self, amount: float = 1200, interest_rate: float = 10, term: int = 12):
        loan = await self.store.create_loan(amount, self.borrower.id, interest_rate, term)
        await self.store.update_loan_status(loan.id, LoanStatus.APPROVED)
        return await self.store.update_loan_status(loan.id, LoanStatus.FUNDED, self.lender.id)

    async def test_seed_data_is_loaded(self) -> None:
        self.assertEqual(self.events[0].type, StoreEventType.DATA_LOADED)
        self.assertIsNotNone(self.store.get_loan("loan-1"))
        self.assertEqual(self.store.user_name("user-2"), "Bob Borrower")

    async def test_ids_are_unique(self) -> None:
        users = [await self.store.create_user("U{0}".format(i), "u{0}@x".format(i), Role.ANALYST) for i in range(20)]
        loans = [await self.store.create_loan(100, self.borrower.id, 1, 1) for _ in range(20)]
        self.assertEqual(len({user.id for user in self.store.users}), len(self.store.users))
        self.assertEqual(len({loan.id for loan in self.store.loans}), len(self.store.loans))
        self.assertEqual(len({user.id for user in users}), 20)
        self.assertEqual(len({loan.id for loan in loans}), 20)

    async def test_create_loan_is_pending_and_dated_today(self) -> None:
        loan = await self.store.create_loan(1500, self.borrower.id, 7.5, 6)
        self.assertEqual(loan.status, LoanStatus.PENDING)
        self.assertEqual(loan.request_date, "2024-01-15")
        self.assertIsNone(loan.lender_id)
        self.assertEqual(loan.repayment_schedule, [])
        self.assertEqual(self.events[-1].type, StoreEventType.LOAN_CREATED)
        self.assertEqual(self.events[-1].record_id, loan.id)

    async def test_create_loan_rejects_invalid_amount(self) -> None:
        with self.assertRaises(ModelValidationError):
            await self.store.create_loan(0, self.borrower.id, 5, 6)
        self.assertFalse(self.store.loading)

    async def test_funding_generates_complete_schedule(self) -> None:
        loan = await self._funded_loan()
        self.assertEqual(loan.status, LoanStatus.REPAYING)
        self.assertEqual(loan.lender_id, self.lender.id)
        self.assertEqual(len(loan.repayment_schedule), 12)
        self.assertTrue(all(item.amount == 110.0 for item in loan.repayment_schedule))
        self.assertTrue(all(item.status == RepaymentStatus.DUE for item in loan.repayment_schedule))
        self.assertEqual(loan.repayment_schedule[0].date, "2024-02-15")
        self.assertEqual(loan.repayment_schedule[-1].date, "2025-01-15")
        self.assertEqual(loan.repayment_schedule[3].id, "repay-{0}-3".format(loan.id))
        due_dates = [date.fromisoformat(item.date) for item in loan.repayment_schedule]
        self.assertEqual(due_dates[0], add_months(TODAY, 1))
        for earlier, later in zip(due_dates, due_dates[1:]):
            self.assertEqual(later, add_months(earlier, 1))

    async def test_funding_requires_approval_and_lender(self) -> None:
        loan = await self.store.create_loan(1000, self.borrower.id, 5, 3)
        self.assertIsNone(await self.store.update_loan_status(loan.id, LoanStatus.FUNDED, self.lender.id))
        await self.store.update_loan_status(loan.id, LoanStatus.APPROVED)
        self.assertIsNone(await self.store.update_loan_status(loan.id, LoanStatus.FUNDED))
        self.assertEqual(self.store.get_loan(loan.id).status, LoanStatus.APPROVED)

    async def test_status_never_moves_backwards(self) -> None:
        loan = await self._funded_loan(term=2)
        for target in (LoanStatus.PENDING, LoanStatus.APPROVED, LoanStatus.REJECTED, LoanStatus.FUNDED):
            self.assertIsNone(await self.store.update_loan_status(loan.id, target))
        self.assertEqual(self.store.get_loan(loan.id).status, LoanStatus.REPAYING)
        with self.assertRaises(InvalidTransitionError):
            self.store.check_status_update(loan.id, LoanStatus.PENDING)

    async def test_rejected_loan_is_terminal(self) -> None:
        loan = await self.store.create_loan(1000, self.borrower.id, 5, 3)
        rejected = await self.store.update_loan_status(loan.id, LoanStatus.REJECTED)
        self.assertEqual(rejected.status, LoanStatus.REJECTED)
        self.assertIsNone(await self.store.update_loan_status(loan.id, LoanStatus.APPROVED))

    async def test_unknown_loan_is_a_no_op(self) -> None:
        before = self.store.loans
        self.assertIsNone(await self.store.update_loan_status("missing", LoanStatus.APPROVED))
        self.assertIsNone(await self.store.add_repayment("missing", 100))
        self.assertEqual(self.store.loans, before)
        with self.assertRaises(ModelNotFoundError):
            self.store.check_status_update("missing", LoanStatus.APPROVED)

    async def test_lender_must_have_lender_role(self) -> None:
        loan = await self.store.create_loan(1000, self.borrower.id, 5, 3)
        with self.assertRaises(ModelValidationError):
            self.store.check_status_update(loan.id, loan.status, self.borrower.id)
        self.assertIsNone(await self.store.update_loan_status(loan.id, loan.status, self.borrower.id))

    async def test_lender_cannot_change_after_funding(self) -> None:
        other = await self.store.create_user("Other Lender", "ol@loanhub.test", Role.LENDER)
        for loan_id, loan_status in (("loan-1", LoanStatus.REPAYING), ("loan-4", LoanStatus.PAID)):
            with self.assertRaises(InvalidTransitionError):
                self.store.check_status_update(loan_id, loan_status, other.id)
            self.assertIsNone(await self.store.update_loan_status(loan_id, loan_status, other.id))
            self.assertEqual(self.store.get_loan(loan_id).lender_id, "user-5")

    async def test_lender_cannot_be_attached_to_rejected_loan(self) -> None:
        self.assertIsNone(await self.store.update_loan_status("loan-5", LoanStatus.REJECTED, self.lender.id))
        self.assertIsNone(self.store.get_loan("loan-5").lender_id)

    async def test_lender_assignment_keeps_status_and_schedule(self) -> None:
        loan = await self.store.create_loan(1000, self.borrower.id, 5, 3)
        await self.store.update_loan_status(loan.id, LoanStatus.APPROVED)
        assigned = await self.store.update_loan_status(loan.id, LoanStatus.APPROVED, self.lender.id)
        self.assertEqual(assigned.status, LoanStatus.APPROVED)
        self.assertEqual(assigned.lender_id, self.lender.id)
        self.assertEqual(assigned.repayment_schedule, [])
        funded = await self.store.update_loan_status(loan.id, LoanStatus.FUNDED)
        self.assertEqual(funded.status, LoanStatus.REPAYING)
        self.assertEqual(funded.lender_id, self.lender.id)

    async def test_repayment_settles_first_due_installment(self) -> None:
        loan = await self._funded_loan()
        updated = await self.store.add_repayment(loan.id, 110.0)
        first = updated.repayment_schedule[0]
        self.assertEqual(first.status, RepaymentStatus.PAID)
        self.assertEqual(first.date, "2024-01-15")
        self.assertEqual(updated.repayment_schedule[1].status, RepaymentStatus.DUE)
        self.assertEqual(updated.status, LoanStatus.REPAYING)
        self.assertEqual(self.store.next_due_repayment(loan.id).id, updated.repayment_schedule[1].id)

    async def test_overpayment_settles_only_one_installment(self) -> None:
        loan = await self._funded_loan()
        updated = await self.store.add_repayment(loan.id, 10000)
        paid = [item for item in updated.repayment_schedule if item.status == RepaymentStatus.PAID]
        self.assertEqual(len(paid), 1)

    async def test_underpayment_is_a_no_op(self) -> None:
        loan = await self._funded_loan()
        events_before = len(self.events)
        updated = await self.store.add_repayment(loan.id, 109.99)
        self.assertEqual(updated, loan)
        self.assertEqual(self.store.get_loan(loan.id), loan)
        self.assertEqual(len(self.events), events_before)

    async def test_all_paid_closes_loan(self) -> None:
        loan = await self._funded_loan(amount=500, interest_rate=0, term=1)
        updated = await self.store.add_repayment(loan.id, 500)
        self.assertEqual(updated.status, LoanStatus.PAID)
        again = await self.store.add_repayment(loan.id, 500)
        self.assertEqual(again, updated)

    async def test_repayment_before_funding_changes_nothing(self) -> None:
        loan = await self.store.create_loan(1000, self.borrower.id, 5, 3)
        updated = await self.store.add_repayment(loan.id, 1000)
        self.assertEqual(updated.status, LoanStatus.PENDING)

    async def test_paid_installments_stay_paid(self) -> None:
        loan = await self._funded_loan(term=3)
        for _ in range(3):
            previous = self.store.get_loan(loan.id)
            current = await self.store.add_repayment(loan.id, 1000)
            for before, after in zip(previous.repayment_schedule, current.repayment_schedule):
                if before.status == RepaymentStatus.PAID:
                    self.assertEqual(after.status, RepaymentStatus.PAID)
        self.assertEqual(self.store.get_loan(loan.id).status, LoanStatus.PAID)

    async def test_zero_rate_loan_earns_no_profit(self) -> None:
        loan = await self._funded_loan(amount=1200, interest_rate=0, term=12)
        updated = await self.store.add_repayment(loan.id, 100)
        self.assertEqual(loan_profit(updated), 0.0)

    async def test_credentials_visible_only_on_creation(self) -> None:
        user = await self.store.create_user("New Analyst", "na@loanhub.test", Role.ANALYST)
        self.assertEqual(len(user.password), 8)
        stored = self.store.find_user_by_credentials("na@loanhub.test", user.password)
        self.assertEqual(stored.id, user.id)
        self.assertEqual(self.store.get_user(user.id).password, user.password)
        snapshot_users = self.store.snapshot()["users"]
        self.assertTrue(all("password" not in item for item in snapshot_users))

    async def test_read_helpers(self) -> None:
        self.assertEqual(self.store.user_name("nobody"), UNKNOWN_USER_NAME)
        self.assertEqual(self.store.user_name(None), UNKNOWN_USER_NAME)
        self.assertTrue(all(user.role == Role.LENDER for user in self.store.users_by_role(Role.LENDER)))
        self.assertTrue(all(loan.borrower_id == "user-2" for loan in self.store.loans_for_borrower("user-2")))
        self.assertTrue(all(loan.lender_id == "user-5" for loan in self.store.loans_for_lender("user-5")))
        self.assertIsNone(self.store.next_due_repayment("loan-2"))

    async def test_returned_records_are_copies(self) -> None:
        loan = self.store.get_loan("loan-2")
        loan.amount = 1
        self.assertEqual(self.store.get_loan("loan-2").amount, 12000)

    async def test_unsubscribe_stops_events(self) -> None:
        received = []
        unsubscribe = self.store.subscribe(received.append)
        await self.store.create_loan(100, self.borrower.id, 1, 1)
        unsubscribe()
        await self.store.create_loan(100, self.borrower.id, 1, 1)
        self.assertEqual(len(received), 1)

    async def test_failing_listener_does_not_undo_mutation(self) -> None:
        def _boom(event):
            raise RuntimeError("listener failed")

        self.store.subscribe(_boom)
        with self.assertLogs("services.loan_lifecycle_store", level="ERROR"):
            loan = await self.store.create_loan(100, self.borrower.id, 1, 1)
        self.assertIsNotNone(self.store.get_loan(loan.id))


class LoanLifecycleStoreConcurrencyTests(unittest.IsolatedAsyncioTestCase):
    """Validate the busy flag and ordering of overlapping mutations."""

    async def test_loading_flag_is_set_while_mutating(self) -> None:
        store = LoanLifecycleStore(latency_sec=0.01, clock=lambda: TODAY)
        borrower = await store.create_user("B", "b@x", Role.BORROWER)
        task = asyncio.ensure_future(store.create_loan(100, borrower.id, 1, 1))
        await asyncio.sleep(0)
        self.assertTrue(store.loading)
        await task
        self.assertFalse(store.loading)

    async def test_loading_flag_covers_overlapping_mutations(self) -> None:
        store = LoanLifecycleStore(latency_sec=0.05, clock=lambda: TODAY)
        borrower = await store.create_user("B", "b@x", Role.BORROWER)
        first = asyncio.ensure_future(store.create_loan(100, borrower.id, 1, 1))
        await asyncio.sleep(0.02)
        second = asyncio.ensure_future(store.create_loan(200, borrower.id, 1, 1))
        await first
        self.assertTrue(store.loading)
        await second
        self.assertFalse(store.loading)

    async def test_overlapping_mutations_apply_in_call_order(self) -> None:
        store = LoanLifecycleStore(latency_sec=0.01, clock=lambda: TODAY)
        borrower = await store.create_user("B", "b@x", Role.BORROWER)
        lender = await store.create_user("L", "l@x", Role.LENDER)
        loan = await store.create_loan(300, borrower.id, 0, 3)

        approved, funded = await asyncio.gather(
            store.update_loan_status(loan.id, LoanStatus.APPROVED),
            store.update_loan_status(loan.id, LoanStatus.FUNDED, lender.id),
        )
        self.assertEqual(approved.status, LoanStatus.APPROVED)
        self.assertEqual(funded.status, LoanStatus.REPAYING)

        first, second = await asyncio.gather(
            store.add_repayment(loan.id, 100),
            store.add_repayment(loan.id, 100),
        )
        self.assertEqual([item.status for item in first.repayment_schedule],
                         [RepaymentStatus.PAID, RepaymentStatus.DUE, RepaymentStatus.DUE])
        self.assertEqual([item.status for item in second.repayment_schedule],
                         [RepaymentStatus.PAID, RepaymentStatus.PAID, RepaymentStatus.DUE])
        self.assertEqual(store.get_loan(loan.id), second)

    async def test_serialized_mutations_apply_in_arrival_order(self) -> None:
        store = LoanLifecycleStore(latency_sec=0.01, serialize_mutations=True, clock=lambda: TODAY)
        borrower = await store.create_user("B", "b@x", Role.BORROWER)
        lender = await store.create_user("L", "l@x", Role.LENDER)
        loan = await store.create_loan(300, borrower.id, 0, 3)
        await store.update_loan_status(loan.id, LoanStatus.APPROVED)
        await store.update_loan_status(loan.id, LoanStatus.FUNDED, lender.id)

        results = await asyncio.gather(*(store.add_repayment(loan.id, 100) for _ in range(3)))
        self.assertEqual(results[-1].status, LoanStatus.PAID)
        self.assertEqual(store.get_loan(loan.id).status, LoanStatus.PAID)


if __name__ == "__main__":
    unittest.main()
