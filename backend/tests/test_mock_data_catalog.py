"""Unit tests for the seed data catalog loader."""

import json
from pathlib import Path
import sys
import tempfile
import unittest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = PROJECT_ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from common.mock_data_catalog import MockDataCatalog
from models.enums import LoanStatus, Role


class MockDataCatalogTests(unittest.TestCase):
    """Validate catalog loading and row filtering."""

    def setUp(self) -> None:
        """Build catalog from repository seed file."""
        self.catalog = MockDataCatalog(path=str(BACKEND_ROOT / "settings" / "mock_data.json"))

    def test_catalog_loads_every_role(self) -> None:
        roles = {user.role for user in self.catalog.users()}
        self.assertEqual(roles, {Role.ADMIN, Role.BORROWER, Role.LENDER, Role.ANALYST})

    def test_catalog_loans_are_consistent(self) -> None:
        loans = {loan.id: loan for loan in self.catalog.loans()}
        self.assertEqual(len(loans), 6)
        self.assertEqual(loans["loan-1"].status, LoanStatus.REPAYING)
        self.assertEqual(len(loans["loan-1"].repayment_schedule), loans["loan-1"].term)
        self.assertTrue(loans["loan-4"].is_fully_repaid)

    def test_catalog_returns_copies(self) -> None:
        first = self.catalog.users()[0]
        first.name = "Changed"
        self.assertNotEqual(self.catalog.users()[0].name, "Changed")

    def test_invalid_rows_are_skipped(self) -> None:
        data = {
            "users": [
                {"id": "b1", "name": "B", "email": "b@x", "role": "Borrower", "credit_score": 700},
                {"id": "b1", "name": "Dup", "email": "d@x", "role": "Borrower"},
                {"id": "a1", "name": "A", "email": "a@x", "role": "Admin"},
                {"id": "bad", "name": "", "email": "x", "role": "Nobody"},
            ],
            "loans": [
                {"id": "l1", "amount": 100, "borrower_id": "b1", "request_date": "2024-01-01",
                 "interest_rate": 1, "term": 2, "status": "Pending"},
                {"id": "l2", "amount": 100, "borrower_id": "ghost", "request_date": "2024-01-01",
                 "interest_rate": 1, "term": 2},
                {"id": "l3", "amount": 100, "borrower_id": "b1", "lender_id": "a1",
                 "request_date": "2024-01-01", "interest_rate": 1, "term": 2},
                {"id": "l4", "amount": -1, "borrower_id": "b1", "request_date": "2024-01-01",
                 "interest_rate": 1, "term": 2},
            ],
        }
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "seed.json"
            path.write_text(json.dumps(data), encoding="utf-8")
            catalog = MockDataCatalog(path=str(path))
        self.assertEqual([user.id for user in catalog.users()], ["b1", "a1"])
        self.assertEqual([loan.id for loan in catalog.loans()], ["l1"])

    def test_missing_file_yields_empty_catalog(self) -> None:
        catalog = MockDataCatalog(path=str(BACKEND_ROOT / "settings" / "does_not_exist.json"))
        self.assertEqual(catalog.users(), [])
        self.assertEqual(catalog.loans(), [])


if __name__ == "__main__":
    unittest.main()
