"""Seed data catalog loaded from `settings/mock_data.json` at start-up."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional

from models.enums import Role
from models.exceptions import ModelValidationError
from models.loans import LoanModel
from models.users import UserModel


logger = logging.getLogger(__name__)

_DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "settings" / "mock_data.json"


class MockDataCatalog:
    """Loader for the mock users and loans the store starts with."""

    def __init__(self, path: Optional[str] = None) -> None:
        """Initialize catalog with optional custom JSON path."""
        self._path = Path(path).resolve() if path else _DEFAULT_CATALOG_PATH
        self._lock = RLock()
        self._users: List[UserModel] = []
        self._loans: List[LoanModel] = []
        self._load()

    @property
    def path(self) -> str:
        """Return catalog JSON path."""
        return str(self._path)

    def _read_raw(self) -> Dict[str, Any]:
        """Read the catalog file into a dictionary with `users` and `loans` arrays."""
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("Mock data file must contain a JSON object.")
        for key in ("users", "loans"):
            if not isinstance(raw.get(key, []), list):
                raise ValueError("Mock data key '{0}' must be a JSON array.".format(key))
        return raw

    def _parse_users(self, rows: List[Any]) -> List[UserModel]:
        """Validate user rows, skipping malformed rows and duplicate ids."""
        users: Dict[str, UserModel] = {}
        for row in rows:
            try:
                user = UserModel.from_payload(row)
            except ModelValidationError:
                logger.warning("Invalid mock user row skipped row=%s", row)
                continue
            if user.id in users:
                logger.warning("Duplicate mock user id found and skipped user_id=%s", user.id)
                continue
            users[user.id] = user
        return list(users.values())

    def _parse_loans(self, rows: List[Any], users: List[UserModel]) -> List[LoanModel]:
        """Validate loan rows and their user references."""
        roles = {user.id: user.role for user in users}
        loans: Dict[str, LoanModel] = {}
        for row in rows:
            try:
                loan = LoanModel.from_payload(row)
            except ModelValidationError:
                logger.warning("Invalid mock loan row skipped row=%s", row)
                continue
            if loan.id in loans:
                logger.warning("Duplicate mock loan id found and skipped loan_id=%s", loan.id)
                continue
            if loan.borrower_id not in roles:
                logger.warning(
                    "Mock loan skipped for unknown borrower loan_id=%s borrower_id=%s",
                    loan.id,
                    loan.borrower_id,
                )
                continue
            if loan.lender_id is not None and roles.get(loan.lender_id) != Role.LENDER:
                logger.warning(
                    "Mock loan skipped for invalid lender loan_id=%s lender_id=%s",
                    loan.id,
                    loan.lender_id,
                )
                continue
            loans[loan.id] = loan
        return list(loans.values())

    def _load(self) -> None:
        """Load and validate seed rows from file."""
        with self._lock:
            if not self._path.exists():
                logger.warning("Mock data file not found at path=%s", self._path)
                self._users, self._loans = [], []
                return
            try:
                raw = self._read_raw()
                self._users = self._parse_users(raw.get("users", []))
                self._loans = self._parse_loans(raw.get("loans", []), self._users)
                logger.info(
                    "Loaded mock data users=%d loans=%d from path=%s",
                    len(self._users),
                    len(self._loans),
                    self._path,
                )
            except Exception:
                logger.exception("Failed loading mock data from path=%s", self._path)
                self._users, self._loans = [], []

    def users(self) -> List[UserModel]:
        """Return fresh copies of the seed users."""
        with self._lock:
            return [user.model_copy(deep=True) for user in self._users]

    def loans(self) -> List[LoanModel]:
        """Return fresh copies of the seed loans."""
        with self._lock:
            return [loan.model_copy(deep=True) for loan in self._loans]
