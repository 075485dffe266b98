"""Session holder: who is logged in, and which user the switcher has selected."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

from models.exceptions import ModelValidationError
from models.users import UserModel
from repositories.key_value_storage import KeyValueStorage
from services.loan_lifecycle_store import LoanLifecycleStore


logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


class SessionService:
    """Tracks the authenticated user and the selected user for one client.

    The authenticated user record is kept as a JSON blob in durable storage so
    that it survives restarts; the selected user lives in session storage.
    """

    def __init__(
        self,
        store: LoanLifecycleStore,
        durable_storage: KeyValueStorage,
        session_storage: KeyValueStorage,
        current_user_key: str = "currentUser",
        selected_user_key: str = "selectedUser",
        latency_sec: float = 0.0,
    ) -> None:
        self._store = store
        self._durable_storage = durable_storage
        self._session_storage = session_storage
        self._current_user_key = current_user_key
        self._selected_user_key = selected_user_key
        self._latency_sec = max(float(latency_sec), 0.0)

    @staticmethod
    def _decode_user(raw: Optional[str], key: str) -> Optional[UserModel]:
        """Parse a stored user blob, treating corrupt data as absent."""
        if not raw:
            return None
        try:
            return UserModel.from_payload(json.loads(raw))
        except (ValueError, TypeError, ModelValidationError):
            logger.exception("Failed to parse stored user key=%s", key)
            return None

    @staticmethod
    def _encode_user(user: UserModel) -> str:
        return json.dumps(user.to_payload())

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    @property
    def current_user(self) -> Optional[UserModel]:
        """The logged-in user, restored from durable storage."""
        raw = self._durable_storage.get_item(self._current_user_key)
        return self._decode_user(raw, self._current_user_key)

    async def login(self, email: str, password: str) -> Optional[UserModel]:
        """Match credentials against the store's users.

        Returns:
            Optional[UserModel]: The authenticated user, or ``None`` for any
            mismatch. Wrong email and wrong password are indistinguishable.
        """
        await asyncio.sleep(self._latency_sec)
        user = self._store.find_user_by_credentials(email, password)
        if user is None:
            logger.info("Login rejected")
            return None
        self._durable_storage.set_item(self._current_user_key, self._encode_user(user))
        logger.info("Login succeeded user_id=%s role=%s", user.id, user.role.value)
        return user

    def logout(self) -> None:
        """Forget the logged-in user."""
        self._durable_storage.remove_item(self._current_user_key)
        logger.info("Logged out")

    # ------------------------------------------------------------------
    # User switcher
    # ------------------------------------------------------------------

    @property
    def selected_user(self) -> Optional[UserModel]:
        """The selected user, defaulting to the first available user."""
        stored = self._decode_user(
            self._session_storage.get_item(self._selected_user_key),
            self._selected_user_key,
        )
        if stored is not None:
            return stored
        users = self._store.users
        return users[0] if users else None

    def select_user(self, user: Optional[UserModel]) -> None:
        """Persist a selection, or clear it with ``None``."""
        if user is None:
            self._session_storage.remove_item(self._selected_user_key)
            return
        self._session_storage.set_item(self._selected_user_key, self._encode_user(user))
