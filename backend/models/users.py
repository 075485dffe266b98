"""User domain models for login identities and borrower profiles."""

import logging

from pydantic import Field, field_validator

from .base import RecordModel
from .enums import Role


logger = logging.getLogger(__name__)


class PublicUserModel(RecordModel):
    """User record as exposed by read endpoints, without credentials."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    role: Role = Field(...)
    credit_score: int = Field(default=0, ge=0)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        """Emails are login handles and compared exactly, so only trim them."""
        return value.strip()


class UserModel(PublicUserModel):
    """Full user record held by the store, including the plaintext password."""

    password: str = Field(default="")

    def to_public(self) -> PublicUserModel:
        """Return the credential-free view of this user."""
        return PublicUserModel.model_validate(self.model_dump(exclude={"password"}))
