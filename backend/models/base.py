"""Shared base model and common type aliases."""

import logging
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ConfigDict

from .exceptions import ModelValidationError


logger = logging.getLogger(__name__)

Money = float
IsoDate = str

RecordT = TypeVar("RecordT", bound="RecordModel")


class RecordModel(BaseModel):
    """Base schema for records held by the in-memory lifecycle store."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        use_enum_values=False,
    )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize model into a JSON-ready dictionary.

        Returns:
            Dict[str, Any]: Serialized model payload.

        Raises:
            ModelValidationError: If serialization fails.
        """
        try:
            return self.model_dump(mode="json")
        except Exception as exc:
            logger.exception("Failed to serialize %s", self.__class__.__name__)
            raise ModelValidationError(str(exc))

    @classmethod
    def from_payload(cls: Type[RecordT], data: Dict[str, Any]) -> RecordT:
        """Create model instance from a stored or seeded payload.

        Args:
            data: Raw payload, for example a row of the seed catalog.

        Returns:
            RecordModel: Typed domain instance.

        Raises:
            ModelValidationError: If payload parsing fails.
        """
        try:
            return cls.model_validate(dict(data))
        except Exception as exc:
            logger.exception("Failed to parse payload for %s", cls.__name__)
            raise ModelValidationError(str(exc))
