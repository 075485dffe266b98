"""Custom exceptions for model, store and service layers."""


class ModelError(Exception):
    """Base class for model-related failures."""


class ModelValidationError(ModelError):
    """Raised when model data fails custom business validation."""


class ModelNotFoundError(ModelError):
    """Raised when a requested user or loan does not exist."""


class InvalidTransitionError(ModelError):
    """Raised when a loan status change would move the lifecycle backwards."""


class AssistantError(Exception):
    """Raised when the text-generation provider call fails."""
