"""Service layer exports."""

from .assistant_service import AnalystAssistantService, AssistantReply, ChatMessage, GeminiTextClient
from .loan_lifecycle_store import LoanLifecycleStore, StoreEvent
from .session_service import SessionService

__all__ = [
    "AnalystAssistantService",
    "AssistantReply",
    "ChatMessage",
    "GeminiTextClient",
    "LoanLifecycleStore",
    "StoreEvent",
    "SessionService",
]
