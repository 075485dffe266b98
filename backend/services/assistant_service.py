"""Analyst AI assistant backed by a third-party text-generation REST API.

The assistant keeps only a chat transcript. Every question is answered from a
fresh snapshot of the store, and provider failures are turned into chat
messages instead of being raised to callers.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
import json
import logging
from typing import Any, Dict, List, Optional
from urllib import error, parse, request

from core.config import AppSettings
from models.exceptions import AssistantError
from services.loan_lifecycle_store import LoanLifecycleStore


logger = logging.getLogger(__name__)

MISSING_API_KEY_MESSAGE = "API_KEY is not configured. Please set the API_KEY environment variable."

PROMPT_TEMPLATE = """
You are an expert financial data analyst for a loan management company.
Analyze the provided JSON data to answer the user's question.
The data contains two arrays: 'users' and 'loans'.
Provide clear, concise answers. Format your response in simple markdown.

Here is the data:
Users: {users}
Loans: {loans}

Question: "{question}"
"""


@dataclass(frozen=True)
class ChatMessage:
    """One chat bubble; ``sender`` is ``"user"`` or ``"ai"``."""

    sender: str
    text: str


@dataclass
class AssistantReply:
    """Transcript after a question plus the transient banner error, if any."""

    messages: List[ChatMessage] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"messages": [asdict(item) for item in self.messages], "error": self.error}


class GeminiTextClient:
    """Minimal client for the Gemini ``generateContent`` endpoint."""

    def __init__(self, api_key: str, model: str, base_url: str, timeout_sec: int = 30) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout_sec = timeout_sec

    def _endpoint(self) -> str:
        return "{0}/models/{1}:generateContent?{2}".format(
            self._base_url,
            parse.quote(self._model),
            parse.urlencode({"key": self._api_key}),
        )

    @staticmethod
    def _extract_text(payload: Dict[str, Any]) -> str:
        """Join the text parts of the first candidate."""
        candidates = payload.get("candidates") or []
        if not candidates:
            raise AssistantError("Text generation returned no candidates.")
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(str(part.get("text", "")) for part in parts)
        if not text:
            raise AssistantError("Text generation returned an empty answer.")
        return text

    def generate(self, prompt: str) -> str:
        """Send one prompt and return the generated text.

        Raises:
            AssistantError: On HTTP, network or response-shape failures.
        """
        body = json.dumps({"contents": [{"parts": [{"text": prompt}]}]}).encode("utf-8")
        req = request.Request(
            url=self._endpoint(),
            data=body,
            method="POST",
            headers={
                "User-Agent": "LoanHubBackend/1.0 (+https://localhost)",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )
        try:
            with request.urlopen(req, timeout=self._timeout_sec) as response:
                payload = json.loads(response.read().decode("utf-8"))
        except error.HTTPError as exc:
            if exc.code in {401, 403}:
                raise AssistantError("Text generation API unauthorized. Check the API key.")
            if exc.code == 429:
                raise AssistantError("Text generation API rate limit exceeded. Retry later.")
            raise AssistantError("Text generation API request failed with status={0}".format(exc.code))
        except error.URLError as exc:
            raise AssistantError("Text generation API network/DNS error: {0}".format(exc.reason))
        except ValueError as exc:
            raise AssistantError("Text generation API returned invalid JSON: {0}".format(exc))
        return self._extract_text(payload)


class AnalystAssistantService:
    """Chat assistant that answers questions about the current users and loans."""

    def __init__(self, store: LoanLifecycleStore, client: Optional[Any] = None) -> None:
        """Create the assistant; with no client it stays disabled."""
        self._store = store
        self._client = client
        self._messages: List[ChatMessage] = []
        self._loading = False

    @classmethod
    def from_settings(cls, settings: AppSettings, store: LoanLifecycleStore) -> "AnalystAssistantService":
        """Build the assistant, enabling it only when an API key is configured."""
        client = None
        if settings.assistant_enabled and settings.assistant_api_key:
            client = GeminiTextClient(
                api_key=settings.assistant_api_key,
                model=settings.assistant_model,
                base_url=settings.assistant_base_url,
                timeout_sec=settings.assistant_timeout_sec,
            )
        else:
            logger.info("Analyst assistant disabled: no API key configured.")
        return cls(store=store, client=client)

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def build_prompt(self, question: str) -> str:
        snapshot = self._store.snapshot()
        return PROMPT_TEMPLATE.format(
            users=json.dumps(snapshot["users"], indent=2),
            loans=json.dumps(snapshot["loans"], indent=2),
            question=question,
        )

    def clear(self) -> None:
        self._messages = []

    async def ask(self, question: str) -> AssistantReply:
        """Ask one question and return the updated transcript.

        Blank questions, and questions sent while an answer is pending, are
        ignored.
        """
        if not question.strip() or self._loading:
            return AssistantReply(messages=self.messages)
        if self._client is None:
            return AssistantReply(messages=self.messages, error=MISSING_API_KEY_MESSAGE)

        self._messages.append(ChatMessage(sender="user", text=question))
        self._loading = True
        banner: Optional[str] = None
        try:
            prompt = self.build_prompt(question)
            answer = await asyncio.to_thread(self._client.generate, prompt)
            self._messages.append(ChatMessage(sender="ai", text=answer))
        except Exception as exc:
            logger.exception("Analyst assistant request failed.")
            message = str(exc) or "An unknown error occurred."
            banner = "Failed to get response from AI: {0}".format(message)
            self._messages.append(
                ChatMessage(sender="ai", text="Sorry, I encountered an error. {0}".format(message))
            )
        finally:
            self._loading = False
        return AssistantReply(messages=self.messages, error=banner)
