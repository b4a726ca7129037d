"""
Completion client for the OpenAI chat and responses APIs.

CompletionClient is stateless from the caller's point of view: each call takes
the full input it needs (a history, a transcript, or a message plus an opaque
thread reference) and returns the next assistant utterance or a structured
result. Failures surface as UpstreamError (or ExtractionError for structured
results that cannot be parsed) so callers can abandon a turn without crashing.
"""

import logging
from typing import Iterable, Optional, Tuple, Union

import openai
from openai import AsyncOpenAI
from pydantic import ValidationError

from lead_relay.config.constants import (
    DEFAULT_COMPLETION_MODEL,
    DEFAULT_COMPLETION_TIMEOUT,
    DEFAULT_EXTRACTION_MODEL,
    EXTRACTION_SYSTEM_PROMPT,
    LOGGER_NAME,
)
from lead_relay.exceptions import ExtractionError, UpstreamError
from lead_relay.models.openai_schemas import (
    CALL_DETAILS_SCHEMA,
    CallDetails,
    ChatMessage,
    MessageRole,
)

logger = logging.getLogger(LOGGER_NAME)

HistoryEntry = Union[ChatMessage, dict]


class CompletionClient:
    """
    Thin wrapper around AsyncOpenAI for the relay's completion needs.

    The underlying client is created with a bounded timeout and no automatic
    retries; a failed call is reported once and never re-sent.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_COMPLETION_MODEL,
        extraction_model: str = DEFAULT_EXTRACTION_MODEL,
        timeout: float = DEFAULT_COMPLETION_TIMEOUT,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model
        self.extraction_model = extraction_model
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)

    @staticmethod
    def _to_messages(history: Iterable[HistoryEntry]) -> list:
        messages = []
        for entry in history:
            if isinstance(entry, ChatMessage):
                messages.append(entry.to_openai())
            else:
                messages.append({"role": entry["role"], "content": entry["content"]})
        return messages

    async def _create(self, model: str, messages: list, **kwargs) -> str:
        try:
            response = await self.client.chat.completions.create(
                model=model, messages=messages, **kwargs
            )
        except openai.OpenAIError as e:
            raise UpstreamError(f"Completion request failed: {e}") from e

        choices = getattr(response, "choices", None)
        if not choices:
            raise UpstreamError("Completion response contained no choices")
        content = getattr(choices[0].message, "content", None)
        if content is None:
            raise UpstreamError("Completion response contained no message content")
        return content

    async def complete(self, history: Iterable[HistoryEntry]) -> str:
        """
        Turn a conversation history into the next assistant utterance.

        Args:
            history: Ordered role/content entries, replayed verbatim

        Returns:
            The assistant's reply text

        Raises:
            UpstreamError: If the request fails or the reply is malformed
        """
        messages = self._to_messages(history)
        logger.debug(f"Requesting completion for {len(messages)} messages")
        reply = await self._create(self.model, messages)
        return reply.strip()

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Single-shot completion from a system prompt and one user message."""
        return await self.complete([
            {"role": MessageRole.SYSTEM.value, "content": system_prompt},
            {"role": MessageRole.USER.value, "content": user_prompt},
        ])

    async def extract(self, transcript: str) -> CallDetails:
        """
        Extract customer details from a call transcript.

        Raises:
            UpstreamError: If the request itself fails
            ExtractionError: If the structured payload cannot be parsed
        """
        logger.info("Starting transcript extraction")
        content = await self._create(
            self.extraction_model,
            [
                {"role": MessageRole.SYSTEM.value, "content": EXTRACTION_SYSTEM_PROMPT},
                {"role": MessageRole.USER.value, "content": transcript},
            ],
            response_format={"type": "json_schema", "json_schema": CALL_DETAILS_SCHEMA},
        )
        try:
            return CallDetails.model_validate_json(content)
        except ValidationError as e:
            raise ExtractionError(f"Could not parse extraction result: {e}") from e

    async def respond_in_thread(
        self,
        message: str,
        instructions: Optional[str] = None,
        thread_ref: Optional[str] = None,
    ) -> Tuple[str, str]:
        """
        Continue a provider-side stateful conversation.

        Args:
            message: The new user message
            instructions: System instructions for this response
            thread_ref: Opaque reference returned by the previous call, or None
                to start a new thread

        Returns:
            (reply text, reference to pass on the next call)
        """
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=message,
                instructions=instructions,
                previous_response_id=thread_ref,
            )
        except openai.OpenAIError as e:
            raise UpstreamError(f"Thread response failed: {e}") from e

        reply = getattr(response, "output_text", None)
        if not reply:
            raise UpstreamError("Thread response contained no output text")
        return reply.strip(), response.id
