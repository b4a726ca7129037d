"""
Turn orchestration for SMS conversations, lead outreach and finished calls.

ConversationOrchestrator is the one place where an inbound event becomes an
outbound reply. It binds the conversation store, the completion client, the
outbound notifier and the dashboard broadcaster together, whatever the delivery
mode (direct or relay) and conversation mode (local history or provider-side
thread) of the deployment.

A turn holds the sender's processing flag from the moment it starts until the
reply has been delivered, across both network calls. A second event for the same
sender that arrives meanwhile is dropped rather than answered from the same
stale history.
"""

import logging
from typing import Any, Dict, Optional

from lead_relay.config.constants import (
    BROADCAST_NEW_CONVERSATION,
    BROADCAST_NEW_MESSAGE,
    CONVERSATION_MODE_HISTORY,
    CONVERSATION_MODE_THREAD,
    DEFAULT_OUTREACH_SYSTEM_PROMPT,
    DEFAULT_SMS_SYSTEM_PROMPT,
    LOGGER_NAME,
    OPT_OUT_KEYWORDS,
    OUTREACH_REQUEST_TEMPLATE,
    RELAY_EVENT_CALL_SUMMARY,
    RELAY_EVENT_OUTREACH,
)
from lead_relay.exceptions import DeliveryError, ExtractionError, UpstreamError
from lead_relay.models.conversation import (
    ConversationEvent,
    ConversationPhase,
    ConversationState,
    ConversationStore,
)
from lead_relay.models.message_schemas import LeadResult
from lead_relay.models.openai_schemas import CallDetails, ChatMessage, MessageRole
from lead_relay.services.broadcast import Broadcaster
from lead_relay.services.completion import CompletionClient
from lead_relay.services.notifier import OutboundNotifier

logger = logging.getLogger(LOGGER_NAME)


def is_opt_out(body: str) -> bool:
    return body.strip().upper() in OPT_OUT_KEYWORDS


class ConversationOrchestrator:
    """Runs conversation turns against the store, completion client and notifier."""

    def __init__(
        self,
        store: ConversationStore,
        completion: CompletionClient,
        notifier: OutboundNotifier,
        broadcaster: Optional[Broadcaster] = None,
        system_prompt: str = DEFAULT_SMS_SYSTEM_PROMPT,
        outreach_prompt: str = DEFAULT_OUTREACH_SYSTEM_PROMPT,
        conversation_mode: str = CONVERSATION_MODE_HISTORY,
        max_turns: int = 0,
    ):
        self.store = store
        self.completion = completion
        self.notifier = notifier
        self.broadcaster = broadcaster
        self.system_prompt = system_prompt
        self.outreach_prompt = outreach_prompt
        self.conversation_mode = conversation_mode
        self.max_turns = max_turns

    async def _broadcast(self, message: Dict[str, Any]) -> None:
        if self.broadcaster is not None:
            await self.broadcaster.broadcast(message)

    async def _broadcast_message(
        self,
        state: ConversationState,
        message: ChatMessage,
        message_sid: Optional[str] = None,
    ) -> None:
        payload = {
            "sender": message.role.value,
            "content": message.content,
            "created_at": message.created_at.isoformat(),
        }
        if message_sid:
            payload["MessageSid"] = message_sid
        await self._broadcast({
            "type": BROADCAST_NEW_MESSAGE,
            "conversation_id": state.conversation_id,
            "message": payload,
        })

    def _prepare(self, sender_id: str, name: Optional[str] = None) -> ConversationState:
        """Load the sender's conversation, resetting a finished one and seeding the prompt."""
        state = self.store.get_or_create(sender_id, name=name)
        if state.phase == ConversationPhase.TERMINAL:
            logger.info(f"Conversation with {sender_id} had ended, starting over")
            state = self.store.reset(sender_id)
        if not state.history:
            self.store.append_turn(sender_id, MessageRole.SYSTEM, self.system_prompt)
        return state

    async def _next_reply(self, state: ConversationState, body: str) -> str:
        if self.conversation_mode == CONVERSATION_MODE_THREAD:
            reply, thread_ref = await self.completion.respond_in_thread(
                body, instructions=self.system_prompt, thread_ref=state.thread_ref
            )
            self.store.set_thread_ref(state.sender_id, thread_ref)
            return reply
        return await self.completion.complete(self.store.history(state.sender_id))

    async def _record_reply(self, sender_id: str, reply: str) -> ConversationState:
        message = self.store.append_turn(sender_id, MessageRole.ASSISTANT, reply)
        state = self.store.apply_event(sender_id, ConversationEvent.REPLY_SENT)
        if self.max_turns and state.step >= self.max_turns:
            logger.info(f"Conversation with {sender_id} reached {state.step} turns, ending")
            state = self.store.apply_event(sender_id, ConversationEvent.FINISHED)
        await self._broadcast_message(state, message)
        return state

    async def run_turn(self, sender_id: str, body: str, message_sid: Optional[str] = None) -> bool:
        """
        Handle one inbound message end to end.

        Errors are contained here: the inbound webhook has already been
        acknowledged, so a failed turn is logged and abandoned.

        Returns:
            True if a reply was delivered
        """
        if not self.store.try_set_processing(sender_id):
            logger.info(f"Turn already in progress for {sender_id}, dropping message")
            return False

        try:
            return await self._process_turn(sender_id, body, message_sid)
        except UpstreamError as e:
            logger.error(f"Completion failed for {sender_id}, abandoning turn: {e}")
        except DeliveryError as e:
            logger.error(f"Reply delivery failed for {sender_id} (status {e.status}): {e}")
        except Exception as e:
            logger.error(f"Unexpected error handling turn for {sender_id}: {e}", exc_info=True)
        finally:
            self.store.clear_processing(sender_id)
        return False

    async def _process_turn(self, sender_id: str, body: str, message_sid: Optional[str]) -> bool:
        state = self._prepare(sender_id)

        user_message = self.store.append_turn(sender_id, MessageRole.USER, body)
        if is_opt_out(body):
            state = self.store.apply_event(sender_id, ConversationEvent.FINISHED)
            logger.info(f"{sender_id} opted out, conversation ended")
            await self._broadcast_message(state, user_message, message_sid)
            return False

        state = self.store.apply_event(sender_id, ConversationEvent.INBOUND)
        await self._broadcast_message(state, user_message, message_sid)

        reply = await self._next_reply(state, body)
        await self.notifier.send_reply(
            sender_id,
            reply,
            context={"userMessage": body, "userName": state.name or ""},
        )
        await self._record_reply(sender_id, reply)
        logger.info(f"Replied to {sender_id}")
        return True

    async def send_outreach(self, phone_number: str, name: str = "") -> LeadResult:
        """
        Start a conversation with a lead by sending a generated first message.

        Raises:
            UpstreamError: If the outreach message could not be generated
            DeliveryError: If the message could not be sent
        """
        if not self.store.try_set_processing(phone_number):
            logger.info(f"Turn in progress for {phone_number}, skipping outreach")
            return LeadResult(
                phoneNumber=phone_number, name=name, success=False, reason="Conversation busy"
            )

        try:
            self._prepare(phone_number, name=name or None)
            message = await self.completion.generate(
                self.outreach_prompt, OUTREACH_REQUEST_TEMPLATE.format(name=name)
            )
            await self.notifier.send_reply(
                phone_number,
                message,
                context={"event": RELAY_EVENT_OUTREACH, "userName": name},
            )
            await self._record_reply(phone_number, message)
        finally:
            self.store.clear_processing(phone_number)

        logger.info(f"Outreach sent to {phone_number}")
        return LeadResult(phoneNumber=phone_number, name=name, message=message, success=True)

    async def complete_call(
        self, session_id: str, transcript: str, caller: Optional[str] = None
    ) -> Optional[CallDetails]:
        """
        Extract customer details from a finished call and hand them on.

        The call is recorded as its own conversation holding the transcript and
        the extracted details. Extraction failures only drop the extraction.
        """
        logger.info(f"Starting transcript processing for session {session_id}")
        try:
            details = await self.completion.extract(transcript)
        except ExtractionError as e:
            logger.error(f"Error parsing extraction result for session {session_id}: {e}")
            return None
        except UpstreamError as e:
            logger.error(f"Extraction request failed for session {session_id}: {e}")
            return None

        key = f"call_{session_id}"
        self.store.get_or_create(key, name=details.customer_name or None)
        self.store.append_turn(key, MessageRole.SYSTEM, transcript)
        self.store.append_turn(key, MessageRole.SYSTEM, details.model_dump_json(by_alias=True))
        state = self.store.get(key)

        await self._broadcast({"type": BROADCAST_NEW_CONVERSATION, "conversation": state.detail()})
        await self.notifier.publish(
            RELAY_EVENT_CALL_SUMMARY,
            {
                "sessionId": session_id,
                "caller": caller,
                "transcript": transcript,
                **details.model_dump(by_alias=True),
            },
        )
        logger.info(f"Extracted and stored customer details for session {session_id}")
        return details
