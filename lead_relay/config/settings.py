"""
Environment-driven settings for the relay.

Values come from the process environment (optionally seeded from a local .env
file) and are collected into a validated Settings model. Missing mandatory
credentials raise ConfigurationError so the process refuses to start in a
half-configured state.
"""

import os
from pathlib import Path
from typing import Literal, Optional

import dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from lead_relay.config import constants
from lead_relay.exceptions import ConfigurationError

# Load environment variables from .env file if it exists
env_path = Path(".") / ".env"
if env_path.exists():
    dotenv.load_dotenv(env_path)


class Settings(BaseModel):
    """Runtime configuration for the relay."""

    openai_api_key: str = Field(..., description="OpenAI API key")
    completion_model: str = constants.DEFAULT_COMPLETION_MODEL
    extraction_model: str = constants.DEFAULT_EXTRACTION_MODEL
    realtime_model: str = constants.DEFAULT_REALTIME_MODEL
    completion_timeout: float = Field(constants.DEFAULT_COMPLETION_TIMEOUT, gt=0)

    delivery_mode: Literal["direct", "relay"] = constants.DELIVERY_MODE_DIRECT
    relay_webhook_url: Optional[str] = None
    relay_timeout: float = Field(constants.DEFAULT_RELAY_TIMEOUT, gt=0)

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    dedupe_window: float = Field(constants.DEFAULT_DEDUPE_WINDOW, gt=0)
    min_message_interval: float = Field(constants.DEFAULT_MIN_MESSAGE_INTERVAL, ge=0)
    sweep_interval: float = Field(constants.DEFAULT_SWEEP_INTERVAL, gt=0)

    voice: str = constants.DEFAULT_VOICE
    voice_instructions: str = constants.DEFAULT_VOICE_INSTRUCTIONS
    sms_system_prompt: str = constants.DEFAULT_SMS_SYSTEM_PROMPT
    outreach_system_prompt: str = constants.DEFAULT_OUTREACH_SYSTEM_PROMPT
    call_greeting: str = constants.DEFAULT_CALL_GREETING
    session_update_delay: float = Field(constants.DEFAULT_SESSION_UPDATE_DELAY, ge=0)

    conversation_mode: Literal["history", "thread"] = constants.CONVERSATION_MODE_HISTORY
    max_turns: int = Field(20, ge=0, description="Assistant turns before a conversation ends; 0 disables")

    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("openai_api_key")
    def validate_api_key(cls, v):
        """Reject blank API keys."""
        if not v or not v.strip():
            raise ValueError("OPENAI_API_KEY cannot be empty")
        return v

    @field_validator("relay_webhook_url")
    def validate_relay_url(cls, v):
        """Normalize blank relay URLs to None."""
        if v is not None and not v.strip():
            return None
        return v

    def check_delivery_credentials(self) -> None:
        """Ensure the credentials for the selected delivery mode are present."""
        if self.delivery_mode == constants.DELIVERY_MODE_DIRECT:
            missing = [
                name
                for name, value in (
                    ("TWILIO_ACCOUNT_SID", self.twilio_account_sid),
                    ("TWILIO_AUTH_TOKEN", self.twilio_auth_token),
                    ("TWILIO_PHONE_NUMBER", self.twilio_phone_number),
                )
                if not value
            ]
            if missing:
                raise ConfigurationError(
                    f"Direct delivery mode requires {', '.join(missing)}"
                )
        elif not self.relay_webhook_url:
            raise ConfigurationError("Relay delivery mode requires RELAY_WEBHOOK_URL")

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            ConfigurationError: If a mandatory value is missing or invalid
        """
        env = {
            "openai_api_key": os.getenv("OPENAI_API_KEY"),
            "completion_model": os.getenv("OPENAI_COMPLETION_MODEL"),
            "extraction_model": os.getenv("OPENAI_EXTRACTION_MODEL"),
            "realtime_model": os.getenv("OPENAI_REALTIME_MODEL"),
            "completion_timeout": os.getenv("COMPLETION_TIMEOUT"),
            "delivery_mode": os.getenv("DELIVERY_MODE"),
            "relay_webhook_url": os.getenv("RELAY_WEBHOOK_URL"),
            "relay_timeout": os.getenv("RELAY_TIMEOUT"),
            "twilio_account_sid": os.getenv("TWILIO_ACCOUNT_SID"),
            "twilio_auth_token": os.getenv("TWILIO_AUTH_TOKEN"),
            "twilio_phone_number": os.getenv("TWILIO_PHONE_NUMBER"),
            "dedupe_window": os.getenv("DEDUPE_WINDOW_SECONDS"),
            "min_message_interval": os.getenv("MIN_MESSAGE_INTERVAL_SECONDS"),
            "sweep_interval": os.getenv("DEDUPE_SWEEP_INTERVAL_SECONDS"),
            "voice": os.getenv("REALTIME_VOICE"),
            "voice_instructions": os.getenv("VOICE_INSTRUCTIONS"),
            "sms_system_prompt": os.getenv("SMS_SYSTEM_PROMPT"),
            "outreach_system_prompt": os.getenv("OUTREACH_SYSTEM_PROMPT"),
            "call_greeting": os.getenv("CALL_GREETING"),
            "session_update_delay": os.getenv("SESSION_UPDATE_DELAY"),
            "conversation_mode": os.getenv("CONVERSATION_MODE"),
            "max_turns": os.getenv("MAX_TURNS"),
            "host": os.getenv("HOST"),
            "port": os.getenv("PORT"),
        }
        if not env["openai_api_key"]:
            raise ConfigurationError("Missing OPENAI_API_KEY. Please set it in the .env file.")

        # Unset variables fall back to the model defaults
        values = {key: value for key, value in env.items() if value is not None}
        try:
            settings = cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

        settings.check_delivery_credentials()
        return settings
