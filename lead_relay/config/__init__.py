"""
Configuration module for the lead relay application.

This module provides centralized configuration management for the entire application,
including constants, logging setup, and environment-based settings.

Key components:
- constants: Application-wide constants such as event names, default models,
  default prompts and admission windows.
- logging_config: Console and rotating-file logging for the application logger.
- settings: The Settings model, loaded from environment variables (and an
  optional .env file) and validated at startup.

Usage examples:
```python
from lead_relay.config.constants import LOGGER_NAME
from lead_relay.config.logging_config import configure_logging
from lead_relay.config.settings import Settings

logger = configure_logging()
settings = Settings.from_env()  # raises ConfigurationError when incomplete
logger.info(f"Delivery mode: {settings.delivery_mode}")
```
"""

# Config module initialization
