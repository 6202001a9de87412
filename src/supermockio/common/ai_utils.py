"""
AI Utilities for SuperMockio

Centralized AI client initialization.
"""

import logging
from typing import Any, Optional, Tuple

import anthropic

from .config import get_ai_api_key

logger = logging.getLogger("supermockio.ai")


def create_anthropic_client(api_key: Optional[str] = None) -> Tuple[Optional[Any], bool, str]:
    """
    Create Anthropic AI client with standardized error handling.

    Args:
        api_key: Optional API key (if not provided, reads AI_API_KEY or
            ANTHROPIC_API_KEY from the environment)

    Returns:
        Tuple of (client, is_available, status_message)
        - client: Anthropic client instance or None
        - is_available: Boolean indicating if AI is available
        - status_message: Status message (success or error description)

    Example:
        client, available, msg = create_anthropic_client()
        if not available:
            raise AIGenerationError(msg)
    """
    # SECURITY: Get API key from environment only (never accept via CLI)
    if api_key is None:
        api_key = get_ai_api_key()

    if not api_key:
        error_msg = "AI not available: AI_API_KEY not set"
        logger.warning(error_msg)
        return None, False, error_msg

    try:
        client = anthropic.Anthropic(api_key=api_key)
        success_msg = "Claude AI enabled"
        logger.debug(success_msg)
        return client, True, success_msg
    except Exception as e:
        error_msg = f"Claude AI initialization failed: {e}"
        logger.error(error_msg)
        return None, False, error_msg
