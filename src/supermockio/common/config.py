"""
SuperMockio Configuration

Environment-driven settings for AI generation and mock dispatch.

Flags that change request-time behaviour (strict mode, AI enablement) are
exposed as functions that read the environment on every call, so a running
server picks up a changed value without a restart.
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_AI_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_AI_RATE_LIMIT_TOKENS = 15
DEFAULT_AI_TIMEOUT_SECONDS = 30.0

_TRUE_VALUES = {'1', 'true', 'yes', 'on'}


def env_flag(name: str, default: bool = False) -> bool:
    """
    Read a boolean flag from the environment.

    Args:
        name: Environment variable name
        default: Value used when the variable is unset or empty

    Returns:
        True for 1/true/yes/on (case-insensitive), False otherwise
    """
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in _TRUE_VALUES


def env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    """Read an integer from the environment, falling back on bad values."""
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def ai_generation_enabled() -> bool:
    """Whether AI_GENERATION_ENABLED is set (read on every call)."""
    return env_flag('AI_GENERATION_ENABLED')


def strict_mode_enabled() -> bool:
    """Whether MOCKER_STRICT_MODE is set (read on every call)."""
    return env_flag('MOCKER_STRICT_MODE')


def get_ai_api_key() -> Optional[str]:
    """
    Retrieve the AI provider key from the environment.

    AI_API_KEY wins; ANTHROPIC_API_KEY is accepted as the provider's own
    variable name. Keys are never accepted on the command line.
    """
    return os.environ.get('AI_API_KEY') or os.environ.get('ANTHROPIC_API_KEY')


@dataclass
class MockerSettings:
    """Snapshot of the AI and generation settings."""

    ai_generation_enabled: bool = False
    ai_service_name: Optional[str] = None
    ai_api_key: Optional[str] = None
    ai_model_name: str = DEFAULT_AI_MODEL
    ai_rate_limit_tokens: int = DEFAULT_AI_RATE_LIMIT_TOKENS
    ai_timeout_seconds: float = DEFAULT_AI_TIMEOUT_SECONDS
    strict_mode: bool = False
    random_seed: Optional[int] = None

    @classmethod
    def from_env(cls) -> 'MockerSettings':
        """Build settings from the process environment."""
        rate_limit = env_int('AI_RATE_LIMIT_TOKENS', DEFAULT_AI_RATE_LIMIT_TOKENS)
        if rate_limit is None or rate_limit <= 0:
            rate_limit = DEFAULT_AI_RATE_LIMIT_TOKENS

        return cls(
            ai_generation_enabled=ai_generation_enabled(),
            ai_service_name=os.environ.get('AI_SERVICE_NAME') or None,
            ai_api_key=get_ai_api_key(),
            ai_model_name=os.environ.get('AI_MODEL_NAME') or DEFAULT_AI_MODEL,
            ai_rate_limit_tokens=rate_limit,
            ai_timeout_seconds=env_float('AI_TIMEOUT_SECONDS', DEFAULT_AI_TIMEOUT_SECONDS),
            strict_mode=strict_mode_enabled(),
            random_seed=env_int('MOCKER_RANDOM_SEED')
        )

    def to_dict(self) -> dict:
        """Public view of the settings (the API key is never exposed)."""
        return {
            'ai_generation_enabled': self.ai_generation_enabled,
            'ai_service_name': self.ai_service_name,
            'ai_model_name': self.ai_model_name,
            'ai_rate_limit_tokens': self.ai_rate_limit_tokens,
            'ai_timeout_seconds': self.ai_timeout_seconds,
            'ai_api_key_set': bool(self.ai_api_key),
            'strict_mode': self.strict_mode,
            'random_seed': self.random_seed
        }
