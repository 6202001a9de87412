"""
SuperMockio Common Utilities

Shared configuration, AI client and parsing helpers used across SuperMockio modules.
"""

from .config import (
    MockerSettings,
    env_flag,
    ai_generation_enabled,
    strict_mode_enabled,
    get_ai_api_key
)
from .utils import strip_code_fences, parse_openapi_document, load_openapi_file
from .ai_utils import create_anthropic_client
from .ai_service import AIService, AnthropicService, TokenBucketRateLimiter, get_ai_service

__all__ = [
    'MockerSettings',
    'env_flag',
    'ai_generation_enabled',
    'strict_mode_enabled',
    'get_ai_api_key',
    'strip_code_fences',
    'parse_openapi_document',
    'load_openapi_file',
    'create_anthropic_client',
    'AIService',
    'AnthropicService',
    'TokenBucketRateLimiter',
    'get_ai_service'
]
