"""
SuperMockio AI Service

Generative-AI collaborator used for example and path-parameter generation.

Features:
- `AIService` capability interface: `await ask(prompt) -> text`
- Anthropic (Claude) implementation with lazy client creation
- Process-wide token-bucket rate limiter (tokens per minute, FIFO admission)
- Per-call timeout so a slow provider never blocks ingestion indefinitely
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Protocol

from ..errors import AIGenerationError
from .ai_utils import create_anthropic_client
from .config import DEFAULT_AI_MODEL, MockerSettings
from .utils import preview

logger = logging.getLogger("supermockio.ai")

TimeFn = Callable[[], float]
SleepFn = Callable[[float], Awaitable[Any]]


class AIService(Protocol):
    """Anything that can answer a prompt with text."""

    async def ask(self, prompt: str) -> str:
        ...


class TokenBucketRateLimiter:
    """
    Asyncio token bucket.

    The bucket holds at most `tokens_per_interval` tokens and refills
    continuously at `tokens_per_interval / interval_seconds` tokens per second.
    `acquire()` suspends until a token is available. Waiters are admitted in
    arrival order because they queue on a single asyncio.Lock; there is no
    priority and no cancellation support beyond normal task cancellation.

    Time and sleep functions are injectable for deterministic tests.
    """

    def __init__(
        self,
        tokens_per_interval: int,
        interval_seconds: float = 60.0,
        now_func: Optional[TimeFn] = None,
        sleep_func: Optional[SleepFn] = None
    ):
        if tokens_per_interval <= 0:
            raise ValueError("tokens_per_interval must be positive")

        self.capacity = float(tokens_per_interval)
        self.refill_rate = tokens_per_interval / interval_seconds
        self._now: TimeFn = now_func or time.monotonic
        self._sleep: SleepFn = sleep_func or asyncio.sleep
        self.tokens = self.capacity
        self.last_refill = self._now()
        self._lock = asyncio.Lock()

    def _refill(self):
        now = self._now()
        if now > self.last_refill:
            elapsed = now - self.last_refill
            self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
            self.last_refill = now

    async def acquire(self):
        """Wait for and consume one token."""
        async with self._lock:
            while True:
                self._refill()
                if self.tokens >= 1.0:
                    self.tokens -= 1.0
                    return
                wait_seconds = (1.0 - self.tokens) / self.refill_rate
                logger.debug(f"Rate limit reached, waiting {wait_seconds:.2f}s for a token")
                await self._sleep(wait_seconds)


class AnthropicService:
    """
    Claude-backed AI service.

    The Anthropic SDK call is blocking, so it runs in a worker thread and is
    bounded by `timeout_seconds`.

    Example:
        service = AnthropicService(api_key=key, rate_limiter=TokenBucketRateLimiter(15))
        text = await service.ask("Generate an example user")
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        timeout_seconds: float = 30.0,
        max_tokens: int = 4096,
        client: Optional[Any] = None
    ):
        self.api_key = api_key
        self.model = model or DEFAULT_AI_MODEL
        self.rate_limiter = rate_limiter
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.client = client

    def _get_client(self) -> Any:
        if self.client is None:
            client, available, message = create_anthropic_client(api_key=self.api_key)
            if not available:
                raise AIGenerationError(message)
            self.client = client
        return self.client

    def _create_message(self, prompt: str) -> Any:
        return self._get_client().messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}]
        )

    async def ask(self, prompt: str) -> str:
        """
        Send a prompt and return the reply text.

        Raises:
            AIGenerationError: On missing configuration, provider errors,
                timeouts or an empty reply
        """
        if self.rate_limiter is not None:
            logger.debug("Requesting token from rate limiter")
            await self.rate_limiter.acquire()

        logger.debug(f"Sending prompt to Claude ({len(prompt)} chars): {preview(prompt)}")

        try:
            message = await asyncio.wait_for(
                asyncio.to_thread(self._create_message, prompt),
                timeout=self.timeout_seconds
            )
        except AIGenerationError:
            raise
        except asyncio.TimeoutError:
            raise AIGenerationError(f"AI request timed out after {self.timeout_seconds}s")
        except Exception as e:
            raise AIGenerationError(f"AI request failed: {e}") from e

        if not message or not getattr(message, 'content', None):
            raise AIGenerationError("Empty response from AI service")

        text = (getattr(message.content[0], 'text', '') or '').strip()
        if not text:
            raise AIGenerationError("Empty response from AI service")

        logger.debug(f"Received AI reply ({len(text)} chars): {preview(text)}")
        return text


_SUPPORTED_SERVICES = ('anthropic', 'claude')


def get_ai_service(settings: Optional[MockerSettings] = None) -> AIService:
    """
    Build the AI service selected by AI_SERVICE_NAME.

    Args:
        settings: Settings snapshot (read from the environment if None)

    Returns:
        AIService implementation

    Raises:
        AIGenerationError: If no supported service is selected
    """
    settings = settings or MockerSettings.from_env()
    name = (settings.ai_service_name or '').strip().lower()

    if name in _SUPPORTED_SERVICES:
        logger.debug(f"Using Anthropic AI service (model: {settings.ai_model_name})")
        return AnthropicService(
            api_key=settings.ai_api_key,
            model=settings.ai_model_name,
            rate_limiter=TokenBucketRateLimiter(settings.ai_rate_limit_tokens),
            timeout_seconds=settings.ai_timeout_seconds
        )

    raise AIGenerationError(
        "Please set AI_SERVICE_NAME environment variable to select an AI service to use "
        f"(supported: {', '.join(_SUPPORTED_SERVICES)})"
    )
