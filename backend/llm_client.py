"""Anthropic client used by the flashcard generator."""

import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

import anthropic
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from backend.config import settings

logger = logging.getLogger(__name__)

# Failures worth another attempt; bad requests and auth errors are not.
RETRYABLE_ERRORS = (
    anthropic.APIConnectionError,
    anthropic.RateLimitError,
    anthropic.InternalServerError,
)


@dataclass(frozen=True)
class LLMReply:
    """Text of one completion plus what it cost."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    truncated: bool = False  # Stopped at max_tokens


class RequestWindow:
    """Caps requests per rolling minute, sleeping until a slot frees up."""

    def __init__(
        self,
        max_per_minute: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_per_minute = max_per_minute
        self._clock = clock
        self._sleep = sleep
        self._sent: deque[float] = deque()

    def acquire(self) -> float:
        """Take a slot. Returns how long the caller waited, in seconds."""
        now = self._clock()
        while self._sent and now - self._sent[0] >= 60:
            self._sent.popleft()
        waited = 0.0
        if len(self._sent) >= self.max_per_minute:
            waited = 60 - (now - self._sent[0])
            logger.info("At %d requests/min, waiting %.1fs", self.max_per_minute, waited)
            self._sleep(waited)
            self._sent.popleft()
        self._sent.append(self._clock())
        return waited


class LLMClient:
    """Anthropic Messages API wrapper for generation prompts."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_rpm: int | None = None,
    ) -> None:
        self.client = anthropic.Anthropic(api_key=api_key or settings.anthropic_api_key)
        self.model = model or settings.anthropic_model
        self.window = RequestWindow(max_rpm or settings.anthropic_rate_limit_rpm)

    @retry(
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        stop=stop_after_attempt(settings.anthropic_max_retries),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        reraise=True,
    )
    def complete(
        self,
        prompt: str,
        system: str = "",
        max_tokens: int = 4096,
        temperature: float = 0.4,
        prefill: str = "",
    ) -> LLMReply:
        """Send one user message and return the reply.

        ``prefill`` starts the assistant turn (e.g. ``"["`` to force a JSON
        array); it is included at the front of the returned text.
        """
        self.window.acquire()
        messages = [{"role": "user", "content": prompt}]
        if prefill:
            messages.append({"role": "assistant", "content": prefill})
        kwargs: dict = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        if system:
            kwargs["system"] = system
        response = self.client.messages.create(**kwargs)

        text = "".join(block.text for block in response.content if block.type == "text")
        reply = LLMReply(
            text=prefill + text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            truncated=response.stop_reason == "max_tokens",
        )
        logger.debug("Tokens used: %d in, %d out", reply.input_tokens, reply.output_tokens)
        return reply


_llm_client: LLMClient | None = None


def get_llm_client() -> LLMClient:
    """Return the shared LLMClient, creating it on first call."""
    global _llm_client
    if _llm_client is None:
        _llm_client = LLMClient()
    return _llm_client
