import logging
import time
from typing import AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI, OpenAIError

from faq_assistant.config import config
from faq_assistant.errors import CompletionUnavailable

logger = logging.getLogger(__name__)

Message = Dict[str, str]


class LLMService:
    def __init__(self, client: Optional[AsyncOpenAI] = None, model: str = None):
        if client is None:
            if not config.OPENAI_API_KEY:
                raise ValueError("OPENAI_API_KEY must be set")
            client = AsyncOpenAI(api_key=config.OPENAI_API_KEY, timeout=config.OPENAI_TIMEOUT)
        self.client = client
        self.model = model or config.LLM_MODEL

    async def complete(self, messages: List[Message], temperature: float = None,
                       max_tokens: int = 500) -> str:
        """Single non-streaming chat completion; returns the stripped text."""
        if temperature is None:
            temperature = config.LLM_TEMPERATURE

        start_time = time.time()
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            logger.error("Completion failed: %s", e)
            raise CompletionUnavailable(str(e)) from e

        content = (response.choices[0].message.content or "").strip()
        elapsed = (time.time() - start_time) * 1000
        logger.debug("Completion took %.2fms", elapsed)
        return content

    async def stream(self, messages: List[Message], temperature: float = None,
                     max_tokens: int = 500) -> AsyncIterator[str]:
        """Yield text chunks as the model produces them."""
        if temperature is None:
            temperature = config.LLM_TEMPERATURE

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                stream=True,
            )
            # Closes the HTTP response even when the consumer stops early.
            async with response:
                async for chunk in response:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta.content
                    if delta:
                        yield delta
        except OpenAIError as e:
            logger.error("Streaming completion failed: %s", e)
            raise CompletionUnavailable(str(e)) from e
