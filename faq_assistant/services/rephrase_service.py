import logging
from typing import AsyncIterator, Optional

from faq_assistant.config import config
from faq_assistant.errors import CompletionUnavailable
from faq_assistant.services.llm_service import LLMService

logger = logging.getLogger(__name__)


class AnswerRephraser:
    """Turns a written FAQ answer into something that sounds right spoken aloud."""

    def __init__(self, llm: Optional[LLMService], brand_name: str = None,
                 enabled: bool = None):
        self.llm = llm
        self.brand_name = brand_name or config.BRAND_NAME
        self.enabled = config.REPHRASE_ANSWERS if enabled is None else enabled

    def _messages(self, answer: str):
        system_prompt = f"""You are speaking as a friendly assistant for the {self.brand_name} podcast.
Your task is to make this FAQ answer sound natural and conversational for voice output.
Keep the core information accurate but make it sound like natural speech.
Be concise - aim for 2-3 sentences max.
Do not add any information not present in the original answer.

Original FAQ answer to rephrase:
"{answer}\""""
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": "Make this sound natural for voice."},
        ]

    async def stream(self, answer: str) -> AsyncIterator[str]:
        """Yield the spoken version of ``answer`` chunk by chunk.

        Falls back to the literal answer when rephrasing is off or the model
        fails before producing anything.
        """
        if not self.enabled or self.llm is None:
            yield answer
            return

        produced = False
        try:
            async for chunk in self.llm.stream(self._messages(answer), temperature=0.3, max_tokens=150):
                produced = True
                yield chunk
        except CompletionUnavailable as e:
            logger.error("Failed to make answer conversational: %s", e)
            if produced:
                return

        if not produced:
            yield answer
