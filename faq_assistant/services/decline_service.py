import logging
from typing import List, Optional

from faq_assistant.config import config
from faq_assistant.errors import CompletionUnavailable
from faq_assistant.models import ConversationMessage, NoMatch
from faq_assistant.services.llm_service import LLMService

logger = logging.getLogger(__name__)


def static_decline(brand_name: str = None) -> str:
    brand_name = brand_name or config.BRAND_NAME
    return (
        "I don't have specific information about that. "
        f"Is there something else about {brand_name} I can help you with?"
    )


class DeclineGenerator:
    """Writes a friendly "I can't help with that" tailored to the question."""

    def __init__(self, llm: Optional[LLMService], brand_name: str = None):
        self.llm = llm
        self.brand_name = brand_name or config.BRAND_NAME

    def static(self) -> NoMatch:
        return NoMatch(generated_response=static_decline(self.brand_name))

    async def generate(self, question: str,
                       history: Optional[List[ConversationMessage]] = None) -> NoMatch:
        if self.llm is None:
            return self.static()

        system_prompt = f"""You are a helpful assistant for the {self.brand_name} podcast website.
The user asked a question that doesn't match any of our FAQs.
Generate a natural, friendly decline that:
1. Acknowledges their specific question topic
2. Explains we can only help with {self.brand_name} podcast information
3. Suggests relevant topics we CAN help with (podcast, premium membership, newsletter, events)
4. Keeps it concise (2 sentences max)
5. Sounds natural for voice/speech output"""

        messages = [{"role": "system", "content": system_prompt}]
        # Last couple of turns are enough to keep the decline on topic.
        for message in (history or [])[-4:]:
            if message.content:
                messages.append({"role": message.role.value, "content": message.content})
        messages.append({
            "role": "user",
            "content": f'User asked: "{question}"\n\n'
                       "Generate a natural decline response that sounds conversational.",
        })

        try:
            response = await self.llm.complete(messages, temperature=0.4, max_tokens=100)
        except CompletionUnavailable as e:
            logger.error("Failed to generate natural decline: %s", e)
            return self.static()

        return NoMatch(generated_response=response or static_decline(self.brand_name))
