import logging
import time
from enum import Enum
from typing import AsyncIterator, Callable, List, Optional, Tuple, Union

from faq_assistant.config import config
from faq_assistant.errors import EmbeddingUnavailable, VectorDimensionMismatch
from faq_assistant.models import (
    Confidence, ConversationMessage, InterruptionContext, MatchType, Matched, NoMatch,
)
from faq_assistant.services.ai_matcher_service import AISemanticMatcher, CLARIFYING_FOLLOW_UP
from faq_assistant.services.cache_service import VectorCache
from faq_assistant.services.conversation_service import ConversationStore
from faq_assistant.services.corpus_service import CorpusSource, CorpusStore
from faq_assistant.services.decline_service import DeclineGenerator
from faq_assistant.services.embedding_service import EmbeddingService
from faq_assistant.services.keyword_service import KeywordMatcher
from faq_assistant.services.llm_service import LLMService
from faq_assistant.services.rephrase_service import AnswerRephraser
from faq_assistant.services.vector_service import SimilarityMatcher

logger = logging.getLogger(__name__)

COMMON_QUESTIONS = [
    "What is Huberman Lab?",
    "How do I get premium?",
    "When are new episodes?",
    "How to contact?",
    "What is the cost?",
    "Where can I watch?",
    "How to subscribe?",
    "Is there a newsletter?",
]


class MatchStrategy(str, Enum):
    TIERED = "tiered"  # similarity -> keyword -> AI
    AI = "ai"          # AI first, cheaper tiers as backup


class Reply:
    """Spoken response to one user message.

    ``result`` is known up front; the text arrives through :meth:`stream`.
    When the stream finishes (or is abandoned) the text produced so far is
    written into the conversation's assistant placeholder.
    """

    def __init__(self, result: Union[Matched, NoMatch], chunks: AsyncIterator[str],
                 on_complete: Callable[[str], None]):
        self.result = result
        self._chunks = chunks
        self._on_complete = on_complete

    async def stream(self) -> AsyncIterator[str]:
        parts: List[str] = []
        try:
            async for chunk in self._chunks:
                parts.append(chunk)
                yield chunk
        finally:
            self._on_complete("".join(parts).strip())

    async def text(self) -> str:
        return "".join([chunk async for chunk in self.stream()]).strip()


class MatchingEngine:
    """Owns the corpus, both shared caches and every matcher.

    Create one per process and call :meth:`init` at startup. Everything is
    in memory, so there is nothing to tear down.
    """

    def __init__(self, corpus: CorpusStore,
                 embedding_service: Optional[EmbeddingService] = None,
                 llm: Optional[LLMService] = None,
                 strategy: Union[MatchStrategy, str] = None,
                 ai_enabled: bool = None,
                 rephrase: bool = None,
                 similarity_threshold: float = None,
                 keyword_threshold: float = None,
                 cache_size: int = None,
                 cache_ttl: float = None,
                 max_conversations: int = None,
                 history_turns: int = None,
                 brand_name: str = None,
                 clock: Callable[[], float] = time.monotonic):
        self.corpus = corpus
        self.embedding_service = embedding_service
        self.llm = llm
        self.brand_name = brand_name or config.BRAND_NAME
        self.strategy = MatchStrategy(strategy or config.MATCH_STRATEGY)
        if ai_enabled is None:
            ai_enabled = config.AI_MATCHING_ENABLED
        self.history_turns = history_turns if history_turns is not None else config.HISTORY_TURNS

        entries = corpus.flatten()

        self.similarity = None
        self.cache = None
        if corpus.has_embeddings() and embedding_service is not None:
            self.similarity = SimilarityMatcher(entries, similarity_threshold)
            self.cache = VectorCache(embedding_service.embed, cache_size, cache_ttl, clock)

        self.keyword = KeywordMatcher(entries, keyword_threshold)
        self.decline = DeclineGenerator(llm, self.brand_name)
        self.ai = None
        if ai_enabled and llm is not None:
            self.ai = AISemanticMatcher(llm, entries, self.decline, corpus.knowledge_base(), self.brand_name)
        self.rephraser = AnswerRephraser(llm, self.brand_name, rephrase)

        self.conversations = ConversationStore(
            f"You are a friendly voice assistant for the {self.brand_name} podcast. "
            "Answer questions using the FAQ and keep responses short and natural for speech.",
            max_conversations,
        )

    @classmethod
    def from_config(cls) -> "MatchingEngine":
        corpus = CorpusStore.load(CorpusSource.from_config())
        return cls(corpus, EmbeddingService(), LLMService())

    async def init(self, prewarm: bool = None) -> None:
        if prewarm is None:
            prewarm = config.PREWARM_CACHE

        expected = getattr(self.embedding_service, "dimensions", None)
        if self.similarity is not None and expected and expected != self.corpus.dimension():
            raise VectorDimensionMismatch(expected, self.corpus.dimension())

        stats = self.corpus.stats()
        logger.info(
            "FAQ corpus ready: %d questions in %d categories, embedding coverage %s, strategy %s",
            stats["total_questions"], stats["categories"], stats["embedding_coverage"],
            self.strategy.value,
        )
        if self.similarity is None:
            logger.warning("Similarity matching disabled; using keyword and AI matching only")

        if prewarm and self.cache is not None:
            await self.cache.prewarm(COMMON_QUESTIONS)

    # Matching

    async def _match_cheap(self, text: str) -> Optional[Matched]:
        if self.similarity is not None:
            try:
                vector = await self.cache.get(text)
            except EmbeddingUnavailable as e:
                logger.error("Embedding match failed, falling back to keyword match: %s", e)
            else:
                result = self.similarity.match(vector)
                if result is not None:
                    return result

        return self.keyword.match(text)

    async def match_question(self, text: str,
                             history: Optional[List[ConversationMessage]] = None) -> Union[Matched, NoMatch]:
        """Run the matcher cascade; always returns a result."""
        start_time = time.time()

        if self.ai is not None and self.strategy == MatchStrategy.AI:
            result = await self.ai.match(text, history)
            if result is not None:
                return result

        result = await self._match_cheap(text)
        if result is not None:
            logger.info("%s match found in %.0fms", result.match_type.value, (time.time() - start_time) * 1000)
            return result

        if self.ai is None:
            return await self.decline.generate(text, history)

        if self.strategy == MatchStrategy.TIERED:
            result = await self.ai.match(text, history)
            if result is not None:
                return result

        logger.info("No match found in %.0fms", (time.time() - start_time) * 1000)
        return self.decline.static()

    async def _speak(self, result: Union[Matched, NoMatch]) -> AsyncIterator[str]:
        if isinstance(result, NoMatch):
            yield result.generated_response
        elif result.match_type == MatchType.AI:
            yield result.answer
            if result.confidence == Confidence.MEDIUM:
                yield " " + CLARIFYING_FOLLOW_UP
        else:
            async for chunk in self.rephraser.stream(result.answer):
                yield chunk

    # Conversation handling

    async def reply(self, key: str, text: str, turn_id: Optional[str] = None,
                    interruption: Optional[InterruptionContext] = None) -> Reply:
        if (interruption is not None and interruption.previous_turn_interrupted
                and interruption.assistant_turn_id and interruption.text_heard is not None):
            self.record_interruption(key, interruption.assistant_turn_id, interruption.text_heard)

        history = self.conversations.get_or_create(key).history(self.history_turns)
        log, index = self.conversations.start_turn(key, text, turn_id)
        result = await self.match_question(text, history)

        def on_complete(spoken: str) -> None:
            log.fill_placeholder(index, spoken)

        return Reply(result, self._speak(result), on_complete)

    async def handle_message(self, key: str, text: str, turn_id: Optional[str] = None,
                             interruption: Optional[InterruptionContext] = None) -> Tuple[str, Union[Matched, NoMatch]]:
        reply = await self.reply(key, text, turn_id, interruption)
        return await reply.text(), reply.result

    def record_interruption(self, key: str, turn_id: str, text_heard: str) -> bool:
        return self.conversations.correct_interruption(key, turn_id, text_heard)

    def begin_session(self, key: str) -> str:
        welcome = f"Hello! I'm your {self.brand_name} assistant. How can I help you today?"
        self.conversations.begin(key)
        logger.info("Session started: %s", key)
        return welcome

    def end_session(self, key: str) -> bool:
        logger.info("Session ended: %s", key)
        return self.conversations.end(key)

    def stats(self) -> dict:
        return {
            "corpus": self.corpus.stats(),
            "cache": self.cache.stats() if self.cache is not None else None,
            "active_conversations": len(self.conversations),
            "strategy": self.strategy.value,
            "ai_matching": self.ai is not None,
        }
