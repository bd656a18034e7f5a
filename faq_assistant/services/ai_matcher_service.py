import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Union

from faq_assistant.config import config
from faq_assistant.errors import CompletionUnavailable, MalformedModelResponse
from faq_assistant.models import (
    KNOWLEDGE_BASE_CATEGORY, Confidence, ConversationMessage, FAQEntry,
    MatchType, Matched, NoMatch,
)
from faq_assistant.services.decline_service import DeclineGenerator
from faq_assistant.services.llm_service import LLMService

logger = logging.getLogger(__name__)

CLARIFYING_FOLLOW_UP = "Was that what you were looking for?"


class ResponseKind(str, Enum):
    MATCH = "match"
    PARTIAL = "partial"
    CONTEXT = "context"
    NONE = "none"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class ParsedResponse:
    kind: ResponseKind
    ordinal: Optional[int] = None
    natural: Optional[str] = None


_NONE = re.compile(r"^none\.?$", re.IGNORECASE)
_MATCH = re.compile(r"^(?:match:\s*)?(\d+)\.?$", re.IGNORECASE)
_PARTIAL = re.compile(r"^partial:\s*(\d+)\.?$", re.IGNORECASE)
_CONTEXT = re.compile(r"^context:?$", re.IGNORECASE)
_NATURAL = re.compile(r"^natural:\s*(.*)$", re.IGNORECASE | re.DOTALL)


def parse_ai_response(raw: str) -> ParsedResponse:
    """Parse the matcher grammar into a typed result.

    Accepted first lines are ``none``, ``MATCH:<n>`` (or a bare ``<n>``),
    ``PARTIAL:<n>`` and ``CONTEXT``. Everything after the first line must be
    a single ``NATURAL:<text>`` block. Anything else is MALFORMED.
    """
    lines = [line.strip() for line in (raw or "").strip().splitlines() if line.strip()]
    if not lines:
        return ParsedResponse(ResponseKind.MALFORMED)

    head, rest = lines[0], lines[1:]
    natural = None
    if rest:
        natural_match = _NATURAL.match(rest[0])
        if natural_match is None:
            return ParsedResponse(ResponseKind.MALFORMED)
        natural = " ".join([natural_match.group(1)] + rest[1:]).strip() or None

    if _NONE.match(head):
        return ParsedResponse(ResponseKind.NONE)

    m = _PARTIAL.match(head)
    if m:
        return ParsedResponse(ResponseKind.PARTIAL, int(m.group(1)), natural)

    m = _MATCH.match(head)
    if m:
        return ParsedResponse(ResponseKind.MATCH, int(m.group(1)), natural)

    if _CONTEXT.match(head):
        if natural is None:
            return ParsedResponse(ResponseKind.MALFORMED)
        return ParsedResponse(ResponseKind.CONTEXT, natural=natural)

    return ParsedResponse(ResponseKind.MALFORMED)


class AISemanticMatcher:
    """Asks the LLM to pick the FAQ entry that answers the question.

    The whole corpus goes into one prompt as a numbered list, followed by the
    knowledge-base text. Prior conversation turns are sent ahead of it so
    follow-up questions resolve against what was already said.
    """

    def __init__(self, llm: LLMService, entries: Sequence[FAQEntry],
                 decline: DeclineGenerator, knowledge_base: Dict[str, str] = None,
                 brand_name: str = None):
        self.llm = llm
        self.entries = list(entries)
        self.decline = decline
        self.knowledge_base = knowledge_base or {}
        self.brand_name = brand_name or config.BRAND_NAME

    def _system_prompt(self) -> str:
        return (
            f"You are a helpful voice assistant for the {self.brand_name} podcast that matches "
            "user questions to FAQs.\n"
            "You understand semantic meaning, intent, and can handle typos, rephrasing, and "
            "colloquial language. Be generous in matching - if the user is clearly asking about "
            "a topic covered in the FAQs, match it. Use the earlier conversation to resolve "
            "follow-up questions."
        )

    def _faq_prompt(self, question: str) -> str:
        faq_list = "\n\n".join(
            f"{num}. Q: {entry.question}\n   A: {entry.answer}"
            for num, entry in enumerate(self.entries, start=1)
        )
        knowledge = "\n".join(
            f"- {topic}: {text}" for topic, text in self.knowledge_base.items()
        ) or "(none)"
        count = len(self.entries)

        return f"""Find the best matching FAQ for this user question.
User asks: "{question}"

Available FAQs:
{faq_list}

Background knowledge:
{knowledge}

Instructions:
- If there's a good match, respond with "MATCH:NUMBER" (1-{count}) on the first line
- If there's a partial/uncertain match, respond with "PARTIAL:NUMBER" on the first line
- If the question is answered by the background knowledge rather than a FAQ, respond with "CONTEXT" on the first line
- After MATCH, PARTIAL or CONTEXT, add a second line "NATURAL:" followed by a short, friendly answer suitable for speaking aloud, using only the information given
- If no relevant match exists, respond with only "none"
- Consider intent and meaning, not just exact words"""

    def build_messages(self, question: str,
                       history: Optional[List[ConversationMessage]] = None) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": self._system_prompt()}]
        for message in history or []:
            if message.content:
                messages.append({"role": message.role.value, "content": message.content})
        messages.append({"role": "user", "content": self._faq_prompt(question)})
        return messages

    def resolve(self, parsed: ParsedResponse, raw: str) -> Optional[Matched]:
        """Turn a MATCH/PARTIAL/CONTEXT parse into a Matched result.

        Raises MalformedModelResponse for malformed or out-of-range answers.
        """
        if parsed.kind == ResponseKind.CONTEXT:
            return Matched(
                entry=None,
                answer=parsed.natural,
                category=KNOWLEDGE_BASE_CATEGORY,
                confidence=Confidence.HIGH,
                match_type=MatchType.AI,
            )

        if parsed.kind not in (ResponseKind.MATCH, ResponseKind.PARTIAL):
            raise MalformedModelResponse(raw)
        if not 1 <= parsed.ordinal <= len(self.entries):
            raise MalformedModelResponse(raw)

        entry = self.entries[parsed.ordinal - 1]
        return Matched(
            entry=entry,
            answer=parsed.natural or entry.answer,
            category=entry.category,
            confidence=Confidence.HIGH if parsed.kind == ResponseKind.MATCH else Confidence.MEDIUM,
            match_type=MatchType.AI,
        )

    async def match(self, question: str,
                    history: Optional[List[ConversationMessage]] = None) -> Union[Matched, NoMatch, None]:
        """Matched on success, NoMatch when the model says none, None on failure."""
        start_time = time.time()
        try:
            raw = await self.llm.complete(
                self.build_messages(question, history),
                temperature=0.1,
                max_tokens=200,
            )
        except CompletionUnavailable as e:
            logger.error("AI FAQ matching failed: %s", e)
            return None

        logger.info("AI matcher response for %r: %r", question[:50], raw[:80])
        parsed = parse_ai_response(raw)
        if parsed.kind == ResponseKind.NONE:
            return await self.decline.generate(question, history)

        try:
            result = self.resolve(parsed, raw)
        except MalformedModelResponse as e:
            logger.error("Invalid AI response: %s", e)
            return None

        elapsed = (time.time() - start_time) * 1000
        logger.info("AI match (%s) found in %.2fms", parsed.kind.value, elapsed)
        return result
