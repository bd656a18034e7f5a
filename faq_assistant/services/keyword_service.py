# Lexical fallback: fuzzy-matches the user's words against each FAQ question.
import logging
from typing import List, Optional, Sequence

from rapidfuzz import fuzz
from rapidfuzz.utils import default_process

from faq_assistant.config import config
from faq_assistant.models import FAQEntry, MatchType, Matched

logger = logging.getLogger(__name__)

# default_process splits contractions, so "what's" arrives as "what s".
STOP_WORDS = frozenset("""
a an and are as at be been but by can could d did do does for from get got had has have
how i if in is it its just ll m me my of on or re s so t that the their there this to
us ve was we what when where which who why will with would you your yours
""".split())


def normalize(text: str) -> str:
    """Lower-case, strip punctuation and drop stop words."""
    return " ".join(w for w in default_process(text).split() if w not in STOP_WORDS)


def keyword_score(query: str, candidate: str) -> float:
    """Token-set similarity of two normalized strings, in [0, 1]."""
    if not query or not candidate:
        return 0.0
    return fuzz.token_set_ratio(query, candidate) / 100


class KeywordMatcher:
    def __init__(self, entries: Sequence[FAQEntry], threshold: float = None):
        self.entries = list(entries)
        self.threshold = threshold if threshold is not None else config.KEYWORD_THRESHOLD
        self._questions: List[str] = [normalize(e.question) for e in self.entries]

    def match(self, question: str) -> Optional[Matched]:
        query = normalize(question)
        if not query:
            return None

        best_index, best_score = None, 0.0
        for i, candidate in enumerate(self._questions):
            score = keyword_score(query, candidate)
            if score >= self.threshold and score > best_score:
                best_index, best_score = i, score

        if best_index is None:
            return None

        entry = self.entries[best_index]
        logger.info("Keyword match %r (score %.2f)", entry.question, best_score)
        return Matched(
            entry=entry,
            answer=entry.answer,
            category=entry.category,
            confidence=best_score,
            match_type=MatchType.KEYWORD,
        )
