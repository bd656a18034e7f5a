import logging
import time
from typing import List, Optional, Sequence, Tuple

import faiss
import numpy as np

from faq_assistant.config import config
from faq_assistant.errors import VectorDimensionMismatch
from faq_assistant.models import FAQEntry, MatchType, Matched
from faq_assistant.services.embedding_service import cosine_similarity

logger = logging.getLogger(__name__)


def _normalize_rows(vectors: np.ndarray) -> np.ndarray:
    # Zero rows stay zero, so their inner product (and similarity) is 0.
    norms = np.linalg.norm(vectors, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return (vectors / norms).astype("float32")


class FAISSCorpusIndex:
    """Flat inner-product index over the L2-normalized corpus vectors.

    Inner product of normalized vectors is cosine similarity. Entries with no
    embedding are left out of the index and never returned.
    """

    def __init__(self, entries: Sequence[FAQEntry]):
        self.entries = list(entries)
        self.positions: List[int] = []
        vectors = []
        for position, entry in enumerate(self.entries):
            if entry.embedding is None:
                logger.warning("Missing embedding for question: %s", entry.question)
                continue
            self.positions.append(position)
            vectors.append(entry.embedding)

        self.dimension = len(vectors[0]) if vectors else None
        self.index = None
        if vectors:
            matrix = np.asarray(vectors, dtype=np.float32)
            self.index = faiss.IndexFlatIP(self.dimension)
            self.index.add(_normalize_rows(matrix))

    def __len__(self) -> int:
        return len(self.positions)

    def search(self, query_vector: Sequence[float]) -> List[Tuple[int, float]]:
        """Return ``(flatten position, similarity)`` for every indexed entry."""
        if self.index is None:
            return []

        query = np.asarray(query_vector, dtype=np.float32).reshape(1, -1)
        if query.shape[1] != self.dimension:
            raise VectorDimensionMismatch(self.dimension, query.shape[1])

        scores, indices = self.index.search(_normalize_rows(query), len(self.positions))
        return [
            (self.positions[idx], float(score))
            for score, idx in zip(scores[0], indices[0])
            if idx != -1
        ]


class SimilarityMatcher:
    def __init__(self, entries: Sequence[FAQEntry], threshold: float = None):
        self.index = FAISSCorpusIndex(entries)
        self.threshold = threshold if threshold is not None else config.SIMILARITY_THRESHOLD

    def match(self, question_vector: Sequence[float],
              threshold: float = None) -> Optional[Matched]:
        """Best entry with similarity >= threshold, or None.

        FAISS returns the candidates; each is rescored in float64 against its
        stored embedding before the threshold and tie checks. Ties resolve to
        the entry that comes first in flatten order.
        """
        if threshold is None:
            threshold = self.threshold

        start_time = time.time()
        query = np.asarray(question_vector, dtype=np.float64)
        candidates = sorted(position for position, _ in self.index.search(query))

        best_position, best_score = None, None
        for position in candidates:
            score = cosine_similarity(query, self.index.entries[position].embedding)
            if score < threshold:
                continue
            if best_score is None or score > best_score:
                best_position, best_score = position, score

        elapsed = (time.time() - start_time) * 1000
        if best_position is None:
            logger.info("No embedding match above %.0f%% threshold (%.2fms)", threshold * 100, elapsed)
            return None

        entry = self.index.entries[best_position]
        logger.info("Found embedding match with %.1f%% similarity in %.2fms", best_score * 100, elapsed)
        return Matched(
            entry=entry,
            answer=entry.answer,
            category=entry.category,
            confidence=min(max(best_score, 0.0), 1.0),
            match_type=MatchType.EMBEDDING,
        )
