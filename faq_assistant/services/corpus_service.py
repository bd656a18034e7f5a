import json
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic import ValidationError

from faq_assistant.config import config
from faq_assistant.errors import CorpusLoadError, VectorDimensionMismatch
from faq_assistant.models import CorpusFile, FAQCategory, FAQEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorpusSource:
    """Where to load the corpus from.

    ``primary_path`` is the enriched file with precomputed embeddings and
    ``fallback_path`` the plain one. The first path that exists wins; the
    choice is made once, in :meth:`resolve`.
    """

    primary_path: str
    fallback_path: Optional[str] = None

    @classmethod
    def from_config(cls) -> "CorpusSource":
        return cls(config.FAQ_PRIMARY_PATH, config.FAQ_FALLBACK_PATH)

    def resolve(self) -> str:
        for path in (self.primary_path, self.fallback_path):
            if path and os.path.isfile(path):
                return path
        raise CorpusLoadError(
            f"No FAQ corpus found at {self.primary_path!r} or {self.fallback_path!r}"
        )


class CorpusStore:
    """Read-only FAQ corpus, loaded once."""

    def __init__(self, data: CorpusFile, path: Optional[str] = None):
        self.path = path
        self._data = data
        self._entries: List[FAQEntry] = [
            FAQEntry(
                question=qa.question,
                answer=qa.answer,
                category=category.name,
                embedding=qa.embedding,
            )
            for category in data.categories
            for qa in category.questions
        ]
        self._dimension = self._check_dimensions()

    @classmethod
    def load(cls, source: CorpusSource) -> "CorpusStore":
        path = source.resolve()
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = CorpusFile.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            raise CorpusLoadError(f"Could not load FAQ corpus from {path}: {e}") from e

        store = cls(data, path=path)
        if store.has_embeddings():
            logger.info("Loaded FAQs with embeddings from %s", path)
        else:
            logger.warning("Loaded FAQs without embeddings from %s", path)
        return store

    @classmethod
    def from_dict(cls, payload: Dict) -> "CorpusStore":
        return cls(CorpusFile.model_validate(payload))

    def _check_dimensions(self) -> Optional[int]:
        dimension = None
        for entry in self._entries:
            if entry.embedding is None:
                continue
            if dimension is None:
                dimension = len(entry.embedding)
            elif len(entry.embedding) != dimension:
                raise VectorDimensionMismatch(dimension, len(entry.embedding))
        return dimension

    def categories(self) -> List[FAQCategory]:
        return list(self._data.categories)

    def flatten(self) -> List[FAQEntry]:
        """All entries in stable order; index ``i`` is ordinal ``i + 1``."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def has_embeddings(self) -> bool:
        return self._dimension is not None

    def dimension(self) -> Optional[int]:
        return self._dimension

    def knowledge_base(self) -> Dict[str, str]:
        return dict(self._data.knowledge_base)

    def stats(self) -> Dict:
        total = len(self._entries)
        with_embeddings = sum(1 for entry in self._entries if entry.embedding is not None)
        coverage = f"{with_embeddings / total * 100:.1f}%" if total else "0%"
        return {
            "total_questions": total,
            "questions_with_embeddings": with_embeddings,
            "has_embeddings": self.has_embeddings(),
            "embedding_coverage": coverage,
            "categories": len(self._data.categories),
        }
