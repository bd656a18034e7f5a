import copy

import numpy as np
import pytest

from faq_assistant.errors import VectorDimensionMismatch
from faq_assistant.models import FAQEntry, MatchType
from faq_assistant.services.corpus_service import CorpusStore
from faq_assistant.services.vector_service import SimilarityMatcher
from tests.conftest import CORPUS


def test_exact_question_matches_with_full_similarity(corpus):
    matcher = SimilarityMatcher(corpus.flatten(), threshold=0.75)

    result = matcher.match([0.0, 0.0, 1.0, 0.0])

    assert result.entry.question == "How much does premium cost?"
    assert result.confidence == pytest.approx(1.0, abs=1e-5)
    assert result.match_type == MatchType.EMBEDDING
    assert result.category == "Premium"
    assert result.answer == result.entry.answer


def test_best_above_threshold_wins(corpus):
    matcher = SimilarityMatcher(corpus.flatten(), threshold=0.75)

    # 1.0 against the newsletter question, 0.8 against the cancel one
    result = matcher.match([0.0, 0.0, 0.0, 1.0])

    assert result.entry.question == "Is there a newsletter?"


def test_nothing_above_threshold(corpus):
    matcher = SimilarityMatcher(corpus.flatten(), threshold=0.75)

    assert matcher.match([0.5, 0.5, 0.5, 0.5]) is None


def test_zero_query_vector(corpus):
    matcher = SimilarityMatcher(corpus.flatten(), threshold=0.75)

    assert matcher.match(np.zeros(4)) is None


def test_ties_keep_first_entry():
    entries = [
        FAQEntry(question="first", answer="a", category="c", embedding=[1.0, 0.0]),
        FAQEntry(question="second", answer="b", category="c", embedding=[2.0, 0.0]),
    ]
    matcher = SimilarityMatcher(entries, threshold=0.5)

    assert matcher.match([3.0, 0.0]).entry.question == "first"


def test_entries_without_embeddings_are_skipped():
    data = copy.deepcopy(CORPUS)
    data["categories"][1]["questions"][0].pop("embedding")
    matcher = SimilarityMatcher(CorpusStore.from_dict(data).flatten(), threshold=0.75)

    assert len(matcher.index) == 4
    assert matcher.match([0.0, 0.0, 1.0, 0.0]) is None


def test_query_dimension_mismatch(corpus):
    matcher = SimilarityMatcher(corpus.flatten(), threshold=0.75)

    with pytest.raises(VectorDimensionMismatch):
        matcher.match([1.0, 0.0])


def test_threshold_override(corpus):
    matcher = SimilarityMatcher(corpus.flatten(), threshold=0.75)
    query = [0.0, 0.0, 0.8, 0.6]  # 0.8 to premium cost, 0.96 to cancel

    assert matcher.match(query, threshold=0.99) is None
    assert matcher.match(query).entry.question == "How do I cancel my premium subscription?"


def test_score_exactly_at_threshold_matches():
    # cosine is exactly 7 / 10; float32 arithmetic rounds it just below 0.7
    entries = [FAQEntry(question="only", answer="a", category="c", embedding=[1.0, 0.0, 0.0, 0.0])]
    matcher = SimilarityMatcher(entries, threshold=0.7)

    result = matcher.match([7.0, 7.0, 1.0, 1.0])

    assert result.entry.question == "only"
    assert result.confidence == 0.7


def test_near_tie_picks_strictly_highest():
    entries = [
        FAQEntry(question="first", answer="a", category="c", embedding=[1.0, 1e-4]),
        FAQEntry(question="second", answer="b", category="c", embedding=[1.0, 2e-4]),
    ]
    matcher = SimilarityMatcher(entries, threshold=0.5)

    assert matcher.match([1.0, 2e-4]).entry.question == "second"
