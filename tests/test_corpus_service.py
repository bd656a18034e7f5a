import copy
import json

import pytest

from faq_assistant.errors import CorpusLoadError, VectorDimensionMismatch
from faq_assistant.services.corpus_service import CorpusSource, CorpusStore
from tests.conftest import CORPUS, corpus_without_embeddings


def test_flatten_keeps_category_order(corpus):
    entries = corpus.flatten()

    assert [e.question for e in entries] == [
        "What is the Huberman Lab podcast?",
        "When are new episodes released?",
        "How much does premium cost?",
        "How do I cancel my premium subscription?",
        "Is there a newsletter?",
    ]
    assert entries[2].category == "Premium"
    assert [c.name for c in corpus.categories()] == ["Podcast", "Premium", "Newsletter"]


def test_embeddings_detected(corpus, plain_corpus):
    assert corpus.has_embeddings()
    assert corpus.dimension() == 4
    assert not plain_corpus.has_embeddings()
    assert plain_corpus.dimension() is None


def test_stats():
    data = copy.deepcopy(CORPUS)
    data["categories"][0]["questions"][0].pop("embedding")
    stats = CorpusStore.from_dict(data).stats()

    assert stats == {
        "total_questions": 5,
        "questions_with_embeddings": 4,
        "has_embeddings": True,
        "embedding_coverage": "80.0%",
        "categories": 3,
    }


def test_mixed_dimensions_fail_fast():
    data = copy.deepcopy(CORPUS)
    data["categories"][1]["questions"][0]["embedding"] = [1.0, 0.0]

    with pytest.raises(VectorDimensionMismatch):
        CorpusStore.from_dict(data)


def test_knowledge_base(corpus):
    assert corpus.knowledge_base() == {"host": "Andrew Huberman is a neuroscientist at Stanford."}


def test_source_prefers_primary(tmp_path):
    primary = tmp_path / "faqs_embedded.json"
    fallback = tmp_path / "faqs.json"
    primary.write_text(json.dumps(CORPUS))
    fallback.write_text(json.dumps(corpus_without_embeddings()))

    store = CorpusStore.load(CorpusSource(str(primary), str(fallback)))

    assert store.path == str(primary)
    assert store.has_embeddings()


def test_source_falls_back(tmp_path):
    fallback = tmp_path / "faqs.json"
    fallback.write_text(json.dumps(corpus_without_embeddings()))

    store = CorpusStore.load(CorpusSource(str(tmp_path / "missing.json"), str(fallback)))

    assert store.path == str(fallback)
    assert not store.has_embeddings()
    assert len(store) == 5


def test_missing_corpus(tmp_path):
    with pytest.raises(CorpusLoadError):
        CorpusSource(str(tmp_path / "a.json"), str(tmp_path / "b.json")).resolve()


def test_invalid_corpus_file(tmp_path):
    path = tmp_path / "faqs.json"
    path.write_text("{not json")

    with pytest.raises(CorpusLoadError):
        CorpusStore.load(CorpusSource(str(path)))
