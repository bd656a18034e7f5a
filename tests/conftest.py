import copy

import numpy as np
import pytest

from faq_assistant.errors import CompletionUnavailable, EmbeddingUnavailable
from faq_assistant.services.corpus_service import CorpusStore

DIMENSION = 4

CORPUS = {
    "categories": [
        {
            "name": "Podcast",
            "questions": [
                {"question": "What is the Huberman Lab podcast?",
                 "answer": "A podcast about neuroscience and science-based tools.",
                 "embedding": [1.0, 0.0, 0.0, 0.0]},
                {"question": "When are new episodes released?",
                 "answer": "Every Monday.",
                 "embedding": [0.0, 1.0, 0.0, 0.0]},
            ],
        },
        {
            "name": "Premium",
            "questions": [
                {"question": "How much does premium cost?",
                 "answer": "Premium is $10 per month. Sign up at hubermanlab.com/premium.",
                 "embedding": [0.0, 0.0, 1.0, 0.0]},
                {"question": "How do I cancel my premium subscription?",
                 "answer": "Cancel any time through Supercast.",
                 "embedding": [0.0, 0.0, 0.6, 0.8]},
            ],
        },
        {
            "name": "Newsletter",
            "questions": [
                {"question": "Is there a newsletter?",
                 "answer": "Yes, the Neural Network newsletter is free.",
                 "embedding": [0.0, 0.0, 0.0, 1.0]},
            ],
        },
    ],
    "knowledge_base": {
        "host": "Andrew Huberman is a neuroscientist at Stanford.",
    },
}


def corpus_without_embeddings():
    data = copy.deepcopy(CORPUS)
    for category in data["categories"]:
        for qa in category["questions"]:
            qa.pop("embedding")
    return data


class FakeEmbeddingService:
    """Looks vectors up by question text; unknown text embeds to zeros."""

    dimensions = DIMENSION
    model = "fake-embedding"

    def __init__(self, vectors=None, fail=False):
        self.vectors = {k.strip().casefold(): np.asarray(v, dtype=np.float32)
                        for k, v in (vectors or {}).items()}
        self.fail = fail
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        if self.fail:
            raise EmbeddingUnavailable("embedding service down")
        return self.vectors.get(text.strip().casefold(), np.zeros(DIMENSION, dtype=np.float32))

    async def get_embeddings(self, texts):
        return np.stack([await self.embed(t) for t in texts])


class FakeLLM:
    """Returns queued replies from complete() and fixed chunks from stream()."""

    def __init__(self, replies=(), chunks=("Sure, ", "here you go.")):
        self.replies = list(replies)
        self.chunks = list(chunks)
        self.calls = []
        self.stream_calls = []

    async def complete(self, messages, temperature=None, max_tokens=500):
        self.calls.append(messages)
        if not self.replies:
            raise CompletionUnavailable("no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def stream(self, messages, temperature=None, max_tokens=500):
        self.stream_calls.append(messages)
        for chunk in self.chunks:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


@pytest.fixture
def corpus():
    return CorpusStore.from_dict(copy.deepcopy(CORPUS))


@pytest.fixture
def plain_corpus():
    return CorpusStore.from_dict(corpus_without_embeddings())


@pytest.fixture
def embedder():
    vectors = {
        qa["question"]: qa["embedding"]
        for category in CORPUS["categories"]
        for qa in category["questions"]
    }
    return FakeEmbeddingService(vectors)
