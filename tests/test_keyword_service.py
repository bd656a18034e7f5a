from faq_assistant.models import MatchType
from faq_assistant.services.keyword_service import KeywordMatcher, keyword_score, normalize


def test_normalize_drops_stop_words_and_punctuation():
    assert normalize("How much does Premium cost?") == "much premium cost"
    assert normalize("What's the weather?") == "weather"
    assert normalize("how is it?") == ""


def test_keyword_score():
    assert keyword_score("premium cost", "much premium cost") == 1.0
    assert keyword_score("", "much premium cost") == 0.0
    assert 0.0 < keyword_score("premium cost", "cancel premium subscription") < 1.0


def test_rephrased_question_matches(plain_corpus):
    matcher = KeywordMatcher(plain_corpus.flatten(), threshold=0.8)

    result = matcher.match("what does premium cost")

    assert result.entry.question == "How much does premium cost?"
    assert result.match_type == MatchType.KEYWORD
    assert isinstance(result.confidence, float)
    assert result.confidence == 1.0


def test_no_overlap_returns_none(plain_corpus):
    matcher = KeywordMatcher(plain_corpus.flatten(), threshold=0.8)

    assert matcher.match("tell me a joke") is None
    assert matcher.match("what's the weather?") is None
    assert matcher.match("") is None
    assert matcher.match("how is it?") is None


def test_ties_keep_first_entry(plain_corpus):
    matcher = KeywordMatcher(plain_corpus.flatten(), threshold=0.8)

    # "premium" is contained in both the cost and the cancel questions
    assert matcher.match("premium").entry.question == "How much does premium cost?"


def test_deterministic(plain_corpus):
    matcher = KeywordMatcher(plain_corpus.flatten(), threshold=0.8)

    results = {matcher.match("new episodes").entry.question for _ in range(5)}

    assert results == {"When are new episodes released?"}
