class FAQAssistantError(Exception):
    """Base class for every error raised by the matching engine."""


class EmbeddingUnavailable(FAQAssistantError):
    """The embedding capability failed or timed out."""


class CompletionUnavailable(FAQAssistantError):
    """The completion capability failed or timed out."""


class MalformedModelResponse(FAQAssistantError):
    """The model answered outside the MATCH/PARTIAL/CONTEXT/none grammar."""

    def __init__(self, raw: str):
        super().__init__(f"Unparsable model response: {raw!r}")
        self.raw = raw


class VectorDimensionMismatch(FAQAssistantError):
    def __init__(self, expected: int, actual: int):
        super().__init__(f"Vector dimension {actual} does not match expected dimension {expected}")
        self.expected = expected
        self.actual = actual


class CorpusLoadError(FAQAssistantError):
    pass


class InvalidSignature(FAQAssistantError):
    pass
