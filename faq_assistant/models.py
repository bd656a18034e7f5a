from pydantic import BaseModel, ConfigDict, Field
from typing import Annotated, List, Optional, Dict, Union, Literal
from enum import Enum

KNOWLEDGE_BASE_CATEGORY = "knowledge_base"

class MatchType(str, Enum):
    EMBEDDING = "embedding"
    KEYWORD = "keyword"
    AI = "ai"

class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"

# Corpus file shape

class FAQQuestion(BaseModel):
    question: str
    answer: str
    embedding: Optional[List[float]] = None

class FAQCategory(BaseModel):
    name: str
    questions: List[FAQQuestion] = Field(default_factory=list)

class EmbeddingsMetadata(BaseModel):
    model: str
    dimensions: int
    generated_at: str
    total_questions: int

class CorpusFile(BaseModel):
    categories: List[FAQCategory]
    knowledge_base: Dict[str, str] = Field(default_factory=dict)
    embeddings_metadata: Optional[EmbeddingsMetadata] = None

# Loaded corpus

class FAQEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str
    answer: str
    category: str
    embedding: Optional[List[float]] = Field(default=None, exclude=True, repr=False)

# Match results

class Matched(BaseModel):
    kind: Literal["matched"] = "matched"
    entry: Optional[FAQEntry] = None  # None only for knowledge-base answers
    answer: str
    category: str
    confidence: Union[Confidence, float]
    match_type: MatchType

class NoMatch(BaseModel):
    kind: Literal["no_match"] = "no_match"
    generated_response: str

MatchResult = Annotated[Union[Matched, NoMatch], Field(discriminator="kind")]

# Conversation state

class ConversationMessage(BaseModel):
    role: Role
    content: str
    turn_id: Optional[str] = None

# Link extraction

class LinkType(str, Enum):
    URL = "url"
    PLACEHOLDER = "placeholder"

class ExtractedLink(BaseModel):
    type: LinkType
    text: str
    href: Optional[str] = None

class LinkExtraction(BaseModel):
    has_links: bool
    links: List[ExtractedLink]

# HTTP layer

class WebhookEventType(str, Enum):
    SESSION_START = "session.start"
    SESSION_END = "session.end"
    SESSION_UPDATE = "session.update"
    MESSAGE = "message"

class InterruptionContext(BaseModel):
    previous_turn_interrupted: bool = False
    assistant_turn_id: Optional[str] = None
    text_heard: Optional[str] = None

class WebhookRequest(BaseModel):
    type: str
    text: Optional[str] = None
    turn_id: Optional[str] = None
    session_id: Optional[str] = None
    conversation_id: Optional[str] = None
    interruption_context: Optional[InterruptionContext] = None

class MatchRequest(BaseModel):
    question: str
    conversation_id: Optional[str] = None

class MatchResponse(BaseModel):
    success: bool
    question: str
    result: MatchResult
    links: Optional[LinkExtraction] = None
