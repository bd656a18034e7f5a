import os
from typing import Optional


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    # API Configuration
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", 8000))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Voice transport webhook
    WEBHOOK_SECRET: Optional[str] = os.getenv("WEBHOOK_SECRET") or None
    SIGNATURE_TOLERANCE_SECONDS = float(os.getenv("SIGNATURE_TOLERANCE_SECONDS", "300"))
    BRAND_NAME = os.getenv("BRAND_NAME", "Huberman Lab")

    # OpenAI Configuration
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
    OPENAI_TIMEOUT = float(os.getenv("OPENAI_TIMEOUT", "15"))
    EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBEDDING_DIMENSIONS = int(os.getenv("EMBEDDING_DIMENSIONS", "512"))

    # Corpus Configuration
    FAQ_PRIMARY_PATH = os.getenv("FAQ_PRIMARY_PATH", "./data/faqs_embedded.json")
    FAQ_FALLBACK_PATH = os.getenv("FAQ_FALLBACK_PATH", "./data/faqs.json")

    # Search Configuration
    SIMILARITY_THRESHOLD = float(os.getenv("SIMILARITY_THRESHOLD", "0.75"))
    KEYWORD_THRESHOLD = float(os.getenv("KEYWORD_THRESHOLD", "0.8"))
    MATCH_STRATEGY = os.getenv("MATCH_STRATEGY", "tiered")  # tiered, ai
    AI_MATCHING_ENABLED = _flag("AI_MATCHING_ENABLED", "true")
    REPHRASE_ANSWERS = _flag("REPHRASE_ANSWERS", "true")

    # Cache Configuration
    MAX_CACHE_SIZE = int(os.getenv("MAX_CACHE_SIZE", "50"))
    CACHE_TTL_SECONDS = float(os.getenv("CACHE_TTL_SECONDS", str(60 * 60)))
    PREWARM_CACHE = _flag("PREWARM_CACHE", "false")

    # Conversation Configuration
    MAX_CONVERSATIONS = int(os.getenv("MAX_CONVERSATIONS", "50"))
    HISTORY_TURNS = int(os.getenv("HISTORY_TURNS", "10"))

    # LLM Configuration
    LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4.1-mini")
    LLM_TEMPERATURE = 0.1

config = Config()
