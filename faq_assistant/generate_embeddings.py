"""Precompute question embeddings and write the enriched corpus file.

Usage:
    python -m faq_assistant.generate_embeddings [--input data/faqs.json] [--output data/faqs_embedded.json]
"""
import argparse
import asyncio
import json
import logging
import os
from datetime import datetime, timezone

from faq_assistant.config import config
from faq_assistant.models import CorpusFile, EmbeddingsMetadata
from faq_assistant.services.embedding_service import EmbeddingService

logger = logging.getLogger(__name__)

BATCH_SIZE = 20


async def embed_corpus(data: CorpusFile, service: EmbeddingService,
                       batch_size: int = BATCH_SIZE, delay: float = 0.1) -> CorpusFile:
    """Return a copy of ``data`` with every question embedded."""
    enriched = data.model_copy(deep=True)
    targets = [qa for category in enriched.categories for qa in category.questions]
    total_batches = (len(targets) + batch_size - 1) // batch_size
    logger.info("Found %d questions to process", len(targets))

    for start in range(0, len(targets), batch_size):
        batch = targets[start:start + batch_size]
        logger.info("Processing batch %d/%d", start // batch_size + 1, total_batches)
        vectors = await service.get_embeddings([qa.question for qa in batch])
        for qa, vector in zip(batch, vectors):
            qa.embedding = [float(x) for x in vector]
        if delay:
            await asyncio.sleep(delay)

    enriched.embeddings_metadata = EmbeddingsMetadata(
        model=service.model,
        dimensions=service.dimensions,
        generated_at=datetime.now(timezone.utc).isoformat(),
        total_questions=len(targets),
    )
    return enriched


async def _run(input_path: str, output_path: str) -> None:
    with open(input_path, "r", encoding="utf-8") as f:
        data = CorpusFile.model_validate(json.load(f))

    enriched = await embed_corpus(data, EmbeddingService())

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(enriched.model_dump(exclude_none=True), f, indent=2)

    increase = (os.path.getsize(output_path) - os.path.getsize(input_path)) / 1024
    logger.info("Saved %d embeddings to %s (+%.2fKB)",
                enriched.embeddings_metadata.total_questions, output_path, increase)


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate FAQ question embeddings")
    parser.add_argument("--input", default=config.FAQ_FALLBACK_PATH)
    parser.add_argument("--output", default=config.FAQ_PRIMARY_PATH)
    args = parser.parse_args()

    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(message)s")
    asyncio.run(_run(args.input, args.output))


if __name__ == "__main__":
    main()
