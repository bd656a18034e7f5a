import hashlib
import hmac
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from faq_assistant.config import config
from faq_assistant.engine import MatchingEngine
from faq_assistant.errors import FAQAssistantError, InvalidSignature
from faq_assistant.links import extract_links
from faq_assistant.models import (
    MatchRequest, MatchResponse, Matched, WebhookEventType, WebhookRequest,
)
from faq_assistant.services.conversation_service import conversation_key

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-layercode-signature"
ERROR_APOLOGY = "I apologize, but I encountered an error processing your request. Please try again."


def verify_signature(body: bytes, signature: Optional[str], secret: str,
                     tolerance: float = None, now: float = None) -> None:
    """Check an HMAC-SHA256 webhook signature.

    Accepts a bare hex digest of the body, or ``t=<timestamp>,v1=<hex>``
    where the signed payload is ``"<timestamp>.<body>"``. Timestamped
    signatures older or newer than ``tolerance`` seconds are rejected
    (a tolerance of 0 disables the check).
    """
    if tolerance is None:
        tolerance = config.SIGNATURE_TOLERANCE_SECONDS
    if not signature:
        raise InvalidSignature("Missing webhook signature")

    signature = signature.strip()
    payload = body
    timestamp = None
    if "=" in signature:
        parts = dict(
            part.split("=", 1) for part in signature.split(",") if "=" in part
        )
        timestamp, signature = parts.get("t"), parts.get("v1", "")
        if not timestamp or not signature:
            raise InvalidSignature("Malformed webhook signature")
        payload = timestamp.encode() + b"." + body

    expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(signature.lower(), expected):
        raise InvalidSignature("Webhook signature mismatch")

    if timestamp is not None and tolerance > 0:
        try:
            signed_at = int(timestamp)
        except ValueError:
            raise InvalidSignature("Malformed webhook timestamp")
        if now is None:
            now = time.time()
        if abs(now - signed_at) > tolerance:
            raise InvalidSignature("Webhook timestamp outside tolerance")


def _event(event_type: str, **fields) -> str:
    return f"data: {json.dumps({'type': event_type, **fields})}\n\n"


def _match_metadata(question: str, spoken: str, result) -> dict:
    if isinstance(result, Matched):
        confidence = result.confidence
        return {
            "type": "faq_match",
            "question": result.entry.question if result.entry else question,
            "answer": spoken,
            "original_answer": result.entry.answer if result.entry else result.answer,
            "confidence": confidence.value if hasattr(confidence, "value") else confidence,
            "category": result.category,
            "match_type": result.match_type.value,
            "links": extract_links(result.answer).model_dump(mode="json"),
        }
    return {"type": "no_match", "question": question, "response": spoken}


async def _event_stream(engine: MatchingEngine, payload: WebhookRequest) -> AsyncIterator[str]:
    key = conversation_key(payload.conversation_id, payload.session_id)
    turn_id = payload.turn_id
    try:
        if payload.type == WebhookEventType.SESSION_START:
            yield _event("response.tts", content=engine.begin_session(key), turn_id=turn_id)

        elif payload.type == WebhookEventType.SESSION_END:
            engine.end_session(key)

        elif payload.type == WebhookEventType.MESSAGE and payload.text:
            reply = await engine.reply(key, payload.text, turn_id, payload.interruption_context)
            spoken = []
            async for chunk in reply.stream():
                spoken.append(chunk)
                yield _event("response.tts", content=chunk, turn_id=turn_id)
            yield _event(
                "response.data",
                content=_match_metadata(payload.text, "".join(spoken).strip(), reply.result),
                turn_id=turn_id,
            )

        elif payload.type != WebhookEventType.SESSION_UPDATE:
            logger.debug("Ignoring webhook event %s", payload.type)

    except Exception:
        logger.exception("Error in webhook handler")
        yield _event("response.tts", content=ERROR_APOLOGY, turn_id=turn_id)

    yield _event("response.end", turn_id=turn_id)


def create_app(engine: Optional[MatchingEngine] = None,
               webhook_secret: Optional[str] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.basicConfig(
            level=config.LOG_LEVEL,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        if app.state.engine is None:
            app.state.engine = MatchingEngine.from_config()
        await app.state.engine.init()
        yield

    app = FastAPI(
        title="FAQ Voice Assistant API",
        description="Tiered FAQ matching for a voice assistant: embeddings, keywords and LLM fallback",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.webhook_secret = webhook_secret if webhook_secret is not None else config.WEBHOOK_SECRET

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_engine(request: Request) -> MatchingEngine:
        return request.app.state.engine

    @app.post("/webhook")
    async def webhook(request: Request, engine: MatchingEngine = Depends(get_engine)):
        """Voice transport events; answers with a server-sent event stream"""
        body = await request.body()

        secret = request.app.state.webhook_secret
        if secret:
            try:
                verify_signature(body, request.headers.get(SIGNATURE_HEADER), secret)
            except InvalidSignature as e:
                logger.warning("Rejected webhook: %s", e)
                raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = WebhookRequest.model_validate_json(body)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return StreamingResponse(_event_stream(engine, payload), media_type="text/event-stream")

    @app.post("/match", response_model=MatchResponse)
    async def match_question(request: MatchRequest, engine: MatchingEngine = Depends(get_engine)):
        """Match a question against the FAQ corpus"""
        try:
            history = None
            if request.conversation_id:
                log = engine.conversations.get(request.conversation_id)
                if log is not None:
                    history = log.history(engine.history_turns)

            result = await engine.match_question(request.question, history)
            links = extract_links(result.answer) if isinstance(result, Matched) else None
            return MatchResponse(success=True, question=request.question, result=result, links=links)

        except FAQAssistantError as e:
            raise HTTPException(status_code=500, detail=str(e))

    @app.get("/faq/stats")
    async def faq_stats(engine: MatchingEngine = Depends(get_engine)):
        """Corpus, cache and conversation statistics"""
        return engine.stats()

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "version": "1.0.0"}

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
