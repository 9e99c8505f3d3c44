"""Main entry point for the MedChat proxy API."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from config import (
    PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS, CHAT_DB_PATH, USAGE_LOG_PATH
)
from logger import setup_logging
from models.chat import ChatRequest
from services.chat_orchestrator import ChatOrchestrator
from services.chat_store import ChatStore, ChatStoreError
from services.llm_client import LLMClient, LLMClientError
from services.usage_logger import UsageLogger

logger = logging.getLogger(__name__)

CHAT_ERROR = "Failed to process chat request"

router = APIRouter()


def get_store(request: Request) -> ChatStore:
    return request.app.state.store


def get_orchestrator(request: Request) -> ChatOrchestrator:
    return request.app.state.orchestrator


@router.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "MedChat proxy API"}


@router.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "medchat-proxy",
        "version": "1.0.0"
    }


@router.post("/chat")
async def chat_endpoint(
    chat_request: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_orchestrator)
):
    """
    Role-aware chat endpoint.

    Opens a streamed completion for the given thread and relays it to the
    client as Server-Sent Events:
    - data: {type: "start", messageId: "..."}
    - data: {type: "token", content: "..."} for each delta
    - data: {type: "finish", finishReason, usage, costUSD}
    - data: {type: "error", error: {...}} if the provider fails mid-stream

    Once the stream has been sent, the usage record is logged and the
    conversation (original messages plus the assistant turn) is saved.
    Failures before streaming starts return a JSON {error, details} body.
    """
    try:
        exchange = await orchestrator.start(chat_request)
    except LLMClientError as e:
        logger.error(f"LLM client error for chat {chat_request.chatId}: {e.error.message}")
        return JSONResponse(
            status_code=502,
            content={"error": CHAT_ERROR, "details": e.error.message, "code": e.error.code}
        )
    except Exception as e:
        logger.error(f"Chat API error: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": CHAT_ERROR, "details": str(e) or type(e).__name__}
        )

    return StreamingResponse(
        orchestrator.stream_events(exchange),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no"  # Disable buffering in nginx
        },
        background=BackgroundTask(orchestrator.finalize, exchange)
    )


@router.get("/conversations")
async def list_conversations(store: ChatStore = Depends(get_store)):
    """All conversation summaries, most recently updated first."""
    try:
        conversations = store.list()
    except ChatStoreError as e:
        logger.error(f"Failed to list conversations: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to list conversations"})
    return [conversation.to_dict() for conversation in conversations]


@router.get("/conversations/{chat_id}")
async def get_conversation(chat_id: str, store: ChatStore = Depends(get_store)):
    """Full conversation record including its message thread."""
    try:
        conversation = store.get(chat_id)
    except ChatStoreError as e:
        logger.error(f"Failed to load conversation {chat_id}: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to load conversation"})

    if conversation is None:
        return JSONResponse(status_code=404, content={"error": "Conversation not found"})
    return conversation.to_dict()


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    logger.warning(f"Rejected malformed request to {request.url.path}: {details}")
    message = CHAT_ERROR if request.url.path == "/chat" else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message, "details": details})


def create_app(
    store: Optional[ChatStore] = None,
    llm_client: Optional[LLMClient] = None,
    usage_logger: Optional[UsageLogger] = None
) -> FastAPI:
    """
    Build the API application.

    Collaborators that are not passed in are created when the app starts and
    closed when it shuts down; injected ones stay owned by the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if LOG_FORMAT.lower() == "json":
            setup_logging(LOG_LEVEL)

        logger.info("Initializing MedChat proxy services...")
        owned_store = store is None
        owned_llm = llm_client is None
        owned_usage = usage_logger is None

        try:
            app.state.store = store or ChatStore(CHAT_DB_PATH)
            app.state.usage_logger = usage_logger or UsageLogger(USAGE_LOG_PATH)
            app.state.llm_client = llm_client or LLMClient()
            app.state.orchestrator = ChatOrchestrator(
                llm_client=app.state.llm_client,
                store=app.state.store,
                usage_logger=app.state.usage_logger
            )
        except Exception as e:
            logger.error(f"Failed to initialize services: {e}", exc_info=True)
            raise
        logger.info("All services initialized successfully")

        yield

        if owned_llm:
            await app.state.llm_client.close()
        if owned_usage:
            app.state.usage_logger.close()
        if owned_store:
            app.state.store.close()
        logger.info("MedChat proxy services shut down")

    app = FastAPI(
        title="MedChat Proxy",
        description="Role-aware medical chat proxy with conversation history and usage accounting",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting MedChat proxy API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
