"""
FastAPI Application Module

Serves the neurosci.ai chat backend: an ingestion endpoint that forwards
prompts to the completion API, and conversation endpoints backed by a
persistent chat controller.

Key Features:
- JSON and multipart ingestion at /api/chat
- Conversation management with write-through persistence
- Structured logging and Prometheus metrics
- CORS and OpenTelemetry support
"""

from typing import List, Optional
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CollectorRegistry, Counter, generate_latest
from pydantic import BaseModel, ConfigDict, Field, field_validator
from structlog import get_logger

from ..config import Settings, get_settings
from ..domain.models import Conversation, Message
from ..errors import BadRequest, ChatError
from ..repositories.file import JsonFileRepository
from ..services.backends import LocalChatBackend
from ..services.chat import ChatController
from ..services.completion import CompletionGateway
from ..services.ingestion import IngestionService, UploadStore

# Registry for isolated metric collection
CUSTOM_REGISTRY = CollectorRegistry()

REQUESTS = Counter("requests_total", "Total HTTP requests", registry=CUSTOM_REGISTRY)
COMPLETION_ERRORS = Counter("completion_errors_total", "Failed ingestion requests", registry=CUSTOM_REGISTRY)
SUBMISSIONS = Counter("submissions_total", "Messages submitted through the controller", registry=CUSTOM_REGISTRY)

logger = get_logger()


class MessageCreate(BaseModel):
    """Defines the structure for message submissions"""

    model_config = ConfigDict(populate_by_name=True)

    content: str = ""
    file_names: List[str] = Field(default_factory=list, alias="fileNames")


class RenameRequest(BaseModel):
    """Defines the structure for conversation rename requests"""

    title: str

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class ControllerState(BaseModel):
    current_id: Optional[UUID] = None
    is_loading: bool = False


def build_gateway(settings: Settings) -> CompletionGateway:
    return CompletionGateway(api_key=settings.openai_api_key, base_url=settings.openai_api_base)


def build_ingestion(settings: Settings, gateway: Optional[CompletionGateway] = None) -> IngestionService:
    uploads = UploadStore(settings.upload_dir) if settings.persist_uploads else None
    return IngestionService(gateway or build_gateway(settings), uploads)


def get_gateway(settings: Settings = Depends(get_settings)) -> CompletionGateway:
    """Returns a gateway bound to the configured credential"""
    return build_gateway(settings)


def get_ingestion(
    settings: Settings = Depends(get_settings),
    gateway: CompletionGateway = Depends(get_gateway),
) -> IngestionService:
    """Returns the ingestion service for one request"""
    return build_ingestion(settings, gateway)


_controller: Optional[ChatController] = None


def get_controller() -> ChatController:
    """Returns the process-wide chat controller, opening it on first use.

    The controller keeps its store, but its backend rebuilds the gateway from
    the environment on every submission.
    """
    global _controller
    if _controller is None:
        settings = get_settings()
        _controller = ChatController.open(
            JsonFileRepository(settings.storage_path),
            LocalChatBackend(lambda: build_ingestion(get_settings())),
        )
    return _controller


app = FastAPI(
    title="neurosci.ai Chat API",
    description="Chat backend proxying prompts to a chat-completion API",
    version="0.1.0",
)

# Enable cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Set up request tracing
FastAPIInstrumentor.instrument_app(app)


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Tracks requests"""
    REQUESTS.inc()
    logger.info("request_started", path=request.url.path)
    try:
        return await call_next(request)
    except Exception as e:
        logger.error("request_failed", path=request.url.path, error=str(e))
        raise


@app.post("/api/chat")
async def chat(
    request: Request,
    gateway: CompletionGateway = Depends(get_gateway),
    ingestion: IngestionService = Depends(get_ingestion),
) -> JSONResponse:
    """
    Accepts a JSON or multipart submission and returns the model's reply.
    Attachment bytes are never forwarded, only their filenames.
    """
    if not gateway.configured:
        logger.error("completion_api_key_missing")
        COMPLETION_ERRORS.inc()
        return JSONResponse({"error": "OpenAI API key not configured"}, status_code=500)

    content_type = request.headers.get("content-type", "")
    try:
        if "multipart/form-data" in content_type:
            try:
                form = await request.form()
                message, file_names = await ingestion.parse_form(form)
            except ChatError:
                raise
            except Exception as e:
                logger.error("form_processing_error", error=str(e))
                raise BadRequest("Error processing uploaded files") from e
        else:
            message, file_names = ingestion.parse_json(await request.body())

        reply = await ingestion.ingest(message, file_names)
    except ChatError as e:
        COMPLETION_ERRORS.inc()
        logger.warning("chat_request_failed", status=e.status_code, error=e.message)
        return JSONResponse({"error": e.message}, status_code=e.status_code)
    except Exception as e:
        COMPLETION_ERRORS.inc()
        logger.error("chat_request_error", error=str(e))
        return JSONResponse({"error": str(e) or "Internal server error"}, status_code=500)

    return JSONResponse(reply.model_dump())


def _require(controller: ChatController, conversation_id: UUID) -> Conversation:
    conversation = controller.get(conversation_id)
    if conversation is None:
        logger.warning("conversation_not_found", conversation_id=str(conversation_id))
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@app.get("/state", response_model=ControllerState)
async def get_state(controller: ChatController = Depends(get_controller)) -> ControllerState:
    """Reports the current selection and whether a submission is in flight"""
    return ControllerState(current_id=controller.current_id, is_loading=controller.is_loading)


@app.get("/conversations", response_model=List[Conversation])
async def list_conversations(controller: ChatController = Depends(get_controller)) -> List[Conversation]:
    """Lists conversations, most recently created first"""
    return controller.conversations


@app.post("/conversations", response_model=Conversation)
async def create_conversation(controller: ChatController = Depends(get_controller)) -> Conversation:
    """Starts a new conversation and selects it"""
    return controller.create_conversation()


@app.get("/conversations/{conversation_id}", response_model=Conversation)
async def get_conversation(
    conversation_id: UUID,
    controller: ChatController = Depends(get_controller),
) -> Conversation:
    """Retrieves a specific conversation by its ID"""
    return _require(controller, conversation_id)


@app.patch("/conversations/{conversation_id}", response_model=Conversation)
async def rename_conversation(
    conversation_id: UUID,
    body: RenameRequest,
    controller: ChatController = Depends(get_controller),
) -> Conversation:
    """Renames a conversation"""
    _require(controller, conversation_id)
    return controller.rename_conversation(conversation_id, body.title)


@app.post("/conversations/{conversation_id}/star", response_model=Conversation)
async def star_conversation(
    conversation_id: UUID,
    controller: ChatController = Depends(get_controller),
) -> Conversation:
    """Toggles the starred flag"""
    _require(controller, conversation_id)
    return controller.toggle_star(conversation_id)


@app.post("/conversations/{conversation_id}/select", response_model=ControllerState)
async def select_conversation(
    conversation_id: UUID,
    controller: ChatController = Depends(get_controller),
) -> ControllerState:
    """Makes a conversation the current one"""
    if not controller.select_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return ControllerState(current_id=controller.current_id, is_loading=controller.is_loading)


@app.delete("/conversations/{conversation_id}", status_code=204)
async def delete_conversation(
    conversation_id: UUID,
    controller: ChatController = Depends(get_controller),
) -> Response:
    """Deletes a conversation and its messages"""
    if not controller.delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return Response(status_code=204)


@app.get("/conversations/{conversation_id}/messages", response_model=List[Message])
async def get_messages(
    conversation_id: UUID,
    controller: ChatController = Depends(get_controller),
) -> List[Message]:
    """Gets the message history of a conversation in insertion order"""
    return _require(controller, conversation_id).messages


@app.post("/conversations/{conversation_id}/messages", response_model=Message)
async def create_message(
    conversation_id: UUID,
    message: MessageCreate,
    controller: ChatController = Depends(get_controller),
) -> Message:
    """
    Submits a user message in the given conversation and returns the
    assistant reply. Backend failures come back as an apology message.
    """
    _require(controller, conversation_id)
    if controller.is_loading:
        raise HTTPException(status_code=409, detail="A submission is already in progress")
    if not message.content.strip() and not message.file_names:
        raise HTTPException(status_code=400, detail="Message or files are required")

    controller.select_conversation(conversation_id)
    SUBMISSIONS.inc()
    reply = await controller.submit(message.content, files=[], file_names=message.file_names)
    if reply is None:
        raise HTTPException(status_code=409, detail="Conversation was removed before the reply arrived")
    return reply


@app.get("/metrics")
async def metrics():
    """Provides Prometheus metrics for system monitoring"""
    return Response(generate_latest(CUSTOM_REGISTRY), media_type="text/plain")
