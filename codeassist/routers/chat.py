"""Chat mode API endpoints"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, HTTPException
from sse_starlette.sse import EventSourceResponse

from ..models.chat import CancelRequest, ChatRequest, ChatResponse, Message, Role, StreamEvent
from ..services.config_manager import ConfigManager
from ..services.errors import ConfigurationError, TransportError
from ..services.llm_service import LLMService, QueuedStream
from ..services.tool_call_parser import extract_code_blocks, parse_tool_calls

router = APIRouter()

# In-memory conversation storage (for session persistence)
conversations: dict[str, list[Message]] = {}

# conversation_id -> the one stream allowed per conversation
active_streams: dict[str, QueuedStream] = {}


def get_llm_service() -> LLMService:
    return LLMService(ConfigManager.get_instance().get_config())


def _history(conversation_id: str) -> list[Message]:
    return conversations.setdefault(conversation_id, [])


@router.post("/message", response_model=ChatResponse)
async def chat_message(request: ChatRequest) -> ChatResponse:
    """Send a chat message and get a response (non-streaming)"""
    llm_service = get_llm_service()

    conversation_id = request.conversation_id or str(uuid.uuid4())
    if conversation_id in active_streams:
        raise HTTPException(status_code=409, detail="A response is already streaming for this conversation")

    history = _history(conversation_id)
    user_message = Message(role=Role.USER, content=request.message)

    try:
        response_content = await llm_service.chat(
            [*history, user_message], request.context, request.project_root
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransportError as e:
        raise HTTPException(status_code=502, detail=str(e))

    assistant_message = Message(role=Role.ASSISTANT, content=response_content)
    history.extend([user_message, assistant_message])

    edits = parse_tool_calls(response_content)
    return ChatResponse(
        conversation_id=conversation_id,
        message_id=assistant_message.id,
        content=response_content,
        edits=edits,
        code_blocks=[] if edits else extract_code_blocks(response_content),
        metadata={"provider": llm_service.provider},
    )


@router.post("/stream")
async def chat_stream(request: ChatRequest):
    """Send a chat message and get a streaming response (SSE)"""
    llm_service = get_llm_service()

    conversation_id = request.conversation_id or str(uuid.uuid4())
    if conversation_id in active_streams:
        raise HTTPException(status_code=409, detail="A response is already streaming for this conversation")

    history = _history(conversation_id)
    user_message = Message(role=Role.USER, content=request.message)

    try:
        stream = await llm_service.open_stream([*history, user_message], request.context, request.project_root)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    async def event_generator():
        # Registered once the client starts reading
        if active_streams.setdefault(conversation_id, stream) is not stream:
            busy = StreamEvent(type="error", done=True, status=409, error="A response is already streaming")
            yield {"event": "message", "data": busy.model_dump_json()}
            return

        assistant_message = Message.partial()
        history.extend([user_message, assistant_message])
        try:
            async for event in stream.events():
                if event.type == "token":
                    assistant_message.append(event.chunk or "")
                else:
                    assistant_message.finalize(event.content or assistant_message.content)
                    event.metadata = {
                        "conversation_id": conversation_id,
                        "message_id": assistant_message.id,
                        "provider": llm_service.provider,
                    }
                yield {"event": "message", "data": event.model_dump_json()}
        finally:
            assistant_message.finalize()
            active_streams.pop(conversation_id, None)

    return EventSourceResponse(event_generator())


@router.post("/cancel")
async def cancel_stream(request: CancelRequest) -> dict:
    """Stop the active stream of a conversation"""
    stream = active_streams.get(request.conversation_id)
    if stream is None:
        return {"status": "idle", "conversation_id": request.conversation_id}
    stream.cancel()
    return {
        "status": "cancelled",
        "conversation_id": request.conversation_id,
        "partial": stream.session.text,
    }
