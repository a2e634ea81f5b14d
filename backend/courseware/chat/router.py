"""Assistant chat endpoints: REST session management and the WebSocket channel."""
import json
import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
from starlette.websockets import WebSocketState

from ..auth.service import get_current_active_user, get_user_from_token
from ..database import get_db
from ..errors import AuthenticationError, CoursewareError
from ..models import User
from . import events
from .llm import ChatModel, get_chat_model
from .schemas import ChatSessionCreate, ChatSessionResponse, ChatSessionSummary, SendMessage
from .service import ChatService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai/chat", tags=["AI Chat"])


def get_chat_service(db: Session = Depends(get_db)) -> ChatService:
    """Dependency to get an instance of ChatService."""
    return ChatService(db)


@router.get("/sessions", response_model=List[ChatSessionSummary])
async def list_sessions(
    assignment_id: str = Query(..., alias="assignmentId"),
    current_user: User = Depends(get_current_active_user),
    service: ChatService = Depends(get_chat_service)
):
    """The current user's chat sessions for an assignment, newest first."""
    return service.list_sessions(assignment_id, current_user)


@router.post("/sessions", response_model=ChatSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    data: ChatSessionCreate,
    current_user: User = Depends(get_current_active_user),
    service: ChatService = Depends(get_chat_service)
):
    try:
        return service.create_session(data.assignment_id, current_user, data.title)
    except (HTTPException, CoursewareError):
        raise
    except Exception as e:
        logger.error(f"Creating chat session on {data.assignment_id} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create session"
        )


@router.get("/sessions/{session_id}", response_model=ChatSessionResponse)
async def get_session(
    session_id: str,
    current_user: User = Depends(get_current_active_user),
    service: ChatService = Depends(get_chat_service)
):
    return service.get_session(session_id, current_user)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: str,
    current_user: User = Depends(get_current_active_user),
    service: ChatService = Depends(get_chat_service)
):
    service.delete_session(session_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def safe_send_json(websocket: WebSocket, data: Any) -> None:
    """Send a frame unless the client has already gone away."""
    if websocket.client_state != WebSocketState.CONNECTED:
        logger.debug(f"Skipping {data.get('event')} frame, socket not connected")
        return
    try:
        await websocket.send_json(data)
    except (RuntimeError, WebSocketDisconnect) as e:
        logger.warning(f"Failed to send {data.get('event')} frame, socket likely closed: {e}")


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    token: str = Query(None),
    db: Session = Depends(get_db),
    model: ChatModel = Depends(get_chat_model),
):
    """Chat channel. Clients send ``send-message`` frames and receive the streamed turn."""
    try:
        user = get_user_from_token(token, db)
    except AuthenticationError as e:
        logger.warning(f"Rejected chat socket: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info(f"Chat socket connected for user {user.id}")
    service = ChatService(db)

    async def send(frame: events.Frame) -> None:
        await safe_send_json(websocket, frame)

    try:
        while True:
            text = await websocket.receive_text()
            try:
                incoming = json.loads(text)
            except json.JSONDecodeError:
                await send(events.chat_error(None, "Invalid message format"))
                continue

            if not isinstance(incoming, dict) or incoming.get("event") != events.SEND_MESSAGE:
                event = incoming.get("event") if isinstance(incoming, dict) else None
                await send(events.chat_error(None, f"Unsupported event: {event}"))
                continue

            data = incoming.get("data") or {}
            try:
                payload = SendMessage.model_validate(data)
            except PydanticValidationError:
                await send(events.chat_error(
                    data.get("sessionId") if isinstance(data, dict) else None,
                    "sessionId, assignmentId, and message are required",
                ))
                continue

            await service.handle_message(
                send, model, user,
                session_id=payload.session_id,
                assignment_id=payload.assignment_id,
                message=payload.message,
                timezone=payload.timezone,
            )
    except WebSocketDisconnect:
        logger.info(f"Chat socket disconnected for user {user.id}")
