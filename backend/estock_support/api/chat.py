"""
Chat API endpoints - Session lifecycle for the support chat.
Supports a text message and/or one image attachment per turn.
"""

import json
import logging
from fastapi import APIRouter, HTTPException, Depends, status, UploadFile, File, Form, Query
from fastapi.responses import StreamingResponse
from typing import AsyncIterator, Optional

from ..agents.support_agent import ImageAttachment
from ..core.errors import SupportError
from ..models import EndSessionResult, Message, SessionView, TurnResult
from ..services import Services, get_services
from ..utils.auth import get_optional_customer_id
from .deps import http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/jpg", "image/webp", "image/gif"}


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


@router.post("/sessions", response_model=SessionView, status_code=status.HTTP_201_CREATED)
async def start_session(
    customer_id: Optional[str] = Depends(get_optional_customer_id),
    services: Services = Depends(get_services),
):
    """
    Open a chat session.

    A logged-in customer personalizes the assistant; anonymous visitors chat
    as guests. If the model is not configured the session opens in the
    error state with a fallback message.
    """
    customer = None
    if customer_id is not None:
        customer = await services.customer_store.get_customer(customer_id)

    session = await services.orchestrator.start_session(customer)
    return SessionView(
        session_id=session.session_id,
        state=session.state.value,
        messages=session.messages,
    )


@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session(session_id: str, services: Services = Depends(get_services)):
    """Get the current transcript of a live session."""
    try:
        session = services.orchestrator.get_session(session_id)
    except SupportError as e:
        raise http_error(e)
    return SessionView(
        session_id=session.session_id,
        state=session.state.value,
        messages=session.messages,
    )


@router.post("/sessions/{session_id}/turns")
async def submit_turn(
    session_id: str,
    text: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    stream: bool = Query(False, description="Enable streaming output"),
    services: Services = Depends(get_services),
):
    """
    Submit a user turn.

    Args:
        session_id: Session id from start_session
        text: Message text (optional when an image is attached)
        image: Optional image, at most 1 MiB
        stream: Enable Server-Sent Events streaming of each resulting message

    Returns:
        TurnResult (stream=false) or StreamingResponse (stream=true)
    """
    attachment = None
    if image is not None:
        if image.content_type not in ALLOWED_IMAGE_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported image type: {image.content_type}"
            )
        attachment = ImageAttachment(data=await image.read(), mime_type=image.content_type)

    try:
        session = services.orchestrator.get_session(session_id)
        messages = session.submit_turn(text, attachment)
    except SupportError as e:
        raise http_error(e)

    # Non-streaming mode
    if not stream:
        try:
            appended = [m async for m in messages]
        except SupportError as e:
            raise http_error(e)
        return TurnResult(session_id=session_id, state=session.state.value, messages=appended)

    # Streaming mode
    async def event_generator(turn: AsyncIterator[Message]):
        try:
            async for message in turn:
                yield _sse({"type": "message", "message": message.model_dump(mode="json", by_alias=True)})
            yield _sse({"type": "done", "state": session.state.value})
        except SupportError as e:
            logger.warning(f"Turn rejected for session {session_id}: {e}")
            yield _sse({"type": "error", "error": str(e)})

    return StreamingResponse(
        event_generator(messages),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        }
    )


@router.post("/sessions/{session_id}/end", response_model=EndSessionResult)
async def end_session(session_id: str, services: Services = Depends(get_services)):
    """
    End a session: summarize it, persist its log and clear its autosave.

    Returns:
        EndSessionResult with the log id
    """
    try:
        log_id = await services.orchestrator.end_session(session_id)
    except SupportError as e:
        raise http_error(e)
    return EndSessionResult(log_id=log_id)
