"""
Feedback API endpoint - Customer rating after a session ends.
"""

import logging
from fastapi import APIRouter, HTTPException, Depends, status

from ..core.errors import SupportError
from ..models import Feedback, FeedbackCreate, time_id
from ..services import Services, get_services
from .deps import http_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["feedback"])


@router.post("/feedback", response_model=Feedback, status_code=status.HTTP_201_CREATED)
async def submit_feedback(payload: FeedbackCreate, services: Services = Depends(get_services)):
    """
    Rate a finished session (1 to 5 stars, optional comment).
    """
    if not payload.chat_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="chatId is required")

    feedback = Feedback(
        id=time_id(),
        chat_id=payload.chat_id,
        rating=payload.rating,
        comment=payload.comment or None,
    )
    try:
        await services.knowledge_store.add_feedback(feedback)
    except SupportError as e:
        raise http_error(e)

    logger.info(
        f"Feedback received for session {feedback.chat_id}: rating={feedback.rating}",
        extra={"extra_fields": {"chat_id": feedback.chat_id, "rating": feedback.rating}},
    )
    return feedback
