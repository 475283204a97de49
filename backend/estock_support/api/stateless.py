"""
Stateless chat endpoint - One model turn per request, no session kept.

Clients send the system instruction, tool declarations and the next turn
(text or parts, including function responses); the reply carries the text
and any function calls for the client to resolve.
"""

import logging
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from typing import Any, Dict, List, Optional

from ..agents.prompts import MISSING_API_KEY_MESSAGE, TURN_ERROR_MESSAGE
from ..llm.base import MessageContent, Part, ToolDeclaration
from ..models import StatelessChatRequest
from ..services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def parse_tool_declarations(tools: Optional[List[Dict[str, Any]]]) -> List[ToolDeclaration]:
    """
    Accept both [{"functionDeclarations": [...]}] groups and bare declarations.
    """
    declarations = []
    for entry in tools or []:
        group = entry.get("functionDeclarations") or entry.get("function_declarations")
        for raw in (group if group is not None else [entry]):
            declarations.append(ToolDeclaration(
                name=raw["name"],
                description=raw.get("description", ""),
                parameters=raw.get("parameters") or {"type": "object", "properties": {}},
            ))
    return declarations


def parse_message(message: Any) -> MessageContent:
    """
    Convert the request message to chat content.

    Raises:
        ValueError: If a part has an unknown shape
    """
    if isinstance(message, str):
        return message
    if isinstance(message, dict):
        return [Part.from_dict(message)]
    if isinstance(message, list):
        return [Part.from_dict(p) if isinstance(p, dict) else Part.from_text(str(p)) for p in message]
    return str(message)


@router.api_route("/api/chat", methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def stateless_chat_method_not_allowed():
    return JSONResponse(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        content={"error": "Method not allowed"},
    )


@router.post("/api/chat")
async def stateless_chat(body: StatelessChatRequest, services: Services = Depends(get_services)):
    """
    Run one model turn.

    Returns:
        {"text": str, "functionCalls": [{"name", "args", "id"}] | None}
    """
    if services.llm_provider is None:
        logger.error("Stateless chat called without a configured model API key")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "API key not configured", "text": MISSING_API_KEY_MESSAGE},
        )

    if not body.message:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Message required"},
        )

    try:
        content = parse_message(body.message)
        tools = parse_tool_declarations(body.tools)
    except (KeyError, ValueError, AttributeError) as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": f"Invalid request: {e}"},
        )

    try:
        chat = services.llm_provider.create_chat(body.system_instruction or "", tools)
        reply = await chat.send_message(content)
    except Exception as e:
        logger.error(f"Stateless chat failed: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": str(e) or "Internal server error", "text": TURN_ERROR_MESSAGE},
        )

    function_calls = [
        {"name": c.name, "args": c.arguments, "id": c.call_id}
        for c in reply.function_calls
    ]
    return {"text": reply.text or "", "functionCalls": function_calls or None}
