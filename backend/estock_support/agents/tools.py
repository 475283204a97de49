"""
Tool Dispatcher - Executes the model's tool calls against the knowledge store.

Tools never raise to the session: every failure becomes a structured error
response for the model to explain conversationally. Transcript side effects
(image messages) are returned as events and applied by the session.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ValidationError

from ..llm.base import FunctionCall, FunctionResponse, ToolDeclaration
from ..models import Message, MessageRole, time_id

logger = logging.getLogger(__name__)

KNOWN_SCREENS = ["sales", "purchases", "inventory", "login", "barcode", "settings", "customers", "reports"]

NO_KB_MATCH = "No exact match found in KB, rely on System Documentation."


class ToolKind(str, Enum):
    """Closed set of tools the assistant may call."""
    SEARCH_KNOWLEDGE_BASE = "search_knowledge_base"
    SHOW_SCREEN_IMAGE = "show_screen_image"
    SHOW_KNOWLEDGE_IMAGE = "show_knowledge_image"

    @classmethod
    def parse(cls, name: str) -> Optional["ToolKind"]:
        try:
            return cls(name)
        except ValueError:
            return None


class SearchKnowledgeArgs(BaseModel):
    query: str = ""


class ShowScreenImageArgs(BaseModel):
    screen_name: str = ""


class ShowKnowledgeImageArgs(BaseModel):
    snippet_id: str = ""


TOOL_DECLARATIONS = [
    ToolDeclaration(
        name=ToolKind.SEARCH_KNOWLEDGE_BASE.value,
        description=(
            "Search the internal technical support database. "
            "Use this for specific technical questions or business info."
        ),
        parameters={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": 'The search query (e.g., "login error", "pricing", "api key").',
                },
            },
            "required": ["query"],
        },
    ),
    ToolDeclaration(
        name=ToolKind.SHOW_SCREEN_IMAGE.value,
        description="Show an illustrative screenshot of a specific screen in the e-stock system to the user.",
        parameters={
            "type": "object",
            "properties": {
                "screen_name": {
                    "type": "string",
                    "enum": KNOWN_SCREENS,
                    "description": "The name of the screen to show.",
                },
            },
            "required": ["screen_name"],
        },
    ),
    ToolDeclaration(
        name=ToolKind.SHOW_KNOWLEDGE_IMAGE.value,
        description=(
            "Display an image associated with a specific knowledge snippet/info "
            "that was added by the admin."
        ),
        parameters={
            "type": "object",
            "properties": {
                "snippet_id": {
                    "type": "string",
                    "description": "The ID of the snippet image to show.",
                },
            },
            "required": ["snippet_id"],
        },
    ),
]


@dataclass
class ToolOutcome:
    """Transcript events to apply, plus the response to send back to the model."""
    response: FunctionResponse
    events: List[Message] = field(default_factory=list)


def _image_message(url: str, suffix: str) -> Message:
    return Message(id=time_id(suffix), role=MessageRole.MODEL, text="", image=url)


class ToolDispatcher:
    """Resolves function calls against a KnowledgeStore."""

    def __init__(self, knowledge_store):
        self.knowledge_store = knowledge_store

    async def dispatch_batch(self, calls: List[FunctionCall]) -> List[ToolOutcome]:
        """Run a batch of calls concurrently; outcomes keep the call order."""
        return list(await asyncio.gather(*(self.dispatch(call) for call in calls)))

    async def dispatch(self, call: FunctionCall) -> ToolOutcome:
        """
        Execute one function call.

        Returns:
            ToolOutcome: Never raises; failures are error responses
        """
        kind = ToolKind.parse(call.name)
        logger.debug(f"Dispatching tool call {call.name} (id={call.call_id})")

        try:
            if kind is ToolKind.SEARCH_KNOWLEDGE_BASE:
                return await self._search_knowledge_base(
                    call, SearchKnowledgeArgs.model_validate(call.arguments or {})
                )
            elif kind is ToolKind.SHOW_SCREEN_IMAGE:
                return self._show_screen_image(
                    call, ShowScreenImageArgs.model_validate(call.arguments or {})
                )
            elif kind is ToolKind.SHOW_KNOWLEDGE_IMAGE:
                return await self._show_knowledge_image(
                    call, ShowKnowledgeImageArgs.model_validate(call.arguments or {})
                )
            else:
                logger.warning(f"Model requested unknown tool: {call.name}")
                return self._result(call, {"error": "Unknown function"})
        except ValidationError as e:
            logger.warning(f"Invalid arguments for tool {call.name}: {e}")
            return self._result(call, {"error": "Invalid arguments."})
        except Exception as e:
            logger.error(
                f"Tool {call.name} failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"tool": call.name, "error": str(e)}}
            )
            return self._result(call, {"error": "Tool execution failed."})

    @staticmethod
    def _result(call: FunctionCall, response: dict, events: Optional[List[Message]] = None) -> ToolOutcome:
        return ToolOutcome(
            response=FunctionResponse(name=call.name, response=response, call_id=call.call_id),
            events=events or [],
        )

    async def _search_knowledge_base(self, call: FunctionCall, args: SearchKnowledgeArgs) -> ToolOutcome:
        answer = await self.knowledge_store.search_kb(args.query)
        return self._result(call, {"result": answer or NO_KB_MATCH})

    def _show_screen_image(self, call: FunctionCall, args: ShowScreenImageArgs) -> ToolOutcome:
        url = self.knowledge_store.get_screen_image(args.screen_name)
        if not url:
            return self._result(call, {"error": "Image not found."})
        return self._result(
            call,
            {"result": "Image displayed to the user successfully."},
            [_image_message(url, "_img")],
        )

    async def _show_knowledge_image(self, call: FunctionCall, args: ShowKnowledgeImageArgs) -> ToolOutcome:
        snippet = await self.knowledge_store.get_snippet(args.snippet_id)
        if snippet is None or not snippet.image_url:
            return self._result(call, {"error": "Snippet image not found."})
        return self._result(
            call,
            {"result": "Snippet image displayed successfully."},
            [_image_message(snippet.image_url, "_snip_img")],
        )
