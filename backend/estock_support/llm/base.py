"""
LLM Provider Base - Abstract chat contract consumed by the conversation core.

A provider creates stateful chat handles bound to one system instruction and
one tool set. Each handle keeps its own history; callers only ever send the
next turn (text, image parts, or a batch of function responses).
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field


@dataclass
class FunctionCall:
    """A tool invocation requested by the model."""
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)
    call_id: Optional[str] = None


@dataclass
class FunctionResponse:
    """The result of one tool invocation, returned to the model."""
    name: str
    response: Dict[str, Any]
    call_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "response": self.response, "id": self.call_id}


@dataclass
class Part:
    """
    One piece of a user turn.
    Exactly one of text, inline_data or function_response is set.
    """
    text: Optional[str] = None
    inline_data: Optional[Dict[str, str]] = None  # {"mime_type": ..., "data": base64}
    function_response: Optional[FunctionResponse] = None

    @staticmethod
    def from_text(text: str) -> "Part":
        """Create a text part."""
        return Part(text=text)

    @staticmethod
    def from_image(data: str, mime_type: str) -> "Part":
        """
        Create an inline image part.

        Args:
            data: Base64-encoded image bytes
            mime_type: Image media type (e.g. image/png)
        """
        return Part(inline_data={"mime_type": mime_type, "data": data})

    @staticmethod
    def from_function_response(response: FunctionResponse) -> "Part":
        """Create a function response part."""
        return Part(function_response=response)

    @staticmethod
    def from_dict(raw: Dict[str, Any]) -> "Part":
        """
        Build a part from its JSON wire shape.

        Accepts {"text": ...}, {"inlineData": {"mimeType", "data"}} and
        {"functionResponse": {"name", "response", "id"}}.

        Raises:
            ValueError: If the dict matches none of the known shapes
        """
        if "text" in raw:
            return Part.from_text(str(raw["text"]))
        inline = raw.get("inlineData") or raw.get("inline_data")
        if inline:
            return Part.from_image(
                inline["data"], inline.get("mimeType") or inline.get("mime_type", "image/png")
            )
        fr = raw.get("functionResponse") or raw.get("function_response")
        if fr:
            return Part.from_function_response(FunctionResponse(
                name=fr["name"],
                response=fr.get("response", {}),
                call_id=fr.get("id"),
            ))
        raise ValueError(f"Unsupported message part: {sorted(raw.keys())}")


MessageContent = Union[str, List[Part]]


@dataclass
class ToolDeclaration:
    """A tool the model may call, described with a JSON schema."""
    name: str
    description: str
    parameters: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}


@dataclass
class ModelReply:
    """Response from one chat turn."""
    text: str = ""
    function_calls: List[FunctionCall] = field(default_factory=list)
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None


class ChatHandle(ABC):
    """
    A live conversation with the model.
    Turns must be sent one at a time; the handle is not safe for concurrent use.
    """

    def __init__(self, system_instruction: str, tools: Optional[List[ToolDeclaration]] = None):
        self.system_instruction = system_instruction
        self.tools = list(tools or [])
        self.history: List[Any] = []

    @abstractmethod
    async def send_message(self, content: MessageContent) -> ModelReply:
        """
        Send the next turn and return the model reply.

        Args:
            content: Plain text, or a list of parts (text, images, function responses)

        Returns:
            ModelReply with text and any requested function calls
        """
        pass

    def checkpoint(self) -> int:
        """Mark the current end of the history."""
        return len(self.history)

    def rollback(self, mark: int) -> None:
        """
        Drop every entry recorded after a checkpoint.
        Used to discard a turn left with unanswered tool calls.
        """
        del self.history[mark:]

    @staticmethod
    def _as_parts(content: MessageContent) -> List[Part]:
        """Normalize message content to a list of parts."""
        if isinstance(content, str):
            return [Part.from_text(content)]
        return list(content)


class LLMProvider(ABC):
    """
    Abstract base class for LLM API providers.
    All providers must implement create_chat.
    """

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 2048,
                 timeout: float = 120.0):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.timeout = timeout

    @abstractmethod
    def create_chat(
        self,
        system_instruction: str,
        tools: Optional[List[ToolDeclaration]] = None,
    ) -> ChatHandle:
        """
        Create a chat bound to a system instruction and tool set.

        Args:
            system_instruction: Instruction fixed for the chat's lifetime
            tools: Tool declarations the model may call

        Returns:
            A new ChatHandle with empty history
        """
        pass
