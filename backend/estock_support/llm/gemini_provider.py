"""
Google Gemini LLM Provider.
Talks to the generateContent REST endpoint with function calling enabled.
"""

import httpx
import logging
import time
from typing import Optional, List, Dict, Any, Tuple

from .base import (
    LLMProvider, ChatHandle, ModelReply, FunctionCall, Part, ToolDeclaration, MessageContent,
)

logger = logging.getLogger(__name__)


def _to_gemini_schema(schema: Any) -> Any:
    """Upper-case JSON schema type names the way the Gemini Schema object expects."""
    if isinstance(schema, dict):
        converted = {}
        for key, value in schema.items():
            if key == "type" and isinstance(value, str):
                converted[key] = value.upper()
            else:
                converted[key] = _to_gemini_schema(value)
        return converted
    if isinstance(schema, list):
        return [_to_gemini_schema(item) for item in schema]
    return schema


class GeminiChat(ChatHandle):
    """Chat handle that replays the accumulated contents on every turn."""

    def __init__(self, provider: "GeminiProvider", system_instruction: str,
                 tools: Optional[List[ToolDeclaration]] = None):
        super().__init__(system_instruction, tools)
        self.provider = provider

    async def send_message(self, content: MessageContent) -> ModelReply:
        turn = {
            "role": "user",
            "parts": [self.provider._format_part(p) for p in self._as_parts(content)],
        }
        reply, model_turn = await self.provider.generate(
            self.history + [turn], self.system_instruction, self.tools
        )
        # History only grows on success so a failed turn can be retried as-is
        self.history.extend([turn, model_turn])
        return reply


class GeminiProvider(LLMProvider):
    """
    Provider for the Gemini API (generativelanguage.googleapis.com).
    Function call ids are passed through so results can be matched to calls.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        default_temperature: float = 0.7,
        default_max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens, timeout)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def create_chat(self, system_instruction: str,
                    tools: Optional[List[ToolDeclaration]] = None) -> GeminiChat:
        return GeminiChat(self, system_instruction, tools)

    def _format_part(self, part: Part) -> Dict[str, Any]:
        """Convert a Part to the Gemini wire format."""
        if part.function_response is not None:
            fr = part.function_response
            payload: Dict[str, Any] = {"name": fr.name, "response": fr.response}
            if fr.call_id:
                payload["id"] = fr.call_id
            return {"functionResponse": payload}
        if part.inline_data is not None:
            return {"inlineData": {
                "mimeType": part.inline_data["mime_type"],
                "data": part.inline_data["data"],
            }}
        return {"text": part.text or ""}

    def _build_payload(self, contents: List[Dict[str, Any]], system_instruction: str,
                       tools: List[ToolDeclaration]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": self.default_temperature,
                "maxOutputTokens": self.default_max_tokens,
            },
        }
        if system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if tools:
            payload["tools"] = [{"functionDeclarations": [
                {
                    "name": t.name,
                    "description": t.description,
                    "parameters": _to_gemini_schema(t.parameters),
                }
                for t in tools
            ]}]
        return payload

    @staticmethod
    def _parse_reply(data: Dict[str, Any], model: str) -> Tuple[ModelReply, Dict[str, Any]]:
        """Extract text and function calls from a generateContent response."""
        candidates = data.get("candidates") or []
        content = candidates[0].get("content", {}) if candidates else {}
        parts = content.get("parts") or []

        text = ""
        calls: List[FunctionCall] = []
        for part in parts:
            if "text" in part and not part.get("thought"):
                text += part["text"]
            elif "functionCall" in part:
                fc = part["functionCall"]
                calls.append(FunctionCall(
                    name=fc.get("name", ""),
                    arguments=fc.get("args") or {},
                    call_id=fc.get("id"),
                ))

        usage_meta = data.get("usageMetadata", {})
        usage = {
            "prompt_tokens": usage_meta.get("promptTokenCount", 0),
            "completion_tokens": usage_meta.get("candidatesTokenCount", 0),
            "total_tokens": usage_meta.get("totalTokenCount", 0),
        }
        model_turn = {"role": "model", "parts": parts}
        reply = ModelReply(
            text=text,
            function_calls=calls,
            model=data.get("modelVersion", model),
            usage=usage,
            raw=data,
        )
        return reply, model_turn

    async def generate(
        self,
        contents: List[Dict[str, Any]],
        system_instruction: str,
        tools: List[ToolDeclaration],
    ) -> Tuple[ModelReply, Dict[str, Any]]:
        """
        Call generateContent with the full conversation.

        Returns:
            The parsed reply and the raw model turn to append to history
        """
        start_time = time.time()
        url = f"{self.base_url}/models/{self.model}:generateContent"
        payload = self._build_payload(contents, system_instruction, tools)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider=gemini, model={self.model}, "
                f"{len(contents)} turns, {len(tools)} tools"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            reply, model_turn = self._parse_reply(data, self.model)
            duration_ms = (time.time() - start_time) * 1000

            logger.info(
                "LLM API call completed",
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": reply.model,
                    "prompt_tokens": reply.usage.get("prompt_tokens", 0),
                    "completion_tokens": reply.usage.get("completion_tokens", 0),
                    "total_tokens": reply.usage.get("total_tokens", 0),
                    "function_calls": len(reply.function_calls),
                    "duration_ms": round(duration_ms, 2),
                }}
            )
            return reply, model_turn
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"LLM API call failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "provider": "gemini",
                    "model": self.model,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise
