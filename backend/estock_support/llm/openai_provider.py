"""
OpenAI-compatible LLM Provider.
Uses the chat/completions endpoint with tool calling.
"""

import httpx
import json
import logging
import time
from typing import Optional, List, Dict, Any, Tuple

from .base import (
    LLMProvider, ChatHandle, ModelReply, FunctionCall, Part, ToolDeclaration, MessageContent,
)

logger = logging.getLogger(__name__)


class OpenAIChat(ChatHandle):
    """Chat handle keeping an OpenAI-style message list."""

    def __init__(self, provider: "OpenAIProvider", system_instruction: str,
                 tools: Optional[List[ToolDeclaration]] = None):
        super().__init__(system_instruction, tools)
        self.provider = provider
        self.history: List[Dict[str, Any]] = []
        if system_instruction:
            self.history.append({"role": "system", "content": system_instruction})

    async def send_message(self, content: MessageContent) -> ModelReply:
        new_messages = self.provider._format_turn(self._as_parts(content))
        reply, assistant_message = await self.provider.complete(
            self.history + new_messages, self.tools
        )
        self.history.extend(new_messages)
        self.history.append(assistant_message)
        return reply


class OpenAIProvider(LLMProvider):
    """
    Provider for OpenAI and OpenAI-compatible APIs.
    Function results are sent back as role=tool messages keyed by tool_call_id.
    """

    provider_name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
        default_temperature: float = 0.7,
        default_max_tokens: int = 2048,
        timeout: float = 120.0,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens, timeout)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def create_chat(self, system_instruction: str,
                    tools: Optional[List[ToolDeclaration]] = None) -> OpenAIChat:
        return OpenAIChat(self, system_instruction, tools)

    def _format_turn(self, parts: List[Part]) -> List[Dict[str, Any]]:
        """
        Convert one turn's parts into chat messages.
        Function responses become tool messages; text and images are folded
        into a single user message with images first.
        """
        messages: List[Dict[str, Any]] = []
        blocks: List[Dict[str, Any]] = []
        texts: List[str] = []

        for part in parts:
            if part.function_response is not None:
                fr = part.function_response
                messages.append({
                    "role": "tool",
                    "tool_call_id": fr.call_id or fr.name,
                    "content": json.dumps(fr.response, ensure_ascii=False),
                })
            elif part.inline_data is not None:
                data_uri = f"data:{part.inline_data['mime_type']};base64,{part.inline_data['data']}"
                blocks.append({"type": "image_url", "image_url": {"url": data_uri}})
            elif part.text is not None:
                texts.append(part.text)

        if blocks:
            if texts:
                blocks.append({"type": "text", "text": "\n".join(texts)})
            messages.append({"role": "user", "content": blocks})
        elif texts:
            messages.append({"role": "user", "content": "\n".join(texts)})

        return messages

    @staticmethod
    def _format_tools(tools: List[ToolDeclaration]) -> List[Dict[str, Any]]:
        return [{"type": "function", "function": t.to_dict()} for t in tools]

    @staticmethod
    def _parse_tool_calls(message: Dict[str, Any]) -> List[FunctionCall]:
        calls: List[FunctionCall] = []
        for tc in message.get("tool_calls") or []:
            fn = tc.get("function", {})
            raw_args = fn.get("arguments") or "{}"
            try:
                arguments = json.loads(raw_args) if isinstance(raw_args, str) else dict(raw_args)
            except json.JSONDecodeError:
                logger.warning(f"Malformed tool arguments for {fn.get('name')}: {raw_args[:200]}")
                arguments = {}
            calls.append(FunctionCall(
                name=fn.get("name", ""),
                arguments=arguments if isinstance(arguments, dict) else {},
                call_id=tc.get("id"),
            ))
        return calls

    async def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: List[ToolDeclaration],
    ) -> Tuple[ModelReply, Dict[str, Any]]:
        """
        Send the conversation to the chat/completions endpoint.

        Returns:
            The parsed reply and the assistant message to append to history
        """
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.default_temperature,
            "max_tokens": self.default_max_tokens,
        }
        if tools:
            payload["tools"] = self._format_tools(tools)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider={self.provider_name}, model={self.model}, "
                f"{len(messages)} messages, {len(tools)} tools"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()

            message = data["choices"][0]["message"]
            usage = data.get("usage", {})
            calls = self._parse_tool_calls(message)
            duration_ms = (time.time() - start_time) * 1000

            logger.info(
                "LLM API call completed",
                extra={"extra_fields": {
                    "provider": self.provider_name,
                    "model": data.get("model", self.model),
                    "prompt_tokens": usage.get("prompt_tokens", 0),
                    "completion_tokens": usage.get("completion_tokens", 0),
                    "total_tokens": usage.get("total_tokens", 0),
                    "function_calls": len(calls),
                    "duration_ms": round(duration_ms, 2),
                }}
            )

            assistant_message: Dict[str, Any] = {
                "role": "assistant",
                "content": message.get("content") or "",
            }
            if message.get("tool_calls"):
                assistant_message["tool_calls"] = message["tool_calls"]

            reply = ModelReply(
                text=message.get("content") or "",
                function_calls=calls,
                model=data.get("model", self.model),
                usage=usage,
                raw=data,
            )
            return reply, assistant_message
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"LLM API call failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "provider": self.provider_name,
                    "model": self.model,
                    "duration_ms": round(duration_ms, 2),
                    "error": str(e),
                }}
            )
            raise
