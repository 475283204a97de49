"""LLM module - provides a unified chat interface over LLM API providers."""

from .base import (
    LLMProvider, ChatHandle, ModelReply, FunctionCall, FunctionResponse, Part, ToolDeclaration,
)
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAIProvider
from .volcengine_provider import VolcEngineProvider
from .factory import create_llm_provider

__all__ = [
    'LLMProvider',
    'ChatHandle',
    'ModelReply',
    'FunctionCall',
    'FunctionResponse',
    'Part',
    'ToolDeclaration',
    'GeminiProvider',
    'OpenAIProvider',
    'VolcEngineProvider',
    'create_llm_provider',
]
