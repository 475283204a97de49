"""
Transcript formatting shared by session finalization and recovery.
"""

from typing import Iterable

from ..models import Message, MessageRole

USER_LABEL = "👤 العميل"
BOT_LABEL = "🤖 E-stock Bot"
IMAGE_TAG = " [مرفق صورة]"


def format_transcript(messages: Iterable[Message]) -> str:
    """Render messages as role-prefixed lines separated by blank lines."""
    lines = []
    for m in messages:
        role = USER_LABEL if m.role == MessageRole.USER else BOT_LABEL
        image_tag = IMAGE_TAG if m.image else ""
        lines.append(f"{role}: {m.text}{image_tag}")
    return "\n\n".join(lines)
