"""
Knowledge Models - Admin snippets, Q&A items and company information.
"""

from typing import List, Optional

from pydantic import Field

from .base import CamelModel, now_ms


class KnowledgeSnippet(CamelModel):
    """Admin-authored override; highest priority in the system instruction."""
    id: str
    content: str
    image_url: Optional[str] = None  # data URL
    timestamp: int = Field(default_factory=now_ms)


class SnippetCreate(CamelModel):
    """Snippet creation payload."""
    content: str = Field(..., min_length=1)
    image_url: Optional[str] = None


class KBItem(CamelModel):
    """Structured question/answer pair searched by the knowledge tool."""
    id: str
    question: str
    answer: str
    tags: List[str] = Field(default_factory=list)


class CompanyInfo(CamelModel):
    """Contact details injected into every system instruction."""
    address: str = "برج لؤلؤة الهندسة, بجوار كلية الهندسة_شبين الكوم_المنوفية"
    phone: str = "01272000075"
    email: str = "support@modernsoft.com"
    whatsapp: str = "201223438201"
    footer_text: str = "© 2025 جميع الحقوق محفوظة لشركة Modern Soft."


class ManualUpdate(CamelModel):
    """Manual replacement payload."""
    content: str


class ManualAppend(CamelModel):
    """Already-extracted document text appended to the manual."""
    source_name: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
