"""
Context Assembler - Builds the knowledge block of a session's system instruction.

Order is fixed: base manual, then admin snippets (which override the manual),
then company contact details. The output depends only on its inputs, so the
same knowledge always yields the same instruction.
"""

import logging
from typing import List

from ..models import CompanyInfo, KnowledgeSnippet

logger = logging.getLogger(__name__)

MANUAL_TRUNCATION_MARKER = "\n...[TRUNCATED_FOR_SIZE]..."
SNIPPET_TRUNCATION_MARKER = "..."

MANUAL_HEADER = "=== E-STOCK SYSTEM DOCUMENTATION (BASE KNOWLEDGE) ==="
SNIPPET_BANNER = (
    "=== 🚨 CRITICAL UPDATES & NEW KNOWLEDGE (HIGHEST PRIORITY) ===\n"
    "The following information was manually added by the admin to train you. \n"
    "**RULE: If any information here conflicts with the system manual above, "
    "YOU MUST USE THE INFO BELOW as the correct truth.**"
)
COMPANY_HEADER = "=== CURRENT COMPANY INFORMATION (USE THIS FOR CONTACT INFO) ==="
CLOSING_LINE = "Use the above documentation to explain how features work in e-stock."


class ContextAssembler:
    """Combines manual, snippets and company info into one instruction block."""

    def __init__(self, max_manual_chars: int = 150_000, max_snippet_chars: int = 2_000):
        self.max_manual_chars = max_manual_chars
        self.max_snippet_chars = max_snippet_chars

    def truncate_manual(self, manual: str) -> str:
        if len(manual) <= self.max_manual_chars:
            return manual
        logger.warning(
            f"Manual too large ({len(manual)} chars), truncating to {self.max_manual_chars}"
        )
        return manual[:self.max_manual_chars] + MANUAL_TRUNCATION_MARKER

    def format_snippet(self, snippet: KnowledgeSnippet) -> str:
        content = snippet.content
        if len(content) > self.max_snippet_chars:
            content = content[:self.max_snippet_chars] + SNIPPET_TRUNCATION_MARKER
        line = f"-[ID: {snippet.id}] Content: {content}"
        if snippet.image_url:
            line += " (Has Image available)"
        return line

    @staticmethod
    def format_company_info(info: CompanyInfo) -> str:
        return "\n".join([
            COMPANY_HEADER,
            f"Address: {info.address}",
            f"Phone: {info.phone}",
            f"Email: {info.email}",
            f"WhatsApp Number (for Demo): {info.whatsapp}",
            f"Website Footer Text: {info.footer_text}",
        ])

    def assemble(
        self,
        manual: str,
        snippets: List[KnowledgeSnippet],
        company_info: CompanyInfo,
    ) -> str:
        """
        Build the knowledge block.

        Args:
            manual: Base manual text (may be empty)
            snippets: Snippets in the order the store returned them
            company_info: Contact details

        Returns:
            str: Instruction text; only the company block when there is no
            manual and no snippet
        """
        sections = []

        if manual:
            sections.append(f"{MANUAL_HEADER}\n{self.truncate_manual(manual)}")

        if snippets:
            lines = "\n".join(self.format_snippet(s) for s in snippets)
            sections.append(f"{SNIPPET_BANNER}\n{lines}")

        sections.append(self.format_company_info(company_info))

        if manual or snippets:
            sections.append(CLOSING_LINE)

        return "\n\n".join(sections)

    async def build(self, knowledge_store) -> str:
        """Read the current knowledge from the store and assemble it."""
        manual = await knowledge_store.get_manual()
        snippets = await knowledge_store.get_snippets()
        company_info = await knowledge_store.get_company_info()
        return self.assemble(manual, snippets, company_info)
