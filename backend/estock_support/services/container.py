"""
Service Container - Wires storage, the model provider and the session core.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from ..core.context_assembler import ContextAssembler
from ..core.errors import ConfigurationError
from ..llm import LLMProvider, create_llm_provider
from ..storage import AutosaveStore, CustomerStore, KnowledgeStore, LocalStorage
from ..agents.orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Process-wide service instances."""
    settings: Settings
    knowledge_store: KnowledgeStore
    customer_store: CustomerStore
    autosave: AutosaveStore
    orchestrator: SessionOrchestrator
    llm_provider: Optional[LLMProvider] = None

    def is_llm_configured(self) -> bool:
        return self.llm_provider is not None


def build_llm_provider(settings: Settings) -> Optional[LLMProvider]:
    """
    Create the configured model provider.

    Returns:
        LLMProvider, or None when no API key is configured

    Raises:
        ConfigurationError: If the provider name is unknown
    """
    try:
        provider = create_llm_provider(
            provider=settings.llm_provider,
            api_key=settings.effective_llm_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
        )
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    if provider is None:
        logger.warning("No model API key configured; chat sessions will report a configuration error")
    return provider


def build_services(settings: Settings, llm_provider: Optional[LLMProvider] = None) -> Services:
    """
    Build every service from settings.

    Args:
        settings: Application settings
        llm_provider: Optional provider override (defaults to the configured one)
    """
    primary = LocalStorage(settings.local_storage_path)
    local = LocalStorage(settings.local_cache_path) if settings.local_cache_path else None

    knowledge_store = KnowledgeStore(
        primary,
        local,
        screen_images=settings.screen_images,
        default_admin_password=settings.default_admin_password,
    )
    autosave = AutosaveStore(primary)

    if llm_provider is None:
        llm_provider = build_llm_provider(settings)

    orchestrator = SessionOrchestrator(
        knowledge_store,
        autosave,
        llm_provider=llm_provider,
        assembler=ContextAssembler(settings.max_manual_chars, settings.max_snippet_chars),
        max_image_bytes=settings.max_image_bytes,
        max_tool_iterations=settings.max_tool_iterations,
    )

    return Services(
        settings=settings,
        knowledge_store=knowledge_store,
        customer_store=CustomerStore(primary),
        autosave=autosave,
        orchestrator=orchestrator,
        llm_provider=llm_provider,
    )


# Global services instance
_services: Optional[Services] = None


def init_services(services: Services) -> Services:
    """Install the global services instance."""
    global _services
    _services = services
    return services


def get_services() -> Services:
    """
    Get the global services instance (FastAPI dependency).

    Raises:
        RuntimeError: If services have not been initialized
    """
    if _services is None:
        raise RuntimeError("Services not initialized. Call init_services() first.")
    return _services
