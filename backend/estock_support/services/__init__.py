"""Services module - wiring of the process-wide service instances."""

from .container import Services, build_services, build_llm_provider, init_services, get_services

__all__ = ['Services', 'build_services', 'build_llm_provider', 'init_services', 'get_services']
