"""API module."""

from .auth import router as auth_router
from .chat import router as chat_router
from .feedback import router as feedback_router
from .admin import router as admin_router
from .stateless import router as stateless_router

__all__ = ['auth_router', 'chat_router', 'feedback_router', 'admin_router', 'stateless_router']
