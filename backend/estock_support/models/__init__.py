"""Models module."""

from .base import CamelModel, now_ms, time_id
from .chat import (
    MessageRole, Message, ChatLog, AutosaveSnapshot, Feedback, FeedbackCreate,
    StatelessChatRequest, SessionView, EndSessionResult, TurnResult,
)
from .knowledge import KnowledgeSnippet, SnippetCreate, KBItem, CompanyInfo, ManualUpdate, ManualAppend
from .customer import Customer, CustomerCredentials, Token, TokenData, AdminLogin, PasswordReset

__all__ = [
    'CamelModel', 'now_ms', 'time_id',
    'MessageRole', 'Message', 'ChatLog', 'AutosaveSnapshot', 'Feedback', 'FeedbackCreate',
    'StatelessChatRequest', 'SessionView', 'EndSessionResult', 'TurnResult',
    'KnowledgeSnippet', 'SnippetCreate', 'KBItem', 'CompanyInfo', 'ManualUpdate', 'ManualAppend',
    'Customer', 'CustomerCredentials', 'Token', 'TokenData', 'AdminLogin', 'PasswordReset',
]
