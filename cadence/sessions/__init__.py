"""Durable conversations and the turn-level conversation service."""

from cadence.sessions.conversation import ConversationService
from cadence.sessions.manager import SessionManager

__all__ = ["ConversationService", "SessionManager"]
