"""Repository package for database operations."""

from cadence.db.repositories.base import BaseRepository
from cadence.db.repositories.channel_message_repo import ChannelMessageRepository
from cadence.db.repositories.execution_repo import ExecutionRepository
from cadence.db.repositories.permission_repo import PermissionRepository
from cadence.db.repositories.session_repo import SessionMessageRepository, SessionRepository
from cadence.db.repositories.workflow_repo import WorkflowRepository

__all__ = [
    "BaseRepository",
    "ChannelMessageRepository",
    "ExecutionRepository",
    "PermissionRepository",
    "SessionMessageRepository",
    "SessionRepository",
    "WorkflowRepository",
]
