"""SQLAlchemy ORM models for the Cadence database."""

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


# ============================================================================
# Enumerations
# ============================================================================


class SessionSource(StrEnum):
    """Where a conversation comes from."""

    WEB = "web"
    TELEGRAM = "telegram"
    WHATSAPP = "whatsapp"


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class PermissionStatus(StrEnum):
    """Lifecycle of an approval request.

    pending -> granted | declined; granted -> completed (single use).
    """

    PENDING = "pending"
    GRANTED = "granted"
    DECLINED = "declined"
    COMPLETED = "completed"


class TriggerType(StrEnum):
    MANUAL = "manual"
    CRON = "cron"
    WEBHOOK = "webhook"


class WorkflowStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class ExecutionStatus(StrEnum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ============================================================================
# Conversation Tables
# ============================================================================


class Session(Base):
    """Durable conversation identity.

    Web sessions have no external_id. Channel sessions are keyed by
    ``<channel>:<chat_id>`` and upserted on first sight.
    """

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    source: Mapped[str] = mapped_column(String(20), index=True)
    external_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    messages: Mapped[list["SessionMessage"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionMessage.created_at",
    )


class SessionMessage(Base):
    """A single user or assistant message within a session.

    An assistant message that parked a turn at ``ask_human`` carries the
    continuation in the three ``pending_*`` columns. At most one message per
    session has them set.
    """

    __tablename__ = "session_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("sessions.id", ondelete="CASCADE"), index=True
    )
    role: Mapped[str] = mapped_column(String(20))
    text: Mapped[str] = mapped_column(Text, default="")
    tool_calls: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    pending_messages: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    pending_tool_call_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    pending_tool_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    session: Mapped["Session"] = relationship(back_populates="messages")

    __table_args__ = (Index("ix_session_messages_session_created", "session_id", "created_at"),)

    @property
    def is_pending(self) -> bool:
        return self.pending_tool_call_id is not None


# ============================================================================
# Permission Tables
# ============================================================================


class PermissionRequest(Base):
    """Human approval for one exact protected call.

    ``args_key`` is the canonical JSON of ``args`` and is what grant lookups
    compare against. ``message_id`` and ``session_key`` are weak links (no FK).
    """

    __tablename__ = "permission_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    endpoint: Mapped[str] = mapped_column(String(255), index=True)
    plugin: Mapped[str] = mapped_column(String(100))
    operation: Mapped[str] = mapped_column(String(155))
    args: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    args_key: Mapped[str] = mapped_column(Text)
    description: Mapped[str] = mapped_column(Text, default="")
    status: Mapped[str] = mapped_column(String(20), default=PermissionStatus.PENDING, index=True)
    message_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    session_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (Index("ix_permission_requests_lookup", "endpoint", "args_key", "status"),)


# ============================================================================
# Workflow Tables
# ============================================================================


class Workflow(Base):
    """A stored, re-triggerable program.

    trigger_config is ``{"cron": expr}`` for cron workflows,
    ``{"plugin": p, "action": a}`` for webhook workflows and ``{}`` otherwise.
    Workflows are archived, never deleted.
    """

    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    code: Mapped[str] = mapped_column(Text)
    trigger_type: Mapped[str] = mapped_column(String(20), default=TriggerType.MANUAL)
    trigger_config: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(20), default=WorkflowStatus.ACTIVE, index=True)
    next_run_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    notify_target: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    executions: Mapped[list["WorkflowExecution"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
    )

    @property
    def cron_schedule(self) -> str | None:
        if self.trigger_type == TriggerType.CRON:
            return (self.trigger_config or {}).get("cron")
        return None

    @property
    def webhook_trigger(self) -> dict[str, str] | None:
        if self.trigger_type == TriggerType.WEBHOOK:
            config = self.trigger_config or {}
            return {"plugin": config.get("plugin", ""), "action": config.get("action", "")}
        return None


class WorkflowExecution(Base):
    """One run of a workflow. Created running, finished exactly once."""

    __tablename__ = "workflow_executions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    workflow_id: Mapped[str] = mapped_column(
        ForeignKey("workflows.id", ondelete="CASCADE"), index=True
    )
    status: Mapped[str] = mapped_column(String(20), default=ExecutionStatus.RUNNING)
    triggered_by: Mapped[str] = mapped_column(String(20))
    trigger_payload: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    result: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    finished_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    workflow: Mapped["Workflow"] = relationship(back_populates="executions")


# ============================================================================
# Channel Queue
# ============================================================================


class ChannelMessage(Base):
    """Inbound (and bot-sent) chat messages.

    Serves as the durable queue drained by the channel pollers and as the
    store behind the conversation-history tool.
    """

    __tablename__ = "channel_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    channel: Mapped[str] = mapped_column(String(20))
    chat_id: Mapped[str] = mapped_column(String(255))
    sender_id: Mapped[str] = mapped_column(String(255), default="")
    sender_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, default="")
    sent_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    is_group: Mapped[bool] = mapped_column(Boolean, default=False)
    is_bot: Mapped[bool] = mapped_column(Boolean, default=False)
    processed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_channel_messages_queue", "channel", "processed", "id"),
        Index("ix_channel_messages_chat", "channel", "chat_id", "id"),
    )
