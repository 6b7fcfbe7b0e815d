"""Tables of the OP3 database.

``Base.metadata`` is what Alembic compares against when autogenerating a
revision, so every schema change starts here.  Ids are client-visible
uuid4 strings and JSON documents use ``JSONB`` on PostgreSQL.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Text, UniqueConstraint, false, func, true
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

TimestampTZ = DateTime(timezone=True)

JsonDoc = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


# Stable constraint names keep SQLite batch migrations and PostgreSQL in step.
Base.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(unique=True)
    display_name: Mapped[str | None]
    password_hash: Mapped[str] = mapped_column(Text)
    role: Mapped[str] = mapped_column(server_default="user")
    is_active: Mapped[bool] = mapped_column(default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class WorkspaceGroup(Base):
    __tablename__ = "workspace_groups"
    __table_args__ = (Index("ix_workspace_groups_user_id", "user_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    user_id: Mapped[str]
    name: Mapped[str]
    color: Mapped[str] = mapped_column(server_default="#3B82F6")
    sort_order: Mapped[int] = mapped_column(default=0, server_default="0")
    is_pinned: Mapped[bool] = mapped_column(default=False, server_default=false())
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class Workspace(Base):
    __tablename__ = "workspaces"
    __table_args__ = (Index("ix_workspaces_user_id_group_id", "user_id", "group_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    user_id: Mapped[str]
    name: Mapped[str]
    template_type: Mapped[str] = mapped_column(server_default="standard-chat")
    workspace_rules: Mapped[str] = mapped_column(Text, server_default="")
    is_active: Mapped[bool] = mapped_column(default=False, server_default=false())
    group_id: Mapped[str | None] = mapped_column(
        ForeignKey("workspace_groups.id", name="fk_workspaces_group_id"),
    )
    sort_order: Mapped[int] = mapped_column(default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class WorkspaceAIFavorite(Base):
    __tablename__ = "workspace_ai_favorites"
    __table_args__ = (UniqueConstraint("workspace_id", "ai_provider_id", name="uq_workspace_ai_favorites_entity"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", name="fk_workspace_ai_favorites_workspace_id"),
    )
    ai_provider_id: Mapped[str]
    is_model_config: Mapped[bool] = mapped_column(default=False, server_default=false())
    display_name: Mapped[str]
    sort_order: Mapped[int] = mapped_column(default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class WorkspacePersonalityFavorite(Base):
    __tablename__ = "workspace_personality_favorites"
    __table_args__ = (
        UniqueConstraint("workspace_id", "personality_id", name="uq_workspace_personality_favorites_entity"),
    )

    id: Mapped[str] = mapped_column(primary_key=True)
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", name="fk_workspace_personality_favorites_workspace_id"),
    )
    personality_id: Mapped[str]
    display_name: Mapped[str]
    sort_order: Mapped[int] = mapped_column(default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class Personality(Base):
    __tablename__ = "personalities"
    __table_args__ = (Index("ix_personalities_user_id", "user_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    user_id: Mapped[str]
    title: Mapped[str]
    prompt: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class AIProvider(Base):
    __tablename__ = "ai_providers"

    id: Mapped[str] = mapped_column(primary_key=True)
    type: Mapped[str]
    name: Mapped[str]
    api_key: Mapped[str] = mapped_column(Text)
    """Fernet-encrypted, ``enc::`` prefixed."""
    model: Mapped[str]
    endpoint: Mapped[str | None]
    is_active: Mapped[bool] = mapped_column(default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class ChatSession(Base):
    __tablename__ = "chat_sessions"
    __table_args__ = (Index("ix_chat_sessions_user_id_workspace_id", "user_id", "workspace_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    user_id: Mapped[str]
    workspace_id: Mapped[str] = mapped_column(
        ForeignKey("workspaces.id", name="fk_chat_sessions_workspace_id"),
    )
    title: Mapped[str]
    last_used_personality_id: Mapped[str | None]
    last_used_ai_provider_id: Mapped[str | None]
    is_pinned: Mapped[bool] = mapped_column(default=False, server_default=false())
    is_shared: Mapped[bool] = mapped_column(default=False, server_default=false())
    parent_session_id: Mapped[str | None]
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (Index("ix_chat_messages_session_id", "session_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("chat_sessions.id", name="fk_chat_messages_session_id"),
    )
    position: Mapped[int]
    """Zero-based order within the session (timestamps can tie)."""
    role: Mapped[str]
    content: Mapped[str] = mapped_column(Text)
    personality_id: Mapped[str | None]
    ai_provider_id: Mapped[str | None]
    api_metadata: Mapped[dict | None] = mapped_column(JsonDoc)
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class SharedChat(Base):
    __tablename__ = "shared_chats"
    __table_args__ = (Index("ix_shared_chats_original_chat_id", "original_chat_id"),)

    id: Mapped[str] = mapped_column(primary_key=True)
    original_chat_id: Mapped[str]
    title: Mapped[str]
    messages: Mapped[list] = mapped_column(JsonDoc, nullable=False)
    message_count: Mapped[int]
    is_active: Mapped[bool] = mapped_column(default=True, server_default=true())
    created_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now())


class SystemSetting(Base):
    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(primary_key=True)
    value: Mapped[dict] = mapped_column(JsonDoc, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TimestampTZ, server_default=func.now(), onupdate=func.now())
