"""Shared enumerations used across the backend."""

from __future__ import annotations

from enum import StrEnum

# -- Workspace ---------------------------------------------------------------


class TemplateType(StrEnum):
    STANDARD_CHAT = "standard-chat"
    KANBAN_BOARD = "kanban-board"
    NODE_GRAPH = "node-graph"


# -- Users -------------------------------------------------------------------


class UserRole(StrEnum):
    ADMIN = "admin"
    USER = "user"


# -- Chat --------------------------------------------------------------------


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# -- Setup -------------------------------------------------------------------


class DatabaseType(StrEnum):
    MONGODB = "mongodb"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    LOCALDB = "localdb"
    SUPABASE = "supabase"
    CONVEX = "convex"
    FIREBASE = "firebase"
    PLANETSCALE = "planetscale"
    NEON = "neon"
    TURSO = "turso"


class AIProviderType(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    REPLICATE = "replicate"
    OPENROUTER = "openrouter"
    CUSTOM = "custom"


# -- Statistics --------------------------------------------------------------


class DateRange(StrEnum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    THIS_WEEK = "this-week"
    LAST_WEEK = "last-week"
    THIS_MONTH = "this-month"
    LAST_MONTH = "last-month"
    CUSTOM = "custom"
