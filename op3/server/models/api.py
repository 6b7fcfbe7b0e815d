"""Request and response bodies of the HTTP API.

Every model inherits ``CamelModel``: camelCase on the wire (``templateType``,
``sortOrder``), snake_case accepted as well, and ``from_attributes`` so a
response can be built straight from an ORM row.  Update bodies are applied
with ``exclude_unset``, leaving omitted fields untouched.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from op3.server.models.enums import AIProviderType, MessageRole, TemplateType, UserRole


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserRef(CamelModel):
    """Body of endpoints that only need the acting user."""

    user_id: str


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


class WorkspaceCreate(CamelModel):
    user_id: str
    name: str
    template_type: TemplateType
    workspace_rules: str = Field(description="Required; may be empty.")


class WorkspaceUpdate(CamelModel):
    """Partial workspace update.  Only ``name`` and ``workspaceRules`` are editable here."""

    user_id: str
    name: str | None = None
    workspace_rules: str | None = None


class WorkspaceResponse(CamelModel):
    id: str
    name: str
    template_type: TemplateType
    workspace_rules: str
    is_active: bool
    group_id: str | None = None
    sort_order: int
    created_at: datetime


class WorkspaceStatusResponse(CamelModel):
    has_workspace: bool
    workspace: WorkspaceResponse | None = None


# ---------------------------------------------------------------------------
# Workspace groups
# ---------------------------------------------------------------------------


class GroupCreate(CamelModel):
    user_id: str
    name: str
    color: str | None = None
    sort_order: int | None = Field(default=None, ge=0, description="Insert position; appended when omitted.")


class GroupUpdate(CamelModel):
    user_id: str
    name: str | None = None
    color: str | None = None
    sort_order: int | None = Field(default=None, ge=0)
    is_pinned: bool | None = None


class GroupDelete(CamelModel):
    user_id: str
    delete_workspaces: bool = Field(default=False, description="False keeps the workspaces, moved to ungrouped.")


class GroupOrder(CamelModel):
    group_id: str
    sort_order: int = Field(ge=0)


class ReorderGroupsRequest(CamelModel):
    user_id: str
    group_orders: list[GroupOrder]


class MoveWorkspaceRequest(CamelModel):
    user_id: str
    workspace_id: str
    group_id: str | None = Field(default=None, description="None means ungrouped.")
    sort_order: int | None = Field(default=None, ge=0)


class WorkspaceOrder(CamelModel):
    workspace_id: str
    group_id: str | None = None
    sort_order: int = Field(ge=0)


class BatchUpdateWorkspacesRequest(CamelModel):
    user_id: str
    updates: list[WorkspaceOrder]


class GroupResponse(CamelModel):
    id: str
    name: str
    color: str
    sort_order: int
    is_pinned: bool
    created_at: datetime
    workspace_count: int = 0


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------


class AIFavoriteCreate(CamelModel):
    workspace_id: str
    ai_provider_id: str
    is_model_config: bool
    display_name: str


class PersonalityFavoriteCreate(CamelModel):
    workspace_id: str
    personality_id: str
    display_name: str | None = Field(default=None, description="Defaults to the personality title.")


class FavoriteUpdate(CamelModel):
    display_name: str | None = None
    sort_order: int | None = Field(default=None, ge=0)


class FavoriteReorder(CamelModel):
    favorite_ids: list[str]


class AIFavoriteResponse(CamelModel):
    id: str
    workspace_id: str
    ai_provider_id: str
    is_model_config: bool
    display_name: str
    sort_order: int
    created_at: datetime


class PersonalityFavoriteResponse(CamelModel):
    id: str
    workspace_id: str
    personality_id: str
    display_name: str
    sort_order: int
    created_at: datetime


class FavoriteCheckResponse(CamelModel):
    is_favorited: bool
    favorite: AIFavoriteResponse | PersonalityFavoriteResponse | None = None


# ---------------------------------------------------------------------------
# Personalities
# ---------------------------------------------------------------------------


class PersonalityCreate(CamelModel):
    user_id: str
    title: str
    prompt: str


class PersonalityUpdate(CamelModel):
    user_id: str
    title: str | None = None
    prompt: str | None = None


class PersonalityResponse(CamelModel):
    id: str
    user_id: str
    title: str
    prompt: str
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# AI providers
# ---------------------------------------------------------------------------


class AIProviderConfig(CamelModel):
    type: AIProviderType
    name: str
    api_key: str
    model: str
    endpoint: str | None = None
    is_active: bool = True


class AIProviderTestRequest(CamelModel):
    type: AIProviderType
    api_key: str
    model: str
    endpoint: str | None = None


class AIProviderSaveRequest(CamelModel):
    providers: list[AIProviderConfig] = Field(default_factory=list)


class AIProviderResponse(CamelModel):
    """Configured provider.  ``apiKey`` is always masked."""

    id: str
    type: AIProviderType
    name: str
    api_key: str
    model: str
    endpoint: str | None = None
    is_active: bool
    created_at: datetime


class AIProviderTestResult(CamelModel):
    success: bool
    message: str
    endpoint: str | None = None
    response_time_ms: int | None = None
    model: str | None = None
    error: str | None = None


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatSessionCreate(CamelModel):
    user_id: str
    workspace_id: str
    title: str | None = None
    parent_session_id: str | None = None
    branch_from_message_id: str | None = Field(
        default=None, description="Copy the parent's messages up to and including this one."
    )


class ChatSessionUpdate(CamelModel):
    title: str | None = None
    is_pinned: bool | None = None


class ChatSessionSettingsUpdate(CamelModel):
    last_used_personality_id: str | None = None
    last_used_ai_provider_id: str | None = Field(default=None, alias="lastUsedAIProviderId")


class SendMessageRequest(CamelModel):
    content: str
    personality_id: str | None = None
    ai_provider_id: str | None = None


class SaveMessageRequest(CamelModel):
    role: MessageRole
    content: str
    personality_id: str | None = None
    ai_provider_id: str | None = None
    api_metadata: dict | None = None


class ChatSessionResponse(CamelModel):
    id: str
    user_id: str
    workspace_id: str
    title: str
    last_used_personality_id: str | None = None
    last_used_ai_provider_id: str | None = Field(default=None, alias="lastUsedAIProviderId")
    is_pinned: bool
    is_shared: bool
    parent_session_id: str | None = None
    created_at: datetime
    updated_at: datetime


class ChatMessageResponse(CamelModel):
    id: str
    session_id: str
    role: MessageRole
    content: str
    personality_id: str | None = None
    ai_provider_id: str | None = None
    api_metadata: dict | None = None
    created_at: datetime


# ---------------------------------------------------------------------------
# Sharing
# ---------------------------------------------------------------------------


class ShareCreate(CamelModel):
    message_count: int | None = Field(default=None, ge=1, description="Share only the first N messages.")


class SharedChatMessage(CamelModel):
    id: str
    role: MessageRole
    content: str
    created_at: datetime


class SharedChatResponse(CamelModel):
    id: str
    original_chat_id: str
    title: str
    messages: list[SharedChatMessage]
    message_count: int
    created_at: datetime
    share_url: str | None = None


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


class DatabaseConfig(CamelModel):
    """Connection settings entered in the setup wizard.

    Every field is optional at the schema level; per-type requirements are
    checked by ``managers.setup.validate_database_config`` so the wizard gets
    a precise message.
    """

    type: str | None = None
    host: str | None = None
    port: int | None = None
    database: str | None = None
    username: str | None = None
    password: str | None = None
    connection_string: str | None = None
    ssl: bool = False
    api_key: str | None = None
    project_id: str | None = None
    region: str | None = None
    auth_token: str | None = None
    url: str | None = None


class DatabaseConfigRequest(CamelModel):
    database: DatabaseConfig | None = None


class AdminConfig(CamelModel):
    email: str
    username: str | None = None
    password: str
    confirm_password: str


class AdminConfigRequest(CamelModel):
    admin: AdminConfig | None = None


class ConnectionTestResult(CamelModel):
    success: bool
    message: str
    type: str | None = None
    database: str | None = None
    host: str | None = None


# ---------------------------------------------------------------------------
# Account
# ---------------------------------------------------------------------------


class AccountResponse(CamelModel):
    id: str
    email: str
    display_name: str | None = None
    role: UserRole
    created_at: datetime


class ProfileUpdate(CamelModel):
    display_name: str | None = None
    email: str | None = None


class PasswordChange(CamelModel):
    current_password: str
    new_password: str


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


class AdminUserCreate(CamelModel):
    email: str | None = None
    display_name: str | None = None
    password: str | None = None
    role: str | None = None


class AdminUserUpdate(CamelModel):
    """Profile, role and status changes.  Passwords go through ``PasswordReset``."""

    email: str | None = None
    display_name: str | None = None
    role: UserRole | None = None
    is_active: bool | None = None


class PasswordReset(CamelModel):
    new_password: str | None = None


class BulkUserChanges(CamelModel):
    role: UserRole | None = None
    is_active: bool | None = None


class BulkUserUpdate(CamelModel):
    user_ids: list[str] = Field(default_factory=list)
    updates: BulkUserChanges | None = None


class AdminUserResponse(CamelModel):
    id: str
    email: str
    display_name: str | None = None
    role: UserRole
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserPage(CamelModel):
    users: list[AdminUserResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class UserStats(CamelModel):
    total: int
    admins: int
    active: int
    inactive: int
    regular: int


class PasswordRequirements(CamelModel):
    min_length: int = 8
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special_chars: bool = True


class PasswordRequirementsUpdate(CamelModel):
    min_length: int | None = Field(default=None, ge=1)
    require_uppercase: bool | None = None
    require_lowercase: bool | None = None
    require_numbers: bool | None = None
    require_special_chars: bool | None = None


class SystemSettings(CamelModel):
    """Instance-wide policy edited from the admin panel; defaults apply until first saved."""

    registration_enabled: bool = True
    login_enabled: bool = True
    max_users_allowed: int | None = Field(default=None, description="None means unlimited.")
    default_user_role: UserRole = UserRole.USER
    require_email_verification: bool = False
    allow_username_change: bool = True
    password_requirements: PasswordRequirements = Field(default_factory=PasswordRequirements)
    updated_at: datetime | None = None
    updated_by: str | None = None


class SystemSettingsUpdate(CamelModel):
    registration_enabled: bool | None = None
    login_enabled: bool | None = None
    max_users_allowed: int | None = Field(default=None, ge=1)
    default_user_role: UserRole | None = None
    require_email_verification: bool | None = None
    allow_username_change: bool | None = None
    password_requirements: PasswordRequirementsUpdate | None = None


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class DailyUsage(CamelModel):
    date: str
    messages: int = 0
    tokens: int = 0
    cost: float = 0.0


class WorkspaceStatistics(CamelModel):
    """Usage of a workspace's assistant messages over a date window.

    Per-provider maps are keyed by the ``provider`` recorded in each
    message's ``apiMetadata``; messages without one count as ``Unknown``.
    """

    total_messages: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    average_response_time: int = 0
    messages_by_provider: dict[str, int] = Field(default_factory=dict)
    tokens_by_provider: dict[str, int] = Field(default_factory=dict)
    cost_by_provider: dict[str, float] = Field(default_factory=dict)
    daily_usage: list[DailyUsage] = Field(default_factory=list)
