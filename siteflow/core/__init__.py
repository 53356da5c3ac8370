"""Core components for siteflow."""

from __future__ import annotations

from .assistant import HELP_MESSAGE, MAX_INPUT_LENGTH, AssistantSession
from .catalog import Asset, CatalogSnapshot, Employee, Site, Vehicle
from .executor import ActionExecutionContext, ActionExecutor
from .memory import (
    ContextHints,
    ConversationMemory,
    ConversationTurn,
    InMemoryStore,
    JsonFileStore,
    restore_memory,
    save_memory,
)
from .permissions import PermissionChecker, PermissionResult, Role
from .responses import (
    AssistantResponse,
    ExecutionResult,
    SuggestedAction,
    SuggestedActionType,
)
from .retry import RetryManager, RetryState

__all__ = [
    # Session
    "AssistantSession",
    "HELP_MESSAGE",
    "MAX_INPUT_LENGTH",
    # Catalog
    "CatalogSnapshot",
    "Site",
    "Asset",
    "Employee",
    "Vehicle",
    # Execution
    "ActionExecutionContext",
    "ActionExecutor",
    "AssistantResponse",
    "ExecutionResult",
    "SuggestedAction",
    "SuggestedActionType",
    # Memory
    "ConversationMemory",
    "ConversationTurn",
    "ContextHints",
    "InMemoryStore",
    "JsonFileStore",
    "save_memory",
    "restore_memory",
    # Permissions
    "PermissionChecker",
    "PermissionResult",
    "Role",
    # Retry
    "RetryManager",
    "RetryState",
]
