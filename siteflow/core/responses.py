"""Response values returned by the siteflow assistant."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .intent.taxonomy import Intent


class SuggestedActionType(str, Enum):
    OPEN_FORM = "open_form"  # Open a prefilled form in the host UI
    EXECUTE_ACTION = "execute_action"  # Host-side follow-up (view waybill, open analytics)
    CLARIFY = "clarify"  # Ask the user for more information


@dataclass
class SuggestedAction:
    type: SuggestedActionType
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "data": self.data}


@dataclass
class ExecutionResult:
    """Outcome of invoking a host mutator."""

    success: bool
    data: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "data": self.data, "error": self.error}


@dataclass
class AssistantResponse:
    """Single response value for one processed turn.

    Attributes:
        success: Whether the turn achieved what the user asked
        message: User-facing text
        intent: Final intent for the turn, if one was computed
        suggested_action: What the host should offer next
        execution_result: Result of a mutator call, if one was made
    """

    success: bool
    message: str
    intent: Intent | None = None
    suggested_action: SuggestedAction | None = None
    execution_result: ExecutionResult | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "intent": self.intent.to_dict() if self.intent else None,
            "suggested_action": self.suggested_action.to_dict() if self.suggested_action else None,
            "execution_result": (
                self.execution_result.to_dict() if self.execution_result else None
            ),
        }


def clarify(message: str, intent: Intent | None = None) -> AssistantResponse:
    """Build a clarification response."""
    return AssistantResponse(
        success=False,
        message=message,
        intent=intent,
        suggested_action=SuggestedAction(type=SuggestedActionType.CLARIFY),
    )


__all__ = [
    "AssistantResponse",
    "ExecutionResult",
    "SuggestedAction",
    "SuggestedActionType",
    "clarify",
]
