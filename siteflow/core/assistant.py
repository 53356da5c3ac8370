"""Assistant session: the per-turn pipeline.

Wires extraction, history resolution, memory, permission gating,
clarification and execution into a single ``process_input`` call that always
returns an AssistantResponse value.
"""

from __future__ import annotations

import logging
from typing import Callable

from ..config import AIMode, AssistantConfig
from .backends import GenerationBridge
from .catalog import CatalogSnapshot
from .executor import ActionExecutionContext, ActionExecutor
from .intent.confidence import ConfidenceCalculator
from .intent.entities import EntityResolver
from .intent.recognizer import IntentRecognizer
from .intent.remote import RemoteFailure, RemoteIntentExtractor
from .intent.taxonomy import ActionType, Intent, compute_missing, parameter_keys
from .memory import ConversationMemory, ConversationTurn
from .permissions import PermissionChecker, Role
from .responses import AssistantResponse, clarify

logger = logging.getLogger(__name__)

# Security: Maximum input length to prevent regex or remote abuse
MAX_INPUT_LENGTH = 10_000
MAX_SUGGESTIONS = 5
MAX_ASSET_SUGGESTIONS = 10

EMPTY_INPUT_MESSAGE = 'Please type a request, for example "check inventory".'

HELP_MESSAGE = """\
I'm not sure what you'd like to do. Try something like:
- "Send 5 water pumps to Lekki Site"
- "Add asset Diesel 200 liters"
- "Return items from Ikoyi Site"
- "Create a new site called Ajah Yard"
- "Check inventory for cement"
- "Show equipment analytics\""""

# Question asked when a single parameter is missing
PARAMETER_QUESTIONS: dict[str, str] = {
    "quantity": "how many?",
    "name": "what name?",
}


class AssistantSession:
    """One operator's conversation with the inventory assistant.

    Holds the catalog snapshot, conversation memory, role and optional
    remote bridge for a single session. ``process_input`` never raises for
    expected failures; every outcome is an AssistantResponse.

    Attributes:
        catalog: Current read-only entity snapshot
        config: Assistant configuration
        memory: Bounded conversation memory
        permissions: Role-based permission checker
        executor: Action executor bound to the current execution context
    """

    def __init__(
        self,
        catalog: CatalogSnapshot,
        role: Role | str,
        execution_context: ActionExecutionContext | None = None,
        generation_bridge: GenerationBridge | None = None,
        config: AssistantConfig | None = None,
        memory: ConversationMemory | None = None,
        on_remote_failure: Callable[[RemoteFailure], None] | None = None,
    ) -> None:
        self.config = config or AssistantConfig()
        self.catalog = catalog
        self.memory = memory or ConversationMemory(
            capacity=self.config.memory_capacity,
            warning_ratio=self.config.memory_warning_ratio,
        )

        self.resolver = EntityResolver(
            catalog,
            min_score=self.config.min_match_score,
            quantity_window=self.config.quantity_window,
        )
        self.calculator = ConfidenceCalculator()
        self.recognizer = IntentRecognizer(self.resolver, self.memory, self.calculator)
        self.permissions = PermissionChecker(role)
        self.executor = ActionExecutor(catalog, execution_context)

        bridge = generation_bridge if self.config.ai_mode != AIMode.LOCAL else None
        self._remote = RemoteIntentExtractor(
            bridge,
            on_failure=on_remote_failure,
            max_hint_assets=self.config.max_hint_assets,
        )

    @property
    def role(self) -> str:
        return self.permissions.role_name

    @property
    def remote_extractor(self) -> RemoteIntentExtractor:
        return self._remote

    @property
    def history(self) -> list[ConversationTurn]:
        return self.memory.history

    # ------------------------------------------------------------------
    # Host controls
    # ------------------------------------------------------------------

    def update_catalog(self, catalog: CatalogSnapshot) -> None:
        """Swap in a fresh entity snapshot for subsequent turns."""
        self.catalog = catalog
        self.resolver.update_catalog(catalog)
        self.executor.catalog = catalog

    def set_execution_context(self, execution_context: ActionExecutionContext | None) -> None:
        """Bind (or unbind) host mutators for subsequent turns."""
        self.executor = ActionExecutor(self.catalog, execution_context)

    def clear_conversation(self) -> None:
        self.memory.clear()

    async def close(self) -> None:
        """Release the remote bridge's resources, if any."""
        if self._remote.bridge is not None:
            await self._remote.bridge.close()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def process_input(self, text: str) -> AssistantResponse:
        """Interpret one user turn and act on it.

        Args:
            text: Raw user input

        Returns:
            AssistantResponse describing the outcome (help, denial,
            clarification, form suggestion or execution result)
        """
        if not text or not text.strip():
            return AssistantResponse(success=False, message=EMPTY_INPUT_MESSAGE)

        if len(text) > MAX_INPUT_LENGTH:
            logger.warning(f"Input truncated from {len(text)} to {MAX_INPUT_LENGTH} chars")
            text = text[:MAX_INPUT_LENGTH]

        intent = await self._extract(text)

        if intent.action != ActionType.UNKNOWN:
            if intent.missing_parameters:
                self._resolve_from_history(intent)
            intent.confidence = self.calculator.calculate_confidence(intent)

        self.memory.add_turn(text, intent)

        if intent.action == ActionType.UNKNOWN:
            return AssistantResponse(success=False, message=HELP_MESSAGE, intent=intent)

        permission = self.permissions.check_permission(intent.action)
        if not permission.allowed:
            logger.info(f"Denied {intent.action.value} for role {self.role}")
            return AssistantResponse(success=False, message=permission.message, intent=intent)

        if intent.missing_parameters:
            return clarify(self._clarification_message(intent), intent)

        return await self.executor.execute(intent)

    async def _extract(self, text: str) -> Intent:
        mode = self.config.ai_mode

        if mode == AIMode.REMOTE and self._remote.is_active:
            remote_intent = await self._extract_remote(text)
            if remote_intent is not None:
                return remote_intent
            return self.recognizer.identify_intent(text)

        intent = self.recognizer.identify_intent(text)
        if (
            mode == AIMode.HYBRID
            and intent.action == ActionType.UNKNOWN
            and self._remote.is_active
        ):
            remote_intent = await self._extract_remote(text)
            if remote_intent is not None:
                return remote_intent
        return intent

    async def _extract_remote(self, text: str) -> Intent | None:
        """Remote intent grounded in the catalog, or None to use the rules."""
        intent = await self._remote.extract(text, self.catalog)
        if intent is None or intent.action == ActionType.UNKNOWN:
            return None
        return self.recognizer.ground_in_catalog(intent)

    def _resolve_from_history(self, intent: Intent) -> None:
        """Fill missing parameters from earlier turns, in place."""
        for param in intent.missing_parameters:
            for key in parameter_keys(param):
                if intent.parameters.get(key) is not None:
                    continue
                value = self.memory.resolve_from_history(key)
                if value is not None:
                    intent.parameters[key] = value

        still_missing = compute_missing(intent.action, intent.parameters)
        if len(still_missing) < len(intent.missing_parameters):
            logger.debug(
                f"Resolved {set(intent.missing_parameters) - set(still_missing)} from history"
            )
        intent.missing_parameters = still_missing

    # ------------------------------------------------------------------
    # Clarification
    # ------------------------------------------------------------------

    def _clarification_message(self, intent: Intent) -> str:
        action = intent.action.label
        missing = intent.missing_parameters

        if len(missing) == 1:
            param = missing[0]
            question = PARAMETER_QUESTIONS.get(param, f"which {param}?")
            message = f"I understand you want to {action}. However, I need to know: {question}"

            suggestions = self.suggestions_for(param)
            if suggestions:
                listed = "\n".join(f"- {s}" for s in suggestions[:MAX_SUGGESTIONS])
                message += f"\n\nAvailable options:\n{listed}"
                if len(suggestions) > MAX_SUGGESTIONS:
                    message += f"\n... and {len(suggestions) - MAX_SUGGESTIONS} more"
            return message

        return (
            f"I understand you want to {action}. However, I need more information "
            f"about: {', '.join(missing)}. Please provide these details."
        )

    def suggestions_for(self, param: str) -> list[str]:
        """Candidate values for a missing parameter from the snapshot."""
        if param == "site":
            return [site.name for site in self.catalog.sites]
        if param in ("items", "asset"):
            return [asset.name for asset in self.catalog.assets[:MAX_ASSET_SUGGESTIONS]]
        if param == "driver":
            return [employee.name for employee in self.catalog.employees]
        if param == "vehicle":
            return [vehicle.label for vehicle in self.catalog.vehicles]
        return []


__all__ = ["AssistantSession", "HELP_MESSAGE", "MAX_INPUT_LENGTH"]
