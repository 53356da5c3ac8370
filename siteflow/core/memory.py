"""Conversation memory for siteflow.

Keeps a bounded history of interpreted turns so that follow-ups ("10",
"yes") and omitted parameters ("send 5 more pumps") can be resolved against
what the operator said before.

Features:
- ConversationTurn record with JSON serialization
- Bounded FIFO history (oldest turns evicted first)
- Follow-up detection and contextual hints from recent turns
- Explicit save/restore against a host key-value store
"""

from __future__ import annotations

import json
import logging
import math
import re
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Protocol

from .intent.taxonomy import ActionType, Intent

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50
DEFAULT_WARNING_RATIO = 0.8
HINT_WINDOW = 3

FOLLOW_UP_PATTERNS = [
    re.compile(r"^(yes|yeah|yep|sure|ok|okay)\b", re.IGNORECASE),
    re.compile(r"^(no|nope|nah)\b", re.IGNORECASE),
    re.compile(r"^(more|another|add|also)\b", re.IGNORECASE),
    re.compile(r"^\d+"),  # Answering "how many?"
]

# Keys consulted when the requested key is absent from a turn
HISTORY_ALIASES: dict[str, tuple[str, ...]] = {
    "siteName": ("siteId",),
    "siteId": ("siteName",),
}


@dataclass(frozen=True)
class ConversationTurn:
    """One interpreted user turn.

    Attributes:
        id: Unique turn identifier
        user_input: Raw text the user typed
        intent: Final intent computed for the turn
        timestamp: When the turn was recorded
        resolved: True when the intent had no missing parameters
    """

    id: str
    user_input: str
    intent: Intent
    timestamp: datetime
    resolved: bool

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON persistence."""
        return {
            "id": self.id,
            "user_input": self.user_input,
            "intent": self.intent.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "resolved": self.resolved,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationTurn":
        """Deserialize from dictionary."""
        intent = Intent.from_dict(data["intent"])
        return cls(
            id=data["id"],
            user_input=data["user_input"],
            intent=intent,
            timestamp=datetime.fromisoformat(data["timestamp"]),
            resolved=data.get("resolved", not intent.missing_parameters),
        )


@dataclass
class ContextHints:
    """Facts remembered from the most recent turns (most recent wins)."""

    site_id: Any = None
    site_name: str | None = None
    action: ActionType | None = None
    items: list[dict[str, Any]] | None = None


class ConversationMemory:
    """Bounded turn history with follow-up resolution.

    Attributes:
        capacity: Maximum number of turns kept
        warning_threshold: Length at which the capacity callback fires
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        warning_ratio: float = DEFAULT_WARNING_RATIO,
        on_capacity_warning: Callable[[int, int], None] | None = None,
    ) -> None:
        """Initialize an empty memory.

        Args:
            capacity: Maximum turns kept before FIFO eviction
            warning_ratio: Fraction of capacity that triggers the callback
            on_capacity_warning: Called once with (length, capacity) when the
                history first reaches the watermark
        """
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")

        self.capacity = capacity
        self.warning_threshold = max(1, math.ceil(capacity * warning_ratio))
        self.on_capacity_warning = on_capacity_warning
        self._turns: deque[ConversationTurn] = deque(maxlen=capacity)
        self._warned = False

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def history(self) -> list[ConversationTurn]:
        """All turns, oldest first (a copy)."""
        return list(self._turns)

    def add_turn(self, user_input: str, intent: Intent) -> ConversationTurn:
        """Append a turn, evicting the oldest one when full.

        Args:
            user_input: Raw text of the turn
            intent: Final intent computed for the turn

        Returns:
            The recorded ConversationTurn
        """
        turn = ConversationTurn(
            id=str(uuid.uuid4()),
            user_input=user_input,
            intent=intent,
            timestamp=datetime.now(),
            resolved=not intent.missing_parameters,
        )
        self._append(turn)
        return turn

    def _append(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)

        if not self._warned and len(self._turns) >= self.warning_threshold:
            self._warned = True
            logger.info(
                f"Conversation memory at {len(self._turns)}/{self.capacity} turns"
            )
            if self.on_capacity_warning is not None:
                self.on_capacity_warning(len(self._turns), self.capacity)

    def last_turn(self) -> ConversationTurn | None:
        return self._turns[-1] if self._turns else None

    def recent_turns(self, count: int = 5) -> list[ConversationTurn]:
        """Most recent ``count`` turns, oldest first."""
        if count <= 0:
            return []
        return list(self._turns)[-count:]

    def clear(self) -> None:
        """Drop all turns and re-arm the capacity warning."""
        self._turns.clear()
        self._warned = False

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_from_history(self, param: str) -> Any:
        """Find the most recent non-None value of a parameter.

        Walks newest to oldest. Within a turn the requested key wins; its
        alias (siteName <-> siteId) is used only when the key is absent.

        Returns:
            The value, or None if no turn carries it
        """
        keys = (param, *HISTORY_ALIASES.get(param, ()))
        for turn in reversed(self._turns):
            for key in keys:
                value = turn.intent.parameters.get(key)
                if value is not None:
                    return value
        return None

    def is_follow_up(self, text: str) -> bool:
        """Check if input reads as a follow-up to the previous turn."""
        if self.last_turn() is None:
            return False
        stripped = text.strip()
        return any(p.search(stripped) for p in FOLLOW_UP_PATTERNS)

    def contextual_hints(self) -> ContextHints:
        """Collect site, action and items from the last few turns.

        Turns are scanned newest first so the most recent mention of each
        field wins. Unknown actions are skipped.
        """
        hints = ContextHints()

        for turn in reversed(self.recent_turns(HINT_WINDOW)):
            params = turn.intent.parameters
            if hints.site_id is None and params.get("siteId") is not None:
                hints.site_id = params["siteId"]
                hints.site_name = params.get("siteName")
            if hints.action is None and turn.intent.action != ActionType.UNKNOWN:
                hints.action = turn.intent.action
            if hints.items is None and params.get("items"):
                hints.items = list(params["items"])

        return hints

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "capacity": self.capacity,
            "turns": [turn.to_dict() for turn in self._turns],
        }

    def load_dict(self, data: dict[str, Any]) -> None:
        """Replace the history with serialized turns (oldest first).

        Turns beyond capacity are evicted oldest-first, as on append. The
        capacity callback does not fire during a restore.
        """
        self._turns.clear()
        for raw in data.get("turns", []):
            self._turns.append(ConversationTurn.from_dict(raw))
        self._warned = len(self._turns) >= self.warning_threshold


# =============================================================================
# Persistence
# =============================================================================


class KeyValueStore(Protocol):
    """Host-provided string key-value storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


@dataclass
class InMemoryStore:
    """Dictionary-backed KeyValueStore (tests, ephemeral hosts)."""

    data: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """KeyValueStore keeping one JSON file per key in a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        # Atomic write: temp file then rename
        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(value, encoding="utf-8")
        temp_path.replace(path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def save_memory(memory: ConversationMemory, store: KeyValueStore, key: str) -> None:
    """Persist the memory's turns as JSON under ``key``."""
    store.set(key, json.dumps(memory.to_dict(), indent=2))
    logger.debug(f"Saved {len(memory)} conversation turns to '{key}'")


def restore_memory(
    store: KeyValueStore,
    key: str,
    memory: ConversationMemory | None = None,
) -> ConversationMemory:
    """Restore turns saved with ``save_memory``.

    Args:
        store: Store holding the serialized memory
        key: Key used when saving
        memory: Memory to load into (a new default one if omitted)

    Returns:
        The populated memory. A missing or unreadable entry yields an empty
        memory and a warning rather than an error.
    """
    memory = memory if memory is not None else ConversationMemory()
    raw = store.get(key)
    if raw is None:
        return memory

    try:
        memory.load_dict(json.loads(raw))
    except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
        logger.warning(f"Discarding unreadable conversation memory '{key}': {e}")
        memory.clear()

    return memory


__all__ = [
    "ContextHints",
    "ConversationMemory",
    "ConversationTurn",
    "InMemoryStore",
    "JsonFileStore",
    "KeyValueStore",
    "restore_memory",
    "save_memory",
]
