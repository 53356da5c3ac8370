"""Action taxonomy and intent structures for siteflow.

This module defines the closed set of action categories, the Intent record
that flows through the pipeline, and the per-action parameter tables that the
recognizer, confidence calculator and clarification logic share.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ActionType(str, Enum):
    """Action categories an utterance can resolve to."""

    CREATE_WAYBILL = "create_waybill"  # Send assets to a site
    ADD_ASSET = "add_asset"  # Register new stock
    PROCESS_RETURN = "process_return"  # Receive assets back from a site
    CREATE_SITE = "create_site"  # Register a new site
    UPDATE_ASSET = "update_asset"  # Adjust an existing asset
    CHECK_INVENTORY = "check_inventory"  # Read stock levels
    VIEW_ANALYTICS = "view_analytics"  # Read summary analytics
    UNKNOWN = "unknown"

    @property
    def label(self) -> str:
        """Human-readable action name ("create waybill")."""
        return self.value.replace("_", " ")


@dataclass
class EntityMatch(Generic[T]):
    """A fuzzy match of a catalog record inside free text.

    Attributes:
        item: The matched record
        score: Normalised match confidence 0.0-1.0
        start: Start offset of the matched span in the searched text
        end: End offset of the matched span
    """

    item: T
    score: float
    start: int = -1
    end: int = -1


@dataclass
class ExtractedItem:
    """One asset mentioned in the input, with an optional nearby quantity."""

    id: str
    name: str
    quantity: int | None = None
    confidence: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "confidence": self.confidence,
        }


@dataclass
class ExtractedEntities:
    """Per-category entity matches collected while parsing an intent."""

    sites: list[EntityMatch] = field(default_factory=list)
    assets: list[EntityMatch] = field(default_factory=list)
    employees: list[EntityMatch] = field(default_factory=list)
    vehicles: list[EntityMatch] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.sites or self.assets or self.employees or self.vehicles)


@dataclass
class Intent:
    """Structured interpretation of one user utterance.

    Attributes:
        action: Resolved action category
        confidence: Confidence score 0.0-1.0
        parameters: Extracted parameters keyed by canonical name
        missing_parameters: Required logical parameters still unresolved
        extracted_entities: Entity matches backing the parameters
        source: Where the intent came from (rules, followup, remote)
    """

    action: ActionType
    confidence: float = 0.0
    parameters: dict[str, Any] = field(default_factory=dict)
    missing_parameters: list[str] = field(default_factory=list)
    extracted_entities: ExtractedEntities | None = None
    source: str = "rules"

    @classmethod
    def unknown(cls, source: str = "rules") -> "Intent":
        """Create an unknown intent with zero confidence."""
        return cls(action=ActionType.UNKNOWN, confidence=0.0, source=source)

    @property
    def is_ready(self) -> bool:
        """True when no required parameter is missing."""
        return not self.missing_parameters

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-safe dictionary (entity matches are dropped)."""
        return {
            "action": self.action.value,
            "confidence": self.confidence,
            "parameters": dict(self.parameters),
            "missing_parameters": list(self.missing_parameters),
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Intent":
        """Deserialize from dictionary."""
        return cls(
            action=ActionType(data.get("action", ActionType.UNKNOWN.value)),
            confidence=float(data.get("confidence", 0.0)),
            parameters=dict(data.get("parameters") or {}),
            missing_parameters=list(data.get("missing_parameters") or []),
            source=data.get("source", "rules"),
        )


# Logical parameter names required/optional per action.
REQUIRED_PARAMETERS: dict[ActionType, list[str]] = {
    ActionType.CREATE_WAYBILL: ["site", "items"],
    ActionType.ADD_ASSET: ["name", "quantity"],
    ActionType.PROCESS_RETURN: ["site"],
    ActionType.CREATE_SITE: ["name"],
    ActionType.UPDATE_ASSET: ["asset", "quantity"],
    ActionType.CHECK_INVENTORY: [],
    ActionType.VIEW_ANALYTICS: [],
    ActionType.UNKNOWN: [],
}

OPTIONAL_PARAMETERS: dict[ActionType, list[str]] = {
    ActionType.CREATE_WAYBILL: ["driver", "vehicle", "purpose"],
    ActionType.ADD_ASSET: ["unit", "type"],
    ActionType.PROCESS_RETURN: ["items"],
    ActionType.CREATE_SITE: ["address"],
    ActionType.UPDATE_ASSET: ["unit"],
    ActionType.CHECK_INVENTORY: ["asset", "site"],
    ActionType.VIEW_ANALYTICS: ["type", "site"],
    ActionType.UNKNOWN: [],
}

# Concrete parameter keys that satisfy a logical parameter.
# Logical names not listed here are stored under their own name.
PARAMETER_KEYS: dict[str, tuple[str, ...]] = {
    "site": ("siteId", "siteName"),
    "asset": ("assetId", "assetName"),
    "driver": ("driverId", "driver"),
    "vehicle": ("vehicleId", "vehicle"),
}


def parameter_keys(name: str) -> tuple[str, ...]:
    """Concrete keys backing a logical parameter name."""
    return PARAMETER_KEYS.get(name, (name,))


def is_parameter_filled(parameters: dict[str, Any], name: str) -> bool:
    """Check whether any concrete key of a logical parameter has a value.

    Empty lists count as unfilled so that ``items: []`` never satisfies a
    required ``items`` parameter.
    """
    for key in parameter_keys(name):
        value = parameters.get(key)
        if value is None:
            continue
        if isinstance(value, (list, tuple, dict, str)) and len(value) == 0:
            continue
        return True
    return False


def compute_missing(action: ActionType, parameters: dict[str, Any]) -> list[str]:
    """Required parameters of ``action`` that ``parameters`` does not fill."""
    return [p for p in REQUIRED_PARAMETERS[action] if not is_parameter_filled(parameters, p)]
