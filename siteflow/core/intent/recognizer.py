"""Rule-based intent recognition for siteflow.

Classifies an utterance into one action category using the synonym tables,
then runs that category's parameter extractor. Extraction is best-effort:
anything a required parameter needs but cannot find is listed in
``missing_parameters`` instead of failing the whole intent.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Callable

from .confidence import ConfidenceCalculator
from .entities import EntityResolver
from .synonyms import match_action
from .taxonomy import (
    ActionType,
    EntityMatch,
    ExtractedEntities,
    Intent,
    compute_missing,
)

if TYPE_CHECKING:
    from ..memory import ContextHints, ConversationMemory

logger = logging.getLogger(__name__)

AFFIRMATION_RE = re.compile(r"^(yes|yeah|yep|sure|ok|okay)\b", re.IGNORECASE)
BARE_NUMBER_RE = re.compile(r"^\d+$")

ASSET_NAME_RE = re.compile(
    r"(?:add|create|new|register)\s+(?:new\s+)?(?:asset|item|stock|material|equipment)?\s*"
    r"[\"']?([^\"',0-9]+?)[\"']?\s*(?:\d|$)",
    re.IGNORECASE,
)
SITE_NAME_RE = re.compile(
    r"\b(?:site|location)\s+(?:called\s+|named\s+)?[\"']?([^\"',]+?)[\"']?"
    r"(?:\s+at\b|\s+located\b|\s+address\b|,|$)",
    re.IGNORECASE,
)
ADDRESS_RE = re.compile(r"(?:\blocated at|\baddress:?|\bat)\s+(.+?)(?:\.|$)", re.IGNORECASE)


class IntentRecognizer:
    """Turn free text into a structured Intent.

    Attributes:
        resolver: Entity resolver over the current catalog snapshot
        memory: Conversation memory used for context fallbacks
        calculator: Confidence calculator for the first-pass score
    """

    def __init__(
        self,
        resolver: EntityResolver,
        memory: "ConversationMemory",
        calculator: ConfidenceCalculator | None = None,
    ) -> None:
        self.resolver = resolver
        self.memory = memory
        self.calculator = calculator or ConfidenceCalculator()

        self._parsers: dict[ActionType, Callable[[str, "ContextHints"], Intent]] = {
            ActionType.CREATE_WAYBILL: self._parse_waybill,
            ActionType.ADD_ASSET: self._parse_add_asset,
            ActionType.PROCESS_RETURN: self._parse_return,
            ActionType.CREATE_SITE: self._parse_create_site,
            ActionType.UPDATE_ASSET: self._parse_update_asset,
            ActionType.CHECK_INVENTORY: self._parse_inventory_check,
            ActionType.VIEW_ANALYTICS: self._parse_analytics,
        }

    def identify_intent(self, text: str) -> Intent:
        """Classify ``text`` and extract its parameters.

        Args:
            text: User input

        Returns:
            Intent with first-pass confidence. Unknown intents have
            confidence 0.
        """
        text = text.strip()
        if not text:
            return Intent.unknown()

        hints = self.memory.contextual_hints()

        action = match_action(text)
        if action is not None:
            intent = self._parsers[action](text, hints)
            intent.confidence = self.calculator.calculate_confidence(intent)
            logger.debug(
                f"Matched {action.value} (confidence={intent.confidence:.2f}, "
                f"missing={intent.missing_parameters})"
            )
            return intent

        if self.memory.is_follow_up(text) and hints.action is not None:
            return self._handle_follow_up(text, hints)

        return Intent.unknown()

    def ground_in_catalog(self, intent: Intent) -> Intent:
        """Resolve names in an externally produced intent to catalog ids.

        Remote extraction only sees names, so site, asset, item, driver and
        vehicle names are matched against the snapshot here. Ids already
        present are kept. Missing parameters are recomputed afterwards.
        """
        params = intent.parameters
        entities = intent.extracted_entities or ExtractedEntities()

        if params.get("siteId") is None and params.get("siteName"):
            site = self.resolver.find_site_in_text(str(params["siteName"]))
            if site is not None:
                params["siteId"] = site.item.id
                params["siteName"] = site.item.name
                entities.sites.append(site)

        if params.get("assetId") is None and params.get("assetName"):
            assets = self.resolver.find_asset_matches(str(params["assetName"]))
            if assets:
                params["assetId"] = assets[0].item.id
                params["assetName"] = assets[0].item.name
                entities.assets.append(assets[0])

        for item in params.get("items") or []:
            if not isinstance(item, dict) or item.get("id") is not None or not item.get("name"):
                continue
            assets = self.resolver.find_asset_matches(str(item["name"]))
            if assets:
                item["id"] = assets[0].item.id
                item["name"] = assets[0].item.name
                entities.assets.append(assets[0])

        if params.get("driverId") is None and params.get("driver"):
            employee = self.resolver.find_employee_in_text(str(params["driver"]))
            if employee is not None:
                params["driverId"] = employee.item.id
                params["driver"] = employee.item.name
                entities.employees.append(employee)

        if params.get("vehicleId") is None and params.get("vehicle"):
            vehicle = self.resolver.find_vehicle_in_text(str(params["vehicle"]))
            if vehicle is not None:
                params["vehicleId"] = vehicle.item.id
                params["vehicle"] = vehicle.item.label
                entities.vehicles.append(vehicle)

        if not entities.is_empty():
            intent.extracted_entities = entities
        intent.missing_parameters = compute_missing(intent.action, params)
        return intent

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _build(
        self,
        action: ActionType,
        parameters: dict[str, Any],
        entities: ExtractedEntities | None = None,
        source: str = "rules",
    ) -> Intent:
        return Intent(
            action=action,
            parameters=parameters,
            missing_parameters=compute_missing(action, parameters),
            extracted_entities=entities,
            source=source,
        )

    def _apply_site(
        self,
        text: str,
        parameters: dict[str, Any],
        entities: ExtractedEntities,
        hints: "ContextHints | None" = None,
    ) -> None:
        site_match = self.resolver.find_site_in_text(text)
        if site_match is not None:
            parameters["siteId"] = site_match.item.id
            parameters["siteName"] = site_match.item.name
            entities.sites.append(site_match)
        elif hints is not None and hints.site_id is not None:
            parameters["siteId"] = hints.site_id
            parameters["siteName"] = hints.site_name

    def _names_site(self, phrase: str, site_name: str | None) -> bool:
        # "to Lekki Site" is the destination, not a purpose
        if not site_name:
            return False
        return self.resolver.score_name(site_name, phrase)[0] >= 0.8

    @staticmethod
    def _detect_type(text_lower: str, include_site: bool = False) -> str | None:
        if "consumable" in text_lower:
            return "consumable"
        if "equipment" in text_lower or "machine" in text_lower:
            return "equipment"
        if "tool" in text_lower:
            return "tools"
        if include_site and "site" in text_lower:
            return "site"
        return None

    # ------------------------------------------------------------------
    # Per-action extractors
    # ------------------------------------------------------------------

    def _parse_waybill(self, text: str, hints: "ContextHints") -> Intent:
        parameters: dict[str, Any] = {}
        entities = ExtractedEntities()

        self._apply_site(text, parameters, entities, hints)

        items = self.resolver.parse_multiple_items(text)
        if items:
            parameters["items"] = [item.to_dict() for item in items]
            entities.assets = [EntityMatch(item=i, score=i.confidence or 0.0) for i in items]

        employee = self.resolver.find_employee_in_text(text)
        if employee is not None:
            parameters["driver"] = employee.item.name
            parameters["driverId"] = employee.item.id
            entities.employees.append(employee)

        vehicle = self.resolver.find_vehicle_in_text(text)
        if vehicle is not None:
            parameters["vehicle"] = vehicle.item.label
            parameters["vehicleId"] = vehicle.item.id
            entities.vehicles.append(vehicle)

        purpose = self.resolver.extract_purpose(text)
        if purpose and not self._names_site(purpose, parameters.get("siteName")):
            parameters["purpose"] = purpose

        return self._build(ActionType.CREATE_WAYBILL, parameters, entities)

    def _parse_add_asset(self, text: str, hints: "ContextHints") -> Intent:
        parameters: dict[str, Any] = {}
        entities = ExtractedEntities()

        name_match = ASSET_NAME_RE.search(text)
        name = name_match.group(1).strip() if name_match else ""
        if name and name.lower() not in ("asset", "item", "stock", "material", "equipment"):
            parameters["name"] = name
        else:
            known = self.resolver.find_asset_matches(text)
            if known:
                parameters["name"] = known[0].item.name
                entities.assets.append(known[0])

        numbers = self.resolver.extract_numbers(text)
        if numbers:
            parameters["quantity"] = numbers[0]

        unit = self.resolver.extract_unit(text)
        if unit:
            parameters["unit"] = unit

        asset_type = self._detect_type(text.lower())
        if asset_type:
            parameters["type"] = asset_type

        return self._build(ActionType.ADD_ASSET, parameters, entities)

    def _parse_return(self, text: str, hints: "ContextHints") -> Intent:
        parameters: dict[str, Any] = {}
        entities = ExtractedEntities()

        self._apply_site(text, parameters, entities, hints)

        items = self.resolver.find_assets_in_text(text)
        if items:
            parameters["items"] = [item.to_dict() for item in items]
            entities.assets = [EntityMatch(item=i, score=i.confidence or 0.0) for i in items]

        return self._build(ActionType.PROCESS_RETURN, parameters, entities)

    def _parse_create_site(self, text: str, hints: "ContextHints") -> Intent:
        parameters: dict[str, Any] = {}

        name_match = SITE_NAME_RE.search(text)
        if name_match and name_match.group(1).strip():
            parameters["name"] = name_match.group(1).strip()

        address_match = ADDRESS_RE.search(text)
        if address_match:
            parameters["address"] = address_match.group(1).strip()

        return self._build(ActionType.CREATE_SITE, parameters)

    def _parse_update_asset(self, text: str, hints: "ContextHints") -> Intent:
        parameters: dict[str, Any] = {}
        entities = ExtractedEntities()

        known = self.resolver.find_asset_matches(text)
        if known:
            best = known[0]
            parameters["assetId"] = best.item.id
            parameters["assetName"] = best.item.name
            entities.assets.append(best)
            quantity = self.resolver.extract_quantity_near(text, best.start, best.end)
            if quantity is not None:
                parameters["quantity"] = quantity
        else:
            numbers = self.resolver.extract_numbers(text)
            if numbers:
                parameters["quantity"] = numbers[-1]

        unit = self.resolver.extract_unit(text)
        if unit:
            parameters["unit"] = unit

        return self._build(ActionType.UPDATE_ASSET, parameters, entities)

    def _parse_inventory_check(self, text: str, hints: "ContextHints") -> Intent:
        parameters: dict[str, Any] = {}
        entities = ExtractedEntities()

        known = self.resolver.find_asset_matches(text)
        if known:
            parameters["assetId"] = known[0].item.id
            parameters["assetName"] = known[0].item.name
            entities.assets.append(known[0])

        self._apply_site(text, parameters, entities)

        return self._build(ActionType.CHECK_INVENTORY, parameters, entities)

    def _parse_analytics(self, text: str, hints: "ContextHints") -> Intent:
        parameters: dict[str, Any] = {}
        entities = ExtractedEntities()

        analytics_type = self._detect_type(text.lower(), include_site=True)
        if analytics_type:
            parameters["type"] = analytics_type

        self._apply_site(text, parameters, entities)

        return self._build(ActionType.VIEW_ANALYTICS, parameters, entities)

    # ------------------------------------------------------------------
    # Follow-ups
    # ------------------------------------------------------------------

    def _handle_follow_up(self, text: str, hints: "ContextHints") -> Intent:
        """Resume the remembered action with the new parameter (if any).

        A bare integer answers "how many?" and becomes ``quantity``; an
        affirmation carries no new parameters. Required parameters are left
        missing so that history resolution can fill them.
        """
        stripped = text.strip()
        action = hints.action
        assert action is not None

        if BARE_NUMBER_RE.match(stripped):
            intent = self._build(action, {"quantity": int(stripped)}, source="followup")
        elif AFFIRMATION_RE.match(stripped):
            intent = self._build(action, {}, source="followup")
        else:
            return Intent.unknown(source="followup")

        intent.confidence = self.calculator.calculate_confidence(intent)
        logger.debug(f"Follow-up resumed {action.value}")
        return intent


__all__ = ["IntentRecognizer"]
