"""Action execution for siteflow.

Turns a fully resolved intent into either a real mutation through a
host-supplied mutator, or a suggestion to open a prefilled form. Inventory
checks and analytics are answered straight from the catalog snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from .catalog import CatalogSnapshot
from .intent.taxonomy import ActionType, Intent
from .responses import (
    AssistantResponse,
    ExecutionResult,
    SuggestedAction,
    SuggestedActionType,
    clarify,
)

logger = logging.getLogger(__name__)

LOW_STOCK_THRESHOLD = 10
MAX_LISTED_ITEMS = 10

Mutator = Callable[[dict[str, Any]], Awaitable[Any]]
UpdateMutator = Callable[[str, dict[str, Any]], Awaitable[Any]]

FORM_TYPES: dict[ActionType, str] = {
    ActionType.CREATE_WAYBILL: "waybill",
    ActionType.ADD_ASSET: "asset",
    ActionType.PROCESS_RETURN: "return",
    ActionType.CREATE_SITE: "site",
    ActionType.UPDATE_ASSET: "asset",
}


@dataclass
class ActionExecutionContext:
    """Async mutators supplied by the host application.

    Every mutator takes plain data and returns the created/updated record.
    Any mutator may be left unset; its action then falls back to a form
    suggestion.
    """

    add_asset: Optional[Mutator] = None
    create_waybill: Optional[Mutator] = None
    process_return: Optional[Mutator] = None
    create_site: Optional[Mutator] = None
    update_asset: Optional[UpdateMutator] = None


def _record_id(record: Any) -> Any:
    if isinstance(record, dict):
        return record.get("id")
    return getattr(record, "id", None)


def _as_list(value: Any) -> list[Any]:
    if not value:
        return []
    return value if isinstance(value, list) else [value]


def _item_summary(items: list[Any]) -> str:
    # Runs after the mutator has committed, so it must not raise
    parts = []
    for item in items:
        if isinstance(item, dict):
            parts.append(f"{item.get('quantity') or 1}x {item.get('name') or item.get('id')}")
        else:
            parts.append(f"1x {item}")
    return ", ".join(parts)


class ActionExecutor:
    """Execute or suggest actions for resolved intents.

    Attributes:
        catalog: Snapshot used by the read paths
        execution_context: Host mutators, or None for suggest-only mode
    """

    def __init__(
        self,
        catalog: CatalogSnapshot,
        execution_context: ActionExecutionContext | None = None,
    ) -> None:
        self.catalog = catalog
        self.execution_context = execution_context

        self._handlers: dict[ActionType, Callable[[Intent], Awaitable[AssistantResponse]]] = {
            ActionType.ADD_ASSET: self._execute_add_asset,
            ActionType.CREATE_WAYBILL: self._execute_create_waybill,
            ActionType.PROCESS_RETURN: self._execute_process_return,
            ActionType.CREATE_SITE: self._execute_create_site,
            ActionType.UPDATE_ASSET: self._execute_update_asset,
        }

    async def execute(self, intent: Intent) -> AssistantResponse:
        """Execute ``intent`` and wrap the outcome.

        Never raises for mutator failures; they come back as a failed
        response with ``execution_result.error`` set.
        """
        if intent.action == ActionType.CHECK_INVENTORY:
            return self._check_inventory(intent)
        if intent.action == ActionType.VIEW_ANALYTICS:
            return self._view_analytics(intent)
        if intent.action == ActionType.UNKNOWN:
            return AssistantResponse(
                success=False,
                message="I'm not sure how to help with that. Can you rephrase?",
                intent=intent,
            )

        if self._mutator_for(intent.action) is None:
            return self.generate_form_suggestion(intent)

        try:
            return await self._handlers[intent.action](intent)
        except Exception as e:
            logger.warning(f"Mutator for {intent.action.value} failed: {e}")
            return AssistantResponse(
                success=False,
                message=f"Failed to {intent.action.label}: {e}",
                intent=intent,
                execution_result=ExecutionResult(success=False, error=str(e)),
            )

    def _mutator_for(self, action: ActionType) -> Any:
        if self.execution_context is None:
            return None
        return getattr(self.execution_context, action.value, None)

    # ------------------------------------------------------------------
    # Mutating actions
    # ------------------------------------------------------------------

    async def _execute_add_asset(self, intent: Intent) -> AssistantResponse:
        params = intent.parameters
        name = params.get("name")
        quantity = params.get("quantity")
        unit = params.get("unit") or "units"
        asset_type = params.get("type") or "equipment"

        if not name:
            return clarify("Which asset would you like to add? What's the name?", intent)
        if not quantity:
            return clarify(f"How many units of {name} would you like to add?", intent)

        created = await self.execution_context.add_asset({
            "name": name,
            "quantity": quantity,
            "unit_of_measurement": unit,
            "type": asset_type,
            "description": "Added via assistant",
            "site_quantities": {},
            "available_quantity": quantity,
        })

        return AssistantResponse(
            success=True,
            message=f"Added {quantity} {unit} of {name} to inventory.",
            intent=intent,
            execution_result=ExecutionResult(success=True, data=created),
        )

    async def _execute_create_waybill(self, intent: Intent) -> AssistantResponse:
        params = intent.parameters
        site_id = params.get("siteId")
        site_name = params.get("siteName") or site_id
        items = _as_list(params.get("items"))

        if not site_id and not params.get("siteName"):
            return clarify("Which site should this waybill go to?", intent)
        if not items:
            return clarify(f"What items should be included in the waybill for {site_name}?", intent)

        created = await self.execution_context.create_waybill({
            "site_id": site_id,
            "site_name": params.get("siteName"),
            "items": items,
            "driver_id": params.get("driverId"),
            "vehicle_id": params.get("vehicleId"),
            "purpose": params.get("purpose") or "Asset transfer",
            "date": datetime.now().isoformat(),
            "status": "pending",
        })

        return AssistantResponse(
            success=True,
            message=f"Waybill created for {site_name}. Sending: {_item_summary(items)}",
            intent=intent,
            suggested_action=SuggestedAction(
                type=SuggestedActionType.EXECUTE_ACTION,
                data={"action": "view_waybill", "waybillId": _record_id(created)},
            ),
            execution_result=ExecutionResult(success=True, data=created),
        )

    async def _execute_process_return(self, intent: Intent) -> AssistantResponse:
        params = intent.parameters
        site_id = params.get("siteId")
        site_name = params.get("siteName") or site_id
        items = _as_list(params.get("items"))

        if not site_id and not params.get("siteName"):
            return clarify("Which site is this return from?", intent)
        if not items:
            return clarify(f"What items are being returned from {site_name}?", intent)

        processed = await self.execution_context.process_return({
            "site_id": site_id,
            "site_name": params.get("siteName"),
            "items": items,
            "date": datetime.now().isoformat(),
            "status": "pending",
        })

        return AssistantResponse(
            success=True,
            message=f"Return from {site_name} has been processed. Items: {_item_summary(items)}",
            intent=intent,
            execution_result=ExecutionResult(success=True, data=processed),
        )

    async def _execute_create_site(self, intent: Intent) -> AssistantResponse:
        params = intent.parameters
        name = params.get("name")
        address = params.get("address")

        if not name:
            return clarify("What should the site be called?", intent)

        created = await self.execution_context.create_site({
            "name": name,
            "address": address or "",
            "status": "active",
            "created_at": datetime.now().isoformat(),
        })

        message = f'Site "{name}" has been created.'
        if address:
            message += f"\nAddress: {address}"

        return AssistantResponse(
            success=True,
            message=message,
            intent=intent,
            execution_result=ExecutionResult(success=True, data=created),
        )

    async def _execute_update_asset(self, intent: Intent) -> AssistantResponse:
        params = intent.parameters
        asset_id = params.get("assetId")
        asset_name = params.get("assetName") or asset_id
        quantity = params.get("quantity")

        if not asset_id:
            return clarify("Which asset would you like to update?", intent)
        if quantity is None:
            return clarify(f"What should the quantity of {asset_name} be?", intent)

        updates: dict[str, Any] = {"quantity": quantity}
        if params.get("unit"):
            updates["unit_of_measurement"] = params["unit"]

        updated = await self.execution_context.update_asset(str(asset_id), updates)

        return AssistantResponse(
            success=True,
            message=f"Updated {asset_name}: quantity is now {quantity}.",
            intent=intent,
            execution_result=ExecutionResult(success=True, data=updated),
        )

    def generate_form_suggestion(self, intent: Intent) -> AssistantResponse:
        """Suggest opening the action's form, prefilled with the parameters."""
        form_type = FORM_TYPES.get(intent.action)
        if form_type is None:
            return AssistantResponse(
                success=False,
                message="I'm not sure how to help with that. Can you rephrase?",
                intent=intent,
            )

        message = f"I'll help you {intent.action.label}"
        if intent.parameters.get("siteName"):
            message += f" for {intent.parameters['siteName']}"
        if intent.parameters.get("name"):
            message += f" {intent.parameters['name']}"
        message += "."

        return AssistantResponse(
            success=True,
            message=message,
            intent=intent,
            suggested_action=SuggestedAction(
                type=SuggestedActionType.OPEN_FORM,
                data={"formType": form_type, "prefillData": dict(intent.parameters)},
            ),
        )

    # ------------------------------------------------------------------
    # Read paths
    # ------------------------------------------------------------------

    def _check_inventory(self, intent: Intent) -> AssistantResponse:
        params = intent.parameters
        asset_id = params.get("assetId")
        site_id = params.get("siteId")
        site_name = params.get("siteName") or site_id
        assets = self.catalog.assets

        if asset_id is not None:
            asset = self.catalog.get_asset(asset_id)
            if asset is None:
                return AssistantResponse(
                    success=False,
                    message=f"Asset not found: {params.get('assetName') or asset_id}",
                    intent=intent,
                )
            message = f"{asset.name}: {asset.quantity} {asset.unit_of_measurement} in stock"
            if asset.available_quantity is not None:
                message += f" ({asset.available_quantity} available)"
            if site_id is not None:
                site_qty = asset.site_quantities.get(str(site_id))
                if site_qty is not None:
                    message += f"\n{site_qty} at {site_name}"

        elif site_id is not None:
            key = str(site_id)
            site_assets = [a for a in assets if a.site_quantities.get(key, 0) > 0]
            lines = [f"{site_name} has {len(site_assets)} different items:"]
            lines.extend(
                f"- {a.name}: {a.site_quantities[key]}" for a in site_assets[:MAX_LISTED_ITEMS]
            )
            if len(site_assets) > MAX_LISTED_ITEMS:
                lines.append(f"... and {len(site_assets) - MAX_LISTED_ITEMS} more")
            message = "\n".join(lines)

        else:
            total_units = sum(a.quantity for a in assets)
            low_stock = sum(1 for a in assets if 0 < a.quantity < LOW_STOCK_THRESHOLD)
            out_of_stock = sum(1 for a in assets if a.quantity == 0)

            lines = [
                "Inventory summary:",
                f"- Total items: {len(assets)}",
                f"- Total units: {total_units}",
            ]
            if low_stock:
                lines.append(f"- Low stock: {low_stock} items")
            if out_of_stock:
                lines.append(f"- Out of stock: {out_of_stock} items")
            message = "\n".join(lines)

        return AssistantResponse(success=True, message=message, intent=intent)

    def _view_analytics(self, intent: Intent) -> AssistantResponse:
        params = intent.parameters
        analytics_type = params.get("type")
        site_id = params.get("siteId")
        site_name = params.get("siteName")

        assets = self.catalog.assets
        if analytics_type in ("consumable", "equipment", "tools"):
            assets = [a for a in assets if a.type == analytics_type]

        title = f"{(analytics_type or 'general').capitalize()} analytics"
        if site_name:
            title += f" for {site_name}"
        lines = [f"{title}:"]

        if site_id is not None:
            key = str(site_id)
            at_site = [a for a in assets if a.site_quantities.get(key, 0) > 0]
            lines.append(f"- Assets at site: {len(at_site)}")
            lines.append(f"- Units at site: {sum(a.site_quantities[key] for a in at_site)}")
        elif analytics_type == "site":
            for site in self.catalog.sites:
                count = sum(1 for a in assets if a.site_quantities.get(site.id, 0) > 0)
                lines.append(f"- {site.name}: {count} items")
        else:
            lines.append(f"- Assets tracked: {len(assets)}")
            lines.append(f"- Total units: {sum(a.quantity for a in assets)}")
            lines.append(
                f"- Low stock: {sum(1 for a in assets if 0 < a.quantity < LOW_STOCK_THRESHOLD)}"
            )
            lines.append(f"- Out of stock: {sum(1 for a in assets if a.quantity == 0)}")

        return AssistantResponse(
            success=True,
            message="\n".join(lines),
            intent=intent,
            suggested_action=SuggestedAction(
                type=SuggestedActionType.EXECUTE_ACTION,
                data={
                    "action": "open_analytics",
                    "analyticsType": analytics_type,
                    "siteId": site_id,
                },
            ),
        )


__all__ = ["ActionExecutionContext", "ActionExecutor", "FORM_TYPES"]
