"""Strict JSON extraction and validation of remote intent payloads.

Model output is parsed in two steps: the whole reply as JSON, then the first
balanced top-level object found in it. Anything else is rejected; there is
no character-level repair.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .taxonomy import ActionType, Intent, compute_missing

logger = logging.getLogger(__name__)

# Action names some prompts produce for an existing category
ACTION_ALIASES: dict[str, ActionType] = {
    "send_to_site": ActionType.CREATE_WAYBILL,
}


class SchemaValidationError(ValueError):
    """Remote output was not a valid intent object."""

    pass


def _first_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` span, honouring JSON strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def parse_model_json(text: str) -> Any:
    """Decode the JSON object in a model reply.

    Raises:
        SchemaValidationError: If neither the whole reply nor its first
            balanced object is valid JSON
    """
    text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    candidate = _first_json_object(text)
    if candidate is None:
        raise SchemaValidationError("No JSON object found in model output")
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise SchemaValidationError(f"Malformed JSON in model output: {e}") from e


class ItemPayload(BaseModel):
    """One entry of a remote ``items`` list."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str | None = None
    name: str = Field(min_length=1)
    quantity: int | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def bare_name(cls, value: Any) -> Any:
        # Models often list items by name only
        if isinstance(value, str):
            return {"name": value}
        return value


class IntentPayload(BaseModel):
    """Expected shape of a remote intent object."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    action: str
    confidence: float = Field(ge=0.0, le=1.0)
    parameters: dict[str, Any]
    missing_parameters: list[str] = Field(alias="missingParameters")

    @field_validator("parameters")
    @classmethod
    def item_shapes(cls, value: dict[str, Any]) -> dict[str, Any]:
        items = value.get("items")
        if items is None:
            return value
        if not isinstance(items, list):
            raise ValueError("items must be a list")
        try:
            value["items"] = [
                ItemPayload.model_validate(item).model_dump() for item in items
            ]
        except ValidationError as e:
            raise ValueError(f"invalid items: {e.error_count()} errors") from e
        return value

    @field_validator("action")
    @classmethod
    def known_action(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized in ACTION_ALIASES:
            return ACTION_ALIASES[normalized].value
        ActionType(normalized)  # raises ValueError for unknown categories
        return normalized

    @field_validator("confidence", mode="before")
    @classmethod
    def numeric_confidence(cls, value: Any) -> Any:
        # bool is an int subclass; reject it along with numeric strings
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("confidence must be a number")
        return value


def validate_intent_payload(raw: Any) -> Intent:
    """Validate a decoded payload and convert it to an Intent.

    Missing parameters are recomputed from the required-parameter table so
    that a model cannot declare an incomplete intent ready.

    Raises:
        SchemaValidationError: If the payload does not match the schema
    """
    if not isinstance(raw, dict):
        raise SchemaValidationError("Intent payload must be a JSON object")

    try:
        payload = IntentPayload.model_validate(raw)
    except ValidationError as e:
        raise SchemaValidationError(f"Invalid intent payload: {e.error_count()} errors") from e

    action = ActionType(payload.action)
    parameters = {k: v for k, v in payload.parameters.items() if v is not None}
    missing = compute_missing(action, parameters)

    if sorted(missing) != sorted(payload.missing_parameters):
        logger.debug(
            f"Remote missing parameters {payload.missing_parameters} replaced by {missing}"
        )

    return Intent(
        action=action,
        confidence=payload.confidence,
        parameters=parameters,
        missing_parameters=missing,
        source="remote",
    )


__all__ = [
    "IntentPayload",
    "ItemPayload",
    "SchemaValidationError",
    "parse_model_json",
    "validate_intent_payload",
]
