"""Synonym tables for siteflow intent matching.

Everything here is data: action trigger phrases, entity nouns and unit
variants. The recognizer and entity resolver only consult these tables, so
adding a phrase never needs a code change.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Literal

from .taxonomy import ActionType

# Trigger phrases per action. Dict order is the match priority.
ACTION_SYNONYMS: dict[ActionType, list[str]] = {
    ActionType.CREATE_WAYBILL: [
        "create waybill", "new waybill", "make waybill", "generate waybill",
        "send", "dispatch", "transfer", "ship", "deliver", "send to",
        "dispatch to", "transfer to", "ship to", "deliver to",
    ],
    ActionType.ADD_ASSET: [
        "add asset", "new asset", "create asset", "make asset",
        "add item", "new item", "create item", "register item",
        "add inventory", "add stock", "add material", "add equipment",
    ],
    ActionType.PROCESS_RETURN: [
        "process return", "return from", "receive back", "get back",
        "return items", "receive items", "accept return", "handle return",
        "returned from",
    ],
    ActionType.CREATE_SITE: [
        "create site", "new site", "add site", "make site",
        "register site", "add location", "new location", "create location",
    ],
    ActionType.UPDATE_ASSET: [
        "update asset", "update item", "update stock", "adjust stock",
        "set quantity", "change quantity", "correct quantity",
    ],
    ActionType.CHECK_INVENTORY: [
        "check inventory", "show inventory", "view inventory", "list inventory",
        "check stock", "show stock", "stock level", "inventory level",
        "how many", "how much", "quantity of", "amount of",
        "what do we have", "available stock", "available inventory",
    ],
    ActionType.VIEW_ANALYTICS: [
        "show analytics", "view analytics", "display analytics",
        "analytics", "statistics", "stats", "report", "reports",
        "show stats", "view stats", "show report", "view report",
    ],
}

ENTITY_SYNONYMS: dict[str, list[str]] = {
    "site": ["site", "location", "project", "construction site", "work site", "job site"],
    "asset": ["asset", "item", "material", "equipment", "stock", "inventory"],
    "quantity": ["quantity", "qty", "amount", "number", "count", "units"],
    "driver": ["driver", "employee", "person", "staff", "worker"],
    "vehicle": ["vehicle", "truck", "car", "van", "transport"],
}

UNIT_SYNONYMS: dict[str, list[str]] = {
    "pieces": ["piece", "pieces", "pcs", "pc", "unit", "units"],
    "bags": ["bag", "bags", "sack", "sacks"],
    "liters": ["liter", "liters", "litre", "litres", "l"],
    "meters": ["meter", "meters", "metre", "metres", "m"],
    "kilograms": ["kilogram", "kilograms", "kg", "kgs"],
    "drums": ["drum", "drums", "barrel", "barrels"],
}

# Single generic nouns that never identify a specific record on their own
GENERIC_ENTITY_WORDS: frozenset[str] = frozenset(
    word
    for variants in ENTITY_SYNONYMS.values()
    for phrase in variants
    for word in phrase.split()
) | frozenset({"the", "and", "for", "with", "from", "new", "old"})


@lru_cache(maxsize=None)
def _phrase_pattern(phrase: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(phrase.lower())}\b")


def matches_action_synonym(text: str, action: ActionType) -> bool:
    """Check if text contains any trigger phrase of ``action`` as whole words."""
    text_lower = text.lower()
    return any(_phrase_pattern(p).search(text_lower) for p in ACTION_SYNONYMS.get(action, []))


def match_action(text: str) -> ActionType | None:
    """Return the first action (in priority order) whose phrases occur in text."""
    for action in ACTION_SYNONYMS:
        if matches_action_synonym(text, action):
            return action
    return None


def find_synonyms(term: str, category: Literal["action", "entity", "unit"]) -> list[str]:
    """Find the synonym group containing ``term``, or ``[term]`` if none does."""
    if category == "action":
        groups = list(ACTION_SYNONYMS.values())
    elif category == "entity":
        groups = list(ENTITY_SYNONYMS.values())
    else:
        groups = list(UNIT_SYNONYMS.values())

    term_lower = term.lower()
    for values in groups:
        if any(v.lower() == term_lower for v in values):
            return list(values)
    return [term]


def normalize_unit(unit: str) -> str:
    """Normalize a unit variant ("pcs", "sacks") to its canonical form."""
    unit_lower = unit.lower()
    for standard, variants in UNIT_SYNONYMS.items():
        if unit_lower in variants:
            return standard
    return unit


# Every unit variant, longest first so "kgs" wins over "kg"
UNIT_WORDS: list[str] = sorted(
    {v for variants in UNIT_SYNONYMS.values() for v in variants}, key=len, reverse=True
)
