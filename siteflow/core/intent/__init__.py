"""Intent recognition for the siteflow inventory assistant.

This package turns free text into a structured Intent: an action category,
extracted parameters, the required parameters still missing, and a
confidence score.

The pipeline has two extractors:
1. Rule-based recognition - synonym tables plus fuzzy entity resolution
2. Remote extraction - a JSON intent from a remote model, validated
   strictly, with silent fallback to (1) on any failure

Example usage:
    ```python
    from siteflow.core.catalog import CatalogSnapshot
    from siteflow.core.intent import EntityResolver, IntentRecognizer
    from siteflow.core.memory import ConversationMemory

    resolver = EntityResolver(catalog)
    recognizer = IntentRecognizer(resolver, ConversationMemory())

    intent = recognizer.identify_intent("send 5 pumps to Lekki site")
    assert intent.action == ActionType.CREATE_WAYBILL
    ```
"""

from .confidence import ConfidenceCalculator
from .entities import EntityResolver
from .prompts import build_intent_extraction_prompt
from .recognizer import IntentRecognizer
from .remote import (
    RemoteFailure,
    RemoteFailureKind,
    RemoteIntentExtractor,
    classify_remote_error,
)
from .synonyms import (
    ACTION_SYNONYMS,
    ENTITY_SYNONYMS,
    UNIT_SYNONYMS,
    find_synonyms,
    match_action,
    normalize_unit,
)
from .taxonomy import (
    OPTIONAL_PARAMETERS,
    REQUIRED_PARAMETERS,
    ActionType,
    EntityMatch,
    ExtractedEntities,
    ExtractedItem,
    Intent,
    compute_missing,
)
from .validation import SchemaValidationError, parse_model_json, validate_intent_payload

__all__ = [
    # Recognition
    "IntentRecognizer",
    "EntityResolver",
    "ConfidenceCalculator",
    # Remote extraction
    "RemoteIntentExtractor",
    "RemoteFailure",
    "RemoteFailureKind",
    "classify_remote_error",
    "build_intent_extraction_prompt",
    "parse_model_json",
    "validate_intent_payload",
    "SchemaValidationError",
    # Synonyms
    "ACTION_SYNONYMS",
    "ENTITY_SYNONYMS",
    "UNIT_SYNONYMS",
    "find_synonyms",
    "match_action",
    "normalize_unit",
    # Taxonomy
    "ActionType",
    "Intent",
    "EntityMatch",
    "ExtractedEntities",
    "ExtractedItem",
    "REQUIRED_PARAMETERS",
    "OPTIONAL_PARAMETERS",
    "compute_missing",
]
