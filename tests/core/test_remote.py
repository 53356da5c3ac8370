"""Tests for remote intent extraction.

Tests cover:
- Prompt construction with catalog hints
- JSON extraction from model replies
- Payload validation and missing-parameter recomputation
- Failure classification
- The extractor's one-way failure latch and single notification
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from siteflow.core.backends import (
    GenerationBridge,
    MissingCredentialsError,
    RemoteAPIError,
    RemoteConnectionError,
    RemoteTimeoutError,
)
from siteflow.core.intent import (
    ActionType,
    RemoteFailureKind,
    RemoteIntentExtractor,
    SchemaValidationError,
    build_intent_extraction_prompt,
    classify_remote_error,
    parse_model_json,
    validate_intent_payload,
)
from siteflow.core.intent.remote import EXTRACTION_OPTIONS, FAILURE_MESSAGES


def make_bridge(reply: str | None = None, error: Exception | None = None) -> MagicMock:
    bridge = MagicMock(spec=GenerationBridge)
    bridge.generate = AsyncMock(return_value=reply, side_effect=error)
    return bridge


WAYBILL_REPLY = json.dumps({
    "action": "create_waybill",
    "confidence": 0.92,
    "parameters": {
        "siteId": "s1",
        "siteName": "Lekki Site",
        "items": [{"id": "a1", "name": "Water Pump", "quantity": 5}],
    },
    "missingParameters": [],
})


# ============================================================================
# Prompt Tests
# ============================================================================


class TestPrompt:
    """Tests for build_intent_extraction_prompt."""

    def test_contains_input_and_hints(self):
        prompt = build_intent_extraction_prompt(
            "send 5 pumps", sites=["Lekki Site", "Ikoyi Site"], assets=["Water Pump"]
        )
        assert 'User input: "send 5 pumps"' in prompt
        assert "Available sites: Lekki Site, Ikoyi Site." in prompt
        assert "Available assets: Water Pump." in prompt
        assert '"missingParameters": array' in prompt

    def test_quotes_escaped(self):
        prompt = build_intent_extraction_prompt('create site called "Ajah"')
        assert 'User input: "create site called \\"Ajah\\""' in prompt

    def test_asset_hints_truncated(self):
        assets = [f"Asset {i}" for i in range(60)]
        prompt = build_intent_extraction_prompt("x", assets=assets, max_assets=50)
        assert "Asset 49" in prompt
        assert "Asset 50" not in prompt

    def test_no_hints(self):
        prompt = build_intent_extraction_prompt("x")
        assert "Available sites" not in prompt
        assert "Available assets" not in prompt


# ============================================================================
# JSON Extraction Tests
# ============================================================================


class TestParseModelJson:
    """Tests for parse_model_json."""

    def test_plain_json(self):
        assert parse_model_json('{"action": "unknown"}') == {"action": "unknown"}

    def test_json_inside_prose(self):
        reply = 'Sure! Here you go:\n```json\n{"action": "add_asset", "p": {"q": 1}}\n```'
        assert parse_model_json(reply) == {"action": "add_asset", "p": {"q": 1}}

    def test_braces_inside_strings(self):
        reply = 'Result: {"action": "create_site", "parameters": {"name": "Yard {North}"}} ok'
        assert parse_model_json(reply)["parameters"]["name"] == "Yard {North}"

    def test_skips_unbalanced_prefix(self):
        reply = 'oops { then {"action": "unknown"}'
        assert parse_model_json(reply) == {"action": "unknown"}

    def test_no_object(self):
        with pytest.raises(SchemaValidationError, match="No JSON object"):
            parse_model_json("I cannot help with that.")

    def test_malformed_object(self):
        with pytest.raises(SchemaValidationError, match="Malformed JSON"):
            parse_model_json("here: {'action': 'unknown'}")


# ============================================================================
# Validation Tests
# ============================================================================


class TestValidateIntentPayload:
    """Tests for validate_intent_payload."""

    def test_valid_payload(self):
        intent = validate_intent_payload(json.loads(WAYBILL_REPLY))
        assert intent.action == ActionType.CREATE_WAYBILL
        assert intent.confidence == 0.92
        assert intent.parameters["siteId"] == "s1"
        assert intent.missing_parameters == []
        assert intent.source == "remote"

    def test_missing_recomputed(self):
        """The model cannot declare an incomplete intent ready."""
        intent = validate_intent_payload({
            "action": "add_asset",
            "confidence": 0.8,
            "parameters": {"name": "Diesel", "quantity": None},
            "missingParameters": [],
        })
        assert intent.parameters == {"name": "Diesel"}
        assert intent.missing_parameters == ["quantity"]

    def test_action_alias(self):
        intent = validate_intent_payload({
            "action": "send_to_site",
            "confidence": 0.7,
            "parameters": {},
            "missingParameters": ["site", "items"],
        })
        assert intent.action == ActionType.CREATE_WAYBILL

    def test_snake_case_missing_accepted(self):
        intent = validate_intent_payload({
            "action": "unknown",
            "confidence": 0.1,
            "parameters": {},
            "missing_parameters": [],
        })
        assert intent.action == ActionType.UNKNOWN

    def test_bare_item_names_coerced(self):
        intent = validate_intent_payload({
            "action": "create_waybill",
            "confidence": 0.8,
            "parameters": {"siteName": "Lekki Site", "items": ["Water Pump"]},
            "missingParameters": [],
        })
        assert intent.parameters["items"] == [{"id": None, "name": "Water Pump", "quantity": None}]

    def test_item_ids_and_quantities_normalised(self):
        intent = validate_intent_payload({
            "action": "process_return",
            "confidence": 0.8,
            "parameters": {"siteId": "s2", "items": [{"id": 7, "name": "Hammer", "quantity": "3"}]},
            "missingParameters": [],
        })
        assert intent.parameters["items"] == [{"id": "7", "name": "Hammer", "quantity": 3}]

    @pytest.mark.parametrize(
        "payload",
        [
            {"action": "delete_everything", "confidence": 0.9, "parameters": {},
             "missingParameters": []},
            {"action": "create_site", "confidence": 1.5, "parameters": {},
             "missingParameters": []},
            {"action": "create_site", "confidence": "0.9", "parameters": {},
             "missingParameters": []},
            {"action": "create_site", "confidence": True, "parameters": {},
             "missingParameters": []},
            {"action": "create_site", "confidence": 0.9, "parameters": [],
             "missingParameters": []},
            {"action": "create_site", "confidence": 0.9, "parameters": {}},
            {"action": "create_waybill", "confidence": 0.9,
             "parameters": {"items": "Water Pump"}, "missingParameters": []},
            {"action": "create_waybill", "confidence": 0.9,
             "parameters": {"items": [42]}, "missingParameters": []},
            {"action": "create_waybill", "confidence": 0.9,
             "parameters": {"items": [{"quantity": 3}]}, "missingParameters": []},
        ],
    )
    def test_invalid_payloads(self, payload):
        with pytest.raises(SchemaValidationError):
            validate_intent_payload(payload)

    def test_not_an_object(self):
        with pytest.raises(SchemaValidationError, match="must be a JSON object"):
            validate_intent_payload(["create_site"])


# ============================================================================
# Classification Tests
# ============================================================================


class TestClassifyRemoteError:
    @pytest.mark.parametrize(
        "error,kind",
        [
            (RemoteAPIError(429, "x"), RemoteFailureKind.RATE_LIMITED),
            (RemoteAPIError(401, "x"), RemoteFailureKind.UNAUTHORIZED),
            (RemoteAPIError(403, "x"), RemoteFailureKind.UNAUTHORIZED),
            (RemoteAPIError(408, "x"), RemoteFailureKind.TIMED_OUT),
            (RemoteAPIError(500, "x"), RemoteFailureKind.GENERIC),
            (MissingCredentialsError("x"), RemoteFailureKind.UNAUTHORIZED),
            (RemoteTimeoutError("x"), RemoteFailureKind.TIMED_OUT),
            (httpx.ReadTimeout("x"), RemoteFailureKind.TIMED_OUT),
            (RemoteConnectionError("x"), RemoteFailureKind.GENERIC),
            (SchemaValidationError("x"), RemoteFailureKind.GENERIC),
        ],
    )
    def test_kinds(self, error, kind):
        assert classify_remote_error(error) == kind

    def test_messages_hide_provider_detail(self):
        for message in FAILURE_MESSAGES.values():
            assert "HTTP" not in message
            assert "built-in command recognition" in message


# ============================================================================
# Extractor Tests
# ============================================================================


class TestRemoteIntentExtractor:
    """Tests for RemoteIntentExtractor."""

    @pytest.mark.asyncio
    async def test_extract(self, catalog):
        bridge = make_bridge(WAYBILL_REPLY)
        extractor = RemoteIntentExtractor(bridge)

        intent = await extractor.extract("send 5 pumps to Lekki site", catalog)

        assert intent.action == ActionType.CREATE_WAYBILL
        prompt, options = bridge.generate.await_args.args
        assert "Available sites: Lekki Site, Ikoyi Site." in prompt
        assert options is EXTRACTION_OPTIONS
        assert options.temperature == 0.1

    @pytest.mark.asyncio
    async def test_inactive_without_bridge(self, catalog):
        extractor = RemoteIntentExtractor(None)
        assert extractor.is_active is False
        assert await extractor.extract("anything", catalog) is None

    @pytest.mark.asyncio
    async def test_failure_latches_and_notifies_once(self, catalog):
        """First failure disables the extractor; the host hears about it once."""
        bridge = make_bridge(error=RemoteAPIError(429, "Remote API error: 429"))
        on_failure = MagicMock()
        extractor = RemoteIntentExtractor(bridge, on_failure=on_failure)

        assert await extractor.extract("send pumps", catalog) is None
        assert extractor.is_active is False
        assert extractor.last_failure.kind == RemoteFailureKind.RATE_LIMITED

        assert await extractor.extract("send pumps", catalog) is None
        assert bridge.generate.await_count == 1
        on_failure.assert_called_once()
        assert on_failure.call_args.args[0].message == FAILURE_MESSAGES[
            RemoteFailureKind.RATE_LIMITED
        ]

    @pytest.mark.asyncio
    async def test_schema_failure_latches(self, catalog):
        extractor = RemoteIntentExtractor(make_bridge("no json here"))
        assert await extractor.extract("send pumps", catalog) is None
        assert extractor.failed is True
        assert extractor.last_failure.kind == RemoteFailureKind.GENERIC

    @pytest.mark.asyncio
    async def test_reset_keeps_notification_latch(self, catalog):
        bridge = make_bridge(error=MissingCredentialsError("no key"))
        on_failure = MagicMock()
        extractor = RemoteIntentExtractor(bridge, on_failure=on_failure)

        await extractor.extract("x", catalog)
        extractor.reset()
        assert extractor.is_active is True

        await extractor.extract("x", catalog)
        assert bridge.generate.await_count == 2
        on_failure.assert_called_once()

    @pytest.mark.asyncio
    async def test_raising_callback_contained(self, catalog):
        extractor = RemoteIntentExtractor(
            make_bridge(error=RemoteConnectionError("down")),
            on_failure=MagicMock(side_effect=RuntimeError("ui gone")),
        )
        assert await extractor.extract("x", catalog) is None
        assert extractor.notified is True
