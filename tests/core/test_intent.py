"""Tests for siteflow intent recognition.

Tests cover:
- Synonym tables and action matching
- Entity resolution (fuzzy names, quantities, units, purpose)
- Intent recognizer (per-action extractors, follow-ups)
- Confidence calculator
- Parameter tables
"""

from __future__ import annotations

import pytest

from siteflow.core.catalog import CatalogSnapshot
from siteflow.core.intent import (
    ACTION_SYNONYMS,
    OPTIONAL_PARAMETERS,
    REQUIRED_PARAMETERS,
    ActionType,
    ConfidenceCalculator,
    EntityMatch,
    EntityResolver,
    ExtractedEntities,
    Intent,
    IntentRecognizer,
    compute_missing,
    find_synonyms,
    match_action,
    normalize_unit,
)
from siteflow.core.intent.taxonomy import is_parameter_filled
from siteflow.core.memory import ConversationMemory

# ============================================================================
# Synonym Tests
# ============================================================================


class TestSynonyms:
    """Tests for synonym tables and action matching."""

    def test_waybill_trigger(self) -> None:
        assert match_action("please dispatch the pumps") == ActionType.CREATE_WAYBILL

    def test_add_asset_trigger(self) -> None:
        assert match_action("Add asset Diesel") == ActionType.ADD_ASSET

    def test_update_trigger(self) -> None:
        assert match_action("adjust stock for cement") == ActionType.UPDATE_ASSET

    def test_whole_words_only(self) -> None:
        """'sender' must not trigger 'send'."""
        assert match_action("sender list") is None

    def test_priority_order(self) -> None:
        """Waybill phrases win over analytics phrases."""
        assert match_action("send the report") == ActionType.CREATE_WAYBILL

    def test_no_match(self) -> None:
        assert match_action("good morning") is None

    def test_normalize_unit(self) -> None:
        assert normalize_unit("pcs") == "pieces"
        assert normalize_unit("Sacks") == "bags"
        assert normalize_unit("litres") == "liters"

    def test_normalize_unknown_unit_passthrough(self) -> None:
        assert normalize_unit("crates") == "crates"

    def test_find_synonyms(self) -> None:
        assert "vehicle" in find_synonyms("truck", "entity")
        assert "kg" in find_synonyms("kilograms", "unit")

    def test_find_synonyms_unknown(self) -> None:
        assert find_synonyms("zzz", "unit") == ["zzz"]

    def test_every_action_has_synonyms(self) -> None:
        assert set(ACTION_SYNONYMS) == set(ActionType) - {ActionType.UNKNOWN}

    def test_every_action_has_parameter_tables(self) -> None:
        assert set(REQUIRED_PARAMETERS) == set(ActionType)
        assert set(OPTIONAL_PARAMETERS) == set(ActionType)


# ============================================================================
# Entity Resolver Tests
# ============================================================================


class TestEntityResolver:
    """Tests for fuzzy entity resolution."""

    @pytest.fixture
    def resolver(self, catalog: CatalogSnapshot) -> EntityResolver:
        return EntityResolver(catalog)

    # --- Scoring ---

    def test_exact_name_scores_one(self, resolver: EntityResolver) -> None:
        score, start, end = resolver.score_name("Lekki Site", "go to lekki site now")
        assert score == 1.0
        assert "go to lekki site now"[start:end] == "lekki site"

    def test_typo_tolerated(self, resolver: EntityResolver) -> None:
        score, _, _ = resolver.score_name("Cement Bags", "cemnt bags")
        assert 0.8 < score < 1.0

    def test_unrelated_text_scores_zero(self, resolver: EntityResolver) -> None:
        assert resolver.score_name("Water Pump", "check the generator") == (0.0, -1, -1)

    def test_short_name_never_matches(self, resolver: EntityResolver) -> None:
        assert resolver.score_name("X", "x marks the spot")[0] == 0.0

    def test_empty_name(self, resolver: EntityResolver) -> None:
        assert resolver.score_name(None, "anything")[0] == 0.0

    # --- Lookups ---

    def test_find_site_by_distinctive_token(self, resolver: EntityResolver) -> None:
        match = resolver.find_site_in_text("returning from ikoyi")
        assert match is not None
        assert match.item.id == "s2"

    def test_find_site_by_address(self, resolver: EntityResolver) -> None:
        match = resolver.find_site_in_text("deliver to Bourdillon Road")
        assert match is not None
        assert match.item.id == "s2"

    def test_find_vehicle_by_registration(self, resolver: EntityResolver) -> None:
        match = resolver.find_vehicle_in_text("load it on LSD-123-AB")
        assert match is not None
        assert match.item.id == "v1"

    def test_find_employee(self, resolver: EntityResolver) -> None:
        match = resolver.find_employee_in_text("driver is john okafor")
        assert match is not None
        assert match.item.id == "e1"

    def test_min_score_respected(self, catalog: CatalogSnapshot) -> None:
        strict = EntityResolver(catalog, min_score=0.95)
        assert strict.find_asset_matches("5 pumps") == []

    def test_empty_catalog(self) -> None:
        resolver = EntityResolver()
        assert resolver.find_site_in_text("Lekki Site") is None
        assert resolver.find_assets_in_text("5 pumps") == []

    def test_update_catalog(self, catalog: CatalogSnapshot) -> None:
        resolver = EntityResolver()
        resolver.update_catalog(catalog)
        assert resolver.find_site_in_text("Lekki Site") is not None

    # --- Quantities ---

    def test_asset_with_nearby_quantity(self, resolver: EntityResolver) -> None:
        items = resolver.find_assets_in_text("5 pumps")
        assert [(i.name, i.quantity) for i in items] == [("Water Pump", 5)]

    def test_quantity_label_preferred_over_bare_number(self, resolver: EntityResolver) -> None:
        text = "water pump qty: 4 then 2"
        assert resolver.extract_quantity_near(text, 0, 10) == 4

    def test_quantity_with_unit_preferred(self, resolver: EntityResolver) -> None:
        text = "cement 3 then 40 bags"
        assert resolver.extract_quantity_near(text, 0, 6) == 40

    def test_number_inside_name_ignored(self, resolver: EntityResolver) -> None:
        text = "generator 500 x 2"
        assert resolver.extract_quantity_near(text, 0, 13) == 2

    def test_quantity_outside_window_ignored(self, catalog: CatalogSnapshot) -> None:
        resolver = EntityResolver(catalog, quantity_window=5)
        text = "pump" + " " * 20 + "7"
        assert resolver.extract_quantity_near(text, 0, 4) is None

    def test_no_span(self, resolver: EntityResolver) -> None:
        assert resolver.extract_quantity_near("5 pumps", -1, -1) is None

    def test_extract_numbers(self, resolver: EntityResolver) -> None:
        assert resolver.extract_numbers("5 pumps and 10 bags") == [5, 10]

    def test_extract_unit(self, resolver: EntityResolver) -> None:
        assert resolver.extract_unit("10 pcs of nails") == "pieces"

    def test_extract_unit_none(self, resolver: EntityResolver) -> None:
        assert resolver.extract_unit("some nails") is None

    def test_item_is_not_a_unit(self, resolver: EntityResolver) -> None:
        assert resolver.extract_unit("add new item Generator") is None
        assert resolver.extract_unit("add new item Diesel 200 liters") == "liters"

    def test_item_count_is_a_quantity(self, resolver: EntityResolver) -> None:
        text = "cement 3 then 12 items"
        assert resolver.extract_quantity_near(text, 0, 6) == 12

    def test_extract_purpose(self, resolver: EntityResolver) -> None:
        assert resolver.extract_purpose("send pumps for the foundation work") == (
            "the foundation work"
        )

    # --- Multiple items ---

    def test_parse_multiple_items(self, resolver: EntityResolver) -> None:
        items = resolver.parse_multiple_items("5 pumps and 10 bags of cement")
        assert [(i.name, i.quantity) for i in items] == [
            ("Water Pump", 5),
            ("Cement Bags", 10),
        ]

    def test_duplicates_across_segments_kept(self, resolver: EntityResolver) -> None:
        items = resolver.parse_multiple_items("2 pumps, 3 pumps")
        assert [(i.name, i.quantity) for i in items] == [
            ("Water Pump", 2),
            ("Water Pump", 3),
        ]


# ============================================================================
# Intent Recognizer Tests
# ============================================================================


class TestIntentRecognizer:
    """Tests for rule-based recognition."""

    @pytest.fixture
    def memory(self) -> ConversationMemory:
        return ConversationMemory()

    @pytest.fixture
    def recognizer(self, catalog: CatalogSnapshot, memory: ConversationMemory) -> IntentRecognizer:
        return IntentRecognizer(EntityResolver(catalog), memory)

    # --- Waybill ---

    def test_send_pumps_to_lekki(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("send 5 pumps to Lekki site")
        assert intent.action == ActionType.CREATE_WAYBILL
        assert intent.parameters["siteId"] == "s1"
        assert intent.parameters["siteName"] == "Lekki Site"
        assert [(i["name"], i["quantity"]) for i in intent.parameters["items"]] == [
            ("Water Pump", 5)
        ]
        assert intent.missing_parameters == []
        assert "purpose" not in intent.parameters
        assert 0.0 < intent.confidence <= 1.0

    def test_waybill_multiple_items(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("send 5 pumps and 10 bags of cement to Lekki site")
        assert [(i["name"], i["quantity"]) for i in intent.parameters["items"]] == [
            ("Water Pump", 5),
            ("Cement Bags", 10),
        ]

    def test_waybill_driver_and_vehicle(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent(
            "send 2 pumps to Lekki Site with John Okafor in LSD-123-AB"
        )
        assert intent.parameters["driverId"] == "e1"
        assert intent.parameters["driver"] == "John Okafor"
        assert intent.parameters["vehicleId"] == "v1"
        assert intent.parameters["vehicle"] == "LSD-123-AB"

    def test_waybill_purpose(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent(
            "send 3 bags of cement to Ikoyi Site for the foundation"
        )
        assert intent.parameters["siteId"] == "s2"
        assert intent.parameters["purpose"] == "the foundation"

    def test_waybill_missing_items(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("send to Lekki site")
        assert intent.action == ActionType.CREATE_WAYBILL
        assert intent.missing_parameters == ["items"]

    def test_waybill_site_from_context(
        self, recognizer: IntentRecognizer, memory: ConversationMemory
    ) -> None:
        memory.add_turn(
            "check stock at Lekki Site",
            Intent(
                action=ActionType.CHECK_INVENTORY,
                parameters={"siteId": "s1", "siteName": "Lekki Site"},
            ),
        )
        intent = recognizer.identify_intent("send 3 pumps")
        assert intent.parameters["siteId"] == "s1"
        assert intent.missing_parameters == []

    # --- Grounding external intents ---

    def test_ground_in_catalog(self, recognizer: IntentRecognizer) -> None:
        intent = Intent(
            action=ActionType.CREATE_WAYBILL,
            parameters={
                "siteName": "ikoyi site",
                "items": [{"id": None, "name": "cement bags", "quantity": 2}],
                "driver": "John Okafor",
                "vehicle": "LSD-123-AB",
            },
            missing_parameters=[],
            source="remote",
        )
        recognizer.ground_in_catalog(intent)

        assert intent.parameters["siteId"] == "s2"
        assert intent.parameters["siteName"] == "Ikoyi Site"
        assert intent.parameters["items"] == [{"id": "a2", "name": "Cement Bags", "quantity": 2}]
        assert intent.parameters["driverId"] == "e1"
        assert intent.parameters["vehicleId"] == "v1"
        assert [m.item.id for m in intent.extracted_entities.sites] == ["s2"]
        assert intent.missing_parameters == []

    def test_ground_unmatched_names_left_alone(self, recognizer: IntentRecognizer) -> None:
        intent = Intent(
            action=ActionType.PROCESS_RETURN,
            parameters={"siteName": "Ajah Yard"},
            source="remote",
        )
        recognizer.ground_in_catalog(intent)

        assert "siteId" not in intent.parameters
        assert intent.extracted_entities is None
        assert intent.missing_parameters == []

    # --- Other actions ---

    def test_add_asset(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("add asset Diesel 200 liters")
        assert intent.action == ActionType.ADD_ASSET
        assert intent.parameters["name"] == "Diesel"
        assert intent.parameters["quantity"] == 200
        assert intent.parameters["unit"] == "liters"
        assert intent.missing_parameters == []

    def test_add_asset_missing_quantity(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("add new item Generator")
        assert intent.parameters["name"] == "Generator"
        assert intent.missing_parameters == ["quantity"]
        assert "unit" not in intent.parameters

    def test_process_return(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("return from Ikoyi Site 4 pumps")
        assert intent.action == ActionType.PROCESS_RETURN
        assert intent.parameters["siteId"] == "s2"
        assert intent.parameters["items"][0]["name"] == "Water Pump"
        assert intent.missing_parameters == []

    def test_create_site(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("create site called Ajah Yard at 5 Lekki Road")
        assert intent.action == ActionType.CREATE_SITE
        assert intent.parameters["name"] == "Ajah Yard"
        assert intent.parameters["address"] == "5 Lekki Road"

    def test_update_asset(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("update stock Cement Bags to 90")
        assert intent.action == ActionType.UPDATE_ASSET
        assert intent.parameters["assetId"] == "a2"
        assert intent.parameters["quantity"] == 90
        assert intent.missing_parameters == []

    def test_check_inventory_asset(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("how many bags of cement")
        assert intent.action == ActionType.CHECK_INVENTORY
        assert intent.parameters["assetId"] == "a2"

    def test_check_inventory_site(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("check stock at Lekki Site")
        assert intent.parameters["siteId"] == "s1"
        assert "assetId" not in intent.parameters

    def test_analytics_type(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("show equipment analytics")
        assert intent.action == ActionType.VIEW_ANALYTICS
        assert intent.parameters["type"] == "equipment"

    def test_analytics_for_site(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("analytics for Ikoyi Site")
        assert intent.parameters["type"] == "site"
        assert intent.parameters["siteId"] == "s2"

    # --- Unknown and follow-ups ---

    def test_unknown(self, recognizer: IntentRecognizer) -> None:
        intent = recognizer.identify_intent("hello there")
        assert intent.action == ActionType.UNKNOWN
        assert intent.confidence == 0.0
        assert intent.missing_parameters == []

    def test_empty_input(self, recognizer: IntentRecognizer) -> None:
        assert recognizer.identify_intent("   ").action == ActionType.UNKNOWN

    def test_bare_number_resumes_action(
        self, recognizer: IntentRecognizer, memory: ConversationMemory
    ) -> None:
        memory.add_turn("add new item Generator", recognizer.identify_intent("add new item Generator"))
        intent = recognizer.identify_intent("20")
        assert intent.action == ActionType.ADD_ASSET
        assert intent.parameters == {"quantity": 20}
        assert intent.source == "followup"
        assert intent.missing_parameters == ["name"]

    def test_affirmation_resumes_action(
        self, recognizer: IntentRecognizer, memory: ConversationMemory
    ) -> None:
        memory.add_turn("send to Lekki site", recognizer.identify_intent("send to Lekki site"))
        intent = recognizer.identify_intent("yes")
        assert intent.action == ActionType.CREATE_WAYBILL
        assert intent.parameters == {}

    def test_bare_number_without_history_is_unknown(self, recognizer: IntentRecognizer) -> None:
        assert recognizer.identify_intent("20").action == ActionType.UNKNOWN

    def test_non_follow_up_is_unknown(
        self, recognizer: IntentRecognizer, memory: ConversationMemory
    ) -> None:
        memory.add_turn("send to Lekki site", recognizer.identify_intent("send to Lekki site"))
        assert recognizer.identify_intent("maybe later").action == ActionType.UNKNOWN


# ============================================================================
# Confidence Calculator Tests
# ============================================================================


class TestConfidenceCalculator:
    """Tests for the confidence formula."""

    @pytest.fixture
    def calculator(self) -> ConfidenceCalculator:
        return ConfidenceCalculator()

    def test_nothing_filled(self, calculator: ConfidenceCalculator) -> None:
        intent = Intent(
            action=ActionType.CREATE_WAYBILL,
            missing_parameters=["site", "items"],
        )
        # 0.4 + 0.2 + 0 + 0 + 0.2*0.5 - 0.2
        assert calculator.calculate_confidence(intent) == pytest.approx(0.5)

    def test_one_missing(self, calculator: ConfidenceCalculator) -> None:
        intent = Intent(
            action=ActionType.ADD_ASSET,
            parameters={"name": "Diesel"},
            missing_parameters=["quantity"],
        )
        # 0.4 + 0.2 + 0.3*0.5 + 0 + 0.1 - 0.2
        assert calculator.calculate_confidence(intent) == pytest.approx(0.65)

    def test_entity_mean(self, calculator: ConfidenceCalculator) -> None:
        intent = Intent(
            action=ActionType.CREATE_WAYBILL,
            parameters={"items": [{"id": "a1", "name": "Water Pump", "quantity": 1}]},
            missing_parameters=["site"],
            extracted_entities=ExtractedEntities(
                assets=[EntityMatch(item=None, score=0.5), EntityMatch(item=None, score=1.0)]
            ),
        )
        # 0.4 + 0.2 + 0.15 + 0 + 0.2*0.75 - 0.2
        assert calculator.calculate_confidence(intent) == pytest.approx(0.7)

    def test_clamped_to_one(self, calculator: ConfidenceCalculator) -> None:
        intent = Intent(
            action=ActionType.CREATE_SITE,
            parameters={"name": "Ajah Yard", "address": "5 Lekki Road"},
        )
        assert calculator.calculate_confidence(intent) == 1.0

    def test_deterministic(self, calculator: ConfidenceCalculator) -> None:
        intent = Intent(
            action=ActionType.PROCESS_RETURN,
            parameters={"siteId": "s1"},
            extracted_entities=ExtractedEntities(sites=[EntityMatch(item=None, score=0.73)]),
        )
        first = calculator.calculate_confidence(intent)
        assert all(calculator.calculate_confidence(intent) == first for _ in range(5))

    @pytest.mark.parametrize("action", list(ActionType))
    def test_always_in_range(self, calculator: ConfidenceCalculator, action: ActionType) -> None:
        intent = Intent(action=action, missing_parameters=compute_missing(action, {}))
        assert 0.0 <= calculator.calculate_confidence(intent) <= 1.0


# ============================================================================
# Taxonomy Tests
# ============================================================================


class TestTaxonomy:
    """Tests for parameter tables and Intent serialization."""

    def test_empty_list_is_unfilled(self) -> None:
        params = {"siteName": "Lekki Site", "items": []}
        assert compute_missing(ActionType.CREATE_WAYBILL, params) == ["items"]

    def test_either_key_fills_logical_parameter(self) -> None:
        assert is_parameter_filled({"driver": "John"}, "driver")
        assert is_parameter_filled({"siteId": "s1"}, "site")
        assert not is_parameter_filled({"siteName": ""}, "site")

    def test_action_label(self) -> None:
        assert ActionType.CREATE_WAYBILL.label == "create waybill"

    def test_intent_from_dict(self) -> None:
        intent = Intent.from_dict(
            {
                "action": "add_asset",
                "confidence": 0.65,
                "parameters": {"name": "Diesel"},
                "missing_parameters": ["quantity"],
            }
        )
        assert intent.action == ActionType.ADD_ASSET
        assert intent.to_dict()["missing_parameters"] == ["quantity"]
        assert intent.source == "rules"
