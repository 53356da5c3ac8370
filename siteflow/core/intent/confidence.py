"""Confidence scoring for siteflow intents."""

from __future__ import annotations

from .taxonomy import (
    OPTIONAL_PARAMETERS,
    REQUIRED_PARAMETERS,
    ActionType,
    Intent,
    is_parameter_filled,
)

BASE_SCORE = 0.4
ACTION_WEIGHT = 0.2
REQUIRED_WEIGHT = 0.3
OPTIONAL_WEIGHT = 0.1
ENTITY_WEIGHT = 0.2
MAX_MISSING_PENALTY = 0.2
# Missing-parameter count is normalised by a typical maximum of 5
MISSING_NORMALIZER = 5
DEFAULT_ENTITY_CONFIDENCE = 0.5


class ConfidenceCalculator:
    """Deterministic confidence score from parameter coverage and match quality.

    score = 0.4
          + 0.2 if the action is known
          + 0.3 * required parameters filled ratio
          + 0.1 * optional parameters filled ratio
          + 0.2 * mean entity match confidence (0.5 if none)
          - min(0.2, missing / 5)

    clamped to [0, 1].
    """

    def calculate_confidence(self, intent: Intent) -> float:
        score = BASE_SCORE

        if intent.action != ActionType.UNKNOWN:
            score += ACTION_WEIGHT

        score += self.required_fill_ratio(intent) * REQUIRED_WEIGHT
        score += self.optional_fill_ratio(intent) * OPTIONAL_WEIGHT
        score += self.entity_confidence(intent) * ENTITY_WEIGHT

        missing = len(intent.missing_parameters)
        if missing:
            score -= min(missing / MISSING_NORMALIZER, MAX_MISSING_PENALTY)

        return max(0.0, min(1.0, round(score, 6)))

    def required_fill_ratio(self, intent: Intent) -> float:
        return self._fill_ratio(REQUIRED_PARAMETERS[intent.action], intent)

    def optional_fill_ratio(self, intent: Intent) -> float:
        return self._fill_ratio(OPTIONAL_PARAMETERS[intent.action], intent)

    @staticmethod
    def _fill_ratio(names: list[str], intent: Intent) -> float:
        if not names:
            return 1.0
        filled = sum(1 for name in names if is_parameter_filled(intent.parameters, name))
        return filled / len(names)

    @staticmethod
    def entity_confidence(intent: Intent) -> float:
        """Mean of the per-category entity match confidences."""
        entities = intent.extracted_entities
        if entities is None:
            return DEFAULT_ENTITY_CONFIDENCE

        confidences: list[float] = []
        if entities.sites:
            confidences.append(entities.sites[0].score)
        if entities.assets:
            confidences.append(sum(a.score for a in entities.assets) / len(entities.assets))
        if entities.employees:
            confidences.append(entities.employees[0].score)
        if entities.vehicles:
            confidences.append(entities.vehicles[0].score)

        if not confidences:
            return DEFAULT_ENTITY_CONFIDENCE
        return sum(confidences) / len(confidences)


__all__ = ["ConfidenceCalculator"]
