"""Entity resolution for siteflow intent parsing.

This module finds known catalog records (sites, assets, employees, vehicles)
inside free text with typo-tolerant fuzzy matching, and pulls quantities,
units and purposes out of the surrounding words.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, TypeVar

from rapidfuzz import fuzz

from ..catalog import Asset, CatalogSnapshot, Employee, Site, Vehicle
from .synonyms import GENERIC_ENTITY_WORDS, UNIT_WORDS, normalize_unit
from .taxonomy import EntityMatch, ExtractedItem

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Names shorter than this are never matched
MIN_MATCH_CHARS = 2

# A single name token must reach this similarity to count as evidence
TOKEN_THRESHOLD = 0.8

DEFAULT_MIN_SCORE = 0.6
DEFAULT_QUANTITY_WINDOW = 50

_TOKEN_RE = re.compile(r"[a-z0-9][a-z0-9'\-]*")
_UNIT_ALT = "|".join(re.escape(u) for u in UNIT_WORDS)
# "5 items" counts as a quantity, but "item" is never stored as a unit
_COUNT_ALT = "|".join([_UNIT_ALT, "items", "item"])


class EntityResolver:
    """Find catalog records and quantities in natural language text."""

    PATTERNS = {
        # "5 bags", "10pcs"
        "quantity_unit": re.compile(rf"(\d+)\s*(?:{_COUNT_ALT})\b"),
        # "qty: 5", "quantity 12"
        "quantity_label": re.compile(r"(?:quantity|qty|amount|count)[\s:]*(\d+)"),
        "number": re.compile(r"\d+"),
        "unit": re.compile(rf"\b({_UNIT_ALT})\b", re.IGNORECASE),
        "segment_split": re.compile(r"\s+and\s+|,\s*", re.IGNORECASE),
    }

    PURPOSE_PATTERNS = [
        re.compile(r"\bfor\s+([^.,;]+?)(?:\s+with|\s+to|\.|,|;|$)", re.IGNORECASE),
        re.compile(r"\bpurpose[\s:]+([^.,;]+?)(?:\.|,|;|$)", re.IGNORECASE),
        re.compile(r"\bto\s+([^.,;]+?)(?:\s+with|\s+at|\.|,|;|$)", re.IGNORECASE),
    ]

    def __init__(
        self,
        catalog: CatalogSnapshot | None = None,
        min_score: float = DEFAULT_MIN_SCORE,
        quantity_window: int = DEFAULT_QUANTITY_WINDOW,
    ) -> None:
        """Initialize the resolver.

        Args:
            catalog: Snapshot of known records (empty if omitted)
            min_score: Minimum match confidence to report a record
            quantity_window: Characters searched either side of an asset
                name for its quantity
        """
        self.catalog = catalog or CatalogSnapshot()
        self.min_score = min_score
        self.quantity_window = quantity_window

    def update_catalog(self, catalog: CatalogSnapshot) -> None:
        """Replace the snapshot used for matching."""
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Fuzzy scoring
    # ------------------------------------------------------------------

    def score_name(self, name: str | None, text: str) -> tuple[float, int, int]:
        """Score how strongly ``name`` is mentioned in ``text``.

        A whole-word occurrence scores 1.0. Otherwise each significant name
        token is compared against every text token; the best and mean token
        similarities are blended into the score.

        Args:
            name: Record name (or address, registration number)
            text: Free text to search

        Returns:
            (score, start, end) where start/end delimit the matched span,
            or (0.0, -1, -1) when nothing matched
        """
        if not name:
            return 0.0, -1, -1

        name_lower = name.lower().strip()
        if len(name_lower) < MIN_MATCH_CHARS:
            return 0.0, -1, -1

        text_lower = text.lower()
        exact = re.search(
            rf"(?<![a-z0-9]){re.escape(name_lower)}(?![a-z0-9])", text_lower
        )
        if exact:
            return 1.0, exact.start(), exact.end()

        name_tokens = [
            t
            for t in _TOKEN_RE.findall(name_lower)
            if len(t) >= 3 and t not in GENERIC_ENTITY_WORDS and not t.isdigit()
        ]
        text_tokens = [
            (m.group(0), m.start(), m.end())
            for m in _TOKEN_RE.finditer(text_lower)
            if len(m.group(0)) >= 2 and not m.group(0).isdigit()
        ]
        if not name_tokens or not text_tokens:
            return 0.0, -1, -1

        token_scores: list[tuple[float, int, int]] = []
        for token in name_tokens:
            best = (0.0, -1, -1)
            for candidate, start, end in text_tokens:
                similarity = fuzz.ratio(token, candidate) / 100.0
                if similarity > best[0]:
                    best = (similarity, start, end)
            token_scores.append(best)

        strong = [s for s in token_scores if s[0] >= TOKEN_THRESHOLD]
        if not strong:
            return 0.0, -1, -1

        best_score = max(s[0] for s in token_scores)
        mean_score = sum(s[0] for s in token_scores) / len(token_scores)
        score = 0.6 * best_score + 0.4 * mean_score

        return round(score, 4), min(s[1] for s in strong), max(s[2] for s in strong)

    def _rank(
        self,
        records: Iterable[T],
        text: str,
        keys: Callable[[T], list[str | None]],
    ) -> list[EntityMatch[T]]:
        matches: list[EntityMatch[T]] = []
        for record in records:
            best = (0.0, -1, -1)
            for value in keys(record):
                scored = self.score_name(value, text)
                if scored[0] > best[0]:
                    best = scored
            if best[0] >= self.min_score:
                matches.append(EntityMatch(item=record, score=best[0], start=best[1], end=best[2]))

        # Stable sort keeps catalog order between equal scores
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches

    # ------------------------------------------------------------------
    # Per-category lookups
    # ------------------------------------------------------------------

    def find_sites(self, text: str) -> list[EntityMatch[Site]]:
        return self._rank(self.catalog.sites, text, lambda s: [s.name, s.address])

    def find_site_in_text(self, text: str) -> EntityMatch[Site] | None:
        """Best matching site, or None."""
        matches = self.find_sites(text)
        return matches[0] if matches else None

    def find_employee_in_text(self, text: str) -> EntityMatch[Employee] | None:
        """Best matching employee, or None."""
        matches = self._rank(self.catalog.employees, text, lambda e: [e.name])
        return matches[0] if matches else None

    def find_vehicle_in_text(self, text: str) -> EntityMatch[Vehicle] | None:
        """Best matching vehicle (by registration number or name), or None."""
        matches = self._rank(
            self.catalog.vehicles, text, lambda v: [v.registration_number, v.name]
        )
        return matches[0] if matches else None

    def find_asset_matches(self, text: str) -> list[EntityMatch[Asset]]:
        return self._rank(self.catalog.assets, text, lambda a: [a.name])

    def find_assets_in_text(self, text: str) -> list[ExtractedItem]:
        """Find every asset mentioned in text, best match first.

        Each item carries the quantity found near its name, if any.
        """
        items: list[ExtractedItem] = []
        text_lower = text.lower()

        for match in self.find_asset_matches(text):
            quantity = self.extract_quantity_near(text_lower, match.start, match.end)
            items.append(
                ExtractedItem(
                    id=match.item.id,
                    name=match.item.name,
                    quantity=quantity,
                    confidence=match.score,
                )
            )

        return items

    # ------------------------------------------------------------------
    # Quantities, units, purpose
    # ------------------------------------------------------------------

    def extract_quantity_near(self, text: str, start: int, end: int) -> int | None:
        """Extract the quantity associated with the span ``text[start:end]``.

        Searches ``quantity_window`` characters either side of the span and
        tries, in order: "<number> <unit>", "qty: <number>", any number.
        Within each pattern the match closest to the span wins. Numbers
        inside the span itself (part of the name) are ignored.
        """
        if start < 0:
            return None

        text = text.lower()
        window_start = max(0, start - self.quantity_window)
        window_end = min(len(text), end + self.quantity_window)
        window = text[window_start:window_end]
        span_start = start - window_start
        span_end = end - window_start

        for key in ("quantity_unit", "quantity_label", "number"):
            candidates: list[tuple[int, int]] = []
            for m in self.PATTERNS[key].finditer(window):
                group = 1 if m.groups() else 0
                num_start, num_end = m.start(group), m.end(group)
                if num_start < span_end and num_end > span_start:
                    continue
                distance = span_start - num_end if num_end <= span_start else num_start - span_end
                candidates.append((distance, int(m.group(group))))
            if candidates:
                return min(candidates, key=lambda c: c[0])[1]

        return None

    def extract_numbers(self, text: str) -> list[int]:
        """Extract all integers from text, in order."""
        return [int(m) for m in self.PATTERNS["number"].findall(text)]

    def extract_unit(self, text: str) -> str | None:
        """Extract and normalize a unit of measurement."""
        match = self.PATTERNS["unit"].search(text)
        return normalize_unit(match.group(1)) if match else None

    def extract_purpose(self, text: str) -> str | None:
        """Extract a purpose phrase ("for the foundation", "to Lekki site")."""
        for pattern in self.PURPOSE_PATTERNS:
            match = pattern.search(text)
            if match and match.group(1).strip():
                return match.group(1).strip()
        return None

    def parse_multiple_items(self, text: str) -> list[ExtractedItem]:
        """Parse several items from one request.

        Example: "send 5 pumps and 10 cement bags" resolves each segment on
        its own. Repeated mentions across segments are kept as separate items.
        """
        items: list[ExtractedItem] = []
        for segment in self.PATTERNS["segment_split"].split(text):
            if segment.strip():
                items.extend(self.find_assets_in_text(segment))

        logger.debug(f"Parsed {len(items)} item(s) from multi-item input")
        return items


__all__ = [
    "DEFAULT_MIN_SCORE",
    "DEFAULT_QUANTITY_WINDOW",
    "EntityResolver",
]
