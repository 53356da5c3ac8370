"""Prompt templates for remote intent extraction."""

from __future__ import annotations

from typing import Iterable

MAX_HINT_ASSETS = 50

# Doubled braces are literal JSON braces for str.format
INTENT_EXTRACTION_PROMPT = """\
You are an assistant for an inventory system. Given the user's input, output \
ONLY a single valid JSON object matching this schema:
{{
  "action": string, // one of create_waybill, add_asset, process_return, \
create_site, update_asset, check_inventory, view_analytics, unknown
  "confidence": number, // between 0 and 1
  "parameters": object, // canonical keys: siteId, siteName, items, name, \
quantity, unit, assetId, assetName, driverId, vehicleId, purpose, address, type
  "missingParameters": array // required parameter names that are missing
}}

Only return the JSON object and nothing else (no explanation). Be concise and \
deterministic.

{available_sites}
{available_assets}

User input: "{user_input}"
"""


def build_intent_extraction_prompt(
    user_input: str,
    sites: Iterable[str] = (),
    assets: Iterable[str] = (),
    max_assets: int = MAX_HINT_ASSETS,
) -> str:
    """Build the extraction prompt with catalog hints.

    Args:
        user_input: Raw user text (double quotes are escaped)
        sites: Site names offered as hints
        assets: Asset names offered as hints, truncated to ``max_assets``
        max_assets: Cap on the number of asset names embedded

    Returns:
        Prompt string
    """
    site_names = [s for s in sites if s]
    asset_names = [a for a in assets if a][:max_assets]

    available_sites = f"Available sites: {', '.join(site_names)}." if site_names else ""
    available_assets = f"Available assets: {', '.join(asset_names)}." if asset_names else ""

    return INTENT_EXTRACTION_PROMPT.format(
        available_sites=available_sites,
        available_assets=available_assets,
        user_input=user_input.replace('"', '\\"'),
    )


__all__ = ["INTENT_EXTRACTION_PROMPT", "MAX_HINT_ASSETS", "build_intent_extraction_prompt"]
