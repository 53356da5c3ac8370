"""siteflow - natural-language command assistant for site inventory."""

__version__ = "0.3.0"
