"""Shared fixtures for siteflow tests."""

from __future__ import annotations

import pytest

from siteflow.core.catalog import Asset, CatalogSnapshot, Employee, Site, Vehicle


@pytest.fixture
def catalog() -> CatalogSnapshot:
    """A small site-inventory snapshot."""
    return CatalogSnapshot(
        sites=[
            Site(id="s1", name="Lekki Site", address="12 Admiralty Way"),
            Site(id="s2", name="Ikoyi Site", address="Bourdillon Road"),
        ],
        assets=[
            Asset(
                id="a1",
                name="Water Pump",
                quantity=12,
                unit_of_measurement="pieces",
                type="equipment",
                available_quantity=7,
                site_quantities={"s1": 5},
            ),
            Asset(
                id="a2",
                name="Cement Bags",
                quantity=120,
                unit_of_measurement="bags",
                type="consumable",
                available_quantity=100,
                site_quantities={"s1": 20},
            ),
            Asset(
                id="a3",
                name="Diesel",
                quantity=0,
                unit_of_measurement="liters",
                type="consumable",
            ),
            Asset(
                id="a4",
                name="Hammer",
                quantity=4,
                unit_of_measurement="pieces",
                type="tools",
            ),
        ],
        employees=[Employee(id="e1", name="John Okafor", role="driver")],
        vehicles=[Vehicle(id="v1", name="Toyota Hilux", registration_number="LSD-123-AB")],
    )
