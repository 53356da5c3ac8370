"""Inventory catalog snapshot for siteflow.

The assistant never talks to the database. The host hands it a snapshot of
the known sites, assets, employees and vehicles, and replaces the snapshot
whenever its own data changes.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

# =============================================================================
# Domain Records
# =============================================================================


class Site(BaseModel):
    """A job site or location that assets can be sent to."""

    id: str
    name: str
    address: Optional[str] = None


class Asset(BaseModel):
    """An inventory asset (equipment, consumable or tool).

    Attributes:
        id: Asset identifier
        name: Display name ("Water Pump", "Cement Bags")
        quantity: Total units held across the store and all sites
        unit_of_measurement: Canonical unit ("pieces", "bags", ...)
        description: Optional free-text description
        type: Asset category (equipment, consumable, tools)
        available_quantity: Units currently in the store, if tracked
        site_quantities: Units held per site id
    """

    id: str
    name: str
    quantity: int = 0
    unit_of_measurement: str = "units"
    description: Optional[str] = None
    type: Optional[str] = None
    available_quantity: Optional[int] = None
    site_quantities: dict[str, int] = Field(default_factory=dict)


class Employee(BaseModel):
    """An employee who can drive or receive a waybill."""

    id: str
    name: str
    role: Optional[str] = None


class Vehicle(BaseModel):
    """A vehicle used to move assets between sites."""

    id: str
    name: Optional[str] = None
    registration_number: Optional[str] = None

    @property
    def label(self) -> str:
        """Registration number when known, otherwise the name."""
        return self.registration_number or self.name or self.id


# =============================================================================
# Snapshot
# =============================================================================


class CatalogSnapshot(BaseModel):
    """Point-in-time view of everything the assistant can refer to."""

    sites: list[Site] = Field(default_factory=list)
    assets: list[Asset] = Field(default_factory=list)
    employees: list[Employee] = Field(default_factory=list)
    vehicles: list[Vehicle] = Field(default_factory=list)

    def get_site(self, site_id: Any) -> Site | None:
        key = str(site_id)
        return next((s for s in self.sites if s.id == key), None)

    def get_asset(self, asset_id: Any) -> Asset | None:
        key = str(asset_id)
        return next((a for a in self.assets if a.id == key), None)

    @classmethod
    def load(cls, path: Path) -> "CatalogSnapshot":
        """Load a snapshot from a YAML or JSON file.

        Args:
            path: File with top-level ``sites``, ``assets``, ``employees``
                and ``vehicles`` lists (all optional)

        Returns:
            Validated CatalogSnapshot

        Raises:
            FileNotFoundError: If the file does not exist
            pydantic.ValidationError: If a record is malformed
        """
        path = Path(path)
        with path.open() as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                from ruamel.yaml import YAML

                data = YAML(typ="safe").load(f)

        return cls.model_validate(data or {})


__all__ = ["Asset", "CatalogSnapshot", "Employee", "Site", "Vehicle"]
