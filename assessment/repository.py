"""
Assessment Repository - Storage Collaborator for the Engine

The engine never touches storage directly. It reads properties, valuation
history, appeals and tax rates through AssessmentRepository and hands new
valuations and appeals back to it for persistence.

InMemoryAssessmentRepository is the development implementation, with
optional JSON file persistence.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .models import (
    Property,
    PropertyAppeal,
    PropertyStatus,
    PropertyType,
    PropertyValuation,
    TaxRate,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Repository Interface
# =============================================================================


class AssessmentRepository(ABC):
    """
    Abstract storage interface consumed by the engine.

    Every read is scoped by tenant. Implementations must return a
    consistent snapshot from each call; callers may hold the returned
    lists while other requests write.
    """

    @abstractmethod
    def get_property(self, property_id: int, tenant_id: int) -> Optional[Property]:
        """Return the property, or None if absent, deleted, or owned by another tenant."""
        ...

    @abstractmethod
    def get_all_properties(self, tenant_id: int) -> list[Property]:
        """Return all non-deleted properties for a tenant, in insertion order."""
        ...

    @abstractmethod
    def get_all_property_valuations(
        self,
        property_id: int,
        tenant_id: int,
    ) -> list[PropertyValuation]:
        ...

    @abstractmethod
    def get_all_property_appeals(
        self,
        property_id: int,
        tenant_id: int,
    ) -> list[PropertyAppeal]:
        ...

    @abstractmethod
    def get_active_tax_rate(
        self,
        tenant_id: int,
        zone_code: str,
        property_type: PropertyType,
    ) -> Optional[TaxRate]:
        ...

    @abstractmethod
    def save_valuation(self, valuation: PropertyValuation) -> PropertyValuation:
        """Persist a new valuation and return it with its assigned id."""
        ...

    @abstractmethod
    def save_appeal(self, appeal: PropertyAppeal) -> PropertyAppeal:
        """Persist a new appeal and return it with its assigned id."""
        ...

    def get_tenant_appeals(self, tenant_id: int) -> list[tuple[Property, PropertyAppeal]]:
        """
        Every appeal filed by a tenant, paired with its property.

        Default implementation scans each property's appeals; backends
        with a query language should override it.
        """
        pairs = []
        for prop in self.get_all_properties(tenant_id):
            for appeal in self.get_all_property_appeals(prop.id, tenant_id):
                pairs.append((prop, appeal))
        return pairs


# =============================================================================
# In-Memory Implementation
# =============================================================================


class InMemoryAssessmentRepository(AssessmentRepository):
    """
    Map-backed repository with optional JSON file persistence.

    Reads return copies taken under a lock so a caller never observes a
    half-applied write.
    """

    def __init__(self, persist_path: Optional[str] = None):
        """
        Initialise repository.

        Args:
            persist_path: Optional path to persist data to a JSON file
        """
        self._lock = threading.RLock()
        self._properties: dict[tuple[int, int], Property] = {}
        self._valuations: list[PropertyValuation] = []
        self._appeals: list[PropertyAppeal] = []
        self._tax_rates: list[TaxRate] = []
        self._next_valuation_id = 1
        self._next_appeal_id = 1
        self._persist_path = Path(persist_path) if persist_path else None

        if self._persist_path and self._persist_path.exists():
            self._load_from_file()

    # =========================================================================
    # Persistence
    # =========================================================================

    def _save_to_file(self) -> None:
        if not self._persist_path:
            return

        data = {
            "properties": [p.to_dict() for p in self._properties.values()],
            "valuations": [v.to_dict() for v in self._valuations],
            "appeals": [a.to_dict() for a in self._appeals],
            "taxRates": [r.to_dict() for r in self._tax_rates],
            "savedAt": datetime.now(timezone.utc).isoformat(),
        }

        self._persist_path.parent.mkdir(parents=True, exist_ok=True)
        self._persist_path.write_text(json.dumps(data, indent=2))

    def _load_from_file(self) -> None:
        try:
            data = json.loads(self._persist_path.read_text())
            self.load_document(data)
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning("Could not load repository data from %s: %s", self._persist_path, e)

    def load_document(self, data: dict) -> None:
        """Load properties, valuations, appeals and tax rates from a document."""
        with self._lock:
            for item in data.get("properties", []):
                prop = Property.from_dict(item)
                self._properties[(prop.tenant_id, prop.id)] = prop
            for item in data.get("valuations", []):
                self._insert_valuation(PropertyValuation.from_dict(item))
            for item in data.get("appeals", []):
                self._insert_appeal(PropertyAppeal.from_dict(item))
            for item in data.get("taxRates", []):
                self._tax_rates.append(TaxRate.from_dict(item))

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryAssessmentRepository":
        """Build a read-only repository from a JSON data file."""
        repository = cls()
        repository.load_document(json.loads(Path(path).read_text()))
        return repository

    # =========================================================================
    # Seeding
    # =========================================================================

    def add_property(self, prop: Property) -> Property:
        with self._lock:
            self._properties[(prop.tenant_id, prop.id)] = prop
            self._save_to_file()
        return prop

    def add_tax_rate(self, rate: TaxRate) -> TaxRate:
        """Register a tax rate, deactivating any prior rate for the same key."""
        with self._lock:
            if rate.is_active:
                self._tax_rates = [
                    replace(r, is_active=False) if self._same_rate_key(r, rate) else r
                    for r in self._tax_rates
                ]
            self._tax_rates.append(rate)
            self._save_to_file()
        return rate

    @staticmethod
    def _same_rate_key(a: TaxRate, b: TaxRate) -> bool:
        return (
            a.tenant_id == b.tenant_id
            and a.zone_code == b.zone_code
            and a.property_type == b.property_type
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def get_property(self, property_id: int, tenant_id: int) -> Optional[Property]:
        with self._lock:
            prop = self._properties.get((tenant_id, property_id))
        if prop is None or prop.status == PropertyStatus.DELETED:
            return None
        return prop

    def get_all_properties(self, tenant_id: int) -> list[Property]:
        with self._lock:
            return [
                p for (owner, _), p in self._properties.items()
                if owner == tenant_id and p.status != PropertyStatus.DELETED
            ]

    def get_all_property_valuations(
        self,
        property_id: int,
        tenant_id: int,
    ) -> list[PropertyValuation]:
        with self._lock:
            return [
                v for v in self._valuations
                if v.property_id == property_id and v.tenant_id == tenant_id
            ]

    def get_all_property_appeals(
        self,
        property_id: int,
        tenant_id: int,
    ) -> list[PropertyAppeal]:
        with self._lock:
            return [
                a for a in self._appeals
                if a.property_id == property_id and a.tenant_id == tenant_id
            ]

    def get_active_tax_rate(
        self,
        tenant_id: int,
        zone_code: str,
        property_type: PropertyType,
    ) -> Optional[TaxRate]:
        with self._lock:
            for rate in reversed(self._tax_rates):
                if (
                    rate.is_active
                    and rate.tenant_id == tenant_id
                    and rate.zone_code == zone_code
                    and rate.property_type == property_type
                ):
                    return rate
        return None

    # =========================================================================
    # Writes
    # =========================================================================

    def save_valuation(self, valuation: PropertyValuation) -> PropertyValuation:
        with self._lock:
            stored = self._insert_valuation(valuation)
            self._save_to_file()
        return stored

    def save_appeal(self, appeal: PropertyAppeal) -> PropertyAppeal:
        with self._lock:
            stored = self._insert_appeal(appeal)
            self._save_to_file()
        return stored

    def _insert_valuation(self, valuation: PropertyValuation) -> PropertyValuation:
        if valuation.id is None:
            valuation = replace(valuation, id=self._next_valuation_id)
        self._next_valuation_id = max(self._next_valuation_id, valuation.id + 1)
        self._valuations.append(valuation)
        return valuation

    def _insert_appeal(self, appeal: PropertyAppeal) -> PropertyAppeal:
        if appeal.id is None:
            appeal = replace(appeal, id=self._next_appeal_id)
        self._next_appeal_id = max(self._next_appeal_id, appeal.id + 1)
        self._appeals.append(appeal)
        return appeal

    def count(self) -> dict[str, int]:
        """Record counts, for health output."""
        with self._lock:
            return {
                "properties": len(self._properties),
                "valuations": len(self._valuations),
                "appeals": len(self._appeals),
                "taxRates": len(self._tax_rates),
            }


# =============================================================================
# Singleton Instance
# =============================================================================

_repository_instance: Optional[InMemoryAssessmentRepository] = None


def get_assessment_repository(persist_path: Optional[str] = None) -> InMemoryAssessmentRepository:
    """
    Get the process-wide repository used by the web layer.

    Args:
        persist_path: Optional path for persistence (only used on first call)
    """
    global _repository_instance
    if _repository_instance is None:
        _repository_instance = InMemoryAssessmentRepository(persist_path or None)
    return _repository_instance
