"""
Comparable-market measurements shared by probability scoring and evidence.

Every helper skips comparables that lack the data it needs, and returns
None instead of dividing by zero when nothing usable is left.
"""

from dataclasses import dataclass
from datetime import date
from statistics import fmean
from typing import List, Optional, Sequence

from ..models import Property


RECENT_SALE_WINDOW_DAYS = 2 * 365


@dataclass(frozen=True)
class ComparableSale:
    """A comparable's last sale, read from its details."""
    property: Property
    price: float
    sale_date: date

    @property
    def label(self) -> str:
        return property_label(self.property)


def property_label(prop: Property) -> str:
    """Address, else parcel id, else "property <id>"."""
    return prop.address or prop.parcel_id or f"property {prop.id}"


def value_per_area(value: float, area: Optional[float]) -> Optional[float]:
    if not area or area <= 0:
        return None
    return value / area


def valued_comparables(comparables: Sequence[Property]) -> List[Property]:
    """Comparables that carry a last assessed value, in input order."""
    return [c for c in comparables if c.last_assessed_value]


def average_comparable_value(comparables: Sequence[Property]) -> Optional[float]:
    """Mean last assessed value over comparables that have one."""
    values = [c.last_assessed_value for c in valued_comparables(comparables)]
    return fmean(values) if values else None


def average_comparable_value_per_area(comparables: Sequence[Property]) -> Optional[float]:
    """Mean of lastAssessedValue / buildingArea over comparables that have both."""
    rates = [
        value_per_area(c.last_assessed_value, c.building_area)
        for c in comparables
        if c.last_assessed_value and c.building_area
    ]
    rates = [r for r in rates if r is not None]
    return fmean(rates) if rates else None


def relative_gap(value: float, baseline: Optional[float]) -> Optional[float]:
    """(value - baseline) / baseline, or None without a positive baseline."""
    if baseline is None or baseline <= 0:
        return None
    return (value - baseline) / baseline


def recent_sales(
    comparables: Sequence[Property],
    reference_date: date,
    window_days: int = RECENT_SALE_WINDOW_DAYS,
) -> List[ComparableSale]:
    """
    Comparable sales inside the window, most recent first.

    Ties on sale date keep comparable order.
    """
    sales = []
    for comp in comparables:
        price, sold_on = comp.sale_price, comp.sale_date
        if price is None or sold_on is None:
            continue
        if (reference_date - sold_on).days > window_days:
            continue
        sales.append(ComparableSale(property=comp, price=price, sale_date=sold_on))
    return sorted(sales, key=lambda s: s.sale_date, reverse=True)


def average_assessment_to_sale_ratio(sales: Sequence[ComparableSale]) -> Optional[float]:
    """Mean lastAssessedValue / salePrice over sales whose property has an assessment."""
    ratios = [
        s.property.last_assessed_value / s.price
        for s in sales
        if s.property.last_assessed_value
    ]
    return fmean(ratios) if ratios else None
