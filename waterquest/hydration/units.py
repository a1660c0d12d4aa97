"""Metric/imperial conversion for volumes and body weight."""

from __future__ import annotations

from enum import Enum

ML_PER_FL_OZ = 29.5735
KG_PER_LB = 0.453592


class UnitSystem(str, Enum):
    METRIC = "metric"
    IMPERIAL = "imperial"

    @property
    def volume_unit(self) -> str:
        return "ml" if self is UnitSystem.METRIC else "oz"

    @property
    def weight_unit(self) -> str:
        return "kg" if self is UnitSystem.METRIC else "lb"


def to_ml(amount: float, unit_system: UnitSystem) -> float:
    """Convert a volume typed in the user's units to millilitres."""
    if unit_system is UnitSystem.IMPERIAL:
        return amount * ML_PER_FL_OZ
    return amount


def from_ml(ml: float, unit_system: UnitSystem) -> float:
    if unit_system is UnitSystem.IMPERIAL:
        return ml / ML_PER_FL_OZ
    return ml


def to_kg(amount: float, unit_system: UnitSystem) -> float:
    """Convert a body weight typed in the user's units to kilograms."""
    if unit_system is UnitSystem.IMPERIAL:
        return amount * KG_PER_LB
    return amount


def from_kg(kg: float, unit_system: UnitSystem) -> float:
    if unit_system is UnitSystem.IMPERIAL:
        return kg / KG_PER_LB
    return kg


def format_volume(ml: float, unit_system: UnitSystem) -> str:
    """Format a volume for display, e.g. '1.250 ml' or '42 oz'."""
    amount = from_ml(ml, unit_system)
    if unit_system is UnitSystem.METRIC:
        return f"{int(amount):,} ml".replace(",", ".")
    return f"{amount:.0f} oz"
