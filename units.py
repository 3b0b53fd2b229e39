# units.py
"""
Unit conversion between display units and a family's base unit.

Every unit belongs to exactly one family. Each family has one base unit with
factor 1; the others carry an exact factor to it. Conversions compute a single
ratio of exact factors and apply it once, so repeated conversions do not pick
up intermediate rounding.
"""
from enum import Enum
from fractions import Fraction

from errors import IncompatibleUnitsError, InvalidUnitError


class UnitFamily(str, Enum):
    MASS = "mass"
    VOLUME = "volume"
    PIECE = "piece"
    PACK = "pack"
    SET = "set"
    DOZEN = "dozen"
    LENGTH = "length"


class Unit(Enum):
    """Closed set of units. `Unit("Gram")` parses a label."""
    KG = ("Kg", UnitFamily.MASS, "1")
    GRAM = ("Gram", UnitFamily.MASS, "0.001")
    LITRE = ("Litre", UnitFamily.VOLUME, "1")
    MILLILITRE = ("Millilitre", UnitFamily.VOLUME, "0.001")
    PIECE = ("Piece", UnitFamily.PIECE, "1")
    PACK = ("Pack", UnitFamily.PACK, "1")
    SET = ("Set", UnitFamily.SET, "1")
    DOZEN = ("Dozen", UnitFamily.DOZEN, "1")
    METER = ("Meter", UnitFamily.LENGTH, "1")

    def __new__(cls, label, family, factor):
        obj = object.__new__(cls)
        obj._value_ = label
        obj.family = family
        obj.factor = Fraction(factor)
        return obj

    def __str__(self):
        return self.value


def parse_unit(value) -> Unit:
    """Accept a Unit or its label ("Kg", "Gram", ...)."""
    if isinstance(value, Unit):
        return value
    try:
        return Unit(value)
    except ValueError:
        raise InvalidUnitError(f"Unknown unit: {value!r}", details={"unit": value}) from None


def base_unit_of(unit) -> Unit:
    """The factor-1 unit of `unit`'s family."""
    unit = parse_unit(unit)
    for candidate in Unit:
        if candidate.family == unit.family and candidate.factor == 1:
            return candidate
    raise AssertionError(f"family {unit.family} has no base unit")


def available_units(base_unit) -> list:
    """All units in the same family as `base_unit`, in declaration order."""
    family = parse_unit(base_unit).family
    return [u for u in Unit if u.family == family]


def can_convert(from_unit, to_unit) -> bool:
    return parse_unit(from_unit).family == parse_unit(to_unit).family


def _check_compatible(from_unit: Unit, to_unit: Unit):
    if from_unit.family != to_unit.family:
        raise IncompatibleUnitsError(
            f"Cannot convert between {from_unit} and {to_unit}",
            details={"from_unit": from_unit.value, "to_unit": to_unit.value},
        )


def to_base_unit(quantity, unit) -> float:
    """Quantity expressed in the family's base unit."""
    unit = parse_unit(unit)
    return float(Fraction(quantity) * unit.factor)


def from_base_unit(quantity, base_unit, target_unit) -> float:
    """Quantity held in `base_unit` expressed in `target_unit`."""
    return convert(quantity, base_unit, target_unit)


def convert(quantity, from_unit, to_unit) -> float:
    from_unit = parse_unit(from_unit)
    to_unit = parse_unit(to_unit)
    _check_compatible(from_unit, to_unit)
    if from_unit is to_unit:
        return float(quantity)
    return float(Fraction(quantity) * (from_unit.factor / to_unit.factor))


def format_quantity(quantity, unit) -> str:
    """Display form rounded to 2 decimals, e.g. "0.5 Kg"."""
    rounded = round(float(quantity), 2)
    if rounded == int(rounded):
        rounded = int(rounded)
    return f"{rounded} {parse_unit(unit)}"
