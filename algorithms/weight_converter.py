class WeightConverter:
    """Utility for converting between kg and lb.

    Cross-session arithmetic is done in kilograms. Any unit other than
    pounds is taken to already be kilograms.
    """

    KG_TO_LB = 2.20462
    POUND_UNITS = frozenset({"lb", "lbs", "pound", "pounds"})

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb / WeightConverter.KG_TO_LB, 2)

    @classmethod
    def is_pounds(cls, unit: str | None) -> bool:
        return bool(unit) and unit.strip().lower() in cls.POUND_UNITS

    @classmethod
    def to_kg(cls, weight: float, unit: str | None) -> float:
        """Return ``weight`` expressed in kilograms without rounding."""
        if cls.is_pounds(unit):
            return weight / cls.KG_TO_LB
        return weight

    @classmethod
    def from_kg(cls, weight: float, unit: str | None) -> float:
        """Return a kilogram ``weight`` expressed in ``unit``."""
        if cls.is_pounds(unit):
            return weight * cls.KG_TO_LB
        return weight

    @classmethod
    def volume_in_kg(cls, weight: float, reps: int, unit: str | None) -> float:
        """Return ``weight * reps`` normalised to kilograms."""
        return cls.to_kg(weight, unit) * reps
