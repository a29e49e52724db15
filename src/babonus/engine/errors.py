from __future__ import annotations

class BabonusError(Exception):
    """Base class for engine errors."""

class FormulaError(BabonusError):
    def __init__(self, formula: str, reason: str):
        super().__init__(f"invalid formula '{formula}': {reason}")
        self.formula = formula
        self.reason = reason

class ConsumptionError(BabonusError):
    pass

class UnknownBonusTypeError(BabonusError, ValueError):
    def __init__(self, bonus_type: str):
        super().__init__(f"Invalid bonus type: {bonus_type}")
        self.bonus_type = bonus_type
