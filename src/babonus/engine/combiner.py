from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging
import random

from .collector import OwnedBonus
from .consumption_runtime import ConsumptionChoice
from .dice import Roll, evaluate_formula
from .errors import FormulaError
from .expr import normalize_number
from .models import Actor
from .schema_models import ModifiersSpec

logger = logging.getLogger(__name__)

Number = int | float

@dataclass
class AppliedPart:
    name: str
    value: Number
    damage_type: Optional[str] = None
    bonus_id: str = ""
    source: str = "actor"
    uuid: str = ""

    def as_tuple(self) -> Tuple[str, Number, Optional[str]]:
        return (self.name, self.value, self.damage_type)

@dataclass
class CombineResult:
    total: Number = 0
    parts: List[AppliedPart] = field(default_factory=list)
    roll: Optional[Roll] = None
    logs: List[str] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return self.total != 0

def _signed(v: Number) -> str:
    return f"+{v}" if v >= 0 else str(v)

class ValueCombiner:
    """
    Sums applied bonuses into one number and appends it to the roll.
    A bonus whose formula fails counts as zero; the others still apply.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    # -------- per bonus --------
    def bonus_data(self, owned: OwnedBonus, roller: Optional[Actor],
                   choice: Optional[ConsumptionChoice] = None) -> Dict[str, Any]:
        data = owned.roll_data(roller)
        if choice is not None:
            data["consumption"] = choice.steps
        return data

    def evaluate_bonus(self, owned: OwnedBonus, roller: Optional[Actor] = None,
                       choice: Optional[ConsumptionChoice] = None) -> Number:
        """Raises FormulaError when the bonus (or its scaling) formula is malformed."""
        data = self.bonus_data(owned, roller, choice)
        value = evaluate_formula(owned.bonus.bonus, data, self.rng)
        cons = owned.bonus.consumption
        if choice is not None and cons.enabled and cons.scales and cons.formula.strip():
            value += evaluate_formula(cons.formula, data, self.rng)
        return normalize_number(value)

    def apply_modifier(self, mods: ModifiersSpec, value: Number, data: Dict[str, Any]) -> Number:
        if not mods.enabled or not mods.formula.strip():
            return value
        try:
            m = evaluate_formula(mods.formula, data, self.rng)
        except FormulaError as e:
            logger.error("Error applying modifier '%s': %s", mods.formula, e)
            return value
        if mods.mode == "add":
            return normalize_number(value + m)
        if mods.mode == "multiply":
            return normalize_number(value * m)
        if mods.mode == "override":
            return m
        if mods.mode == "upgrade":
            return max(value, m)
        if mods.mode == "downgrade":
            return min(value, m)
        return value

    # -------- whole roll --------
    def combine(self, bonuses: List[OwnedBonus], roll: Optional[Roll] = None, roller: Optional[Actor] = None,
                choices: Optional[Dict[str, ConsumptionChoice]] = None) -> CombineResult:
        res = CombineResult(roll=roll)
        choices = choices or {}
        roll_mods: List[Tuple[ModifiersSpec, Dict[str, Any]]] = []
        total: Number = 0

        for owned in bonuses:
            b = owned.bonus
            choice = choices.get(owned.uuid)
            try:
                value = self.evaluate_bonus(owned, roller, choice)
            except FormulaError as e:
                logger.error("Error evaluating %s bonus '%s' (%s): %s", b.type, b.name, owned.uuid, e)
                res.logs.append(f"[Bonus] {b.name}: error ({e.reason})")
                continue
            data = self.bonus_data(owned, roller, choice)
            if b.modifiers.enabled:
                if b.modifiers.target == "roll":
                    roll_mods.append((b.modifiers, data))
                else:
                    value = self.apply_modifier(b.modifiers, value, data)
            if value == 0:
                continue
            total += value
            res.parts.append(AppliedPart(b.name, value, getattr(b, "damageType", None), b.id, owned.source, owned.uuid))
            res.logs.append(f"[Bonus] {b.name}: {_signed(value)}")

        for mods, data in sorted(roll_mods, key=lambda md: md[0].priority_value()):
            before = total
            total = self.apply_modifier(mods, total, data)
            if total != before:
                res.logs.append(f"[Bonus] modifier {mods.mode} {mods.formula}: {before} -> {total}")

        res.total = normalize_number(total)
        if res.total == 0 or roll is None:
            return res
        roll.amend(res.total, self.rng)
        res.logs.append(f"[Bonus] total {_signed(res.total)} -> {roll.formula} = {roll.total}")
        return res
