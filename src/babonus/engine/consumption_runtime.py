from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple
import math
import random

from .dice import evaluate_formula
from .errors import ConsumptionError, FormulaError
from .models import Item, Pool
from .schema_models import ConsumptionSpec

if TYPE_CHECKING:
    from .collector import OwnedBonus

@dataclass
class ConsumptionChoice:
    amount: int
    steps: int  # increments above the minimum; bound to @consumption

# -----------------------------
# Resource lookup
# -----------------------------

def _slot_pool(owned: "OwnedBonus", subtype: Optional[str]) -> Optional[Pool]:
    item, actor = owned.item, owned.actor
    if item is None or item.type != "spell" or actor is None:
        return None
    try:
        level = int(str(subtype).strip())
    except ValueError:
        return None
    return actor.spells.get(f"spell{level}")

def _charge_item(owned: "OwnedBonus") -> Optional[Item]:
    item, actor = owned.item, owned.actor
    if item is None or actor is None or item.consume is None or item.consume.type != "charges":
        return None
    if not item.consume.target:
        return None
    return actor.get_item(item.consume.target)

def _pool(spec: ConsumptionSpec, owned: "OwnedBonus") -> Optional[Pool]:
    actor, item = owned.actor, owned.item
    if spec.type == "attributes" and actor is not None:
        return actor.attributes.get(spec.subtype or "")
    if spec.type == "resources" and actor is not None:
        return actor.resources.get(spec.subtype or "")
    if spec.type == "uses" and item is not None and item.uses is not None and item.uses.max:
        return item.uses
    if spec.type == "charges":
        target = _charge_item(owned)
        return target.uses if target is not None else None
    if spec.type == "slots":
        return _slot_pool(owned, spec.subtype)
    return None

def current_value(spec: ConsumptionSpec, owned: "OwnedBonus") -> int:
    actor = owned.actor
    if spec.type == "currency":
        return int(actor.currency.get(spec.subtype or "", 0)) if actor is not None else 0
    if spec.type == "hitDice":
        cls = actor.classes.get(spec.subtype or "") if actor is not None else None
        return max(0, cls.levels - cls.hitDiceUsed) if cls is not None else 0
    pool = _pool(spec, owned)
    return int(pool.value) if pool is not None else 0

def resource_key(spec: ConsumptionSpec, owned: "OwnedBonus") -> Tuple[Any, ...]:
    """Identifies the resource a spec draws from, so several bonuses sharing one can be reserved together."""
    if spec.type in ("currency", "hitDice"):
        return (owned.actor.id if owned.actor is not None else None, spec.type, spec.subtype)
    return ("pool", id(_pool(spec, owned)))

def max_value(spec: ConsumptionSpec, owned: "OwnedBonus") -> float:
    actor = owned.actor
    if spec.type == "currency":
        return math.inf if actor is not None else 0
    if spec.type == "hitDice":
        cls = actor.classes.get(spec.subtype or "") if actor is not None else None
        return cls.levels if cls is not None else 0
    pool = _pool(spec, owned)
    if pool is None or pool.max is None:
        return 0
    return pool.max

# -----------------------------
# Amounts
# -----------------------------

def bounds(spec: ConsumptionSpec, roll_data: Optional[Dict[str, Any]] = None,
           rng: Optional[random.Random] = None) -> Tuple[int, int, int]:
    """(min, max, step) with the bound formulas evaluated; max never falls below min."""
    try:
        lo = int(evaluate_formula(spec.value.min or "1", roll_data, rng))
        hi = int(evaluate_formula(spec.value.max or spec.value.min or "1", roll_data, rng))
    except FormulaError as e:
        raise ConsumptionError(f"invalid consumption bounds: {e}") from e
    lo = max(1, lo)
    return lo, max(lo, hi), max(1, spec.value.step)

def available_amounts(spec: ConsumptionSpec, owned: "OwnedBonus",
                      roll_data: Optional[Dict[str, Any]] = None) -> List[int]:
    lo, hi, step = bounds(spec, roll_data)
    have = current_value(spec, owned)
    out: List[int] = []
    amount = lo
    while amount <= hi and amount <= have:
        out.append(amount)
        if not spec.scales:
            break
        amount += step
    return out

def choose(spec: ConsumptionSpec, owned: "OwnedBonus", amount: Optional[int] = None,
           roll_data: Optional[Dict[str, Any]] = None, reserved: int = 0) -> ConsumptionChoice:
    """Validate an amount; `reserved` is what earlier choices already claimed from the same resource."""
    lo, hi, step = bounds(spec, roll_data)
    amount = lo if amount is None else int(amount)
    if amount < lo or amount > hi or (amount - lo) % step != 0:
        raise ConsumptionError(f"amount {amount} is not in {lo}..{hi} by {step}")
    if not spec.scales and amount != lo:
        raise ConsumptionError(f"non-scaling consumption always spends {lo}")
    have = current_value(spec, owned) - reserved
    if have < amount:
        raise ConsumptionError(f"not enough {spec.type}{'.' + spec.subtype if spec.subtype else ''}: have {have}, need {amount}")
    return ConsumptionChoice(amount=amount, steps=(amount - lo) // step)

def consume(spec: ConsumptionSpec, owned: "OwnedBonus", amount: int) -> List[str]:
    """Spend `amount`; values never go below zero. Returns log lines."""
    have = current_value(spec, owned)
    if have < amount:
        raise ConsumptionError(f"not enough {spec.type}: have {have}, need {amount}")
    actor = owned.actor
    label = f"{spec.type}{'.' + spec.subtype if spec.subtype else ''}"
    if spec.type == "currency" and actor is not None:
        key = spec.subtype or ""
        actor.currency[key] = max(0, int(actor.currency.get(key, 0)) - amount)
    elif spec.type == "hitDice" and actor is not None:
        cls = actor.classes[spec.subtype or ""]
        cls.hitDiceUsed = min(cls.levels, cls.hitDiceUsed + amount)
    else:
        pool = _pool(spec, owned)
        if pool is None:
            raise ConsumptionError(f"nothing to consume for {label} on {owned.parent.id}")
        pool.value = max(0, pool.value - amount)
    return [f"[Consume] {owned.bonus.name}: -{amount} {label} ({have} -> {current_value(spec, owned)})"]
