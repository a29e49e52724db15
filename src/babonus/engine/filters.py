from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Literal, Optional
import logging

from pydantic import TypeAdapter, ValidationError

from .context import RollContext
from .models import ATTUNEMENT_ATTUNED
from .proficiency import is_proficient
from .repository import get_markers
from .schema_models import BONUS_TYPES, BabonusBase, RangeFilter

logger = logging.getLogger(__name__)

FilterKind = Literal["set", "range", "bool"]
Predicate = Callable[[BabonusBase, Any, RollContext], bool]

ITEM_ROLLS: FrozenSet[str] = frozenset({"attackRoll", "damageRoll", "savingThrowDc"})
ALL_ROLLS: FrozenSet[str] = frozenset(BONUS_TYPES)

_SET_ADAPTER = TypeAdapter(Optional[List[str]])
_RANGE_ADAPTER = TypeAdapter(Optional[RangeFilter])
_BOOL_ADAPTER = TypeAdapter(Optional[bool])

_ADAPTERS: Dict[str, TypeAdapter] = {"set": _SET_ADAPTER, "range": _RANGE_ADAPTER, "bool": _BOOL_ADAPTER}

@dataclass(frozen=True)
class FilterSpec:
    name: str
    kind: FilterKind
    applies_to: FrozenSet[str]
    predicate: Predicate

    def validate(self, raw: Any) -> Any:
        """Coerce a stored filter value to its shape. Raises ValidationError on bad data."""
        return _ADAPTERS[self.kind].validate_python(raw)

    @staticmethod
    def is_empty(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, RangeFilter):
            return value.is_empty()
        if isinstance(value, (list, set, tuple)):
            return len(value) == 0
        return False

    def applies_to_type(self, bonus_type: str) -> bool:
        return bonus_type in self.applies_to

    def evaluate(self, bonus: BabonusBase, raw: Any, ctx: RollContext) -> bool:
        try:
            value = self.validate(raw)
        except ValidationError as e:
            logger.warning("Bonus '%s' (%s) has invalid '%s' filter data %r: %s",
                           bonus.name, bonus.id, self.name, raw, e.errors()[0].get("msg", e))
            return False
        if self.is_empty(value):
            return True
        return bool(self.predicate(bonus, value, ctx))

# -----------------------------
# Item filters
# -----------------------------

def _item_type(bonus, value: List[str], ctx: RollContext) -> bool:
    return ctx.item is not None and ctx.item.type in value

def _weapon_type(bonus, value: List[str], ctx: RollContext) -> bool:
    item = ctx.item
    if item is None or item.type != "weapon":
        return False
    return item.weaponType in value

def _weapon_properties(bonus, value: List[str], ctx: RollContext) -> bool:
    item = ctx.item
    if item is None or item.type != "weapon":
        return False
    return all(p in item.properties for p in value)

def _armor_type(bonus, value: List[str], ctx: RollContext) -> bool:
    item = ctx.item
    if item is None or item.type != "equipment" or item.armor is None:
        return False
    return item.armor.type in value

def _damage_types(bonus, value: List[str], ctx: RollContext) -> bool:
    item = ctx.item
    if item is None:
        return False
    if any(dtype in value for dtype in item.damage_types):
        return True
    own = getattr(bonus, "damageType", None)
    return own is not None and own in value

def _equipped(bonus, value: bool, ctx: RollContext) -> bool:
    if ctx.item is None:
        return False
    return value == (ctx.item.equipped is True)

def _attunement(bonus, value: bool, ctx: RollContext) -> bool:
    if ctx.item is None:
        return False
    return value == (ctx.item.attunement == ATTUNEMENT_ATTUNED)

def _proficiency(bonus, value: bool, ctx: RollContext) -> bool:
    if ctx.actor is None or ctx.item is None:
        return False
    return value == is_proficient(ctx.actor, ctx.item)

# -----------------------------
# Spell filters
# -----------------------------

def _spell(ctx: RollContext):
    item = ctx.item
    if item is None or item.type != "spell":
        return None
    return item

def _spell_level(bonus, value: RangeFilter, ctx: RollContext) -> bool:
    item = _spell(ctx)
    if item is None:
        return False
    level = item.spell.level if item.spell is not None else 0
    return value.contains(level)

def _spell_school(bonus, value: List[str], ctx: RollContext) -> bool:
    item = _spell(ctx)
    if item is None or item.spell is None:
        return False
    return item.spell.school in value

_COMPONENT_FIELDS = {"v": "vocal", "s": "somatic", "m": "material"}

def _spell_components(bonus, value: List[str], ctx: RollContext) -> bool:
    item = _spell(ctx)
    if item is None:
        return False
    comps = item.spell.components if item.spell is not None else None
    for code in value:
        attr = _COMPONENT_FIELDS.get(code)
        if attr is None:
            continue
        if comps is None or not getattr(comps, attr):
            return False
    return True

def _prepared(bonus, value: bool, ctx: RollContext) -> bool:
    item = _spell(ctx)
    if item is None:
        return False
    prepared = item.spell is not None and item.spell.preparation.prepared is True
    return value == prepared

def _concentration(bonus, value: bool, ctx: RollContext) -> bool:
    item = _spell(ctx)
    if item is None:
        return False
    return value == (item.spell is not None and item.spell.components.concentration is True)

def _ritual(bonus, value: bool, ctx: RollContext) -> bool:
    item = _spell(ctx)
    if item is None:
        return False
    return value == (item.spell is not None and item.spell.components.ritual is True)

# -----------------------------
# Roll / actor filters
# -----------------------------

def _abilities(bonus, value: List[str], ctx: RollContext) -> bool:
    return bool(ctx.ability) and ctx.ability in value

def _skills(bonus, value: List[str], ctx: RollContext) -> bool:
    return bool(ctx.skill) and ctx.skill in value

def _critical(bonus, value: bool, ctx: RollContext) -> bool:
    return value == (ctx.critical is True)

def _markers(bonus, value: List[str], ctx: RollContext) -> bool:
    if ctx.actor is None:
        return False
    if all(m in get_markers(ctx.actor) for m in value):
        return True
    if ctx.target is not None and all(m in get_markers(ctx.target) for m in value):
        return True
    return False

def _conditions(bonus, value: List[str], ctx: RollContext) -> bool:
    if ctx.actor is None:
        return False
    if any(s in ctx.actor.statuses for s in value):
        return True
    return ctx.target is not None and any(s in ctx.target.statuses for s in value)

def _distance(bonus, value: RangeFilter, ctx: RollContext) -> bool:
    if ctx.actor is None or ctx.target is None or ctx.scene is None:
        return False
    a, b = ctx.token, ctx.target_token
    if a is None or b is None:
        return False
    return value.contains(ctx.scene.measure_distance(a, b))

# -----------------------------
# Registry
# -----------------------------

_ABILITY_ROLLS = frozenset({"savingThrow", "abilityCheck", "attackRoll", "damageRoll", "savingThrowDc"})

FILTERS: Dict[str, FilterSpec] = {f.name: f for f in (
    FilterSpec("itemType", "set", ITEM_ROLLS, _item_type),
    FilterSpec("weaponType", "set", ITEM_ROLLS, _weapon_type),
    FilterSpec("weaponProperties", "set", ITEM_ROLLS, _weapon_properties),
    FilterSpec("armorType", "set", ITEM_ROLLS, _armor_type),
    FilterSpec("spellLevel", "range", ITEM_ROLLS, _spell_level),
    FilterSpec("spellSchool", "set", ITEM_ROLLS, _spell_school),
    FilterSpec("spellComponents", "set", ITEM_ROLLS, _spell_components),
    FilterSpec("damageTypes", "set", frozenset({"attackRoll", "damageRoll"}), _damage_types),
    FilterSpec("abilities", "set", _ABILITY_ROLLS, _abilities),
    FilterSpec("skills", "set", frozenset({"abilityCheck"}), _skills),
    FilterSpec("proficiency", "bool", ITEM_ROLLS, _proficiency),
    FilterSpec("markers", "set", ALL_ROLLS, _markers),
    FilterSpec("conditions", "set", ALL_ROLLS, _conditions),
    FilterSpec("distance", "range", ALL_ROLLS, _distance),
    FilterSpec("equipped", "bool", ITEM_ROLLS, _equipped),
    FilterSpec("attunement", "bool", ITEM_ROLLS, _attunement),
    FilterSpec("prepared", "bool", ITEM_ROLLS, _prepared),
    FilterSpec("concentration", "bool", ITEM_ROLLS, _concentration),
    FilterSpec("ritual", "bool", ITEM_ROLLS, _ritual),
    FilterSpec("critical", "bool", frozenset({"damageRoll"}), _critical),
)}

def get_filter(name: str) -> Optional[FilterSpec]:
    return FILTERS.get(name)

def filters_for(bonus_type: str) -> List[str]:
    return [name for name, spec in FILTERS.items() if spec.applies_to_type(bonus_type)]
