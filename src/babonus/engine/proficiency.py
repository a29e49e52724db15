from __future__ import annotations
from typing import Dict, Optional

from .models import Actor, Item, TraitSet

def _custom_match(traits: TraitSet, item: Item) -> bool:
    name = item.name.lower()
    return any(entry in name for entry in traits.custom_entries())

def has_weapon_proficiency(actor: Optional[Actor], item: Optional[Item]) -> bool:
    if actor is None or item is None or item.type != "weapon":
        return False
    prof = actor.traits.weaponProf
    if item.weaponType and item.weaponType in prof.value:
        return True
    # "mar" property marks martial weapons; everything else counts as simple
    martial = "mar" in item.properties
    if (martial and "mar" in prof.value) or (not martial and "sim" in prof.value):
        return True
    return _custom_match(prof, item)

def has_armor_proficiency(actor: Optional[Actor], item: Optional[Item]) -> bool:
    if actor is None or item is None or item.type != "equipment":
        return False
    if item.armor is not None and item.armor.type == "shield":
        return False
    prof = actor.traits.armorProf
    if item.armor is None or item.armor.type in prof.value:
        return True
    return _custom_match(prof, item)

def has_tool_proficiency(actor: Optional[Actor], item: Optional[Item]) -> bool:
    if actor is None or item is None or item.type != "tool":
        return False
    prof = actor.traits.toolProf
    if item.toolType and item.toolType in prof.value:
        return True
    return _custom_match(prof, item)

def is_proficient(actor: Optional[Actor], item: Optional[Item]) -> bool:
    """Dispatch on item kind; items that carry no proficiency are never proficient."""
    if actor is None or item is None:
        return False
    if item.type == "weapon":
        return has_weapon_proficiency(actor, item)
    if item.type == "equipment" and item.armor is not None:
        return has_armor_proficiency(actor, item)
    if item.type == "tool":
        return has_tool_proficiency(actor, item)
    return False

def proficiency_tree(actor: Optional[Actor]) -> Dict[str, Dict[str, bool]]:
    if actor is None:
        return {}
    t = actor.traits
    return {
        "armor": {p: True for p in sorted(t.armorProf.value)},
        "weapon": {p: True for p in sorted(t.weaponProf.value)},
        "tool": {p: True for p in sorted(t.toolProf.value)},
    }

def speaks_language(actor: Optional[Actor], language: Optional[str]) -> bool:
    if actor is None or not language:
        return False
    langs = actor.traits.languages
    if language in langs.value:
        return True
    return language.lower() in langs.custom_entries()
