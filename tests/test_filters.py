import pytest

from babonus.engine.api import create_bonus
from babonus.engine.context import RollContext
from babonus.engine.filters import FILTERS, ITEM_ROLLS, filters_for, get_filter
from babonus.engine.models import ActiveEffect, ATTUNEMENT_ATTUNED
from babonus.engine.repository import set_markers

def check(name, value, ctx, bonus=None):
    bonus = bonus or create_bonus(ctx.type, {"filters": {name: value}})
    return FILTERS[name].evaluate(bonus, value, ctx)

@pytest.fixture
def attack(hero, longsword, scene):
    return RollContext(type="attackRoll", actor=hero, item=longsword, scene=scene)

# --- Registry ---

def test_every_filter_registered():
    assert set(FILTERS) == {
        "itemType", "weaponType", "weaponProperties", "armorType", "spellLevel", "spellSchool",
        "spellComponents", "damageTypes", "abilities", "skills", "proficiency", "markers",
        "conditions", "distance", "equipped", "attunement", "prepared", "concentration",
        "ritual", "critical",
    }

def test_filters_for_roll_type():
    assert "skills" in filters_for("abilityCheck")
    assert "skills" not in filters_for("attackRoll")
    assert "critical" in filters_for("damageRoll")
    assert get_filter("weaponType").applies_to == ITEM_ROLLS
    assert get_filter("nope") is None

def test_empty_values_pass(attack):
    assert check("weaponType", [], attack)
    assert check("spellLevel", {}, attack)
    assert check("equipped", None, attack)

def test_invalid_value_fails(attack):
    assert not check("weaponType", "martialM", attack)
    assert not check("spellLevel", {"min": 3, "max": 1}, attack)

# --- Item filters ---

def test_item_and_weapon_filters(attack):
    assert check("itemType", ["weapon"], attack)
    assert not check("itemType", ["spell"], attack)
    assert check("weaponType", ["martialM", "martialR"], attack)
    assert not check("weaponType", ["simpleM"], attack)
    assert check("weaponProperties", ["mar", "ver"], attack)
    assert not check("weaponProperties", ["mar", "fin"], attack)

def test_weapon_filters_fail_without_weapon(hero, fireball):
    ctx = RollContext(type="attackRoll", actor=hero, item=fireball)
    assert not check("weaponType", ["martialM"], ctx)
    assert not check("weaponProperties", ["mar"], ctx)

def test_armor_type(hero):
    plate = hero.get_item("plate")
    ctx = RollContext(type="savingThrowDc", actor=hero, item=plate)
    assert check("armorType", ["heavy"], ctx)
    assert not check("armorType", ["light"], ctx)

def test_damage_types_from_item_or_bonus(hero, fireball, longsword):
    ctx = RollContext(type="damageRoll", actor=hero, item=fireball)
    assert check("damageTypes", ["fire", "cold"], ctx)
    ctx = RollContext(type="damageRoll", actor=hero, item=longsword)
    assert not check("damageTypes", ["fire", "cold"], ctx)
    flaming = create_bonus("damageRoll", {"damageType": "fire", "filters": {"damageTypes": ["fire"]}})
    assert check("damageTypes", ["fire"], ctx, bonus=flaming)

def test_equipped_and_attunement(attack, longsword):
    assert check("equipped", True, attack)
    assert not check("equipped", False, attack)
    assert not check("attunement", True, attack)
    longsword.attunement = ATTUNEMENT_ATTUNED
    assert check("attunement", True, attack)

def test_proficiency(hero, dagger, attack):
    assert not check("proficiency", True, attack)
    assert check("proficiency", False, attack)
    ctx = RollContext(type="attackRoll", actor=hero, item=dagger)
    assert check("proficiency", True, ctx)

# --- Spell filters ---

def test_spell_filters(hero, fireball):
    ctx = RollContext(type="damageRoll", actor=hero, item=fireball)
    assert check("spellLevel", {"min": 3}, ctx)
    assert not check("spellLevel", {"min": 1, "max": 2}, ctx)
    assert check("spellSchool", ["evo", "nec"], ctx)
    assert not check("spellSchool", ["abj"], ctx)
    assert check("spellComponents", ["v", "s"], ctx)
    fireball.spell.components.material = False
    assert not check("spellComponents", ["v", "m"], ctx)
    assert check("prepared", True, ctx)
    assert check("concentration", False, ctx)
    assert check("ritual", False, ctx)
    assert not check("ritual", True, ctx)

def test_spell_filters_need_a_spell(attack):
    assert not check("spellLevel", {"min": 0}, attack)
    assert not check("prepared", False, attack)

# --- Roll / actor filters ---

def test_abilities_and_skills(hero):
    ctx = RollContext(type="abilityCheck", actor=hero, ability="dex", skill="ste")
    assert check("abilities", ["dex", "str"], ctx)
    assert not check("abilities", ["wis"], ctx)
    assert check("skills", ["ste"], ctx)
    assert not check("skills", ["ath"], RollContext(type="abilityCheck", actor=hero, ability="str"))

def test_critical(hero, longsword):
    crit = RollContext(type="damageRoll", actor=hero, item=longsword, critical=True)
    normal = RollContext(type="damageRoll", actor=hero, item=longsword)
    assert check("critical", True, crit)
    assert not check("critical", True, normal)
    assert check("critical", False, normal)

def test_markers_on_actor_or_target(hero, goblin):
    ctx = RollContext(type="attackRoll", actor=hero, target=goblin)
    assert not check("markers", ["hunted"], ctx)
    set_markers(goblin, ["hunted"])
    assert check("markers", ["hunted"], ctx)
    set_markers(hero, ["raging"])
    assert check("markers", ["raging"], ctx)
    # every marker must be on the same document
    assert not check("markers", ["raging", "hunted"], ctx)

def test_conditions(hero, goblin):
    ctx = RollContext(type="attackRoll", actor=hero, target=goblin)
    assert check("conditions", ["poisoned", "stunned"], ctx)
    assert not check("conditions", ["stunned"], ctx)
    hero.effects.append(ActiveEffect(id="hero-stun", statuses={"stunned"}))
    assert check("conditions", ["stunned"], ctx)
    hero.effects[-1].disabled = True
    assert not check("conditions", ["stunned"], ctx)

def test_distance(hero, ally, goblin, scene):
    near = RollContext(type="attackRoll", actor=hero, target=ally, scene=scene)
    far = RollContext(type="attackRoll", actor=hero, target=goblin, scene=scene)
    assert check("distance", {"max": 10}, near)
    assert not check("distance", {"max": 10}, far)
    assert check("distance", {"min": 30}, far)
    assert not check("distance", {"max": 10}, RollContext(type="attackRoll", actor=hero, target=ally))
