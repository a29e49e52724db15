import pytest

from babonus.engine.context import RollContext
from babonus.engine.models import ActiveEffect

@pytest.fixture
def attack(hero, longsword, scene):
    return RollContext(type="attackRoll", actor=hero, item=longsword, scene=scene)

def add(engine, doc, bonus_type="attackRoll", **data):
    return engine.api.create_bonus(doc, bonus_type, data, embed=True)

def collected(engine, ctx, bonus_type="attackRoll"):
    return [(o.bonus.name, o.source) for o in engine.collector.collect(bonus_type, ctx)]

def test_own_documents(engine, hero, longsword, attack):
    add(engine, hero, name="Fighting Style")
    add(engine, longsword, name="+1 Weapon", sort=-1)
    add(engine, hero.effects[0], name="Bless")
    assert collected(engine, attack) == [
        ("Fighting Style", "actor"), ("+1 Weapon", "item"), ("Bless", "effect"),
    ]

def test_item_bonuses_count_for_other_items(engine, hero, dagger, longsword, scene):
    # bonuses on any owned item are candidates; filters decide relevance
    add(engine, longsword, name="Sword Only", filters={"itemType": ["spell"]})
    add(engine, longsword, name="Any Weapon")
    ctx = RollContext(type="attackRoll", actor=hero, item=dagger, scene=scene)
    assert collected(engine, ctx) == [("Any Weapon", "item")]

def test_type_and_enabled(engine, hero, attack):
    add(engine, hero, name="Damage", bonus_type="damageRoll")
    add(engine, hero, name="Off", enabled=False)
    add(engine, hero, name="On")
    assert collected(engine, attack) == [("On", "actor")]

def test_region_under_token(engine, world, attack, ally, scene):
    shrine = world.region("shrine")
    add(engine, shrine, name="Holy Ground", bonus="@prof")
    owned = engine.collector.collect("attackRoll", attack)
    assert [(o.bonus.name, o.source, o.actor) for o in owned] == [("Holy Ground", "region", None)]
    # the ally's token is outside the shrine
    ctx = RollContext(type="attackRoll", actor=ally, scene=scene)
    assert collected(engine, ctx) == []

def test_auras_from_other_tokens(engine, ally, goblin, attack):
    add(engine, ally, name="Ally Aura", aura={"enabled": True, "range": 30})
    add(engine, goblin, name="Goblin Aura", aura={"enabled": True, "range": 30})
    add(engine, ally, name="Ally Personal")
    owned = engine.collector.collect("attackRoll", attack)
    assert [(o.bonus.name, o.source, o.actor.id) for o in owned] == [("Ally Aura", "aura", "ally")]

def test_aura_filters_use_roller_context(engine, ally, attack):
    add(engine, ally, name="Martial Aura", aura={"enabled": True, "range": 30},
        filters={"weaponType": ["martialM"]})
    add(engine, ally, name="Ranged Aura", aura={"enabled": True, "range": 30},
        filters={"weaponType": ["martialR"]})
    assert collected(engine, attack) == [("Martial Aura", "aura")]

def test_own_aura_needs_self(engine, hero, attack):
    add(engine, hero, name="Hidden", aura={"enabled": True, "range": 0, "self": False})
    add(engine, hero, name="Shared", aura={"enabled": True, "range": 0, "self": True})
    assert collected(engine, attack) == [("Shared", "actor")]

def test_aura_blocked_by_roller_status(engine, hero, ally, attack):
    add(engine, ally, name="Aura", aura={"enabled": True, "range": 30, "blockers": ["dead"]})
    hero.effects.append(ActiveEffect(id="dead-fx", statuses={"dead"}))
    assert collected(engine, attack) == []

def test_without_scene_only_own_documents(engine, hero, ally, longsword):
    add(engine, ally, name="Aura", aura={"enabled": True, "range": 30})
    add(engine, hero, name="Own")
    ctx = RollContext(type="attackRoll", actor=hero, item=longsword)
    assert collected(engine, ctx) == [("Own", "actor")]

def test_no_actor(engine):
    assert engine.collector.collect("attackRoll", RollContext(type="attackRoll")) == []

def test_owned_bonus_uuid_and_roll_data(engine, hero, longsword, attack):
    b = add(engine, longsword, name="Sword")
    owned = engine.collector.collect("attackRoll", attack)[0]
    assert owned.uuid == f"longsword.{b.id}"
    assert owned.item is longsword
    data = owned.roll_data()
    assert data["prof"] == 3
    assert data["item"]["name"] == "Longsword"
