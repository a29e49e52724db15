import random
import pytest

from babonus.engine.engine import BonusEngine
from babonus.engine.loader import World
from babonus.engine.models import (
    ActiveEffect, Actor, ArmorRecord, ClassLevels, ConsumeRecord, Item, Pool,
    Region, SpellComponents, SpellPreparation, SpellRecord, TraitSet, Traits,
)
from babonus.engine.scene import FRIENDLY, HOSTILE, Scene, Token
from babonus.engine.settings import Settings

class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

@pytest.fixture(autouse=True)
def babonus_home(tmp_path, monkeypatch):
    home = tmp_path / "babonus-home"
    monkeypatch.setenv("BABONUS_HOME", str(home))
    return home

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def rng():
    return random.Random(1234)

# --- Documents ---

@pytest.fixture
def longsword():
    return Item(id="longsword", name="Longsword", type="weapon", weaponType="martialM",
                properties={"mar", "ver"}, damage_parts=[("1d8 + @abilities.str.mod", "slashing")],
                equipped=True)

@pytest.fixture
def dagger():
    return Item(id="dagger", name="Dagger", type="weapon", weaponType="simpleM",
                properties={"fin", "lgt", "thr"}, damage_parts=[("1d4", "piercing")])

@pytest.fixture
def fireball():
    return Item(
        id="fireball", name="Fireball", type="spell",
        spell=SpellRecord(level=3, school="evo",
                          components=SpellComponents(vocal=True, somatic=True, material=True),
                          preparation=SpellPreparation(prepared=True)),
        damage_parts=[("8d6", "fire")],
    )

@pytest.fixture
def hero(longsword, dagger, fireball):
    return Actor(
        id="hero", name="Hero", level=5,
        abilities={"str": 16, "dex": 12, "con": 14, "int": 10, "wis": 8, "cha": 10},
        traits=Traits(weaponProf=TraitSet(value={"sim"}), armorProf=TraitSet(value={"light"}),
                      languages=TraitSet(value={"common"}, custom="Deep Speech; Gnomish")),
        attributes={"hp": Pool(value=40, max=44)},
        resources={"primary": Pool(value=2, max=3)},
        currency={"gp": 10},
        classes={"fighter": ClassLevels(name="Fighter", levels=5, hitDiceUsed=0, hitDie="d10")},
        spells={"spell3": Pool(value=1, max=2)},
        items=[
            longsword, dagger, fireball,
            Item(id="wand", name="Wand of Sparks", type="equipment", uses=Pool(value=5, max=7)),
            Item(id="spark", name="Spark", type="feat", consume=ConsumeRecord(type="charges", target="wand")),
            Item(id="plate", name="Plate Armor", type="equipment", armor=ArmorRecord(type="heavy", value=18)),
        ],
        effects=[ActiveEffect(id="hero-fx", name="Blessing")],
    )

@pytest.fixture
def ally():
    return Actor(id="ally", name="Ally", level=3)

@pytest.fixture
def goblin():
    return Actor(id="goblin", name="Goblin", type="npc", level=1,
                 effects=[ActiveEffect(id="goblin-fx", name="Poison", statuses={"poisoned"})])

@pytest.fixture
def scene():
    # hero and ally two squares apart (10 ft), goblin ten squares away (50 ft)
    return Scene(
        tokens=[
            Token(id="t-hero", actor_id="hero", x=0, y=0, disposition=FRIENDLY),
            Token(id="t-ally", actor_id="ally", x=200, y=0, disposition=FRIENDLY),
            Token(id="t-goblin", actor_id="goblin", x=1000, y=0, disposition=HOSTILE),
        ],
        regions=[Region(id="shrine", name="Shrine", points=[(0, 0), (100, 0), (100, 100), (0, 100)])],
    )

@pytest.fixture
def world(hero, ally, goblin, scene):
    return World(actors=[hero, ally, goblin], scene=scene)

@pytest.fixture
def make_engine(world, clock, rng):
    def _make(**kwargs):
        kwargs.setdefault("settings", Settings())
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("rng", rng)
        return BonusEngine(world=world, **kwargs)
    return _make

@pytest.fixture
def engine(make_engine):
    eng = make_engine()
    yield eng
    eng.shutdown()
