from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Set, Tuple
from pydantic import BaseModel, Field, computed_field

ItemType = Literal[
    "weapon", "equipment", "consumable", "tool",
    "loot", "background", "class", "subclass",
    "spell", "feat", "backpack"
]
WeaponType = Literal["simpleM", "simpleR", "martialM", "martialR", "natural", "improvised"]
ArmorType = Literal["light", "medium", "heavy", "natural", "shield"]

ABILITY_CODES = ("str", "dex", "con", "int", "wis", "cha")

# Flag namespace and keys owned by this package
FLAG_SCOPE = "babonus"
BONUSES_KEY = "bonuses"
MARKERS_KEY = "markers"

# Attunement states
ATTUNEMENT_NONE = 0
ATTUNEMENT_REQUIRED = 1
ATTUNEMENT_ATTUNED = 2

# -----------------------------
# Documents and flag storage
# -----------------------------

class Document(BaseModel):
    id: str
    name: str = ""
    flags: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    document_name: str = "Document"

    def get_flag(self, namespace: str, key: str, default: Any = None) -> Any:
        return self.flags.get(namespace, {}).get(key, default)

    def set_flag(self, namespace: str, key: str, value: Any) -> None:
        self.flags.setdefault(namespace, {})[key] = value

    def unset_flag(self, namespace: str, key: str) -> None:
        ns = self.flags.get(namespace)
        if ns is not None:
            ns.pop(key, None)

class Pool(BaseModel):
    value: int = 0
    max: Optional[int] = None

# -----------------------------
# Items
# -----------------------------

class ArmorRecord(BaseModel):
    type: ArmorType = "light"
    value: int = 10

class SpellComponents(BaseModel):
    vocal: bool = False
    somatic: bool = False
    material: bool = False
    concentration: bool = False
    ritual: bool = False

class SpellPreparation(BaseModel):
    mode: str = "prepared"
    prepared: bool = False

class SpellRecord(BaseModel):
    level: int = 0
    school: Optional[str] = None
    components: SpellComponents = Field(default_factory=SpellComponents)
    preparation: SpellPreparation = Field(default_factory=SpellPreparation)

class ConsumeRecord(BaseModel):
    type: Optional[str] = None
    target: Optional[str] = None

class Item(Document):
    document_name: str = "Item"
    type: ItemType = "loot"
    weaponType: Optional[WeaponType] = None
    properties: Set[str] = Field(default_factory=set)
    armor: Optional[ArmorRecord] = None
    toolType: Optional[str] = None
    spell: Optional[SpellRecord] = None
    damage_parts: List[Tuple[str, str]] = Field(default_factory=list)  # (formula, damage type)
    equipped: bool = False
    attunement: int = ATTUNEMENT_NONE
    uses: Optional[Pool] = None
    consume: Optional[ConsumeRecord] = None

    @property
    def damage_types(self) -> Set[str]:
        return {dtype for _, dtype in self.damage_parts if dtype}

    def roll_data(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude={"flags"})
        if self.spell is not None:
            data["level"] = self.spell.level
        return data

# -----------------------------
# Actors
# -----------------------------

class ActiveEffect(Document):
    document_name: str = "ActiveEffect"
    statuses: Set[str] = Field(default_factory=set)
    disabled: bool = False

class TraitSet(BaseModel):
    value: Set[str] = Field(default_factory=set)
    custom: str = ""

    def custom_entries(self) -> List[str]:
        return [c.strip().lower() for c in self.custom.split(";") if c.strip()]

class Traits(BaseModel):
    weaponProf: TraitSet = Field(default_factory=TraitSet)
    armorProf: TraitSet = Field(default_factory=TraitSet)
    toolProf: TraitSet = Field(default_factory=TraitSet)
    languages: TraitSet = Field(default_factory=TraitSet)

class ClassLevels(BaseModel):
    name: str = ""
    levels: int = 1
    hitDiceUsed: int = 0
    hitDie: str = "d8"

class Actor(Document):
    document_name: str = "Actor"
    type: Literal["character", "npc"] = "character"
    abilities: Dict[str, int] = Field(default_factory=lambda: {ab: 10 for ab in ABILITY_CODES})
    level: int = 1
    traits: Traits = Field(default_factory=Traits)
    attributes: Dict[str, Pool] = Field(default_factory=dict)
    resources: Dict[str, Pool] = Field(default_factory=dict)
    currency: Dict[str, int] = Field(default_factory=dict)
    classes: Dict[str, ClassLevels] = Field(default_factory=dict)
    spells: Dict[str, Pool] = Field(default_factory=dict)  # "spell1".."spell9"
    items: List[Item] = Field(default_factory=list)
    effects: List[ActiveEffect] = Field(default_factory=list)

    @computed_field
    @property
    def prof(self) -> int:
        return 2 + (max(1, self.level) - 1) // 4

    def ability_mod(self, code: str) -> int:
        return (int(self.abilities.get(code, 10)) - 10) // 2

    @property
    def statuses(self) -> Set[str]:
        out: Set[str] = set()
        for eff in self.effects:
            if not eff.disabled:
                out |= eff.statuses
        return out

    def get_item(self, item_id: str) -> Optional[Item]:
        for it in self.items:
            if it.id == item_id:
                return it
        return None

    def get_roll_data(self) -> Dict[str, Any]:
        abilities = {
            code: {"value": int(self.abilities.get(code, 10)), "mod": self.ability_mod(code)}
            for code in ABILITY_CODES
        }
        return {
            "abilities": abilities,
            "prof": self.prof,
            "level": self.level,
            "attributes": {k: p.model_dump() for k, p in self.attributes.items()},
            "resources": {k: p.model_dump() for k, p in self.resources.items()},
            "currency": dict(self.currency),
            "classes": {k: c.model_dump() for k, c in self.classes.items()},
            "spells": {k: p.model_dump() for k, p in self.spells.items()},
        }

class Region(Document):
    document_name: str = "Region"
    points: List[Tuple[float, float]] = Field(default_factory=list)  # polygon, scene pixels
