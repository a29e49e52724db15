from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Set, Union
from uuid import uuid4
from typing_extensions import Annotated
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, TypeAdapter, model_validator

# Enums
BonusType = Literal["attackRoll", "damageRoll", "savingThrowDc", "savingThrow", "abilityCheck", "hitDie"]
BONUS_TYPES: tuple[str, ...] = ("attackRoll", "damageRoll", "savingThrowDc", "savingThrow", "abilityCheck", "hitDie")

DamageType = Literal[
    "acid", "bludgeoning", "cold", "fire", "force",
    "lightning", "necrotic", "piercing", "poison",
    "psychic", "radiant", "slashing", "thunder",
    "healing"
]
AbilityCode = Literal["str", "dex", "con", "int", "wis", "cha"]
SkillCode = Literal[
    "acr", "ani", "arc", "ath", "dec", "his",
    "ins", "itm", "inv", "med", "nat", "prc",
    "prf", "per", "rel", "slt", "ste", "sur"
]
ConsumptionType = Literal["attributes", "currency", "resources", "uses", "charges", "slots", "hitDice"]
ModifierTarget = Literal["actor", "item", "roll", "target"]
ModifierMode = Literal["add", "multiply", "override", "upgrade", "downgrade"]
ModifierPriority = Literal["low", "normal", "high", "critical"]

PRIORITY_VALUES: Dict[str, int] = {"low": 0, "normal": 1, "high": 2, "critical": 3}

DEFAULT_IMG = "icons/svg/upgrade.svg"

def new_bonus_id() -> str:
    return uuid4().hex[:16]

# -----------------------------
# Filter value shapes
# -----------------------------

class RangeFilter(BaseModel):
    """Inclusive numeric range; a missing bound is open."""
    min: Optional[float] = None
    max: Optional[float] = None

    @model_validator(mode="after")
    def _validate(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"range min {self.min} is greater than max {self.max}")
        return self

    def is_empty(self) -> bool:
        return self.min is None and self.max is None

    def contains(self, value: float) -> bool:
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

# -----------------------------
# Aura / consumption / modifiers
# -----------------------------

class AuraRequire(BaseModel):
    move: bool = False
    sight: bool = False

class AuraSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    template: bool = False
    range: str = "30"
    self_: bool = Field(False, alias="self")
    disposition: Literal[-1, 0, 1] = 0
    blockers: Set[str] = Field(default_factory=set)
    require: AuraRequire = Field(default_factory=AuraRequire)

    @model_validator(mode="before")
    @classmethod
    def _coerce_range(cls, data: Any):
        # authors write `range: 30` as often as `range: "30"`
        if isinstance(data, dict) and isinstance(data.get("range"), (int, float)):
            data = {**data, "range": str(int(data["range"]))}
        return data

class ConsumptionValue(BaseModel):
    min: str = "1"
    max: str = "1"
    step: int = Field(1, ge=1)

class ConsumptionSpec(BaseModel):
    enabled: bool = False
    scales: bool = False
    type: Optional[ConsumptionType] = None
    subtype: Optional[str] = None
    value: ConsumptionValue = Field(default_factory=ConsumptionValue)
    formula: str = "@consumption"

    @model_validator(mode="after")
    def _validate(self):
        errs: list[str] = []
        if self.enabled and self.type is None:
            errs.append("consumption.type is required when consumption is enabled")
        if self.enabled and self.type not in (None, "uses", "charges") and not self.subtype:
            errs.append(f"consumption.subtype is required for type '{self.type}'")
        if errs:
            raise ValueError("; ".join(errs))
        return self

class ModifiersSpec(BaseModel):
    enabled: bool = False
    formula: str = ""
    target: Optional[ModifierTarget] = None
    mode: Optional[ModifierMode] = None
    priority: Optional[ModifierPriority] = None

    def priority_value(self) -> int:
        return PRIORITY_VALUES.get(self.priority or "normal", 1)

# -----------------------------
# Bonus definitions
# -----------------------------

class BabonusBase(BaseModel):
    model_config = ConfigDict(validate_assignment=True, populate_by_name=True)

    id: str = Field(default_factory=new_bonus_id)
    name: str
    img: str = DEFAULT_IMG
    description: str = ""
    bonus: str = Field("1", validation_alias=AliasChoices("bonus", "formula"))
    enabled: bool = True
    optional: bool = False
    consumption: ConsumptionSpec = Field(default_factory=ConsumptionSpec)
    aura: AuraSpec = Field(default_factory=AuraSpec)
    modifiers: ModifiersSpec = Field(default_factory=ModifiersSpec)
    filters: Dict[str, Any] = Field(default_factory=dict)
    sort: int = 0

    @model_validator(mode="after")
    def _validate(self):
        errs: list[str] = []
        if not self.name or not self.name.strip():
            errs.append("name must not be blank")
        if not str(self.bonus).strip():
            errs.append("bonus formula must not be blank")
        if errs:
            raise ValueError("; ".join(errs))
        return self

    @property
    def formula(self) -> str:
        return self.bonus

    @property
    def is_aura(self) -> bool:
        return self.aura.enabled

    def to_data(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

class AttackRollBonus(BabonusBase):
    type: Literal["attackRoll"] = "attackRoll"

class DamageRollBonus(BabonusBase):
    type: Literal["damageRoll"] = "damageRoll"
    damageType: Optional[DamageType] = None
    critical: bool = False

class SavingThrowDcBonus(BabonusBase):
    type: Literal["savingThrowDc"] = "savingThrowDc"

class SavingThrowBonus(BabonusBase):
    type: Literal["savingThrow"] = "savingThrow"
    ability: Set[str] = Field(default_factory=set)

class AbilityCheckBonus(BabonusBase):
    type: Literal["abilityCheck"] = "abilityCheck"
    ability: Set[AbilityCode] = Field(default_factory=set)
    skill: Set[SkillCode] = Field(default_factory=set)

class HitDieBonus(BabonusBase):
    type: Literal["hitDie"] = "hitDie"

Babonus = Annotated[
    Union[AttackRollBonus, DamageRollBonus, SavingThrowDcBonus, SavingThrowBonus, AbilityCheckBonus, HitDieBonus],
    Field(discriminator="type"),
]
BabonusAdapter = TypeAdapter(Babonus)
BonusCollectionAdapter = TypeAdapter(Dict[str, Babonus])

MODELS_BY_TYPE: Dict[str, type[BabonusBase]] = {
    "attackRoll": AttackRollBonus,
    "damageRoll": DamageRollBonus,
    "savingThrowDc": SavingThrowDcBonus,
    "savingThrow": SavingThrowBonus,
    "abilityCheck": AbilityCheckBonus,
    "hitDie": HitDieBonus,
}

def parse_bonus(data: Dict[str, Any]) -> BabonusBase:
    return BabonusAdapter.validate_python(data)

def bonus_json_schemas() -> Dict[str, dict]:
    out: Dict[str, dict] = {}
    for btype, model in MODELS_BY_TYPE.items():
        out[f"{model.__name__}.schema.json"] = model.model_json_schema(by_alias=True)
    return out

def sort_bonuses(bonuses: List[BabonusBase]) -> List[BabonusBase]:
    return sorted(bonuses, key=lambda b: (b.sort, b.name))
