import pytest
from pydantic import ValidationError

from babonus.engine.schema_models import (
    BONUS_TYPES, AbilityCheckBonus, AttackRollBonus, AuraSpec, BonusCollectionAdapter,
    ConsumptionSpec, DamageRollBonus, ModifiersSpec, RangeFilter, bonus_json_schemas,
    parse_bonus, sort_bonuses,
)

def test_parse_bonus_discriminates_on_type():
    b = parse_bonus({"type": "damageRoll", "name": "Flame Tongue", "bonus": "2d6", "damageType": "fire"})
    assert isinstance(b, DamageRollBonus)
    assert b.damageType == "fire"
    assert b.enabled and not b.optional
    assert len(b.id) == 16

def test_parse_bonus_rejects_unknown_type():
    with pytest.raises(ValidationError):
        parse_bonus({"type": "initiative", "name": "Alert"})

def test_blank_name_rejected():
    with pytest.raises(ValidationError, match="name must not be blank"):
        AttackRollBonus(name="   ")

def test_blank_formula_rejected():
    with pytest.raises(ValidationError, match="bonus formula must not be blank"):
        AttackRollBonus(name="Nothing", bonus=" ")

def test_formula_alias_accepted():
    b = parse_bonus({"type": "attackRoll", "name": "Bless", "formula": "1d4"})
    assert b.bonus == "1d4"
    assert b.formula == "1d4"

def test_ability_check_codes_validated():
    AbilityCheckBonus(name="Stealthy", ability={"dex"}, skill={"ste"})
    with pytest.raises(ValidationError):
        AbilityCheckBonus(name="Bad", ability={"luck"})

def test_validate_assignment():
    b = AttackRollBonus(name="Bless")
    with pytest.raises(ValidationError):
        b.name = ""

def test_type_is_fixed():
    b = AttackRollBonus(name="Bless")
    with pytest.raises(ValidationError):
        b.type = "damageRoll"

# --- Aura ---

def test_aura_self_alias_and_range_coercion():
    aura = AuraSpec.model_validate({"enabled": True, "range": 30, "self": True, "blockers": ["dead"]})
    assert aura.self_ is True
    assert aura.range == "30"
    assert aura.blockers == {"dead"}

def test_aura_dumps_self_by_alias():
    b = AttackRollBonus(name="Aura of Protection", aura={"enabled": True, "self": True})
    data = b.to_data()
    assert data["aura"]["self"] is True
    assert "self_" not in data["aura"]

def test_aura_disposition_values():
    with pytest.raises(ValidationError):
        AuraSpec(disposition=2)

# --- Consumption / modifiers ---

def test_consumption_requires_type_when_enabled():
    with pytest.raises(ValidationError, match="consumption.type is required"):
        ConsumptionSpec(enabled=True)

def test_consumption_requires_subtype_for_pools():
    with pytest.raises(ValidationError, match="subtype is required for type 'resources'"):
        ConsumptionSpec(enabled=True, type="resources")
    ConsumptionSpec(enabled=True, type="uses")
    ConsumptionSpec(enabled=True, type="resources", subtype="primary")

def test_consumption_step_positive():
    with pytest.raises(ValidationError):
        ConsumptionSpec.model_validate({"value": {"step": 0}})

def test_modifier_priority_value():
    assert ModifiersSpec().priority_value() == 1
    assert ModifiersSpec(priority="critical").priority_value() == 3
    assert ModifiersSpec(priority="low").priority_value() == 0

# --- Range filter ---

def test_range_filter():
    r = RangeFilter(min=1, max=3)
    assert r.contains(1) and r.contains(3)
    assert not r.contains(4)
    assert RangeFilter(max=5).contains(-10)
    assert RangeFilter().is_empty()
    with pytest.raises(ValidationError, match="greater than max"):
        RangeFilter(min=5, max=1)

# --- Collections ---

def test_collection_adapter_and_sorting():
    coll = BonusCollectionAdapter.validate_python({
        "b": {"id": "b", "type": "attackRoll", "name": "Zeal", "sort": 1},
        "a": {"id": "a", "type": "hitDie", "name": "Toughness", "sort": 1},
        "c": {"id": "c", "type": "attackRoll", "name": "Archery", "sort": 0},
    })
    ordered = sort_bonuses(list(coll.values()))
    assert [b.id for b in ordered] == ["c", "a", "b"]

def test_bonus_json_schemas_cover_every_type():
    schemas = bonus_json_schemas()
    assert len(schemas) == len(BONUS_TYPES)
    assert "AttackRollBonus.schema.json" in schemas
    assert "self" in schemas["AttackRollBonus.schema.json"]["$defs"]["AuraSpec"]["properties"]
