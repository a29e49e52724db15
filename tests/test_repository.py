import json
import logging

from babonus.engine.api import create_bonus
from babonus.engine.models import BONUSES_KEY, FLAG_SCOPE, MARKERS_KEY
from babonus.engine.repository import (
    FlagBonusRepository, JsonFileBonusRepository, dump_collection, get_markers,
    parse_collection, set_markers,
)
from babonus.engine.schema_models import HitDieBonus

def test_parse_collection_injects_ids_and_skips_invalid(caplog):
    raw = {
        "good": {"type": "hitDie", "name": "Durable", "bonus": "2"},
        "bad": {"type": "hitDie", "name": ""},
        "weird": "not a bonus",
    }
    with caplog.at_level(logging.WARNING, logger="babonus"):
        out = parse_collection("hero", raw)
    assert list(out) == ["good"]
    assert isinstance(out["good"], HitDieBonus)
    assert out["good"].id == "good"
    assert "Skipping invalid bonus bad on hero" in caplog.text
    assert "Skipping bonus weird on hero" in caplog.text

def test_parse_collection_empty_or_wrong_shape():
    assert parse_collection("hero", None) == {}
    assert parse_collection("hero", ["a"]) == {}

def test_flag_repository_roundtrip(world, hero):
    repo = FlagBonusRepository(world.resolve)
    b = create_bonus("attackRoll", {"name": "Archery", "bonus": "2"})
    assert not repo.has_bonuses("hero")
    repo.put("hero", b)
    assert repo.has_bonuses("hero")
    stored = hero.get_flag(FLAG_SCOPE, BONUSES_KEY)
    assert stored[b.id]["name"] == "Archery"
    assert repo.get("hero", b.id).to_data() == b.to_data()
    assert repo.delete("hero", b.id)
    assert not repo.delete("hero", b.id)
    assert hero.get_flag(FLAG_SCOPE, BONUSES_KEY) is None

def test_flag_repository_unknown_owner(world):
    repo = FlagBonusRepository(world.resolve)
    assert repo.load("nobody") == {}

def test_json_repository(tmp_path):
    repo = JsonFileBonusRepository(tmp_path / "bonuses")
    assert repo.owners() == []
    b = create_bonus("savingThrow", {"name": "Resilient", "ability": ["con"]})
    repo.put("hero", b)
    fp = tmp_path / "bonuses" / "hero.json"
    assert json.loads(fp.read_text(encoding="utf-8"))[b.id]["ability"] == ["con"]
    assert repo.owners() == ["hero"]
    assert repo.get("hero", b.id).ability == {"con"}
    repo.delete("hero", b.id)
    assert not fp.exists()

def test_json_repository_unreadable_file(tmp_path):
    (tmp_path / "hero.json").write_text("{oops", encoding="utf-8")
    assert JsonFileBonusRepository(tmp_path).load("hero") == {}

def test_dump_collection_by_alias():
    b = create_bonus("attackRoll", {"name": "Aura", "aura": {"enabled": True, "self": True}})
    data = dump_collection([b])
    assert data[b.id]["aura"]["self"] is True

def test_markers(hero):
    assert get_markers(hero) == []
    assert set_markers(hero, ["a", " b ", "a", ""]) == ["a", "b"]
    assert hero.get_flag(FLAG_SCOPE, MARKERS_KEY) == ["a", "b"]
    assert set_markers(hero, []) == []
    assert hero.get_flag(FLAG_SCOPE, MARKERS_KEY) is None
