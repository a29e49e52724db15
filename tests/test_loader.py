import json
import pytest
import yaml
from pydantic import ValidationError

from babonus.engine.loader import World, iter_content_files, load_bonus_file, load_world, save_world
from babonus.engine.models import BONUSES_KEY, FLAG_SCOPE

WORLD_YAML = """
actors:
  - id: hero
    name: Hero
    level: 5
    items:
      - id: sword
        name: Sword
        type: weapon
        weaponType: martialM
        flags:
          babonus:
            bonuses:
              b1: {type: attackRoll, name: Keen, bonus: "1"}
scene:
  tokens:
    - {id: t1, actor_id: hero, x: 0, y: 0}
  regions:
    - id: pit
      points: [[0, 0], [100, 0], [100, 100]]
"""

def test_load_world_yaml(tmp_path):
    fp = tmp_path / "world.yaml"
    fp.write_text(WORLD_YAML, encoding="utf-8")
    world = load_world(fp)
    assert world.get_actor("hero").prof == 3
    assert world.item_of("sword").weaponType == "martialM"
    assert world.resolve("pit").document_name == "Region"
    assert world.owner_of("sword").id == "hero"
    assert world.owner_of("pit") is None
    assert world.region("pit").points[1] == (100, 0)
    assert world.item_of("hero") is None

def test_save_world_roundtrip(tmp_path, world, hero):
    hero.set_flag(FLAG_SCOPE, BONUSES_KEY, {"b1": {"type": "hitDie", "name": "Durable"}})
    for name in ("world.json", "world.yml"):
        fp = tmp_path / "out" / name
        save_world(world, fp)
        again = load_world(fp)
        assert [a.id for a in again.actors] == ["hero", "ally", "goblin"]
        assert again.get_actor("hero").get_flag(FLAG_SCOPE, BONUSES_KEY)["b1"]["name"] == "Durable"
        assert again.get_actor("hero").get_item("longsword").properties == {"mar", "ver"}
        assert again.get_actor("goblin").statuses == {"poisoned"}
        assert again.scene.regions[0].id == "shrine"

def test_duplicate_document_ids_rejected(hero):
    with pytest.raises(ValidationError, match="Duplicate document id hero"):
        World(actors=[hero, hero])

def test_token_must_reference_actor(scene, hero):
    with pytest.raises(ValidationError, match="references unknown actor ally"):
        World(actors=[hero], scene=scene)

def test_load_bonus_file_mapping_and_list(tmp_path):
    fp = tmp_path / "bonuses.yaml"
    fp.write_text(yaml.safe_dump({"a": {"type": "attackRoll", "name": "A"}, "b": {"type": "hitDie", "name": "B"}}),
                  encoding="utf-8")
    assert sorted(load_bonus_file(fp)) == ["a", "b"]
    fp = tmp_path / "bonuses.json"
    fp.write_text(json.dumps([{"id": "x", "type": "damageRoll", "name": "X", "damageType": "fire"}]), encoding="utf-8")
    assert load_bonus_file(fp)["x"].damageType == "fire"

def test_load_bonus_file_errors(tmp_path):
    fp = tmp_path / "dupes.json"
    fp.write_text(json.dumps([{"id": "x", "type": "hitDie", "name": "X"}, {"id": "x", "type": "hitDie", "name": "Y"}]),
                  encoding="utf-8")
    with pytest.raises(ValueError, match="Duplicate bonus id x"):
        load_bonus_file(fp)
    fp = tmp_path / "bad.json"
    fp.write_text(json.dumps([{"type": "hitDie", "name": ""}]), encoding="utf-8")
    with pytest.raises(ValidationError):
        load_bonus_file(fp)
    fp = tmp_path / "scalar.json"
    fp.write_text("3", encoding="utf-8")
    with pytest.raises(ValueError, match="expected a mapping or a list"):
        load_bonus_file(fp)

def test_iter_content_files(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "a.json").write_text("{}", encoding="utf-8")
    (tmp_path / "sub" / "b.yaml").write_text("{}", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("", encoding="utf-8")
    assert [p.name for p in iter_content_files(tmp_path)] == ["a.json", "b.yaml"]
    assert list(iter_content_files(tmp_path / "a.json")) == [tmp_path / "a.json"]
    assert list(iter_content_files(tmp_path / "missing")) == []
