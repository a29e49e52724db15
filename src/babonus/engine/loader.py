from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple
import json

import yaml
from pydantic import BaseModel, Field, model_validator

from .models import Actor, Document, Item, Region
from .scene import Scene
from .schema_models import BabonusAdapter, BabonusBase

def _load_file(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in [".yaml", ".yml"]:
        return yaml.safe_load(text) or {}
    return json.loads(text)

def _dump_file(path: Path, data: Any) -> None:
    if path.suffix.lower() in [".yaml", ".yml"]:
        path.write_text(yaml.safe_dump(data, sort_keys=False, allow_unicode=True), encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")

def _iter_files(root: Path, exts: Tuple[str, ...] = (".json", ".yaml", ".yml")) -> Iterable[Path]:
    if not root.exists():
        return []
    if root.is_file():
        return [root]
    return sorted(p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in exts)

class World(BaseModel):
    """Actors (with their items and effects) plus the active scene and its regions."""
    actors: List[Actor] = Field(default_factory=list)
    scene: Scene = Field(default_factory=Scene)

    @model_validator(mode="after")
    def _unique_ids(self):
        seen: Dict[str, str] = {}
        for doc in self.documents():
            if doc.id in seen:
                raise ValueError(f"Duplicate document id {doc.id} ({seen[doc.id]} and {doc.document_name})")
            seen[doc.id] = doc.document_name
        actor_ids = {a.id for a in self.actors}
        for t in self.scene.tokens:
            if t.actor_id not in actor_ids:
                raise ValueError(f"Token {t.id} references unknown actor {t.actor_id}")
        return self

    def documents(self) -> Iterator[Document]:
        for a in self.actors:
            yield a
            yield from a.items
            yield from a.effects
        yield from self.scene.regions

    def get_actor(self, actor_id: str) -> Optional[Actor]:
        for a in self.actors:
            if a.id == actor_id:
                return a
        return None

    def resolve(self, doc_id: str) -> Optional[Document]:
        for doc in self.documents():
            if doc.id == doc_id:
                return doc
        return None

    def owner_of(self, doc_id: str) -> Optional[Actor]:
        """The actor a document belongs to (itself for actors, None for regions)."""
        for a in self.actors:
            if a.id == doc_id:
                return a
            if any(i.id == doc_id for i in a.items) or any(e.id == doc_id for e in a.effects):
                return a
        return None

    def item_of(self, doc_id: str) -> Optional[Item]:
        doc = self.resolve(doc_id)
        return doc if isinstance(doc, Item) else None

    def region(self, region_id: str) -> Optional[Region]:
        for r in self.scene.regions:
            if r.id == region_id:
                return r
        return None

def load_world(path: Path) -> World:
    return World.model_validate(_load_file(Path(path)))

def save_world(world: World, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    _dump_file(path, world.model_dump(mode="json", by_alias=True))

def load_bonus_file(path: Path) -> Dict[str, BabonusBase]:
    """
    A bonus file holds either a `{id: bonus}` mapping or a list of bonuses.
    Unlike stored document data, invalid entries raise here.
    """
    data = _load_file(Path(path))
    entries: List[Dict[str, Any]]
    if isinstance(data, list):
        entries = list(data)
    elif isinstance(data, dict):
        entries = [{"id": bid, **body} if isinstance(body, dict) else body for bid, body in data.items()]
    else:
        raise ValueError(f"{path}: expected a mapping or a list of bonuses")
    out: Dict[str, BabonusBase] = {}
    for entry in entries:
        bonus = BabonusAdapter.validate_python(entry)
        if bonus.id in out:
            raise ValueError(f"Duplicate bonus id {bonus.id} in {path}")
        out[bonus.id] = bonus
    return out

def iter_content_files(root: Path) -> Iterable[Path]:
    return _iter_files(Path(root))
