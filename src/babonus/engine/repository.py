from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional
import json
import logging

from pydantic import ValidationError

from .models import BONUSES_KEY, FLAG_SCOPE, MARKERS_KEY, Document
from .schema_models import BabonusBase, parse_bonus

logger = logging.getLogger(__name__)

BonusMap = Dict[str, BabonusBase]

def parse_collection(owner_id: str, raw: Optional[Dict[str, Any]]) -> BonusMap:
    """Validate a stored `{id: data}` blob; entries that do not validate are skipped."""
    out: BonusMap = {}
    if not raw:
        return out
    if not isinstance(raw, dict):
        logger.warning("Bonus data on %s is not a mapping; ignoring it", owner_id)
        return out
    for bid, data in raw.items():
        if not isinstance(data, dict):
            logger.warning("Skipping bonus %s on %s: not an object", bid, owner_id)
            continue
        try:
            bonus = parse_bonus({"id": bid, **data})
        except ValidationError as e:
            logger.warning("Skipping invalid bonus %s on %s: %s", bid, owner_id, e.errors()[0].get("msg", e))
            continue
        out[bonus.id] = bonus
    return out

def dump_collection(bonuses: Iterable[BabonusBase]) -> Dict[str, Dict[str, Any]]:
    return {b.id: b.to_data() for b in bonuses}

class BonusRepository(ABC):
    """Per-owner storage of bonus collections."""

    @abstractmethod
    def load(self, owner_id: str) -> BonusMap: ...

    @abstractmethod
    def save(self, owner_id: str, bonuses: BonusMap) -> None: ...

    def has_bonuses(self, owner_id: str) -> bool:
        return bool(self.load(owner_id))

    def get(self, owner_id: str, bonus_id: str) -> Optional[BabonusBase]:
        return self.load(owner_id).get(bonus_id)

    def put(self, owner_id: str, bonus: BabonusBase) -> None:
        bonuses = self.load(owner_id)
        bonuses[bonus.id] = bonus
        self.save(owner_id, bonuses)

    def delete(self, owner_id: str, bonus_id: str) -> bool:
        bonuses = self.load(owner_id)
        if bonus_id not in bonuses:
            return False
        del bonuses[bonus_id]
        self.save(owner_id, bonuses)
        return True

class FlagBonusRepository(BonusRepository):
    """Stores bonuses in the owning document's flags (babonus.bonuses)."""

    def __init__(self, resolve: Callable[[str], Optional[Document]]):
        self.resolve = resolve

    def _doc(self, owner_id: str) -> Document:
        doc = self.resolve(owner_id)
        if doc is None:
            raise KeyError(f"Unknown document: {owner_id}")
        return doc

    def load(self, owner_id: str) -> BonusMap:
        doc = self.resolve(owner_id)
        if doc is None:
            return {}
        return parse_collection(owner_id, doc.get_flag(FLAG_SCOPE, BONUSES_KEY))

    def save(self, owner_id: str, bonuses: BonusMap) -> None:
        doc = self._doc(owner_id)
        if bonuses:
            doc.set_flag(FLAG_SCOPE, BONUSES_KEY, dump_collection(bonuses.values()))
        else:
            doc.unset_flag(FLAG_SCOPE, BONUSES_KEY)

class JsonFileBonusRepository(BonusRepository):
    """One `<owner_id>.json` file per owner under `root`."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, owner_id: str) -> Path:
        return self.root / f"{owner_id}.json"

    def load(self, owner_id: str) -> BonusMap:
        fp = self._path(owner_id)
        if not fp.exists():
            return {}
        try:
            raw = json.loads(fp.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("Unreadable bonus file %s: %s", fp, e)
            return {}
        return parse_collection(owner_id, raw)

    def save(self, owner_id: str, bonuses: BonusMap) -> None:
        fp = self._path(owner_id)
        if not bonuses:
            if fp.exists():
                fp.unlink()
            return
        self.root.mkdir(parents=True, exist_ok=True)
        fp.write_text(json.dumps(dump_collection(bonuses.values()), indent=2), encoding="utf-8")

    def owners(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(p.stem for p in self.root.glob("*.json"))

# -----------------------------
# Markers
# -----------------------------

def get_markers(doc: Document) -> List[str]:
    return list(doc.get_flag(FLAG_SCOPE, MARKERS_KEY, []) or [])

def set_markers(doc: Document, markers: Iterable[str]) -> List[str]:
    # keep first occurrence order, drop blanks and duplicates
    seen: List[str] = []
    for m in markers:
        m = str(m).strip()
        if m and m not in seen:
            seen.append(m)
    if seen:
        doc.set_flag(FLAG_SCOPE, MARKERS_KEY, seen)
    else:
        doc.unset_flag(FLAG_SCOPE, MARKERS_KEY)
    return seen
