from __future__ import annotations
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
import logging

from .collector import OwnedBonus, embedded_documents
from .errors import UnknownBonusTypeError
from .models import Actor, Document
from .proficiency import (
    has_armor_proficiency, has_tool_proficiency, has_weapon_proficiency,
    proficiency_tree, speaks_language,
)
from .repository import BonusRepository, get_markers, set_markers
from .schema_models import MODELS_BY_TYPE, BabonusBase, new_bonus_id, sort_bonuses

logger = logging.getLogger(__name__)

DEFAULT_NAME = "New Bonus"

def create_bonus(bonus_type: str, data: Optional[Dict[str, Any]] = None) -> BabonusBase:
    model = MODELS_BY_TYPE.get(bonus_type)
    if model is None:
        raise UnknownBonusTypeError(bonus_type)
    payload = {"name": DEFAULT_NAME, **(data or {})}
    payload["id"] = payload.get("id") or new_bonus_id()
    payload["type"] = bonus_type
    return model.model_validate(payload)

def duplicate_bonus(bonus: BabonusBase) -> BabonusBase:
    data = bonus.to_data()
    data["id"] = new_bonus_id()
    data["name"] = f"{bonus.name} (Copy)"
    return type(bonus).model_validate(data)

def split_uuid(uuid: str) -> Tuple[str, Optional[str]]:
    """`<document id>.<bonus id>` -> (document id, bonus id)."""
    doc_id, sep, bonus_id = uuid.rpartition(".")
    if not sep:
        return uuid, None
    return doc_id, bonus_id or None

class BonusApi:
    """Document-level helpers over a repository and a document resolver."""

    def __init__(self, repository: BonusRepository, resolve: Callable[[str], Optional[Document]],
                 owner_of: Optional[Callable[[str], Optional[Actor]]] = None,
                 notify: Optional[Callable[[str], None]] = None):
        self.repository = repository
        self.resolve = resolve
        self.owner_of = owner_of or (lambda _id: None)
        self.notify = notify or (lambda msg: logger.info(msg))

    # -------- create / embed --------
    def create_bonus(self, document: Document, bonus_type: str, data: Optional[Dict[str, Any]] = None,
                     embed: bool = False) -> BabonusBase:
        bonus = create_bonus(bonus_type, data)
        if embed:
            self.embed_bonus(document, bonus)
        return bonus

    def embed_bonus(self, document: Document, bonus: BabonusBase) -> BabonusBase:
        self.repository.put(document.id, bonus)
        return bonus

    def duplicate_bonus(self, document: Document, bonus_id: str, embed: bool = True) -> Optional[BabonusBase]:
        original = self.repository.get(document.id, bonus_id)
        if original is None:
            return None
        copy = duplicate_bonus(original)
        if embed:
            self.embed_bonus(document, copy)
        return copy

    def remove_bonus(self, document: Document, bonus_id: str) -> bool:
        return self.repository.delete(document.id, bonus_id)

    def update_bonus(self, document: Document, bonus_id: str, changes: Dict[str, Any]) -> BabonusBase:
        """Validated field update; changing `type` is rejected."""
        current = self.repository.get(document.id, bonus_id)
        if current is None:
            raise KeyError(f"No bonus {bonus_id} on {document.id}")
        data = {**current.to_data(), **changes}
        if data.get("type") != current.type:
            raise ValueError(f"Bonus type cannot change ({current.type} -> {data.get('type')})")
        updated = type(current).model_validate(data)
        self.repository.put(document.id, updated)
        return updated

    # -------- lookup --------
    def get_collection(self, document: Document) -> List[BabonusBase]:
        return sort_bonuses(list(self.repository.load(document.id).values()))

    def find_embedded_documents_with_bonuses(self, actor: Actor) -> List[Document]:
        return [d for d in embedded_documents(actor) if self.repository.has_bonuses(d.id)]

    def from_uuid(self, uuid: str, bonus_id: Optional[str] = None) -> Optional[OwnedBonus]:
        doc_id, embedded = split_uuid(uuid) if bonus_id is None else (uuid, bonus_id)
        if embedded is None:
            return None
        doc = self.resolve(doc_id)
        if doc is None:
            return None
        bonus = self.repository.get(doc.id, embedded)
        if bonus is None:
            return None
        actor = doc if isinstance(doc, Actor) else self.owner_of(doc.id)
        return OwnedBonus(bonus, doc, actor)

    def all_bonuses(self, documents: Iterable[Document]) -> List[OwnedBonus]:
        out: List[OwnedBonus] = []
        for doc in documents:
            actor = doc if isinstance(doc, Actor) else self.owner_of(doc.id)
            for b in self.get_collection(doc):
                out.append(OwnedBonus(b, doc, actor))
        return out

    # -------- toggles / markers --------
    def toggle(self, uuid: str, bonus_id: Optional[str] = None, enabled: Optional[bool] = None) -> Optional[bool]:
        owned = self.from_uuid(uuid, bonus_id)
        if owned is None:
            return None
        new_state = (not owned.bonus.enabled) if enabled is None else bool(enabled)
        owned.bonus.enabled = new_state
        self.repository.put(owned.parent.id, owned.bonus)
        return new_state

    def hotbar_toggle(self, uuid: str, bonus_id: Optional[str] = None) -> bool:
        state = self.toggle(uuid, bonus_id)
        if state is None:
            return False
        owned = self.from_uuid(uuid, bonus_id)
        name = owned.bonus.name if owned is not None else uuid
        self.notify(f"{name}: {'Enabled' if state else 'Disabled'}")
        return True

    def apply_markers(self, document: Document, markers: Iterable[str]) -> List[str]:
        return set_markers(document, markers)

    def get_markers(self, document: Document) -> List[str]:
        return get_markers(document)

    # proficiency helpers, as the host API exposes them
    has_weapon_proficiency = staticmethod(has_weapon_proficiency)
    has_armor_proficiency = staticmethod(has_armor_proficiency)
    has_tool_proficiency = staticmethod(has_tool_proficiency)
    proficiency_tree = staticmethod(proficiency_tree)
    speaks_language = staticmethod(speaks_language)
