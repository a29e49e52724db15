from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional
import logging

from .applicability import applies
from .aura_runtime import aura_applies
from .context import RollContext
from .models import Actor, Document, Item, Region
from .repository import BonusRepository
from .schema_models import BabonusBase, sort_bonuses

logger = logging.getLogger(__name__)

BonusSource = Literal["actor", "item", "effect", "region", "aura"]

@dataclass
class OwnedBonus:
    bonus: BabonusBase
    parent: Document
    actor: Optional[Actor] = None  # owning actor; None for region bonuses
    source: BonusSource = "actor"

    @property
    def item(self) -> Optional[Item]:
        return self.parent if isinstance(self.parent, Item) else None

    @property
    def uuid(self) -> str:
        return f"{self.parent.id}.{self.bonus.id}"

    def roll_data(self, roller: Optional[Actor] = None) -> Dict[str, Any]:
        """Formula data: the owning actor's (the roller's for regions) plus `item`."""
        actor = self.actor or roller
        data: Dict[str, Any] = actor.get_roll_data() if actor is not None else {}
        if self.item is not None:
            data["item"] = self.item.roll_data()
        return data

def _source_for(doc: Document) -> BonusSource:
    if isinstance(doc, Item):
        return "item"
    if isinstance(doc, Region):
        return "region"
    if isinstance(doc, Actor):
        return "actor"
    return "effect"

def embedded_documents(actor: Actor) -> List[Document]:
    return [actor, *actor.items, *actor.effects]

class BonusCollector:
    """
    Gathers the bonuses that apply to a roll: the roller's own documents,
    regions under the roller's token, and auras from other tokens.
    """

    def __init__(self, repository: BonusRepository, actor_lookup: Callable[[str], Optional[Actor]]):
        self.repository = repository
        self.actor_lookup = actor_lookup

    def documents_with_bonuses(self, actor: Actor) -> List[Document]:
        return [d for d in embedded_documents(actor) if self.repository.has_bonuses(d.id)]

    def _bonuses_of(self, doc: Document, bonus_type: str) -> List[BabonusBase]:
        found = self.repository.load(doc.id).values()
        return [b for b in sort_bonuses(list(found)) if b.type == bonus_type and b.enabled]

    def collect(self, bonus_type: str, ctx: RollContext) -> List[OwnedBonus]:
        actor = ctx.actor
        if actor is None:
            return []
        out: List[OwnedBonus] = []

        for doc in self.documents_with_bonuses(actor):
            for bonus in self._bonuses_of(doc, bonus_type):
                if bonus.is_aura and not bonus.aura.self_:
                    continue
                if applies(bonus, ctx):
                    out.append(OwnedBonus(bonus, doc, actor, _source_for(doc)))

        token = ctx.token
        if token is None or ctx.scene is None:
            return out
        scene = ctx.scene

        for region in scene.regions_at(token):
            for bonus in self._bonuses_of(region, bonus_type):
                if applies(bonus, ctx):
                    out.append(OwnedBonus(bonus, region, None, "region"))

        for other in scene.tokens:
            if other.id == token.id:
                continue
            owner = self.actor_lookup(other.actor_id)
            if owner is None or owner.id == actor.id:
                continue
            for doc in self.documents_with_bonuses(owner):
                for bonus in self._bonuses_of(doc, bonus_type):
                    if not bonus.is_aura:
                        continue
                    if not aura_applies(bonus.aura, other, token, scene, target_actor=actor):
                        logger.debug("Aura '%s' from %s does not reach %s", bonus.name, other.id, token.id)
                        continue
                    if applies(bonus, ctx):
                        out.append(OwnedBonus(bonus, doc, owner, "aura"))

        logger.debug("Collected %d %s bonuses for %s", len(out), bonus_type, ctx.describe())
        return out
