from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple
import logging
import random

from .api import BonusApi
from .applicability import explain
from .collector import BonusCollector, embedded_documents
from .combiner import CombineResult, ValueCombiner
from .context import RollContext
from .dice import Roll
from .expr import expr_cache_info
from .loader import World, load_world, save_world
from .models import BONUSES_KEY, FLAG_SCOPE
from .pipeline import ChatLog, ChatSink, HookBus, RollPipeline, Selector
from .registry import Clock, RollRegistry
from .repository import BonusRepository, FlagBonusRepository
from .settings import Settings, apply_logging, load_settings, save_settings

logger = logging.getLogger(__name__)

ENGINE_VERSION = "0.1.0"

RollKind = Literal["attack", "damage", "save", "check", "death", "hitdie"]

# kind -> (bonus type, before event, after event)
ROLL_KINDS: Dict[str, Tuple[str, str, str]] = {
    "attack": ("attackRoll", "dnd5e.preRollAttack", "dnd5e.rollAttack"),
    "damage": ("damageRoll", "dnd5e.preRollDamage", "dnd5e.rollDamage"),
    "save": ("savingThrow", "dnd5e.preRollAbilitySave", "dnd5e.rollAbilitySave"),
    "check": ("abilityCheck", "dnd5e.preRollAbilityTest", "dnd5e.rollAbilityTest"),
    "death": ("savingThrow", "dnd5e.preRollDeathSave", "dnd5e.rollDeathSave"),
    "hitdie": ("hitDie", "dnd5e.preRollHitDie", "dnd5e.rollHitDie"),
}

class BonusEngine:
    def __init__(self, world: Optional[World] = None, settings: Optional[Settings] = None,
                 repository: Optional[BonusRepository] = None, selector: Optional[Selector] = None,
                 chat: Optional[ChatSink] = None, clock: Optional[Clock] = None,
                 rng: Optional[random.Random] = None):
        self.world: World = world or World()
        self.settings: Settings = settings or load_settings()
        apply_logging(self.settings)
        self.rng = rng or random.Random(self._get_rng_seed())
        self.repository: BonusRepository = repository or FlagBonusRepository(lambda doc_id: self.world.resolve(doc_id))
        self.registry = RollRegistry(ttl=self.settings.registry_ttl_seconds, clock=clock)
        self.collector = BonusCollector(self.repository, lambda actor_id: self.world.get_actor(actor_id))
        self.combiner = ValueCombiner(self.rng)
        self.chat: ChatSink = chat or ChatLog()
        self.pipeline = RollPipeline(self.collector, self.registry, self.combiner, self.settings,
                                     scene=lambda: self.world.scene, chat=self.chat, selector=selector)
        self.hooks = HookBus()
        self.pipeline.register_hooks(self.hooks)
        self.api = BonusApi(self.repository,
                            resolve=lambda doc_id: self.world.resolve(doc_id),
                            owner_of=lambda doc_id: self.world.owner_of(doc_id))

    @classmethod
    def from_file(cls, path: Path, **kwargs: Any) -> "BonusEngine":
        return cls(world=load_world(path), **kwargs)

    def _get_rng_seed(self) -> int:
        if self.settings.rng_seed_mode == "random":
            return random.randint(0, 2**32 - 1)
        return self.settings.rng_seed

    def save(self, path: Path) -> None:
        save_world(self.world, path)

    def shutdown(self) -> None:
        self.registry.shutdown()

    # -------- rolling --------
    def _require_actor(self, actor_id: str):
        actor = self.world.get_actor(actor_id)
        if actor is None:
            raise KeyError(f"Unknown actor: {actor_id}")
        return actor

    def default_formula(self, kind: str, actor, item=None) -> str:
        if kind == "damage":
            parts = [f for f, _ in item.damage_parts] if item is not None else []
            return " + ".join(parts) if parts else "1d4"
        if kind == "hitdie":
            cls = next(iter(actor.classes.values()), None)
            return f"1{cls.hitDie}" if cls is not None else "1d8"
        return "1d20"

    def roll(self, kind: RollKind, actor_id: str, *, formula: Optional[str] = None, item_id: Optional[str] = None,
             target_id: Optional[str] = None, ability: Optional[str] = None, skill: Optional[str] = None,
             critical: bool = False) -> Tuple[Roll, Optional[CombineResult]]:
        """Run one roll through the before/after hooks and return the (amended) roll."""
        if kind not in ROLL_KINDS:
            raise ValueError(f"Unknown roll kind: {kind}")
        _, before, after = ROLL_KINDS[kind]
        actor = self._require_actor(actor_id)
        item = actor.get_item(item_id) if item_id else None
        if item_id and item is None:
            raise KeyError(f"Actor {actor_id} has no item {item_id}")
        target = self._require_actor(target_id) if target_id else None

        config: Dict[str, Any] = {"critical": critical}
        data = actor.get_roll_data()
        if item is not None:
            data["item"] = item.roll_data()
        roll = Roll.create(formula or self.default_formula(kind, actor, item), data).evaluate(self.rng)

        results: List[Any]
        if kind == "attack":
            self.hooks.call_all(before, actor, item, config, target=target)
            results = self.hooks.call_all(after, actor, item, roll, config, target=target)
        elif kind == "damage":
            self.hooks.call_all(before, actor, item, config, target=target)
            results = self.hooks.call_all(after, actor, item, roll, config, critical=critical, target=target)
        elif kind == "save":
            self.hooks.call_all(before, actor, config, ability)
            results = self.hooks.call_all(after, actor, roll, ability, config)
        elif kind == "check":
            self.hooks.call_all(before, actor, config, ability, skill=skill)
            results = self.hooks.call_all(after, actor, roll, ability, config, skill=skill)
        elif kind == "death":
            self.hooks.call_all(before, actor, config)
            results = self.hooks.call_all(after, actor, roll, config)
        else:
            self.hooks.call_all(before, actor, config, self.default_formula(kind, actor)[1:])
            results = self.hooks.call_all(after, actor, roll, config)
        combined = next((r for r in results if isinstance(r, CombineResult)), None)
        return roll, combined

    def save_dc(self, actor_id: str, item_id: str, dc: int | float, target_id: Optional[str] = None) -> int | float:
        actor = self._require_actor(actor_id)
        item = actor.get_item(item_id)
        target = self._require_actor(target_id) if target_id else None
        return self.pipeline.apply_save_dc(actor, item, dc, target=target)

    def explain(self, bonus_type: str, actor_id: str, *, item_id: Optional[str] = None,
                target_id: Optional[str] = None, ability: Optional[str] = None,
                skill: Optional[str] = None, critical: bool = False) -> List[str]:
        """Filter trace for every bonus of `bonus_type` on the actor's own documents."""
        actor = self._require_actor(actor_id)
        ctx = RollContext(
            type=bonus_type,  # type: ignore[arg-type]
            actor=actor, item=actor.get_item(item_id) if item_id else None,
            target=self.world.get_actor(target_id) if target_id else None,
            ability=ability, skill=skill, critical=critical, scene=self.world.scene,
        )
        lines: List[str] = [f"[Roll] {ctx.describe()}"]
        for doc in self.collector.documents_with_bonuses(actor):
            for b in self.api.get_collection(doc):
                if b.type == bonus_type:
                    lines += explain(b, ctx)
        return lines

    # -------- maintenance --------
    def migrate(self) -> List[str]:
        """Re-validate every stored bonus blob, dropping entries that no longer load."""
        logs: List[str] = []
        flag_backed = isinstance(self.repository, FlagBonusRepository)
        for doc in list(self.world.documents()):
            stored = self.repository.load(doc.id)
            raw = doc.get_flag(FLAG_SCOPE, BONUSES_KEY) if flag_backed else None
            if not stored and not raw:
                continue
            self.repository.save(doc.id, stored)
            dropped = len(raw) - len(stored) if isinstance(raw, dict) else 0
            if dropped:
                logs.append(f"[Migrate] {doc.id}: dropped {dropped} invalid bonus(es)")
        self.settings.last_migrated_version = ENGINE_VERSION
        save_settings(self.settings)
        logs.append(f"[Migrate] stored bonuses validated for version {ENGINE_VERSION}")
        return logs

    def cache_info(self) -> str:
        return expr_cache_info()

    def actor_documents(self, actor_id: str):
        return embedded_documents(self._require_actor(actor_id))
