from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple, Union
from uuid import uuid4
import logging

from .collector import BonusCollector, OwnedBonus
from .combiner import AppliedPart, CombineResult, ValueCombiner
from .consumption_runtime import ConsumptionChoice, available_amounts, choose, consume, resource_key
from .context import RollContext
from .dice import Roll
from .errors import ConsumptionError
from .models import Actor, Item
from .registry import RollRegistry
from .scene import Scene
from .settings import Settings

logger = logging.getLogger(__name__)

CONFIG_KEY = "babonus"

# ------------------------------
# Chat summaries
# ------------------------------

@dataclass
class ChatSummary:
    actor_id: str
    actor_name: str
    roll_type: str
    parts: List[AppliedPart]
    total: int | float
    formula: Optional[str] = None
    roll_total: Optional[int | float] = None

    def lines(self) -> List[str]:
        out = [f"Applied bonuses ({self.roll_type}) for {self.actor_name or self.actor_id}"]
        for p in self.parts:
            dtype = f" ({p.damage_type})" if p.damage_type else ""
            out.append(f"  {p.name}{dtype}: {'+' if p.value >= 0 else ''}{p.value}")
        out.append(f"Total bonus: {'+' if self.total >= 0 else ''}{self.total}")
        if self.formula is not None:
            out.append(f"Roll: {self.formula} = {self.roll_total}")
        return out

    def render(self) -> str:
        return "\n".join(self.lines())

class ChatSink(Protocol):
    def post(self, summary: ChatSummary) -> None: ...

class ChatLog:
    def __init__(self) -> None:
        self.messages: List[ChatSummary] = []

    def post(self, summary: ChatSummary) -> None:
        self.messages.append(summary)

    def dump(self) -> List[str]:
        return [m.render() for m in self.messages]

    def clear(self) -> None:
        self.messages.clear()

# ------------------------------
# Hook bus
# ------------------------------

@dataclass
class RegisteredHook:
    event: str
    fn: Callable[..., Any]
    priority: int = 0
    hook_id: str = field(default_factory=lambda: uuid4().hex)

class HookBus:
    """Named host events -> ordered handlers (higher priority first, then registration order)."""

    def __init__(self) -> None:
        self._by_event: Dict[str, List[RegisteredHook]] = {}

    def on(self, event: str, fn: Callable[..., Any], priority: int = 0) -> str:
        hook = RegisteredHook(event=event, fn=fn, priority=priority)
        lst = self._by_event.setdefault(event, [])
        lst.append(hook)
        lst.sort(key=lambda h: -h.priority)
        return hook.hook_id

    def off(self, hook_id: str) -> bool:
        for event, lst in self._by_event.items():
            for h in lst:
                if h.hook_id == hook_id:
                    lst.remove(h)
                    return True
        return False

    def call_all(self, event: str, *args: Any, **kwargs: Any) -> List[Any]:
        return [h.fn(*args, **kwargs) for h in list(self._by_event.get(event, []))]

    def events(self) -> List[str]:
        return sorted(e for e, lst in self._by_event.items() if lst)

# ------------------------------
# Optional bonus selection
# ------------------------------

@dataclass
class OptionalOffer:
    owned: OwnedBonus
    amounts: List[int] = field(default_factory=list)  # empty when nothing is consumed

    @property
    def uuid(self) -> str:
        return self.owned.uuid

    @property
    def consumes(self) -> bool:
        return bool(self.amounts)

# Returns the picked offers (uuid, or uuid -> amount), or None to cancel the roll's bonuses.
Selection = Union[Iterable[str], Mapping[str, Optional[int]]]
Selector = Callable[[List[OptionalOffer], RollContext], Optional[Selection]]

def _normalize_selection(sel: Selection) -> Dict[str, Optional[int]]:
    if isinstance(sel, Mapping):
        return dict(sel)
    return {uuid: None for uuid in sel}

# ------------------------------
# Pipeline
# ------------------------------

HOOK_EVENTS: Tuple[Tuple[str, str], ...] = (
    ("dnd5e.preRollAttack", "pre_roll_attack"),
    ("dnd5e.rollAttack", "roll_attack"),
    ("dnd5e.preRollDamage", "pre_roll_damage"),
    ("dnd5e.rollDamage", "roll_damage"),
    ("dnd5e.preRollAbilitySave", "pre_roll_ability_save"),
    ("dnd5e.rollAbilitySave", "roll_ability_save"),
    ("dnd5e.preRollAbilityTest", "pre_roll_ability_test"),
    ("dnd5e.rollAbilityTest", "roll_ability_test"),
    ("dnd5e.preRollDeathSave", "pre_roll_death_save"),
    ("dnd5e.rollDeathSave", "roll_death_save"),
    ("dnd5e.preRollHitDie", "pre_roll_hit_die"),
    ("dnd5e.rollHitDie", "roll_hit_die"),
)

class RollPipeline:
    """
    Before-roll handlers register the roll and tag its config; after-roll handlers
    collect, offer optional bonuses, combine, and amend the finished roll in place.
    `trace` holds the log lines of the most recent after-roll step only.
    """

    def __init__(self, collector: BonusCollector, registry: RollRegistry, combiner: ValueCombiner,
                 settings: Settings, scene: Callable[[], Optional[Scene]], chat: Optional[ChatSink] = None,
                 selector: Optional[Selector] = None):
        self.collector = collector
        self.registry = registry
        self.combiner = combiner
        self.settings = settings
        self.scene = scene
        self.chat: ChatSink = chat or ChatLog()
        self.selector = selector
        self.trace: List[str] = []

    def register_hooks(self, bus: HookBus) -> List[str]:
        return [bus.on(event, getattr(self, name)) for event, name in HOOK_EVENTS]

    # -------- shared steps --------
    def _register(self, bonus_type: str, config: Dict[str, Any], **options: Any) -> str:
        rid = self.registry.register({"type": bonus_type, **options})
        config[CONFIG_KEY] = {"registry": rid, "type": bonus_type, "options": dict(options)}
        return rid

    def _context(self, bonus_type: str, config: Optional[Dict[str, Any]], **given: Any) -> RollContext:
        """Start from what the before-roll step registered; explicit arguments win."""
        opts: Dict[str, Any] = {}
        rid = None
        tag = (config or {}).get(CONFIG_KEY)
        if isinstance(tag, dict) and tag.get("type") == bonus_type:
            rid = tag.get("registry")
            stored = self.registry.get(rid)
            if stored is not None:
                opts.update({k: v for k, v in stored.items() if k != "type"})
            else:
                logger.debug("Roll registration %s missing or expired", rid)
        opts.update({k: v for k, v in given.items() if v is not None})
        return RollContext(
            type=bonus_type,  # type: ignore[arg-type]
            actor=opts.get("actor"),
            item=opts.get("item"),
            target=opts.get("target"),
            ability=opts.get("ability"),
            skill=opts.get("skill"),
            critical=bool(opts.get("critical", False)),
            roll=opts.get("roll"),
            registry_id=rid,
            scene=self.scene(),
            options={k: v for k, v in opts.items() if k not in ("actor", "item", "target", "roll")},
        )

    def _offers(self, optional: List[OwnedBonus], ctx: RollContext) -> List[OptionalOffer]:
        offers: List[OptionalOffer] = []
        for owned in optional:
            cons = owned.bonus.consumption
            if not cons.enabled:
                offers.append(OptionalOffer(owned))
                continue
            try:
                amounts = available_amounts(cons, owned, owned.roll_data(ctx.actor))
            except ConsumptionError as e:
                logger.warning("Optional bonus '%s' has bad consumption: %s", owned.bonus.name, e)
                continue
            if amounts:
                offers.append(OptionalOffer(owned, amounts))
            else:
                self.trace.append(f"[Optional] {owned.bonus.name}: not enough {cons.type} to offer")
        return offers

    def _select(self, offers: List[OptionalOffer], ctx: RollContext) -> Optional[Tuple[List[OwnedBonus], Dict[str, ConsumptionChoice]]]:
        if self.selector is None:
            return [], {}
        picked = self.selector(offers, ctx)
        if picked is None:
            return None
        wanted = _normalize_selection(picked)
        chosen: List[OwnedBonus] = []
        choices: Dict[str, ConsumptionChoice] = {}
        reserved: Dict[Tuple[Any, ...], int] = {}
        for offer in offers:
            if offer.uuid not in wanted:
                continue
            cons = offer.owned.bonus.consumption
            if not offer.consumes:
                chosen.append(offer.owned)
                continue
            key = resource_key(cons, offer.owned)
            try:
                choice = choose(cons, offer.owned, wanted[offer.uuid], offer.owned.roll_data(ctx.actor),
                                reserved=reserved.get(key, 0))
            except ConsumptionError as e:
                logger.warning("Skipping optional bonus '%s': %s", offer.owned.bonus.name, e)
                self.trace.append(f"[Optional] {offer.owned.bonus.name}: {e}")
                continue
            chosen.append(offer.owned)
            choices[offer.uuid] = choice
            reserved[key] = reserved.get(key, 0) + choice.amount
        return chosen, choices

    def _spend(self, chosen: List[OwnedBonus], choices: Dict[str, ConsumptionChoice], res: CombineResult) -> None:
        """Pay for chosen optional bonuses, but only those that added something to the roll."""
        added = {p.uuid for p in res.parts}
        for owned in chosen:
            choice = choices.get(owned.uuid)
            if choice is None:
                continue
            if owned.uuid not in added:
                self.trace.append(f"[Optional] {owned.bonus.name}: added nothing; nothing consumed")
                continue
            try:
                self.trace += consume(owned.bonus.consumption, owned, choice.amount)
            except ConsumptionError as e:
                logger.warning("Could not consume for optional bonus '%s': %s", owned.bonus.name, e)
                self.trace.append(f"[Optional] {owned.bonus.name}: {e}")

    def _apply(self, ctx: RollContext, roll: Optional[Roll]) -> Optional[CombineResult]:
        self.trace = []
        found = self.collector.collect(ctx.type, ctx)
        if not found:
            return None
        auto = [o for o in found if not o.bonus.optional]
        optional = [o for o in found if o.bonus.optional] if self.settings.show_optional else []
        chosen: List[OwnedBonus] = []
        choices: Dict[str, ConsumptionChoice] = {}
        if optional:
            offers = self._offers(optional, ctx)
            if offers:
                picked = self._select(offers, ctx)
                if picked is None:
                    self.trace.append(f"[Optional] selection cancelled; {ctx.type} roll left unchanged")
                    return None
                chosen, choices = picked
                auto = auto + chosen
        if not auto:
            return None
        res = self.combiner.combine(auto, roll, ctx.actor, choices)
        self.trace += res.logs
        self._spend(chosen, choices, res)
        if res.applied and res.parts and self.settings.show_applied and ctx.actor is not None:
            self.chat.post(ChatSummary(
                actor_id=ctx.actor.id, actor_name=ctx.actor.name, roll_type=ctx.type,
                parts=list(res.parts), total=res.total,
                formula=roll.formula if roll is not None else None,
                roll_total=roll.total if roll is not None else None,
            ))
        return res

    # -------- attack --------
    def pre_roll_attack(self, actor: Optional[Actor], item: Optional[Item], config: Dict[str, Any],
                        target: Optional[Actor] = None) -> Optional[str]:
        if actor is None or item is None:
            return None
        return self._register("attackRoll", config, actor=actor, item=item, target=target)

    def roll_attack(self, actor: Optional[Actor], item: Optional[Item], roll: Optional[Roll],
                    config: Optional[Dict[str, Any]] = None, target: Optional[Actor] = None) -> Optional[CombineResult]:
        if actor is None or item is None or roll is None:
            return None
        ctx = self._context("attackRoll", config, actor=actor, item=item, roll=roll, target=target)
        return self._apply(ctx, roll)

    # -------- damage --------
    def pre_roll_damage(self, actor: Optional[Actor], item: Optional[Item], config: Dict[str, Any],
                        target: Optional[Actor] = None) -> Optional[str]:
        if actor is None or item is None:
            return None
        return self._register("damageRoll", config, actor=actor, item=item, target=target,
                              critical=bool(config.get("critical", False)))

    def roll_damage(self, actor: Optional[Actor], item: Optional[Item], roll: Optional[Roll],
                    config: Optional[Dict[str, Any]] = None, critical: Optional[bool] = None,
                    target: Optional[Actor] = None) -> Optional[CombineResult]:
        if actor is None or item is None or roll is None:
            return None
        ctx = self._context("damageRoll", config, actor=actor, item=item, roll=roll, target=target, critical=critical)
        return self._apply(ctx, roll)

    # -------- saving throws --------
    def pre_roll_ability_save(self, actor: Optional[Actor], config: Dict[str, Any], ability: Optional[str]) -> Optional[str]:
        if actor is None:
            return None
        return self._register("savingThrow", config, actor=actor, ability=ability)

    def roll_ability_save(self, actor: Optional[Actor], roll: Optional[Roll], ability: Optional[str],
                          config: Optional[Dict[str, Any]] = None) -> Optional[CombineResult]:
        if actor is None or roll is None:
            return None
        ctx = self._context("savingThrow", config, actor=actor, roll=roll, ability=ability)
        return self._apply(ctx, roll)

    def pre_roll_death_save(self, actor: Optional[Actor], config: Dict[str, Any]) -> Optional[str]:
        if actor is None:
            return None
        return self._register("savingThrow", config, actor=actor, ability="death")

    def roll_death_save(self, actor: Optional[Actor], roll: Optional[Roll],
                        config: Optional[Dict[str, Any]] = None) -> Optional[CombineResult]:
        if actor is None or roll is None:
            return None
        ctx = self._context("savingThrow", config, actor=actor, roll=roll, ability="death")
        return self._apply(ctx, roll)

    # -------- ability checks --------
    def pre_roll_ability_test(self, actor: Optional[Actor], config: Dict[str, Any], ability: Optional[str],
                              skill: Optional[str] = None) -> Optional[str]:
        if actor is None:
            return None
        return self._register("abilityCheck", config, actor=actor, ability=ability, skill=skill)

    def roll_ability_test(self, actor: Optional[Actor], roll: Optional[Roll], ability: Optional[str],
                          config: Optional[Dict[str, Any]] = None, skill: Optional[str] = None) -> Optional[CombineResult]:
        if actor is None or roll is None:
            return None
        ctx = self._context("abilityCheck", config, actor=actor, roll=roll, ability=ability, skill=skill)
        return self._apply(ctx, roll)

    # -------- hit dice --------
    def pre_roll_hit_die(self, actor: Optional[Actor], config: Dict[str, Any], denomination: Optional[str] = None) -> Optional[str]:
        if actor is None:
            return None
        return self._register("hitDie", config, actor=actor, denomination=denomination)

    def roll_hit_die(self, actor: Optional[Actor], roll: Optional[Roll],
                     config: Optional[Dict[str, Any]] = None) -> Optional[CombineResult]:
        if actor is None or roll is None:
            return None
        ctx = self._context("hitDie", config, actor=actor, roll=roll)
        return self._apply(ctx, roll)

    # -------- save DC --------
    def apply_save_dc(self, actor: Optional[Actor], item: Optional[Item], dc: int | float,
                      target: Optional[Actor] = None) -> int | float:
        """Item save DC plus every applicable savingThrowDc bonus."""
        if actor is None or item is None:
            return dc
        ctx = self._context("savingThrowDc", None, actor=actor, item=item, target=target)
        res = self._apply(ctx, None)
        if res is None:
            return dc
        return dc + res.total
