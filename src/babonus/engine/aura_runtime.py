from __future__ import annotations
from typing import Dict, List, Optional
import re

from .models import Actor
from .scene import Scene, Token
from .schema_models import AuraSpec

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

def parse_range(text: str | int | None) -> Optional[int]:
    """Leading integer of the range text, or None when the aura is unbounded."""
    if text is None:
        return None
    if isinstance(text, int):
        return text
    m = _LEADING_INT.match(str(text))
    return int(m.group(1)) if m else None

def aura_applies(aura: AuraSpec, source: Token, target: Token, scene: Scene,
                 target_actor: Optional[Actor] = None) -> bool:
    return not aura_failures(aura, source, target, scene, target_actor, first_only=True)

def aura_failures(aura: AuraSpec, source: Token, target: Token, scene: Scene,
                  target_actor: Optional[Actor] = None, *, first_only: bool = False) -> List[str]:
    """
    Reasons the aura on `source` does not reach `target`, checked in order.
    Empty list means the aura reaches.
    """
    out: List[str] = []

    def fail(reason: str) -> bool:
        out.append(reason)
        return first_only

    if not aura.enabled:
        fail("aura disabled")
        return out

    if source.id == target.id and not aura.self_:
        if fail("aura does not affect its owner"):
            return out

    if aura.disposition != 0:
        product = source.disposition * target.disposition
        ok = product > 0 if aura.disposition > 0 else product < 0
        if not ok:
            if fail(f"disposition {target.disposition} excluded"):
                return out

    rng = parse_range(aura.range)
    if rng is not None:
        dist = scene.measure_distance(source, target)
        if dist > rng:
            if fail(f"out of range ({dist:g} > {rng})"):
                return out

    if aura.blockers and target_actor is not None:
        blocked = aura.blockers & target_actor.statuses
        if blocked:
            if fail(f"blocked by {', '.join(sorted(blocked))}"):
                return out

    if aura.require.move:
        if scene.check_collision(scene.center(source), scene.center(target), mode="move"):
            if fail("movement blocked by wall"):
                return out

    if aura.require.sight:
        if not scene.can_see(source, scene.center(target)):
            if fail("target not visible"):
                return out

    return out

def tokens_in_aura(aura: AuraSpec, source: Token, scene: Scene, actors: Dict[str, Actor]) -> List[Token]:
    return [t for t in scene.tokens if aura_applies(aura, source, t, scene, actors.get(t.actor_id))]
