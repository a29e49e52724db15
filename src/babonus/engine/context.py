from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .dice import Roll
from .models import Actor, Item
from .scene import Scene, Token
from .schema_models import BonusType

@dataclass
class RollContext:
    """Everything the filters may look at for one roll. Never persisted."""
    type: BonusType
    actor: Optional[Actor] = None
    item: Optional[Item] = None
    target: Optional[Actor] = None
    ability: Optional[str] = None
    skill: Optional[str] = None
    critical: bool = False
    roll: Optional[Roll] = None
    registry_id: Optional[str] = None
    scene: Optional[Scene] = None
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def token(self) -> Optional[Token]:
        if self.scene is None:
            return None
        return self.scene.token_for_actor(self.actor)

    @property
    def target_token(self) -> Optional[Token]:
        if self.scene is None:
            return None
        return self.scene.token_for_actor(self.target)

    def describe(self) -> str:
        bits = [self.type]
        if self.actor is not None:
            bits.append(f"actor={self.actor.id}")
        if self.item is not None:
            bits.append(f"item={self.item.id}")
        if self.target is not None:
            bits.append(f"target={self.target.id}")
        if self.ability:
            bits.append(f"ability={self.ability}")
        if self.skill:
            bits.append(f"skill={self.skill}")
        if self.critical:
            bits.append("critical")
        return " ".join(bits)
