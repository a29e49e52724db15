from __future__ import annotations
from typing import List
import logging

from .context import RollContext
from .filters import FILTERS
from .schema_models import BabonusBase

logger = logging.getLogger(__name__)

def applies(bonus: BabonusBase, ctx: RollContext) -> bool:
    """
    True when the bonus is enabled and every known filter passes.
    Unknown filter names are ignored. A filter meant for another roll type is still
    evaluated, so a non-empty one usually fails.
    """
    if not bonus.enabled:
        return False
    for name, raw in bonus.filters.items():
        spec = FILTERS.get(name)
        if spec is None:
            continue
        if not spec.applies_to_type(bonus.type):
            logger.debug("Filter '%s' is not used by %s bonuses; evaluating '%s' anyway",
                         name, bonus.type, bonus.name)
        if not spec.evaluate(bonus, raw, ctx):
            return False
    return True

def explain(bonus: BabonusBase, ctx: RollContext) -> List[str]:
    """Per-filter trace lines; evaluates every filter instead of short-circuiting."""
    lines: List[str] = []
    if not bonus.enabled:
        lines.append(f"[Filter] {bonus.name}: disabled")
        return lines
    for name, raw in bonus.filters.items():
        spec = FILTERS.get(name)
        if spec is None:
            lines.append(f"[Filter] {bonus.name}.{name}: unknown (ignored)")
            continue
        ok = spec.evaluate(bonus, raw, ctx)
        note = "" if spec.applies_to_type(bonus.type) else f" (not used by {bonus.type})"
        lines.append(f"[Filter] {bonus.name}.{name}={raw!r}: {'pass' if ok else 'fail'}{note}")
    return lines
