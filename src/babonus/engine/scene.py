from __future__ import annotations
from typing import Dict, List, Literal, Optional, Tuple
from pydantic import BaseModel, Field
from .models import Actor, Region

Point = Tuple[float, float]

# Token dispositions
HOSTILE = -1
NEUTRAL = 0
FRIENDLY = 1

class Vision(BaseModel):
    enabled: bool = True
    range: Optional[float] = None  # scene distance units; None = unlimited

class Token(BaseModel):
    id: str
    actor_id: str
    x: float = 0.0  # top-left, pixels
    y: float = 0.0
    width: float = 1.0  # grid squares
    height: float = 1.0
    disposition: Literal[-1, 0, 1] = NEUTRAL
    vision: Optional[Vision] = None

class Wall(BaseModel):
    a: Point
    b: Point
    move: bool = True
    sight: bool = True

def _orient(p: Point, q: Point, r: Point) -> float:
    return (q[0] - p[0]) * (r[1] - p[1]) - (q[1] - p[1]) * (r[0] - p[0])

def segments_intersect(p1: Point, p2: Point, q1: Point, q2: Point) -> bool:
    d1 = _orient(q1, q2, p1)
    d2 = _orient(q1, q2, p2)
    d3 = _orient(p1, p2, q1)
    d4 = _orient(p1, p2, q2)
    if ((d1 > 0 and d2 < 0) or (d1 < 0 and d2 > 0)) and ((d3 > 0 and d4 < 0) or (d3 < 0 and d4 > 0)):
        return True

    # collinear touching counts as blocked
    def on_segment(p: Point, q: Point, r: Point) -> bool:
        return min(p[0], q[0]) <= r[0] <= max(p[0], q[0]) and min(p[1], q[1]) <= r[1] <= max(p[1], q[1])

    if d1 == 0 and on_segment(q1, q2, p1):
        return True
    if d2 == 0 and on_segment(q1, q2, p2):
        return True
    if d3 == 0 and on_segment(p1, p2, q1):
        return True
    if d4 == 0 and on_segment(p1, p2, q2):
        return True
    return False

def point_in_polygon(pt: Point, poly: List[Point]) -> bool:
    if len(poly) < 3:
        return False
    x, y = pt
    inside = False
    j = len(poly) - 1
    for i in range(len(poly)):
        xi, yi = poly[i]
        xj, yj = poly[j]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside

class Scene(BaseModel):
    """
    Square-grid scene: tokens, walls and regions.
    Distances use the 5/5/5 diagonal rule (Chebyshev squares * grid_distance).
    """
    id: str = "scene"
    grid_size: float = 100.0  # pixels per square
    grid_distance: float = 5.0  # units per square
    tokens: List[Token] = Field(default_factory=list)
    walls: List[Wall] = Field(default_factory=list)
    regions: List[Region] = Field(default_factory=list)

    # -------- lookup --------
    def get_token(self, token_id: str) -> Optional[Token]:
        for t in self.tokens:
            if t.id == token_id:
                return t
        return None

    def token_for_actor(self, actor: Optional[Actor]) -> Optional[Token]:
        if actor is None:
            return None
        for t in self.tokens:
            if t.actor_id == actor.id:
                return t
        return None

    def tokens_by_actor(self) -> Dict[str, Token]:
        return {t.actor_id: t for t in self.tokens}

    # -------- geometry --------
    def center(self, token: Token) -> Point:
        return (token.x + token.width * self.grid_size / 2, token.y + token.height * self.grid_size / 2)

    def measure_distance(self, a: Token, b: Token) -> float:
        ax, ay = self.center(a)
        bx, by = self.center(b)
        dx = round(abs(ax - bx) / self.grid_size)
        dy = round(abs(ay - by) / self.grid_size)
        return max(dx, dy) * self.grid_distance

    def check_collision(self, origin: Point, dest: Point, mode: Literal["move", "sight"] = "move") -> bool:
        for w in self.walls:
            if not getattr(w, mode):
                continue
            if segments_intersect(origin, dest, w.a, w.b):
                return True
        return False

    def can_see(self, source: Token, point: Point) -> bool:
        """True if `point` lies inside the source token's visible area."""
        if source.vision is None or not source.vision.enabled:
            return False
        origin = self.center(source)
        if source.vision.range is not None:
            dx = (point[0] - origin[0]) / self.grid_size * self.grid_distance
            dy = (point[1] - origin[1]) / self.grid_size * self.grid_distance
            if (dx * dx + dy * dy) ** 0.5 > source.vision.range:
                return False
        return not self.check_collision(origin, point, mode="sight")

    def regions_at(self, token: Token) -> List[Region]:
        c = self.center(token)
        return [r for r in self.regions if point_in_polygon(c, r.points)]
