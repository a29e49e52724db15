from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional, Union
import random
import re

from typing_extensions import Annotated
from pydantic import BaseModel, Field

from .errors import FormulaError
from .expr import ALLOWED_FUNCTIONS, check_syntax, eval_expr, normalize_number

_DATA_REF = re.compile(r"@([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z0-9_]+)*)")
_TOKEN = re.compile(
    r"\s*(?:"
    r"(?P<dice>(?P<number>\d*)d(?P<faces>\d+))(?![A-Za-z0-9_])"
    r"|(?P<num>\d+(?:\.\d+)?)"
    r"|(?P<ident>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<op>[-+*/%^(),])"
    r")"
)

# -----------------------------
# Data substitution
# -----------------------------

def _lookup(data: Dict[str, Any], path: str) -> Any:
    cur: Any = data
    for part in path.split("."):
        if isinstance(cur, dict) and part in cur:
            cur = cur[part]
        elif isinstance(cur, BaseModel) and hasattr(cur, part):
            cur = getattr(cur, part)
        else:
            return None
    return cur

def replace_formula_data(formula: str, data: Optional[Dict[str, Any]]) -> str:
    """Replace `@path.to.value` references with values from `data`; missing paths become 0."""
    data = data or {}

    def _sub(m: re.Match) -> str:
        val = _lookup(data, m.group(1))
        if isinstance(val, bool):
            return str(int(val))
        if isinstance(val, (int, float)):
            return str(val)
        if isinstance(val, str) and val.strip():
            return f"({val.strip()})"
        return "0"

    return _DATA_REF.sub(_sub, formula)

# -----------------------------
# Terms
# -----------------------------

class DiceTerm(BaseModel):
    kind: Literal["dice"] = "dice"
    number: int = 1
    faces: int = 6
    results: List[int] = Field(default_factory=list)

    @property
    def expression(self) -> str:
        return f"{self.number}d{self.faces}"

    @property
    def total(self) -> int:
        return sum(self.results)

    def roll(self, rng: random.Random) -> None:
        self.results = [rng.randint(1, self.faces) for _ in range(self.number)]

class NumericTerm(BaseModel):
    kind: Literal["number"] = "number"
    number: Union[int, float] = 0

class StringTerm(BaseModel):
    kind: Literal["string"] = "string"
    term: str

RollTerm = Annotated[Union[DiceTerm, NumericTerm, StringTerm], Field(discriminator="kind")]

def parse_terms(formula: str) -> List[RollTerm]:
    terms: List[RollTerm] = []
    pos = 0
    text = formula.rstrip()
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if not m or m.end() == pos:
            raise FormulaError(formula, f"unexpected input at position {pos}: '{text[pos:pos + 8]}'")
        if m.group("dice"):
            number = int(m.group("number") or 1)
            faces = int(m.group("faces"))
            if faces < 1:
                raise FormulaError(formula, "dice must have at least one face")
            terms.append(DiceTerm(number=number, faces=faces))
        elif m.group("num"):
            terms.append(NumericTerm(number=normalize_number(m.group("num"))))
        elif m.group("ident"):
            if m.group("ident") not in ALLOWED_FUNCTIONS:
                raise FormulaError(formula, f"unknown term '{m.group('ident')}'")
            terms.append(StringTerm(term=m.group("ident")))
        else:
            terms.append(StringTerm(term=m.group("op")))
        pos = m.end()
    if not terms:
        raise FormulaError(formula, "empty formula")
    return terms

def _term_expr(t: RollTerm) -> str:
    if isinstance(t, DiceTerm):
        return str(t.total)
    if isinstance(t, NumericTerm):
        return str(t.number)
    return t.term

# -----------------------------
# Roll
# -----------------------------

class Roll(BaseModel):
    formula: str
    data: Dict[str, Any] = Field(default_factory=dict)
    terms: List[RollTerm] = Field(default_factory=list)
    total: Optional[Union[int, float]] = None
    evaluated: bool = False

    @classmethod
    def create(cls, formula: str, data: Optional[Dict[str, Any]] = None) -> "Roll":
        resolved = replace_formula_data(str(formula), data).strip()
        return cls(formula=resolved, data=dict(data or {}), terms=parse_terms(resolved))

    @property
    def dice(self) -> List[DiceTerm]:
        return [t for t in self.terms if isinstance(t, DiceTerm)]

    def evaluate(self, rng: Optional[random.Random] = None) -> "Roll":
        rng = rng or random.Random()
        for t in self.terms:
            if isinstance(t, DiceTerm) and not t.results:
                t.roll(rng)
        expr = " ".join(_term_expr(t) for t in self.terms)
        try:
            self.total = eval_expr(expr)
        except Exception as e:
            raise FormulaError(self.formula, str(e) or e.__class__.__name__) from e
        self.evaluated = True
        return self

    def amend(self, addition: Union[int, float, str], rng: Optional[random.Random] = None) -> "Roll":
        """
        Append an additive term and re-evaluate, keeping dice already rolled.
        The new formula, terms and total replace this roll's own in place.
        """
        if isinstance(addition, (int, float)):
            text = f" - {abs(normalize_number(addition))}" if addition < 0 else f" + {normalize_number(addition)}"
        else:
            text = f" + {addition}"
        fresh = Roll.create(self.formula + text, self.data)
        for old, new in zip(self.terms, fresh.terms):
            if isinstance(old, DiceTerm) and isinstance(new, DiceTerm) and old.results \
                    and (old.number, old.faces) == (new.number, new.faces):
                new.results = list(old.results)
        fresh.evaluate(rng)
        self.formula = fresh.formula
        self.terms = fresh.terms
        self.total = fresh.total
        self.evaluated = True
        return self

def evaluate_formula(formula: str, data: Optional[Dict[str, Any]] = None, rng: Optional[random.Random] = None) -> int | float:
    return Roll.create(formula, data).evaluate(rng).total  # type: ignore[return-value]

def check_formula(formula: str) -> Optional[str]:
    """None if the formula parses, else the reason. `@` references count as 0."""
    try:
        terms = parse_terms(replace_formula_data(str(formula), None))
    except FormulaError as e:
        return e.reason
    expr = " ".join(str(t.number * t.faces) if isinstance(t, DiceTerm) else _term_expr(t) for t in terms)
    return check_syntax(expr)
