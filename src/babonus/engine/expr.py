from __future__ import annotations
from typing import Any, Dict, Optional
from functools import lru_cache
import math

from py_expression_eval import Parser

# Single global parser with an allowlisted function table
_parser = Parser()

# Allowed math helpers
_parser.functions["min"] = min
_parser.functions["max"] = max
_parser.functions["floor"] = math.floor
_parser.functions["ceil"] = math.ceil
_parser.functions["abs"] = abs
_parser.functions["round"] = round

ALLOWED_FUNCTIONS = frozenset({"min", "max", "floor", "ceil", "abs", "round"})

# LRU-compiled AST cache
@lru_cache(maxsize=8192)
def _compile_expr(expr: str):
    return _parser.parse(expr)

def normalize_number(value: Any) -> int | float:
    f = float(value)
    return int(f) if f.is_integer() else f

def eval_expr(expr: str | int | float, variables: Optional[Dict[str, Any]] = None) -> int | float:
    """
    Evaluate an arithmetic expression string (or numeric literal) using the compiled cache.
    Raises whatever the parser raises on malformed input; callers decide how to fail.
    """
    if isinstance(expr, (int, float)):
        return expr
    ast = _compile_expr(expr)
    value = ast.evaluate(dict(variables or {}))
    return normalize_number(value)

def check_syntax(expr: str) -> Optional[str]:
    try:
        _compile_expr(expr)
    except Exception as e:
        return str(e) or e.__class__.__name__
    return None

def expr_cache_info() -> str:
    info = _compile_expr.cache_info()
    return f"expr-cache: hits={info.hits}, misses={info.misses}, size={info.currsize}/{info.maxsize}"
