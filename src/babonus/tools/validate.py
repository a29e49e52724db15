from __future__ import annotations
from pathlib import Path
import json
from typing import Any, Dict, List, Tuple
import yaml
import typer
from pydantic import ValidationError
from babonus.engine.dice import check_formula
from babonus.engine.filters import FILTERS
from babonus.engine.loader import World, iter_content_files
from babonus.engine.models import BONUSES_KEY, FLAG_SCOPE
from babonus.engine.schema_models import BabonusAdapter

# Keys whose string values are dice/arithmetic formulas
EXPR_KEYS = {"bonus", "formula", "min", "max"}

def _load(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text) or {}
    return json.loads(text)

def _walk_exprs(data: object, *, file_path: str, prefix: str) -> list[str]:
    """
    Recursively walk a dict/list tree; for any key in EXPR_KEYS whose value is a str,
    check that it parses as a roll formula. Returns a list of error strings.
    """
    errs: list[str] = []
    if isinstance(data, dict):
        for k, v in data.items():
            path = f"{prefix}.{k}" if prefix else k
            if isinstance(v, str) and k in EXPR_KEYS and v.strip():
                reason = check_formula(v)
                if reason:
                    errs.append(f"{file_path}:{path}: invalid formula '{v}': {reason}")
            if isinstance(v, (dict, list)) and k != "filters":
                errs.extend(_walk_exprs(v, file_path=file_path, prefix=path))
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            errs.extend(_walk_exprs(item, file_path=file_path, prefix=f"{prefix}[{idx}]"))
    return errs

def validate_bonus(raw: Dict[str, Any], *, file_path: str, prefix: str) -> Tuple[List[str], List[str]]:
    """(errors, warnings) for one serialized bonus."""
    errors: List[str] = []
    warnings: List[str] = []
    try:
        bonus = BabonusAdapter.validate_python(raw)
    except ValidationError as e:
        errors.append(f"{file_path}:{prefix}: {e}")
        return errors, warnings
    errors += _walk_exprs(raw, file_path=file_path, prefix=prefix)
    for name, value in bonus.filters.items():
        spec = FILTERS.get(name)
        if spec is None:
            warnings.append(f"{file_path}:{prefix}.filters.{name}: unknown filter (ignored)")
            continue
        if not spec.applies_to_type(bonus.type):
            warnings.append(f"{file_path}:{prefix}.filters.{name}: not used by {bonus.type} bonuses (still evaluated)")
        try:
            spec.validate(value)
        except ValidationError as e:
            errors.append(f"{file_path}:{prefix}.filters.{name}: invalid value {value!r}: {e.errors()[0]['msg']}")
    return errors, warnings

def validate_bonus_blob(blob: Any, *, file_path: str, prefix: str) -> Tuple[List[str], List[str]]:
    errors: List[str] = []
    warnings: List[str] = []
    if isinstance(blob, list):
        entries = [(f"{prefix}[{i}]", e) for i, e in enumerate(blob)]
    elif isinstance(blob, dict):
        entries = [(f"{prefix}.{bid}" if prefix else str(bid), {"id": bid, **e} if isinstance(e, dict) else e)
                   for bid, e in blob.items()]
    else:
        return [f"{file_path}:{prefix}: expected a mapping or list of bonuses"], []
    seen: set[str] = set()
    for path, entry in entries:
        if not isinstance(entry, dict):
            errors.append(f"{file_path}:{path}: bonus must be an object")
            continue
        bid = entry.get("id")
        if isinstance(bid, str):
            if bid in seen:
                errors.append(f"{file_path}:{path}: duplicate bonus id '{bid}'")
            seen.add(bid)
        e, w = validate_bonus(entry, file_path=file_path, prefix=path)
        errors += e
        warnings += w
    return errors, warnings

def validate_world_data(data: Any, *, file_path: str) -> Tuple[List[str], List[str]]:
    try:
        world = World.model_validate(data)
    except ValidationError as e:
        return [f"{file_path}: {e}"], []
    errors: List[str] = []
    warnings: List[str] = []
    for doc in world.documents():
        blob = doc.get_flag(FLAG_SCOPE, BONUSES_KEY)
        if not blob:
            continue
        e, w = validate_bonus_blob(blob, file_path=file_path, prefix=f"{doc.document_name}[{doc.id}]")
        errors += e
        warnings += w
    return errors, warnings

def validate_path(fp: Path) -> Tuple[List[str], List[str]]:
    """World files have `actors` or `scene` at the top level; anything else is a bonus file."""
    data = _load(fp)
    if isinstance(data, dict) and ("actors" in data or "scene" in data):
        return validate_world_data(data, file_path=str(fp))
    return validate_bonus_blob(data, file_path=str(fp), prefix="")

app = typer.Typer(add_completion=False)

@app.command("export-schemas")
def export_schemas_cmd(out: Path = typer.Option(Path("docs/schemas"), "--out")):
    from babonus.tools.export_schemas import export_schemas
    export_schemas(out)
    typer.echo(f"Exported schemas to {out}")

@app.command("validate-files")
def validate_files(
    paths: List[Path] = typer.Argument(...),
    strict: bool = typer.Option(False, "--strict", help="Treat warnings (unknown or unused filters) as errors"),
):
    ok = True
    checked = 0
    for root in paths:
        for fp in iter_content_files(root):
            checked += 1
            errors, warnings = validate_path(fp)
            for msg in warnings:
                typer.echo(f"[WARN] {msg}", err=True)
            for msg in errors:
                typer.echo(f"[ERROR] {msg}", err=True)
            if errors or (strict and warnings):
                ok = False
    if not ok:
        raise typer.Exit(code=1)
    typer.echo(f"Validated {checked} file(s) successfully.")

if __name__ == "__main__":
    app()
