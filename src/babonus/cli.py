from pathlib import Path
from typing import Optional
import logging
import typer
from babonus.engine.engine import ROLL_KINDS, BonusEngine
from babonus.engine.loader import load_world
from babonus.engine.settings import Settings, load_settings
from babonus.tools.validate import export_schemas_cmd, validate_files

app = typer.Typer(add_completion=False)

def _engine(world: Path, all_optional: bool, settings: Optional[Settings] = None) -> BonusEngine:
    selector = (lambda offers, ctx: [o.uuid for o in offers]) if all_optional else None
    return BonusEngine.from_file(world, settings=settings or load_settings(), selector=selector)

@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine activity to stderr")):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

@app.command()
def roll(
    world: Path = typer.Argument(..., exists=True, dir_okay=False),
    kind: str = typer.Argument(..., help=f"One of: {', '.join(ROLL_KINDS)}"),
    actor: str = typer.Option(..., "--actor", "-a"),
    item: Optional[str] = typer.Option(None, "--item", "-i"),
    target: Optional[str] = typer.Option(None, "--target", "-t"),
    ability: Optional[str] = typer.Option(None, "--ability"),
    skill: Optional[str] = typer.Option(None, "--skill"),
    formula: Optional[str] = typer.Option(None, "--formula", "-f"),
    critical: bool = typer.Option(False, "--critical"),
    seed: Optional[int] = typer.Option(None, "--seed"),
    all_optional: bool = typer.Option(False, "--all-optional", help="Accept every optional bonus offered"),
    trace: bool = typer.Option(False, "--trace", help="Print per-filter results"),
    save: bool = typer.Option(False, "--save", help="Write consumed resources back to the world file"),
):
    """Roll once through the bonus pipeline and print the result."""
    if kind not in ROLL_KINDS:
        typer.echo(f"Unknown roll kind '{kind}'", err=True)
        raise typer.Exit(code=2)
    s = load_settings()
    if seed is not None:
        s = s.model_copy(update={"rng_seed_mode": "fixed", "rng_seed": seed})
    eng = _engine(world, all_optional, s)
    try:
        if trace:
            for line in eng.explain(ROLL_KINDS[kind][0], actor, item_id=item, target_id=target,
                                    ability=ability, skill=skill, critical=critical):
                typer.echo(line)
        result_roll, combined = eng.roll(kind, actor, formula=formula, item_id=item, target_id=target,  # type: ignore[arg-type]
                                         ability=ability, skill=skill, critical=critical)
    except KeyError as e:
        typer.echo(f"Error: {e.args[0]}", err=True)
        raise typer.Exit(code=1)
    finally:
        eng.shutdown()
    for line in eng.pipeline.trace:
        typer.echo(line)
    for msg in getattr(eng.chat, "messages", []):
        typer.echo(msg.render())
    typer.echo(f"{result_roll.formula} = {result_roll.total}")
    if save and combined is not None:
        eng.save(world)

@app.command("list")
def list_bonuses(
    world: Path = typer.Argument(..., exists=True, dir_okay=False),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Document id; default lists every document"),
):
    """List bonuses stored on documents."""
    eng = BonusEngine(world=load_world(world), settings=Settings())
    docs = [eng.world.resolve(owner)] if owner else list(eng.world.documents())
    if owner and docs[0] is None:
        typer.echo(f"Unknown document: {owner}", err=True)
        raise typer.Exit(code=1)
    found = 0
    for doc in docs:
        for b in eng.api.get_collection(doc):
            found += 1
            flags = [f for f, on in (("optional", b.optional), ("aura", b.is_aura), ("disabled", not b.enabled)) if on]
            extra = f" [{', '.join(flags)}]" if flags else ""
            typer.echo(f"{doc.id}.{b.id}  {b.type:<14} {b.name} ({b.bonus}){extra}")
    if not found:
        typer.echo("No bonuses found.")

@app.command()
def toggle(
    world: Path = typer.Argument(..., exists=True, dir_okay=False),
    uuid: str = typer.Argument(..., help="<document id>.<bonus id>"),
    enable: Optional[bool] = typer.Option(None, "--enable/--disable"),
):
    """Flip (or set) a bonus's enabled state and save the world file."""
    eng = BonusEngine(world=load_world(world), settings=Settings())
    state = eng.api.toggle(uuid, enabled=enable)
    if state is None:
        typer.echo(f"No bonus found for {uuid}", err=True)
        raise typer.Exit(code=1)
    eng.save(world)
    typer.echo(f"{uuid}: {'enabled' if state else 'disabled'}")

app.command("validate", help="Schema and formula validation of bonus and world files.")(validate_files)
app.command("export-schemas", help="Write JSON schemas for bonuses, worlds and settings.")(export_schemas_cmd)

if __name__ == "__main__":
    app()
