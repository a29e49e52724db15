from __future__ import annotations
from pathlib import Path
from pydantic import BaseModel, Field
from typing import Optional
import logging
import os

def settings_home() -> Path:
    env = os.environ.get("BABONUS_HOME")
    return Path(env) if env else Path.home() / ".babonus"

def settings_path() -> Path:
    return settings_home() / "settings.json"

class Settings(BaseModel):
    show_applied: bool = True  # post a chat summary of applied bonuses
    show_optional: bool = True  # offer optional bonuses for selection
    debug_mode: bool = False
    registry_ttl_seconds: float = Field(300.0, gt=0)
    rng_seed_mode: str = "random"  # fixed | random
    rng_seed: int = 1337
    last_migrated_version: Optional[str] = None

def load_settings(path: Optional[Path] = None) -> Settings:
    fp = path or settings_path()
    if fp.exists():
        return Settings.model_validate_json(fp.read_text(encoding="utf-8"))
    fp.parent.mkdir(parents=True, exist_ok=True)
    s = Settings()
    fp.write_text(s.model_dump_json(indent=2), encoding="utf-8")
    return s

def save_settings(s: Settings, path: Optional[Path] = None) -> None:
    fp = path or settings_path()
    fp.parent.mkdir(parents=True, exist_ok=True)
    fp.write_text(s.model_dump_json(indent=2), encoding="utf-8")

def apply_logging(s: Settings) -> None:
    logging.getLogger("babonus").setLevel(logging.DEBUG if s.debug_mode else logging.INFO)
