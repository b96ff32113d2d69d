"""
config — Loads config.yaml with env var overrides.

Precedence: env vars > config.yaml > defaults

List-valued settings (genres, tags, formats, countries, denylist) accept a YAML
list or, from the environment, a comma-separated string.
"""
from __future__ import annotations
import os
from pathlib import Path
from dataclasses import dataclass, field, fields
import yaml


@dataclass
class Config:
    # Store
    store_backend: str = "sql"  # "sql" or "firestore"
    db_url: str = ""  # empty = use default SQLite path
    firestore_project_id: str = ""
    firestore_credentials: str = ""  # path to service account JSON
    firestore_collection: str = "episodes"

    # Upstream
    anilist_url: str = "https://graphql.anilist.co"
    per_page: int = 50
    max_pages: int = 20
    request_timeout: float = 30.0

    # Fetch window and retry
    recency_days: int = 7
    max_retries: int = 3
    backoff_base: float = 2.0  # seconds, multiplied by attempt number
    inter_page_delay: float = 0.7  # AniList allows ~90 requests/minute

    # Retention grace windows (days)
    new_series_days: int = 30
    refresh_grace_days: int = 2

    # Content policy
    blocked_genres: tuple[str, ...] = ("Hentai", "Ecchi")
    blocked_tags: tuple[str, ...] = ("Nudity", "Sexual Content")
    allowed_media_type: str = "ANIME"
    allowed_formats: tuple[str, ...] = ("TV", "TV_SHORT", "ONA")
    allowed_countries: tuple[str, ...] = ("JP", "CN", "KR", "TW")

    # Known-stale series ids left behind by earlier policy versions
    denylist_ids: tuple[str, ...] = field(default_factory=lambda: (
        "22729",  # Aldnoah.Zero (2014)
        "32281",  # Kimi no Na wa. (2016)
        "235",    # Meitantei Conan (1996)
        "433",    # Kumo no Mukou, Yakusoku no Basho (2004)
        "9760",   # Hoshi wo Ou Kodomo (2011)
        "60666",  # Aldnoah.Zero (Re+)
        "59843",  # Aldnoah.Zero: Ame no Danshou
        "54863",  # Trigun Stargaze (old)
    ))

    # Scheduler
    ingest_interval_minutes: int = 10
    retention_hour: int = 0  # UTC


def _split_list(value) -> tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return tuple(str(v).strip() for v in items if str(v).strip())


def _coerce(cfg: Config, attr: str, value):
    current = getattr(cfg, attr)
    if isinstance(current, tuple):
        return _split_list(value)
    if isinstance(current, bool):
        return str(value).lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return str(value)


def load_config(config_path: str | Path | None = None) -> Config:
    """Load config from YAML file, then override with env vars."""
    cfg = Config()

    # 1. Load from YAML if available
    if config_path is None:
        config_path = os.environ.get("ANIMEHUB_CONFIG", "config.yaml")
    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        for key, value in data.items():
            key_norm = key.replace("-", "_")
            if hasattr(cfg, key_norm) and value is not None:
                setattr(cfg, key_norm, _coerce(cfg, key_norm, value))

    # 2. Override with env vars (ANIMEHUB_ prefix, plus the Firebase names
    #    the GitHub Actions secrets already use)
    env_map = {f"ANIMEHUB_{f.name.upper()}": f.name for f in fields(Config)}
    env_map.update({
        "FIREBASE_PROJECT_ID": "firestore_project_id",
        "GOOGLE_APPLICATION_CREDENTIALS": "firestore_credentials",
    })
    for env_key, attr in env_map.items():
        val = os.environ.get(env_key)
        if val is not None:
            setattr(cfg, attr, _coerce(cfg, attr, val))

    return cfg
