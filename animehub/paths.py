from __future__ import annotations
from pathlib import Path
from platformdirs import PlatformDirs

APP = "animehub"
AUTHOR = "animehub"


def get_dirs() -> dict[str, Path]:
    d = PlatformDirs(appname=APP, appauthor=AUTHOR, roaming=True)
    paths = {
        "data": Path(d.user_data_dir),     # catalog DB
        "config": Path(d.user_config_dir), # config.yaml, service account
        "cache": Path(d.user_cache_dir),
        "logs": Path(d.user_log_dir),
    }
    for p in paths.values():
        p.mkdir(parents=True, exist_ok=True)
    return paths
