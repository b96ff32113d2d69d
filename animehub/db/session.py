from __future__ import annotations
from pathlib import Path
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from .models import Base
from ..paths import get_dirs

def default_db_path() -> Path:
    dirs = get_dirs()
    return dirs["data"] / "catalog.sqlite3"

def _sqlite_pragmas(engine) -> None:
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; take over
    # transaction control so per-record savepoints in commit_batch work.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_conn, _record):
        dbapi_conn.isolation_level = None
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA journal_mode=WAL;")
        cur.execute("PRAGMA synchronous=NORMAL;")
        cur.execute("PRAGMA foreign_keys=ON;")
        cur.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

def get_engine(db_url: str | None = None):
    if not db_url:
        db_file = default_db_path()
        db_file.parent.mkdir(parents=True, exist_ok=True)
        db_url = f"sqlite:///{db_file}"
    engine = create_engine(
        db_url,
        future=True,
        connect_args={"check_same_thread": False} if db_url.startswith("sqlite") else {},
    )
    if db_url.startswith("sqlite"):
        _sqlite_pragmas(engine)
    return engine

def init_db(db_url: str | None = None):
    engine = get_engine(db_url)
    Base.metadata.create_all(engine)
    return engine

def get_sessionmaker(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
