from __future__ import annotations
import logging, logging.handlers, sys
import structlog
from .paths import get_dirs

def setup_logging(level: str = "INFO", to_file: bool = True):
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    fmt = logging.Formatter("%(message)s")
    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(fmt)
    root.addHandler(stream)

    if to_file:
        logfile = get_dirs()["logs"] / "animehub.log"
        rot = logging.handlers.RotatingFileHandler(
            logfile, maxBytes=10_000_000, backupCount=5, encoding="utf-8"
        )
        rot.setFormatter(fmt)
        root.addHandler(rot)

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),  # one JSON object per line, CI-friendly
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
    )
    return structlog.get_logger()
