# animehub/__main__.py
import sys
from . import __version__

def cli(argv=None):
    """
    Minimal launcher so you can run:
      - python3 -m animehub ingest
      - python3 -m animehub sweep --dry-run
      - python3 -m animehub --version
    """
    if argv is None:
        argv = sys.argv[1:]

    if argv and argv[0] in {"--version", "-V"}:
        print(__version__)
        return 0

    from .cli import app
    return app(args=argv, prog_name="animehub")

if __name__ == "__main__":
    sys.exit(cli())
