"""Bring the database schema up to date before the API starts.

    python -m drc.migrate              # upgrade to head
    python -m drc.migrate down 001     # roll back to a revision

Exits non-zero when the migration fails so the deploy is retried.
"""

import logging
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from alembic.util import CommandError
from sqlalchemy.exc import SQLAlchemyError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("drc.migrate")

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def alembic_config() -> Config:
    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    return cfg


def head_revision(cfg: Config) -> str | None:
    return ScriptDirectory.from_config(cfg).get_current_head()


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    cfg = alembic_config()
    try:
        if args and args[0] == "down":
            target = args[1] if len(args) > 1 else "-1"
            logger.info(f"Rolling schema back to {target} ...")
            command.downgrade(cfg, target)
        else:
            logger.info(f"Upgrading schema to head ({head_revision(cfg)}) ...")
            command.upgrade(cfg, "head")
    except (CommandError, SQLAlchemyError, OSError) as exc:
        logger.error(f"Alembic migration failed: {exc}")
        sys.exit(1)
    logger.info("Migrations complete")


if __name__ == "__main__":
    main()
