"""Programmatic Alembic upgrades for the delivery job database."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

logger = logging.getLogger(__name__)

# src/form_relay/storage/ -> repository root holding alembic.ini and alembic/
_PROJECT_ROOT = Path(__file__).resolve().parents[3]


def upgrade_head(db_path: Path) -> None:
    """Bring the SQLite database at `db_path` to the latest schema revision."""

    config = Config(str(_PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(_PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    logger.debug("Upgrading delivery schema at %s", db_path)
    command.upgrade(config, "head")
