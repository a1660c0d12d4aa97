"""Database backup: timestamped copies of the SQLite file with a retention limit."""

from __future__ import annotations

import logging
import shutil
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

_BACKUP_PREFIX = "waterquest_"
_KEEP_BACKUPS = 8


def create_backup(database_path: str, backup_dir: str | Path | None = None) -> Path | None:
    """Copy the SQLite database to ``<backup_dir>/waterquest_<timestamp>.db``.

    Args:
        database_path: Path to the source database file.
        backup_dir: Destination folder; defaults to ``backups/`` next to the database.

    Returns:
        Path to the created backup, or None when the copy failed.
    """
    source = Path(database_path)
    if not source.exists():
        logger.warning("Backup: source database not found: %s", source)
        return None

    target_dir = Path(backup_dir) if backup_dir is not None else source.parent / "backups"
    target_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    dest = target_dir / f"{_BACKUP_PREFIX}{timestamp}.db"

    try:
        shutil.copy2(source, dest)
    except OSError as exc:
        logger.error("Backup failed: %s", exc)
        return None

    logger.info("Backup created: %s", dest)
    prune_backups(target_dir)
    return dest


def prune_backups(backup_dir: Path, keep: int = _KEEP_BACKUPS) -> list[Path]:
    """Delete all but the newest ``keep`` backups. Returns the removed paths."""
    backups = sorted(backup_dir.glob(f"{_BACKUP_PREFIX}*.db"))
    removed = []
    for path in backups[:-keep] if len(backups) > keep else []:
        try:
            path.unlink()
        except OSError as exc:
            logger.warning("Could not remove old backup %s: %s", path, exc)
            continue
        removed.append(path)
        logger.debug("Removed old backup: %s", path)
    return removed
