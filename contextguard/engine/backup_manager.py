"""
Backup Manager — Timestamped full-project copies taken before risky phases.
"""

from __future__ import annotations

import logging
import shutil
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger("contextguard.engine.backup")

IGNORED_IN_BACKUP = ("node_modules", ".git", "__pycache__")


class BackupManager:
    """
    Copies a project tree to `<root>/<name>-backup-<timestamp>`.

    Usage:
        mgr = BackupManager()
        path = mgr.create("/work/project")
        ...
        mgr.restore(path, "/work/project")
    """

    def __init__(self, backup_root: str | Path | None = None) -> None:
        self.backup_root = Path(backup_root) if backup_root else None

    def create(self, project_path: str | Path) -> Path:
        """Snapshot the project; returns the backup directory."""
        project = Path(project_path).resolve()
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        root = self.backup_root or project.parent
        backup_path = root / f"{project.name}-backup-{timestamp}"

        root.mkdir(parents=True, exist_ok=True)
        shutil.copytree(project, backup_path, ignore=shutil.ignore_patterns(*IGNORED_IN_BACKUP))
        logger.info(f"Backup created: {backup_path}")
        return backup_path

    def restore(self, backup_path: str | Path, project_path: str | Path) -> None:
        """Replace the project's files with the backup's contents."""
        backup = Path(backup_path)
        project = Path(project_path)
        if not backup.is_dir():
            raise FileNotFoundError(f"Backup not found: {backup}")

        for child in project.iterdir():
            if child.name in IGNORED_IN_BACKUP:
                continue
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()

        shutil.copytree(backup, project, dirs_exist_ok=True)
        logger.info(f"Project restored from backup: {backup}")
