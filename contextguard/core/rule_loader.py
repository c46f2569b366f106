"""
Rule Loader — Parses the YAML rule catalog and caches it.

The cache is keyed by the file's modification time, so editing the catalog
on disk takes effect on the next detect() without restarting.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from contextguard.errors import ConfigError
from contextguard.models.rule_models import RuleCatalog

logger = logging.getLogger("contextguard.core.rule_loader")


def load_rules(path: str | Path) -> RuleCatalog:
    """
    Parse and validate a rule catalog.

    Raises:
        ConfigError: file missing/unreadable, invalid YAML, schema violation,
            or a pattern that is not a valid regex.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Rule catalog not readable: {e}", {"path": str(path)}) from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Rule catalog is not valid YAML: {e}", {"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigError("Rule catalog must be a mapping", {"path": str(path)})

    try:
        catalog = RuleCatalog.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Rule catalog failed validation: {e}", {"path": str(path)}) from e

    logger.info(f"Loaded {len(catalog.all_rules())} rules from {path}")
    return catalog


class RuleLoader:
    """Caches one catalog and reloads it when the file changes on disk."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._catalog: RuleCatalog | None = None
        self._mtime: float | None = None

    def get(self) -> RuleCatalog:
        """Return the cached catalog, reloading if the file was modified."""
        mtime = self._current_mtime()
        if self._catalog is None or (mtime is not None and mtime != self._mtime):
            return self.reload()
        return self._catalog

    def reload(self) -> RuleCatalog:
        self._catalog = load_rules(self.path)
        self._mtime = self._current_mtime()
        return self._catalog

    def _current_mtime(self) -> float | None:
        try:
            return os.stat(self.path).st_mtime
        except OSError:
            return None
