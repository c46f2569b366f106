"""
Workflow Loader — Parses and validates the YAML remediation workflow.

A workflow is rejected (ConfigError) when it cannot be read or parsed, when a
trigger points at an undefined phase, when a phase repeats a step id, or when
a phase's depends_on declarations form a cycle.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from contextguard.core.toposort import topological_order
from contextguard.errors import ConfigError
from contextguard.models.workflow_models import WorkflowConfig

logger = logging.getLogger("contextguard.engine.workflow_loader")


def load_workflow(path: str | Path) -> WorkflowConfig:
    """Load and validate a workflow document. Raises ConfigError on any defect."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Failed to load workflow config: {e}", {"path": str(path)}) from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Workflow config is not valid YAML: {e}", {"path": str(path)}) from e

    if not isinstance(data, dict):
        raise ConfigError("Workflow config must be a mapping", {"path": str(path)})

    try:
        config = WorkflowConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Workflow config failed validation: {e}", {"path": str(path)}) from e

    validate_workflow(config)
    logger.info(
        f"Loaded workflow '{config.workflow.id}' with {len(config.phases)} phases from {path}"
    )
    return config


def validate_workflow(config: WorkflowConfig) -> None:
    """Structural checks that YAML schema validation cannot express."""
    for key, phase in config.phases.items():
        if not phase.name:
            phase.name = key

        seen: set[str] = set()
        for step in phase.steps:
            if step.id in seen:
                raise ConfigError(f"Duplicate step id '{step.id}' in phase '{key}'")
            seen.add(step.id)

        # CycleError is a ConfigError
        topological_order(phase.steps, key=lambda s: s.id, depends_on=lambda s: s.depends_on)

    for trigger in config.workflow.triggers:
        if trigger.entry_point not in config.phases:
            raise ConfigError(
                f"Trigger '{trigger.condition}' points at undefined phase '{trigger.entry_point}'"
            )


class WorkflowLoader:
    """Caches one parsed workflow document until reload() is called."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._config: WorkflowConfig | None = None

    def get(self) -> WorkflowConfig:
        if self._config is None:
            return self.reload()
        return self._config

    def reload(self) -> WorkflowConfig:
        self._config = load_workflow(self.path)
        return self._config
