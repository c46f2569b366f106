"""
Test fixtures shared across all ContextGuard tests.
"""

import sys
from pathlib import Path

import pytest
import yaml


@pytest.fixture
def write_yaml(tmp_path):
    """Factory: dump a dict to a YAML file under tmp_path and return its path."""

    def _write(name: str, data: dict) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_project(tmp_path):
    """Factory: create a project tree from {relative_path: content}."""

    def _make(files: dict[str, str], name: str = "project") -> Path:
        root = tmp_path / name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return _make


@pytest.fixture
def workaround_catalog():
    """One critical rule matching hack|workaround with weight 10."""
    return {
        "critical_symptoms": [
            {
                "id": "quick_workarounds",
                "name": "Quick workarounds",
                "description": "Hacks layered over broken behaviour",
                "weight": 10,
                "patterns": [{"regex": "hack|workaround"}],
            }
        ],
        "high_symptoms": [],
        "medium_symptoms": [],
        "false_positive_filters": {"development_tools": []},
        "detection_config": {"confidence_threshold": 0.70},
    }


@pytest.fixture
def mixed_catalog():
    """Rules across all three tiers."""
    return {
        "critical_symptoms": [
            {
                "id": "suppressed_type_errors",
                "name": "Suppressed type errors",
                "weight": 9,
                "patterns": [{"regex": "@ts-ignore"}],
                "detection_rules": {"if": {"condition": "near an import"}},
            }
        ],
        "high_symptoms": [
            {
                "id": "stale_todos",
                "name": "Stale TODOs",
                "weight": 6,
                "patterns": [{"regex": r"TODO[^\n]*"}],
                "settings": {"max_age_days": 7},
            }
        ],
        "medium_symptoms": [
            {
                "id": "debug_output",
                "name": "Debug output",
                "weight": 3,
                "patterns": [{"regex": r"console\.log\("}],
            }
        ],
        "false_positive_filters": {"development_tools": ["**/scripts/**"]},
        "detection_config": {"confidence_threshold": 0.70},
    }


@pytest.fixture
def script_factory(tmp_path):
    """Factory: write a Python script next to the workflow file."""

    def _script(name: str, body: str) -> Path:
        path = tmp_path / name
        path.write_text(f"import sys\nimport pathlib\n{body}\n", encoding="utf-8")
        return path

    return _script


@pytest.fixture
def python_executable():
    return sys.executable
