"""
Tests for the Remediation Workflow Orchestrator.

Async entry points are driven with asyncio.run so no pytest plugin is needed.
"""

import asyncio
import json
import subprocess

import pytest

from contextguard.audit.logger import AuditLogger
from contextguard.core.symptom_detector import SymptomDetector
from contextguard.engine.backup_manager import BackupManager
from contextguard.engine.orchestrator import RemediationOrchestrator, resolve_execution_order
from contextguard.errors import ConfigError, CycleError
from contextguard.models.graph_models import FileAnalysis
from contextguard.models.workflow_models import Diagnosis, RemediateOptions, WorkflowStep


def _workflow(steps, triggers=None, **extra):
    doc = {
        "workflow": {
            "id": "test-workflow",
            "triggers": triggers
            if triggers is not None
            else [
                {"condition": "severity == 'critical'", "entry_point": "main"},
                {"condition": "severity in ['high', 'medium']", "entry_point": "main"},
            ],
        },
        "phases": {"main": {"name": "main", "steps": steps}},
    }
    doc.update(extra)
    return doc


def _run(orchestrator, project, severity="high", **options):
    return asyncio.run(
        orchestrator.remediate(
            project,
            {"severity": severity, "syndrome": "context_collapse"},
            RemediateOptions(**options),
        )
    )


@pytest.fixture
def project(make_project):
    return make_project({"file.txt": "original", "src/app.ts": "// hack\n"})


# ─── Required failures ────────────────────────────────────────────────

def test_required_failure_stops_dependents(tmp_path, write_yaml, script_factory, project):
    script_factory("fail.py", "sys.exit(1)")
    script_factory("mark.py", "pathlib.Path(sys.argv[1], 'ran_b').write_text('x')")
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "a", "type": "script", "script": "fail.py", "required": True},
        {"id": "b", "type": "script", "script": "mark.py", "depends_on": ["a"]},
    ]))

    result = _run(RemediationOrchestrator(config), project)

    assert result.steps_failed == ["a"]
    assert result.steps_completed == []
    assert result.success is False
    assert not (project / "ran_b").exists()
    assert result.artifacts.metrics["steps_skipped"] == 1


def test_optional_failure_continues(write_yaml, script_factory, project):
    script_factory("fail.py", "sys.exit(3)")
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "a", "type": "script", "script": "fail.py", "required": False},
        {"id": "b", "type": "manual", "depends_on": ["a"]},
    ]))

    result = _run(RemediationOrchestrator(config), project)

    assert result.steps_failed == ["a"]
    assert result.steps_completed == ["b"]
    assert result.success is False
    assert result.rolled_back is False
    assert any("exited with code 3" in line for line in result.artifacts.logs)


def test_successful_script_receives_project_path(write_yaml, script_factory, project):
    script_factory("touch.py", "pathlib.Path(sys.argv[1], 'touched').write_text('ok')\nprint('done')")
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "touch", "type": "automation", "script": "touch.py", "required": True},
    ]))

    result = _run(RemediationOrchestrator(config), project)

    assert result.success is True
    assert (project / "touched").read_text() == "ok"
    assert any("Script output: done" in line for line in result.artifacts.logs)


def test_script_defaults_to_step_id(write_yaml, script_factory, project):
    script_factory("cleanup.py", "pathlib.Path(sys.argv[1], 'cleaned').write_text('1')")
    config = write_yaml("workflow.yaml", _workflow([{"id": "cleanup", "type": "script"}]))

    result = _run(RemediationOrchestrator(config), project)

    assert result.steps_completed == ["cleanup"]
    assert (project / "cleaned").exists()


def test_missing_script_is_a_step_failure(write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "ghost", "type": "script", "script": "does_not_exist.sh"},
    ]))

    result = _run(RemediationOrchestrator(config), project)

    assert result.steps_failed == ["ghost"]


# ─── Dry run ──────────────────────────────────────────────────────────

def test_dry_run_never_spawns_or_backs_up(tmp_path, write_yaml, script_factory, project, monkeypatch):
    script_factory("fail.py", "sys.exit(1)")
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "a", "type": "script", "script": "fail.py", "required": True},
        {"id": "b", "type": "script", "script": "fail.py", "depends_on": ["a"]},
        {"id": "c", "type": "analysis"},
    ]))
    calls = []
    monkeypatch.setattr(subprocess, "run", lambda *a, **kw: calls.append(a))
    backups = tmp_path / "backups"

    result = _run(
        RemediationOrchestrator(config, backup_manager=BackupManager(backups)),
        project,
        severity="critical",
        dry_run=True,
        create_backup=True,
    )

    assert calls == []
    assert result.success is True
    assert result.steps_completed == ["a", "b", "c"]
    assert result.artifacts.backup_path is None
    assert not backups.exists()
    assert sum("[DRY RUN] Would execute" in line for line in result.artifacts.logs) == 3


# ─── Ordering ─────────────────────────────────────────────────────────

def test_steps_run_in_dependency_order(write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "finish", "depends_on": ["left", "right"]},
        {"id": "right", "depends_on": ["left"]},
        {"id": "left"},
    ]))

    result = _run(RemediationOrchestrator(config), project)

    assert result.steps_completed == ["left", "right", "finish"]


def test_resolve_execution_order_rejects_cycles():
    steps = [WorkflowStep(id="a", depends_on=["b"]), WorkflowStep(id="b", depends_on=["a"])]

    with pytest.raises(CycleError):
        resolve_execution_order(steps)


# ─── Phase selection ──────────────────────────────────────────────────

def test_first_matching_trigger_selects_phase(write_yaml):
    doc = _workflow([{"id": "x"}], triggers=[
        {"condition": "severity == 'critical'", "entry_point": "main"},
        {"condition": "severity == 'low'", "entry_point": "other"},
    ])
    doc["phases"]["other"] = {"steps": [{"id": "y"}]}
    orchestrator = RemediationOrchestrator(write_yaml("workflow.yaml", doc))
    config = orchestrator.load_config()

    assert orchestrator.determine_entry_point(config, "critical") == "main"
    assert orchestrator.determine_entry_point(config, "LOW") == "other"
    assert orchestrator.determine_entry_point(config, "medium") == "optimization_phase"
    assert orchestrator.determine_entry_point(config, None) == "optimization_phase"
    assert config.phases["other"].name == "other"


def test_missing_default_phase_is_config_error(write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([{"id": "x"}]))

    with pytest.raises(ConfigError, match="optimization_phase"):
        _run(RemediationOrchestrator(config), project, severity="low")


# ─── Config errors ────────────────────────────────────────────────────

def test_missing_config_raises(tmp_path, project):
    with pytest.raises(ConfigError):
        _run(RemediationOrchestrator(tmp_path / "nope.yaml"), project)


def test_cyclic_depends_on_rejected_at_load(write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "a", "depends_on": ["b"]},
        {"id": "b", "depends_on": ["a"]},
    ]))

    with pytest.raises(ConfigError, match="cycle"):
        _run(RemediationOrchestrator(config), project)


def test_trigger_to_undefined_phase_rejected(write_yaml):
    config = write_yaml("workflow.yaml", _workflow(
        [{"id": "a"}], triggers=[{"condition": "severity == 'high'", "entry_point": "nowhere"}]
    ))

    with pytest.raises(ConfigError, match="nowhere"):
        RemediationOrchestrator(config).load_config()


def test_duplicate_step_ids_rejected(write_yaml):
    config = write_yaml("workflow.yaml", _workflow([{"id": "a"}, {"id": "a"}]))

    with pytest.raises(ConfigError, match="Duplicate"):
        RemediationOrchestrator(config).load_config()


def test_malformed_yaml_rejected(tmp_path):
    config = tmp_path / "workflow.yaml"
    config.write_text("phases: [unclosed\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        RemediationOrchestrator(config).load_config()


# ─── Backup and rollback ──────────────────────────────────────────────

def test_critical_failure_restores_backup(tmp_path, write_yaml, script_factory, project):
    script_factory(
        "corrupt.py",
        "root = pathlib.Path(sys.argv[1])\n"
        "(root / 'file.txt').write_text('corrupted')\n"
        "(root / 'extra.txt').write_text('new')",
    )
    script_factory("fail.py", "sys.exit(1)")
    config = write_yaml("workflow.yaml", _workflow(
        [
            {"id": "corrupt", "type": "script", "script": "corrupt.py", "rollback_point": True},
            {"id": "verify", "type": "script", "script": "fail.py", "required": True,
             "depends_on": ["corrupt"]},
        ],
        rollback_procedures={"restore_backup": {"action": "restore_backup"}},
    ))
    orchestrator = RemediationOrchestrator(config, backup_manager=BackupManager(tmp_path / "backups"))

    result = _run(orchestrator, project, severity="critical", create_backup=True)

    assert result.rolled_back is True
    assert result.steps_completed == ["corrupt"]
    assert result.steps_failed == ["verify"]
    assert result.artifacts.backup_path is not None
    assert (project / "file.txt").read_text() == "original"
    assert not (project / "extra.txt").exists()
    assert (project / "src" / "app.ts").exists()
    assert any("Last rollback point: corrupt" in line for line in result.artifacts.logs)


def test_backup_only_for_critical(tmp_path, write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([{"id": "a"}]))
    backups = tmp_path / "backups"
    orchestrator = RemediationOrchestrator(config, backup_manager=BackupManager(backups))

    result = _run(orchestrator, project, severity="high", create_backup=True)

    assert result.artifacts.backup_path is None
    assert not backups.exists()


def test_custom_rollback_handler(write_yaml, script_factory, project):
    script_factory("fail.py", "sys.exit(1)")
    calls = []
    config = write_yaml("workflow.yaml", _workflow(
        [{"id": "a", "type": "script", "script": "fail.py", "required": True}],
        rollback_procedures={"notify": {"channel": "ops"}},
    ))
    orchestrator = RemediationOrchestrator(
        config,
        rollback_handlers={"notify": lambda path, step, proc: calls.append((step.id, proc)) or True},
    )

    result = _run(orchestrator, project)

    assert result.rolled_back is True
    assert calls == [("a", {"channel": "ops"})]


# ─── Recovery and fallback ────────────────────────────────────────────

def test_recovery_step_uses_registered_handler(write_yaml, project):
    seen = []
    config = write_yaml("workflow.yaml", _workflow(
        [{"id": "restore-contracts", "type": "recovery"}],
        recovery_strategies={"restore_contracts": {"mode": "exports"}},
    ))
    orchestrator = RemediationOrchestrator(
        config,
        recovery_handlers={
            "restore_contracts": lambda path, step, cfg: seen.append(cfg) or True,
        },
    )

    result = _run(orchestrator, project)

    assert result.steps_completed == ["restore-contracts"]
    assert seen == [{"mode": "exports"}]


def test_unknown_recovery_strategy_fails(write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([{"id": "mystery", "type": "recovery"}]))

    result = _run(RemediationOrchestrator(config), project)

    assert result.steps_failed == ["mystery"]
    assert any("Unknown recovery strategy: mystery" in line for line in result.artifacts.logs)


def test_fallback_recovers_failed_step(write_yaml, script_factory, project):
    script_factory("fail.py", "sys.exit(1)")
    config = write_yaml("workflow.yaml", _workflow(
        [{"id": "a", "type": "script", "script": "fail.py", "required": True,
          "fallback": "manual_review"}],
        recovery_strategies={"manual_review": {"description": "hand off"}},
    ))

    result = _run(RemediationOrchestrator(config), project)

    assert result.success is True
    assert result.steps_completed == ["a"]
    assert result.artifacts.metrics["step_metrics"]["a"]["success"] is True


def _crash(*args):
    raise RuntimeError("handler crashed")


def test_raising_recovery_handler_is_a_step_failure(write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "fix_it", "type": "recovery", "required": False},
        {"id": "after", "depends_on": ["fix_it"]},
    ]))
    orchestrator = RemediationOrchestrator(config, recovery_handlers={"fix_it": _crash})

    result = _run(orchestrator, project)

    assert result.steps_failed == ["fix_it"]
    assert result.steps_completed == ["after"]
    assert result.success is False
    assert any("RuntimeError: handler crashed" in line for line in result.artifacts.logs)


def test_raising_fallback_leaves_step_failed(write_yaml, script_factory, project):
    script_factory("fail.py", "sys.exit(1)")
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "a", "type": "script", "script": "fail.py", "required": True,
         "fallback": "manual_review"},
    ]))
    orchestrator = RemediationOrchestrator(config, recovery_handlers={"manual_review": _crash})

    result = _run(orchestrator, project)

    assert result.steps_failed == ["a"]
    assert result.success is False
    assert any("Fallback 'manual_review' failed: RuntimeError" in line for line in result.artifacts.logs)


def test_raising_rollback_handler_does_not_abort_run(write_yaml, script_factory, project):
    script_factory("fail.py", "sys.exit(1)")
    calls = []
    config = write_yaml("workflow.yaml", _workflow(
        [{"id": "a", "type": "script", "script": "fail.py", "required": True}],
        rollback_procedures={"explode": {}, "notify": {}},
    ))
    orchestrator = RemediationOrchestrator(
        config,
        rollback_handlers={
            "explode": _crash,
            "notify": lambda path, step, proc: calls.append(step.id) or True,
        },
    )

    result = _run(orchestrator, project)

    assert result.rolled_back is True
    assert result.steps_failed == ["a"]
    assert calls == ["a"]
    assert any("Rollback procedure 'explode' failed" in line for line in result.artifacts.logs)


def test_declared_validation_is_logged(write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([
        {"id": "verify", "validation": ["no_new_symptoms", "tests_pass"]},
    ]))

    result = _run(RemediationOrchestrator(config), project, dry_run=True)

    assert result.success is True
    assert any(
        "Validation checks declared for verify: no_new_symptoms, tests_pass" in line
        for line in result.artifacts.logs
    )


# ─── Analysis steps ───────────────────────────────────────────────────

def test_analysis_step_runs_detector(write_yaml, project, workaround_catalog):
    rules = write_yaml("rules.yaml", workaround_catalog)
    config = write_yaml("workflow.yaml", _workflow([{"id": "scan", "type": "analysis", "required": True}]))
    orchestrator = RemediationOrchestrator(config, detector=SymptomDetector(rules_path=rules))

    result = _run(orchestrator, project)

    assert result.success is True
    assert any("Analysis found 1 symptoms" in line for line in result.artifacts.logs)


def test_analysis_step_fails_on_broken_catalog(tmp_path, write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([{"id": "scan", "type": "analysis"}]))
    orchestrator = RemediationOrchestrator(
        config, detector=SymptomDetector(rules_path=tmp_path / "missing.yaml")
    )

    result = _run(orchestrator, project)

    assert result.steps_failed == ["scan"]


def test_cross_file_step_uses_analysis_provider(write_yaml, project):
    def provider(path):
        analyses = [FileAnalysis(file="a.ts", imports=["ghost"])]
        return analyses, {"a.ts": "ghost()\n"}

    config = write_yaml("workflow.yaml", _workflow([
        {"id": "cross_file_audit", "type": "analysis"},
    ]))

    result = _run(RemediationOrchestrator(config, analysis_provider=provider), project)

    assert result.success is True
    assert any("1 root causes" in line for line in result.artifacts.logs)


def test_raising_analysis_provider_fails_required_step(write_yaml, project):
    def provider(path):
        raise ValueError("provider crashed")

    config = write_yaml("workflow.yaml", _workflow([
        {"id": "cross_file_scan", "type": "analysis", "required": True},
        {"id": "later", "depends_on": ["cross_file_scan"]},
    ]))

    result = _run(RemediationOrchestrator(config, analysis_provider=provider), project)

    assert result.steps_failed == ["cross_file_scan"]
    assert result.steps_completed == []
    assert result.success is False
    assert any("ValueError: provider crashed" in line for line in result.artifacts.logs)


# ─── Audit and metrics ────────────────────────────────────────────────

def test_run_is_audited(tmp_path, write_yaml, project, make_project):
    audit = AuditLogger(tmp_path / "audit.jsonl")
    config = write_yaml("workflow.yaml", _workflow([{"id": "a"}]))
    orchestrator = RemediationOrchestrator(config, audit_logger=audit)
    other = make_project({"b.py": "x\n"}, name="other")

    _run(orchestrator, project, dry_run=True)
    _run(orchestrator, other, dry_run=True)

    [entry] = audit.history(project_path=str(project))
    assert entry.workflow_id == "test-workflow"
    assert entry.phase_executed == "main"
    assert entry.success is True
    assert entry.dry_run is True
    assert entry.severity == "high"
    assert json.loads(entry.model_dump_json())["run_id"] == entry.run_id
    assert len(audit.history()) == 2


def test_execution_metrics_accumulate(write_yaml, project):
    ok = write_yaml("ok.yaml", _workflow([{"id": "a"}]))
    orchestrator = RemediationOrchestrator(ok)

    assert orchestrator.execution_metrics()["runs"] == 0
    _run(orchestrator, project)
    _run(orchestrator, project)

    metrics = orchestrator.execution_metrics()
    assert metrics["runs"] == 2
    assert metrics["success_rate"] == 1.0


def test_diagnosis_model_and_logs_are_per_call(write_yaml, project):
    config = write_yaml("workflow.yaml", _workflow([{"id": "a"}]))
    orchestrator = RemediationOrchestrator(config)

    first = asyncio.run(orchestrator.remediate(project, Diagnosis(severity="high")))
    second = asyncio.run(orchestrator.remediate(project, Diagnosis(severity="high")))

    assert len(first.artifacts.logs) == len(second.artifacts.logs)
    assert all(line.startswith("[") for line in first.artifacts.logs)
