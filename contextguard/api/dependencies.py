"""
FastAPI Dependencies — Shared singletons and per-request components injected via Depends().

Detectors and orchestrators hold per-project state, so each request gets its
own; only stateless or append-only collaborators are shared.
"""

from __future__ import annotations

from functools import lru_cache

from contextguard.audit.logger import AuditLogger
from contextguard.core.cross_file import CrossFileAnalyzer
from contextguard.core.symptom_detector import SymptomDetector
from contextguard.engine.orchestrator import RemediationOrchestrator


@lru_cache
def get_audit_logger() -> AuditLogger:
    """Shared audit logger singleton."""
    return AuditLogger()


@lru_cache
def get_cross_file_analyzer() -> CrossFileAnalyzer:
    """Shared analyzer singleton (stateless)."""
    return CrossFileAnalyzer()


def get_symptom_detector() -> SymptomDetector:
    """Fresh detector per request."""
    return SymptomDetector()


def get_orchestrator() -> RemediationOrchestrator:
    """Fresh orchestrator per request, writing to the shared audit trail."""
    return RemediationOrchestrator(
        analyzer=get_cross_file_analyzer(),
        audit_logger=get_audit_logger(),
    )
