"""
Remediate Route — POST /remediate

Runs the workflow phase selected by the diagnosis severity. Step failures come
back as a normal result with success=false; only configuration problems are errors.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException

from contextguard.api.dependencies import get_orchestrator
from contextguard.engine.orchestrator import RemediationOrchestrator
from contextguard.models.api_models import RemediateRequest
from contextguard.models.workflow_models import RemediationResult

logger = logging.getLogger("contextguard.api.remediate")

router = APIRouter()


@router.post("/remediate", response_model=RemediationResult)
async def remediate(
    request: RemediateRequest,
    orchestrator: RemediationOrchestrator = Depends(get_orchestrator),
):
    """Execute a remediation phase against a project directory."""
    if not Path(request.project_path).is_dir():
        raise HTTPException(status_code=404, detail=f"Project not found: {request.project_path}")

    result = await orchestrator.remediate(
        request.project_path, request.diagnosis, request.options
    )
    logger.info(
        f"Remediation of {request.project_path}: phase={result.phase_executed} "
        f"success={result.success}"
    )
    return result
