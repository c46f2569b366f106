"""
Detect Route — POST /detect

Scores a project on the server's filesystem against the rule catalog.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException

from contextguard.api.dependencies import get_symptom_detector
from contextguard.core.symptom_detector import SymptomDetector
from contextguard.models.api_models import DetectRequest
from contextguard.models.rule_models import DetectionResult

logger = logging.getLogger("contextguard.api.detect")

router = APIRouter()


@router.post("/detect", response_model=DetectionResult)
async def detect(
    request: DetectRequest,
    detector: SymptomDetector = Depends(get_symptom_detector),
):
    """Run the symptom detector over a project directory."""
    if not Path(request.project_path).is_dir():
        raise HTTPException(status_code=404, detail=f"Project not found: {request.project_path}")

    logger.info(f"Detect requested for {request.project_path}")
    return await asyncio.to_thread(detector.detect, request.project_path)
