"""
Analyze Route — POST /analyze

Resolves cross-file references from externally supplied file analyses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from contextguard.api.dependencies import get_cross_file_analyzer
from contextguard.core.cross_file import CrossFileAnalyzer
from contextguard.models.api_models import AnalyzeRequest
from contextguard.models.graph_models import CrossFileReport

router = APIRouter()


@router.post("/analyze", response_model=CrossFileReport)
async def analyze(
    request: AnalyzeRequest,
    analyzer: CrossFileAnalyzer = Depends(get_cross_file_analyzer),
):
    """Dependencies, root causes, and a fix plan for the submitted files."""
    return analyzer.analyze(request.analyses, request.contents)
