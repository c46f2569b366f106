"""
API Request Models — Public request schemas for the HTTP endpoints.

Responses reuse the domain models directly (DetectionResult,
CrossFileReport, RemediationResult).
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from contextguard.models.graph_models import FileAnalysis
from contextguard.models.workflow_models import Diagnosis, RemediateOptions


class DetectRequest(BaseModel):
    """Request body for /detect."""

    project_path: str = Field(..., min_length=1, description="Project root on the server")


class AnalyzeRequest(BaseModel):
    """Request body for /analyze."""

    analyses: list[FileAnalysis] = Field(default_factory=list)
    contents: dict[str, str] = Field(
        default_factory=dict, description="Raw file contents keyed by file path"
    )


class RemediateRequest(BaseModel):
    """Request body for /remediate."""

    project_path: str = Field(..., min_length=1)
    diagnosis: Diagnosis = Field(default_factory=Diagnosis)
    options: RemediateOptions = Field(default_factory=RemediateOptions)
