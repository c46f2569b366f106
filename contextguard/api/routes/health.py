"""
Health Check Route — GET /health
"""

from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter

from contextguard.config import settings

router = APIRouter()


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": "1.0.0",
        "rules_catalog": Path(settings.rules_path).name,
        "workflow_catalog": Path(settings.workflow_path).name,
    }
