"""
ContextGuard FastAPI Application.

  GET  /health     → {"status": "ok"}
  POST /detect     → score a project against the symptom rule catalog
  POST /analyze    → cross-file dependency analysis + fix plan
  POST /remediate  → run the remediation workflow phase chosen by severity
  GET  /audit      → recent remediation runs from the audit trail
"""

from __future__ import annotations

import logging

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contextguard.api.routes.analyze import router as analyze_router
from contextguard.api.routes.audit import router as audit_router
from contextguard.api.routes.detect import router as detect_router
from contextguard.api.routes.health import router as health_router
from contextguard.api.routes.remediate import router as remediate_router
from contextguard.errors import ConfigError, ContextGuardError

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("contextguard")

app = FastAPI(
    title="ContextGuard",
    description="Context-collapse triage: symptom detection, cross-file analysis, remediation workflows",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(detect_router)
app.include_router(analyze_router)
app.include_router(remediate_router)
app.include_router(audit_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = await request.body()
    logger.error(f"Validation Error. Raw body: {body.decode('utf-8')[:500]} | Errors: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors(), "body": body.decode("utf-8")[:100]},
    )


@app.exception_handler(ConfigError)
async def config_error_handler(request: Request, exc: ConfigError):
    logger.error(f"Configuration error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "config_error", "detail": exc.message, "context": exc.details},
    )


@app.exception_handler(ContextGuardError)
async def contextguard_error_handler(request: Request, exc: ContextGuardError):
    logger.error(f"Request to {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=422,
        content={"error": type(exc).__name__, "detail": exc.message, "context": exc.details},
    )
