"""
ContextGuard Configuration — pydantic-settings based.

All settings are read from environment variables (prefix CONTEXTGUARD_) or .env file.
Nothing is required: every field has a working default.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """Application-wide settings sourced from environment variables."""

    # ── Catalogs ──
    rules_path: str = Field(
        default=str(PACKAGE_DIR / "rules" / "symptoms.yaml"),
        description="Path to the YAML symptom rule catalog",
    )
    workflow_path: str = Field(
        default=str(PACKAGE_DIR / "workflows" / "remediation.yaml"),
        description="Path to the YAML remediation workflow catalog",
    )

    # ── Detection ──
    confidence_threshold: float = Field(
        default=0.70,
        ge=0.0,
        le=1.0,
        description="Fallback threshold when the catalog has no detection_config",
    )
    negation_lookback_chars: int = Field(
        default=50, description="Characters before a match searched for negation tokens"
    )
    metrics_history_size: int = Field(
        default=1000, description="Confidence/latency samples kept for optimization reports"
    )
    source_extensions: list[str] = Field(
        default=[".ts", ".tsx", ".js", ".jsx", ".vue", ".py", ".java", ".php", ".rb", ".go"],
        description="File extensions scanned by the symptom detector",
    )
    excluded_dirs: list[str] = Field(
        default=["node_modules", "dist", "build", ".git", "coverage", "test", "spec"],
        description="Directory names never descended into",
    )

    # ── Fix planning ──
    cost_per_1k_tokens: float = Field(
        default=0.003, description="Price used for fix plan cost estimates"
    )

    # ── Remediation ──
    default_phase: str = Field(
        default="optimization_phase",
        description="Phase run when no trigger matches the diagnosis severity",
    )
    backup_root: str | None = Field(
        default=None,
        description="Directory for project backups (defaults to the project's parent)",
    )
    script_timeout_seconds: float | None = Field(
        default=None,
        description="Optional per-script timeout; unset means scripts run to exit",
    )

    # ── Audit ──
    audit_log_path: str = Field(
        default="remediation_audit.jsonl", description="Path to JSON-lines audit log file"
    )

    model_config = {
        "env_prefix": "CONTEXTGUARD_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Singleton instance, imported by other modules
settings = Settings()
