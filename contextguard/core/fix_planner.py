"""
Fix Planner — Turns classified root causes into an ordered fix plan.

Root causes are handled highest severity first; each type has a fixed step
template. Orders increase strictly in emission sequence.

    estimated_tokens = 100 × steps + 500
    estimated_cost   = estimated_tokens / 1000 × price_per_1k
"""

from __future__ import annotations

import time

from contextguard.models.graph_models import FixPlan, FixStep, FixStepKind, RootCause, RootCauseType
from contextguard.models.rule_models import SEVERITY_RANK

TOKENS_PER_STEP = 100
BASE_TOKENS = 500


def _steps_for(cause: RootCause) -> list[tuple[FixStepKind, str, str]]:
    """(kind, target, action) templates for one root cause."""
    first = cause.affected_files[0] if cause.affected_files else ""

    if cause.type == RootCauseType.AI_HALLUCINATION:
        return [(
            FixStepKind.CREATE,
            first,
            f"Create missing functions/types: {', '.join(cause.evidence)}",
        )]
    if cause.type == RootCauseType.INCOMPLETE_REFACTOR:
        return [(FixStepKind.MODIFY, f, "Add missing export statements") for f in cause.affected_files]
    if cause.type == RootCauseType.CIRCULAR_IMPORT:
        return [(
            FixStepKind.MODIFY,
            first,
            "Extract shared dependencies to reduce circular coupling",
        )]
    if cause.type == RootCauseType.MISSING_EXPORT:
        return [(FixStepKind.MODIFY, f, "Export missing functions/types") for f in cause.affected_files]
    if cause.type == RootCauseType.DUPLICATE_DEFINITION:
        return [(
            FixStepKind.MODIFY,
            first,
            f"Rename or consolidate duplicates: {', '.join(cause.evidence)}",
        )]
    return []


def estimate_tokens(step_count: int) -> int:
    return step_count * TOKENS_PER_STEP + BASE_TOKENS


def generate_fix_plan(root_causes: list[RootCause], cost_per_1k_tokens: float = 0.003) -> FixPlan:
    """Emit fix steps for root causes, most severe first."""
    ordered_causes = sorted(root_causes, key=lambda c: SEVERITY_RANK[c.severity], reverse=True)

    steps: list[FixStep] = []
    for cause in ordered_causes:
        for kind, target, action in _steps_for(cause):
            steps.append(
                FixStep(
                    order=len(steps) + 1,
                    kind=kind,
                    target=target,
                    action=action,
                    root_cause_id=cause.id,
                )
            )

    tokens = estimate_tokens(len(steps))
    return FixPlan(
        id=f"fix-plan-{int(time.time() * 1000)}",
        description=f"Fix {len(root_causes)} root causes with {len(steps)} steps",
        steps=steps,
        estimated_tokens=tokens,
        estimated_cost=(tokens / 1000) * cost_per_1k_tokens,
    )
