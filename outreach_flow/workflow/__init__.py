"""Campaign workflow engine: definitions, step execution and branching."""

from outreach_flow.workflow.conditions import evaluate
from outreach_flow.workflow.definition import (
    CampaignDefinition,
    Edge,
    Step,
    parse_step_config,
    validate_definition,
)
from outreach_flow.workflow.engine import HaltReason, WorkflowEngine, WorkflowResult, build_engine
from outreach_flow.workflow.executor import StepExecutor, StepOutcome

__all__ = [
    "CampaignDefinition",
    "Step",
    "Edge",
    "parse_step_config",
    "validate_definition",
    "evaluate",
    "StepExecutor",
    "StepOutcome",
    "WorkflowEngine",
    "WorkflowResult",
    "HaltReason",
    "build_engine",
]
