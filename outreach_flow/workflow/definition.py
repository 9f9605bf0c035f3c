"""Campaign workflow graphs: steps, edges and per-type step configs.

A campaign's workflow is stored as ``{"steps": [...], "edges": [...]}``.
Steps keep their raw config map; ``parse_step_config`` turns it into the typed
config for that step type and is the single place config fields are checked.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator

from outreach_flow.errors import ConfigurationError, DanglingStep, NoStartStep, StepValidationError

logger = logging.getLogger(__name__)

CONTROL_STEP_TYPES = ("start", "end", "delay", "condition", "lead_generation")

CHANNEL_STEP_TYPES = (
    "linkedin_connect",
    "linkedin_message",
    "linkedin_visit",
    "linkedin_follow",
    "voice_agent_call",
    "email_send",
    "email_followup",
)


# --- Typed step configs ---

class StepConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class EmptyConfig(StepConfig):
    pass


class DelayConfig(StepConfig):
    days: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("delayDays", "delay_days", "days"))
    hours: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("delayHours", "delay_hours", "hours"))
    minutes: Optional[int] = Field(default=None, ge=0, validation_alias=AliasChoices("delayMinutes", "delay_minutes", "minutes"))

    @model_validator(mode="after")
    def _needs_a_unit(self):
        if self.days is None and self.hours is None and self.minutes is None:
            raise ValueError("at least one of days, hours or minutes is required")
        return self

    @property
    def total_seconds(self) -> int:
        return (self.days or 0) * 86400 + (self.hours or 0) * 3600 + (self.minutes or 0) * 60


class ProfileCriteria(BaseModel):
    title: Optional[str] = None
    seniority: Optional[str] = None
    industry: Optional[str] = None


class ConditionConfig(StepConfig):
    condition_type: str = Field(min_length=1, validation_alias=AliasChoices("conditionType", "condition", "condition_type"))
    profile_criteria: ProfileCriteria = Field(
        default_factory=ProfileCriteria, validation_alias=AliasChoices("profileCriteria", "profile_criteria")
    )
    min_engagement_score: float = Field(default=0, validation_alias=AliasChoices("minEngagementScore", "min_engagement_score"))
    days_elapsed: float = Field(default=0, validation_alias=AliasChoices("daysElapsed", "days_elapsed"))
    field_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("fieldName", "field_name"))
    expected_value: Any = Field(default=None, validation_alias=AliasChoices("expectedValue", "expected_value"))
    operator: str = "equals"


class LeadGenerationConfig(StepConfig):
    filters: dict = Field(default_factory=dict, validation_alias=AliasChoices("leadGenerationFilters", "filters"))
    limit: int = Field(default=25, ge=1, validation_alias=AliasChoices("leadGenerationLimit", "leadsPerDay", "limit"))


class LinkedInConnectConfig(StepConfig):
    message: str = ""


class LinkedInMessageConfig(StepConfig):
    message: str = Field(min_length=1)


class EmailConfig(StepConfig):
    subject: str = Field(min_length=1)
    body: str = Field(min_length=1)


class VoiceCallConfig(StepConfig):
    voice_agent_id: str = Field(min_length=1, validation_alias=AliasChoices("voiceAgentId", "voice_agent_id"))
    voice_context: str = Field(min_length=1, validation_alias=AliasChoices("voiceContext", "added_context", "voice_context"))


CONFIG_TYPES: dict[str, type[StepConfig]] = {
    "start": EmptyConfig,
    "end": EmptyConfig,
    "delay": DelayConfig,
    "condition": ConditionConfig,
    "lead_generation": LeadGenerationConfig,
    "linkedin_connect": LinkedInConnectConfig,
    "linkedin_message": LinkedInMessageConfig,
    "linkedin_visit": EmptyConfig,
    "linkedin_follow": EmptyConfig,
    "voice_agent_call": VoiceCallConfig,
    "email_send": EmailConfig,
    "email_followup": EmailConfig,
}


def parse_step_config(step_type: str, config: dict | None) -> StepConfig:
    """Validate a raw config map against its step type's config model."""
    model = CONFIG_TYPES.get(step_type)
    if model is None:
        raise StepValidationError(step_type, "unsupported step type")
    try:
        return model.model_validate(config or {})
    except ValidationError as e:
        problems = []
        for err in e.errors():
            loc = ".".join(str(p) for p in err["loc"]) or "config"
            problems.append(f"{loc}: {err['msg']}")
        raise StepValidationError(step_type, "; ".join(problems)) from e


# --- Graph ---

@dataclass
class Step:
    id: str
    type: str
    config: dict = field(default_factory=dict)


@dataclass
class Edge:
    source: str
    target: str
    source_handle: Optional[str] = None


@dataclass
class CampaignDefinition:
    id: Optional[int] = None
    steps: list[Step] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)

    @classmethod
    def from_workflow(cls, workflow: dict | None, campaign_id: int | None = None) -> "CampaignDefinition":
        workflow = workflow or {}
        steps = []
        for raw in workflow.get("steps") or []:
            config = raw.get("config")
            if config is None:
                config = raw.get("data") or {}
            steps.append(Step(id=str(raw.get("id", "")), type=str(raw.get("type", "")), config=dict(config)))

        edges = []
        for raw in workflow.get("edges") or []:
            edges.append(Edge(
                source=str(raw.get("source", "")),
                target=str(raw.get("target", "")),
                source_handle=raw.get("sourceHandle") or raw.get("source_handle"),
            ))
        return cls(id=campaign_id, steps=steps, edges=edges)

    def step(self, step_id: str | None) -> Step | None:
        for s in self.steps:
            if s.id == step_id:
                return s
        return None

    def start_step(self) -> Step:
        starts = [s for s in self.steps if s.type == "start"]
        if not starts:
            raise NoStartStep("No start step found in workflow")
        if len(starts) > 1:
            ids = ", ".join(s.id for s in starts)
            raise NoStartStep(f"Workflow has {len(starts)} start steps ({ids})")
        return starts[0]

    def outgoing(self, step_id: str) -> list[Edge]:
        return [e for e in self.edges if e.source == step_id]

    def next_step_id(self, step: Step, condition_met: bool | None = None) -> str | None:
        """Target of the edge leaving ``step``.

        Condition steps follow the edge whose handle matches the outcome;
        other steps follow the first outgoing edge.
        """
        if step.type == "condition":
            handle = "yes" if condition_met else "no"
            for edge in self.outgoing(step.id):
                if edge.source_handle == handle:
                    return edge.target
            return None

        edges = self.outgoing(step.id)
        return edges[0].target if edges else None


def validate_definition(definition: CampaignDefinition) -> None:
    """Campaign-save checks: one start, no dangling edges, reachability, configs.

    Raises ConfigurationError (or a subclass) listing every problem found.
    """
    problems = []
    ids = [s.id for s in definition.steps]

    dupes = sorted({i for i in ids if ids.count(i) > 1})
    if dupes:
        problems.append(f"duplicate step ids: {', '.join(dupes)}")

    start = None
    try:
        start = definition.start_step()
    except NoStartStep as e:
        problems.append(str(e))

    known = set(ids)
    for edge in definition.edges:
        if edge.source not in known or edge.target not in known:
            problems.append(f"dangling edge {edge.source} -> {edge.target}")

    for step in definition.steps:
        try:
            parse_step_config(step.type, step.config)
        except StepValidationError as e:
            problems.append(f"step {step.id}: {e}")

    if start is not None:
        reachable = {start.id}
        queue = deque([start.id])
        while queue:
            for edge in definition.outgoing(queue.popleft()):
                if edge.target in known and edge.target not in reachable:
                    reachable.add(edge.target)
                    queue.append(edge.target)
        unreachable = [s.id for s in definition.steps if s.id not in reachable]
        if unreachable:
            problems.append(f"unreachable steps: {', '.join(unreachable)}")

    if not problems:
        return

    logger.warning("Workflow for campaign %s failed validation: %s", definition.id, problems)
    if len(problems) == 1 and start is None and "start step" in problems[0]:
        raise NoStartStep(problems[0])
    if all(p.startswith("dangling edge") for p in problems):
        raise DanglingStep("; ".join(problems))
    raise ConfigurationError("Invalid workflow: " + "; ".join(problems), problems)
