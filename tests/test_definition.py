"""Tests for workflow parsing, typed step configs and save-time validation."""

import pytest

from outreach_flow.errors import ConfigurationError, DanglingStep, NoStartStep, StepValidationError
from outreach_flow.workflow.definition import (
    CampaignDefinition,
    DelayConfig,
    EmailConfig,
    LeadGenerationConfig,
    parse_step_config,
    validate_definition,
)


def _wf(steps, edges):
    return CampaignDefinition.from_workflow({
        "steps": [{"id": i, "type": t, "config": c} for i, t, c in steps],
        "edges": [{"source": s, "target": t, **({"sourceHandle": h} if h else {})} for s, t, h in edges],
    })


LINEAR = [
    ("s", "start", {}),
    ("d", "delay", {"delayHours": 1}),
    ("e", "email_send", {"subject": "Hi {{first_name}}", "body": "Hello"}),
    ("x", "end", {}),
]
LINEAR_EDGES = [("s", "d", None), ("d", "e", None), ("e", "x", None)]


# ---------------------------------------------------------------------------
# Step configs
# ---------------------------------------------------------------------------

class TestParseStepConfig:
    def test_delay_camel_case(self):
        cfg = parse_step_config("delay", {"delayDays": 1, "delayHours": 2, "delayMinutes": 30})
        assert isinstance(cfg, DelayConfig)
        assert cfg.total_seconds == 95400

    def test_delay_all_zero_is_valid(self):
        cfg = parse_step_config("delay", {"days": 0, "hours": 0, "minutes": 0})
        assert cfg.total_seconds == 0

    def test_delay_needs_a_unit(self):
        with pytest.raises(StepValidationError, match="delay"):
            parse_step_config("delay", {})

    def test_delay_rejects_negative(self):
        with pytest.raises(StepValidationError):
            parse_step_config("delay", {"hours": -1})

    def test_email_requires_subject_and_body(self):
        with pytest.raises(StepValidationError) as exc:
            parse_step_config("email_send", {"subject": "Hi"})
        assert "body" in str(exc.value)
        assert isinstance(parse_step_config("email_followup", {"subject": "a", "body": "b"}), EmailConfig)

    def test_linkedin_message_requires_message(self):
        with pytest.raises(StepValidationError):
            parse_step_config("linkedin_message", {"message": ""})

    def test_linkedin_connect_message_optional(self):
        assert parse_step_config("linkedin_connect", {}).message == ""

    def test_voice_requires_agent_and_context(self):
        with pytest.raises(StepValidationError):
            parse_step_config("voice_agent_call", {"voiceAgentId": "agent-1"})
        cfg = parse_step_config("voice_agent_call", {"voiceAgentId": "agent-1", "voiceContext": "Intro call"})
        assert cfg.voice_agent_id == "agent-1"

    def test_condition_requires_type(self):
        with pytest.raises(StepValidationError):
            parse_step_config("condition", {"operator": "equals"})

    def test_lead_generation_defaults(self):
        cfg = parse_step_config("lead_generation", {"leadGenerationFilters": {"roles": ["CTO"]}})
        assert isinstance(cfg, LeadGenerationConfig)
        assert cfg.filters == {"roles": ["CTO"]}
        assert cfg.limit == 25

    def test_unknown_step_type(self):
        with pytest.raises(StepValidationError, match="unsupported"):
            parse_step_config("fax_send", {})

    def test_validation_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_step_config("email_send", {})


# ---------------------------------------------------------------------------
# Graph
# ---------------------------------------------------------------------------

class TestCampaignDefinition:
    def test_from_workflow_accepts_data_key(self):
        definition = CampaignDefinition.from_workflow({
            "steps": [{"id": "s", "type": "start", "data": {"label": "Start"}}],
            "edges": [],
        })
        assert definition.step("s").config == {"label": "Start"}

    def test_start_step(self):
        assert _wf(LINEAR, LINEAR_EDGES).start_step().id == "s"

    def test_no_start_step(self):
        with pytest.raises(NoStartStep):
            _wf([("x", "end", {})], []).start_step()

    def test_two_start_steps(self):
        with pytest.raises(NoStartStep, match="2 start steps"):
            _wf([("a", "start", {}), ("b", "start", {})], []).start_step()

    def test_next_step_follows_first_edge(self):
        definition = _wf(LINEAR, LINEAR_EDGES)
        assert definition.next_step_id(definition.step("d")) == "e"
        assert definition.next_step_id(definition.step("x")) is None

    def test_condition_follows_matching_handle(self):
        definition = _wf(
            [("c", "condition", {"conditionType": "response_received"}), ("y", "end", {}), ("n", "end", {})],
            [("c", "y", "yes"), ("c", "n", "no")],
        )
        cond = definition.step("c")
        assert definition.next_step_id(cond, True) == "y"
        assert definition.next_step_id(cond, False) == "n"

    def test_condition_without_matching_handle(self):
        definition = _wf(
            [("c", "condition", {"conditionType": "response_received"}), ("y", "end", {})],
            [("c", "y", "yes")],
        )
        assert definition.next_step_id(definition.step("c"), False) is None


class TestValidateDefinition:
    def test_valid_workflow_passes(self):
        validate_definition(_wf(LINEAR, LINEAR_EDGES))

    def test_missing_start(self):
        with pytest.raises(NoStartStep):
            validate_definition(_wf([("x", "end", {})], []))

    def test_dangling_edge(self):
        with pytest.raises(DanglingStep):
            validate_definition(_wf(LINEAR, LINEAR_EDGES + [("x", "ghost", None)]))

    def test_reports_every_problem(self):
        steps = LINEAR + [
            ("orphan", "end", {}),
            ("bad", "linkedin_message", {}),
        ]
        with pytest.raises(ConfigurationError) as exc:
            validate_definition(_wf(steps, LINEAR_EDGES))
        problems = exc.value.problems
        assert any("unreachable" in p and "orphan" in p for p in problems)
        assert any("step bad" in p for p in problems)

    def test_duplicate_ids(self):
        steps = LINEAR + [("e", "end", {})]
        with pytest.raises(ConfigurationError, match="duplicate step ids: e"):
            validate_definition(_wf(steps, LINEAR_EDGES))
